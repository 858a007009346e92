"""Display options for the document renderer."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from .formatting import DEFAULT_LOCALE

_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


@dataclass(frozen=True, slots=True)
class Theme:
    """Named colors of the document, as ``#rrggbb`` strings."""

    primary: str = "#6699cc"
    text: str = "#033243"
    lighter_text: str = "#476976"
    footer_text: str = "#8CA1A9"
    lighter_gray: str = "#E8ECED"
    table_header: str = "#D1D9DC"

    def with_overrides(self, overrides: Mapping[str, str | None] | None) -> Theme:
        """Return a copy where every non-empty override replaces the default.

        Overrides are normalized to the ``#rrggbb`` form.

        Keys may be given in snake_case (``lighter_text``) or camelCase
        (``lighterText``).

        Raises:
            ValueError: On an unknown color role or a malformed color.
        """
        if not overrides:
            return self

        known = {f.name for f in fields(self)}
        changes: dict[str, str] = {}
        for key, value in overrides.items():
            name = re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()
            if name not in known:
                raise ValueError(f"Unknown color role '{key}'. Known roles: {', '.join(sorted(known))}")
            if not value:
                continue
            if not _HEX_COLOR_RE.match(value):
                raise ValueError(f"Color '{key}' must be a #rgb or #rrggbb string, got '{value}'")
            changes[name] = "#{:02x}{:02x}{:02x}".format(*hex_to_rgb(value))

        return replace(self, **changes)


def hex_to_rgb(color: str) -> tuple[int, int, int]:
    digits = color.lstrip("#")
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


@dataclass(frozen=True)
class DisplayConfig:
    """Options of the document renderer.

    Attributes:
        locale: BCP-47-ish tag driving labels, separators and date layout.
        footer: Whether the attribution line is printed at the bottom.
        colors: Theme, defaults merged with any override.
        font_path: Optional TTF font used instead of the PDF core fonts.
    """

    locale: str = DEFAULT_LOCALE
    footer: bool = True
    colors: Theme = field(default_factory=Theme)
    font_path: Path | None = None

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any] | None) -> DisplayConfig:
        """Build a DisplayConfig from a plain mapping such as a TOML section."""
        options = dict(options or {})
        font_path = options.get("font_path")
        return cls(
            locale=options.get("locale") or DEFAULT_LOCALE,
            footer=bool(options.get("footer", True)),
            colors=Theme().with_overrides(options.get("colors")),
            font_path=Path(font_path) if font_path else None,
        )
