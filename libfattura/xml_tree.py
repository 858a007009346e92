"""Generic XML tree parser.

Turns XML text into nested dictionaries the way ``xml2js`` does with
``explicitArray: false``: namespace prefixes are stripped from tag and
attribute names, repeated children collapse into lists, a single child stays
a bare value, attributes live under ``ATTRIBUTES_KEY`` and leaf text is
coerced to numbers when it can be done without losing information.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import Any

from lxml import etree  # pyright: ignore

from .errors import ParseError

ATTRIBUTES_KEY = "attributes"
TEXT_KEY = "_"

_INT_RE = re.compile(r"^-?(0|[1-9][0-9]*)$")
_DECIMAL_RE = re.compile(r"^-?(0|[1-9][0-9]*)\.[0-9]+$")

logger = logging.getLogger(__name__)


def coerce_scalar(text: str) -> str | int | Decimal:
    """Parse leaf text as a number if the textual form is canonical.

    ``"0012"`` stays a string (it is an identifier, not a quantity), while
    ``"12"`` and ``"12.50"`` become ``int`` and ``Decimal``.
    """
    if _INT_RE.match(text):
        return int(text)
    if _DECIMAL_RE.match(text):
        return Decimal(text)
    return text


def _local_name(name: str) -> str:
    return etree.QName(name).localname


def _convert(element: Any) -> Any:
    attributes = {_local_name(key): value for key, value in element.attrib.items()}
    children = [child for child in element if isinstance(child.tag, str)]
    text = (element.text or "").strip()

    if not children and not attributes:
        return coerce_scalar(text) if text else ""

    node: dict[str, Any] = {}
    if attributes:
        node[ATTRIBUTES_KEY] = attributes
    if text:
        node[TEXT_KEY] = coerce_scalar(text)

    for child in children:
        key = _local_name(child.tag)
        value = _convert(child)
        if key not in node:
            node[key] = value
        elif isinstance(node[key], list):
            node[key].append(value)
        else:
            node[key] = [node[key], value]

    return node


def parse_xml(xml: str | bytes) -> dict[str, Any]:
    """Parse XML text into a generic tree rooted at the document element name.

    Args:
        xml: The document. ``str`` input is read as UTF-8 whatever its
            declaration says; ``bytes`` honour the declared encoding.

    Returns:
        dict: ``{root_local_name: converted_root}``.

    Raises:
        ParseError: If the markup is not well formed.
    """
    if isinstance(xml, str):
        data = xml.encode("utf-8")
        parser = etree.XMLParser(encoding="utf-8", resolve_entities=False, no_network=True)
    else:
        data = xml
        parser = etree.XMLParser(resolve_entities=False, no_network=True)

    try:
        root = etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as e:
        logger.debug(f"XML syntax error: {e}")
        raise ParseError(f"Invalid XML: {e}") from e

    if root is None:
        raise ParseError("Invalid XML: empty document")

    return {_local_name(root.tag): _convert(root)}
