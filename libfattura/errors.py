"""Errors and warnings raised or collected by the conversion pipeline."""

from __future__ import annotations

from decimal import Decimal


class LibFatturaError(Exception):
    """Base class for fatal pipeline errors."""


class ParseError(LibFatturaError):
    """Raised when the input is not well-formed XML."""


class MalformedInvoiceError(LibFatturaError):
    """Raised when the XML parsed but a required field is missing or mistyped.

    Attributes:
        path: Dotted path of the offending field in the generic tree.
        reason: Human readable description of the problem.
    """

    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class ToleranceWarning(UserWarning):
    """A declared aggregate disagrees with the recomputed one beyond tolerance.

    Never raised by the extractor: instances are collected on
    ``Invoice.warnings`` and logged.
    """

    def __init__(self, path: str, declared: Decimal, computed: Decimal):
        super().__init__(f"{path}: declared {declared} but computed {computed}")
        self.path = path
        self.declared = declared
        self.computed = computed

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ToleranceWarning):
            return NotImplemented
        return (self.path, self.declared, self.computed) == (other.path, other.declared, other.computed)

    def __hash__(self) -> int:
        return hash((self.path, self.declared, self.computed))


class RenderFallback(UserWarning):
    """An unsupported locale or currency code was replaced by its default."""

    def __init__(self, kind: str, requested: str, used: str):
        super().__init__(f"unsupported {kind} '{requested}', using '{used}'")
        self.kind = kind
        self.requested = requested
        self.used = used
