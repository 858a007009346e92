"""End-to-end conversion: XML → generic tree → Invoice → pages → PDF.

Every call builds its own tree, invoice and document; nothing is shared
between calls, so they can run concurrently. A failure in parsing or
extraction aborts the call before anything is rendered.
"""

from __future__ import annotations

import io
import logging
from decimal import Decimal
from typing import Any

from .errors import RenderFallback
from .extractor import DEFAULT_TOLERANCE, extract
from .layout import render_pdf
from .model import Invoice
from .renderer import PageDescription, render
from .theme import DisplayConfig
from .xml_tree import parse_xml

logger = logging.getLogger(__name__)


def xml_to_tree(xml: str | bytes) -> dict[str, Any]:
    """Parse the XML into the generic tree (raises ParseError)."""
    return parse_xml(xml)


def xml_to_invoice(xml: str | bytes, tolerance: Decimal = DEFAULT_TOLERANCE) -> Invoice:
    """Parse and extract the Invoice (raises ParseError or MalformedInvoiceError)."""
    return extract(xml_to_tree(xml), tolerance=tolerance)


def xml_to_pages(
    xml: str | bytes,
    display: DisplayConfig | None = None,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    fallbacks: list[RenderFallback] | None = None,
) -> list[PageDescription]:
    return render(xml_to_invoice(xml, tolerance), display, fallbacks)


def xml_to_pdf(
    xml: str | bytes,
    display: DisplayConfig | None = None,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> io.BytesIO:
    """Convert an electronic invoice to a PDF stream, one page per installment.

    Args:
        xml: FatturaPA document.
        display: Locale, footer toggle, colors and optional font.
        tolerance: Accepted difference between declared and computed totals.

    Returns:
        io.BytesIO: The PDF, positioned at its start. The stream belongs to
        the caller.

    Raises:
        ParseError: If the XML is not well formed.
        MalformedInvoiceError: If a required field is missing or mistyped.
    """
    display = display or DisplayConfig()
    pages = xml_to_pages(xml, display, tolerance)
    logger.info(f"Converting invoice with {len(pages)} installment(s) to PDF")
    return render_pdf(pages, font_path=display.font_path)
