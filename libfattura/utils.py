import re
from pathlib import Path

from .model import Invoice


def sanitize_file_name(*dirty, glue: str = "_", replace_char: str = "-") -> str:
    """
    Cleans and concatenates multiple string parts to form a valid filename or identifier.

    Each part is stripped, loses its periods, has invalid and special characters
    (e.g. /, \\, ?, &, :) replaced with `replace_char` and runs of `replace_char`
    collapsed. The parts are then joined with `glue`.

    Args:
        *dirty: One or more string components to be sanitized and concatenated.
        glue (str, optional): The character(s) used to join the sanitized parts. Defaults to '_'.
        replace_char (str, optional): The character used to replace invalid or special characters. Defaults to '-'.

    Returns:
        str: The sanitized, joined string suitable for use as a filename or similar identifier.

    Example:
        >>> sanitize_file_name(' My/Document ', 'v.1 ', glue='-', replace_char='!')
        'My!Document-v1'
    """
    parts: list[str] = list()
    for part in dirty:
        part = part.strip().replace(".", "")
        part = re.sub(r"[/\\?`&%*:|\"<>\x7F\x00-\x1F,.\s]", replace_char, part)
        part = re.sub(re.escape(replace_char) + "+", replace_char, part)
        parts.append(part)

    return glue.join(parts)


def invoice_file_stem(invoice: Invoice) -> str:
    """Build a human-friendly file name stem for an invoice.

    Uses the supplier name, the issue date and number of the first
    installment and the grand total of all installments.
    """
    first = invoice.installments[0]
    total = sum(installment.total_amount for installment in invoice.installments)
    return sanitize_file_name(invoice.invoicer.name, str(first.issue_date), first.number) + f"_{total:.2f}"


def default_pdf_path(xml_file: Path, invoice: Invoice) -> Path:
    """PDF path next to the XML file: ``<xml stem>_<invoice stem>.pdf``."""
    return xml_file.parent / f"{xml_file.stem}_{invoice_file_stem(invoice)}.pdf"
