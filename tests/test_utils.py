from pathlib import Path

from libfattura.pipeline import xml_to_invoice
from libfattura.utils import default_pdf_path, invoice_file_stem, sanitize_file_name

REPO_ROOT = Path(__file__).resolve().parents[1]
FIXTURES_DIR = REPO_ROOT / "tests" / "fixtures"
MULTI_INVOICE_PATH = FIXTURES_DIR / "IT01234567890_FPR02.xml"


def test_sanitize_file_name_basic():
    """Test basic sanitization of a single string."""
    assert sanitize_file_name('  a/b c?d*e:f|g\\h<i>j"k<l>m  ') == "a-b-c-d-e-f-g-h-i-j-k-l-m"


def test_sanitize_file_name_multiple_parts():
    """Test sanitization with multiple string parts."""
    assert sanitize_file_name(" FPR 1/24 ", " ALPHA SRL ") == "FPR-1-24_ALPHA-SRL"


def test_sanitize_file_name_period_removal():
    """Test that periods are removed."""
    assert sanitize_file_name("ALPHA S.R.L.") == "ALPHA-SRL"


def test_sanitize_file_name_custom_glue_and_replace():
    """Test with custom glue and replace characters."""
    assert sanitize_file_name("a/b", "c?d", glue="---", replace_char="!") == "a!b---c!d"


def test_sanitize_file_name_replace_char_is_literal():
    """Regex metacharacters as replace_char still collapse correctly."""
    assert sanitize_file_name("a//b", replace_char="+") == "a+b"


def test_sanitize_file_name_empty_strings():
    """Test with empty string inputs."""
    assert sanitize_file_name("", "a", "") == "_a_"


def test_invoice_file_stem_sums_installments():
    """The stem uses the first installment and the grand total."""
    invoice = xml_to_invoice(MULTI_INVOICE_PATH.read_bytes())

    assert invoice_file_stem(invoice) == "ALPHA-SRL_2024-03-01_FPR-1-24_229.73"


def test_default_pdf_path():
    invoice = xml_to_invoice(MULTI_INVOICE_PATH.read_bytes())

    path = default_pdf_path(Path("/data/IT01234567890_FPR02.xml"), invoice)

    assert path == Path("/data/IT01234567890_FPR02_ALPHA-SRL_2024-03-01_FPR-1-24_229.73.pdf")
