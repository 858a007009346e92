from pathlib import Path

from rich.console import Console

from libfattura.console import ConsoleRenderer, print_pages
from libfattura.pipeline import xml_to_pages
from libfattura.theme import DisplayConfig

REPO_ROOT = Path(__file__).resolve().parents[1]
FIXTURES_DIR = REPO_ROOT / "tests" / "fixtures"
SIMPLE_INVOICE_PATH = FIXTURES_DIR / "IT01234567890_FPR01.xml"
MULTI_INVOICE_PATH = FIXTURES_DIR / "IT01234567890_FPR02.xml"


def _recording_console() -> Console:
    return Console(record=True, width=140, color_system=None)


def test_console_renderer_prints_page():
    console = _recording_console()
    (page,) = xml_to_pages(SIMPLE_INVOICE_PATH.read_bytes())

    ConsoleRenderer(console).render(page)
    output = console.export_text()

    assert "Numero: 123" in output
    assert "ALPHA SRL" in output
    assert "BETA SPA" in output
    assert "Consulenza tecnica" in output
    assert "24,40€" in output
    assert "IT60X0542811101000000123456" in output
    assert "Documento generato con libfattura" in output


def test_print_pages_all_installments():
    console = _recording_console()
    pages = xml_to_pages(MULTI_INVOICE_PATH.read_bytes(), DisplayConfig(locale="en", footer=False))

    print_pages(pages, console)
    output = console.export_text()

    assert "Number: FPR 1/24" in output
    assert "Number: FPR 2/24" in output
    assert output.index("FPR 1/24") < output.index("FPR 2/24")
    assert "GAMMA SERVIZI SRL" in output
    assert "Ordine di acquisto" in output
    assert "Document generated with libfattura" not in output
