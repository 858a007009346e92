import copy
import datetime
from decimal import Decimal
from pathlib import Path

import pytest

from libfattura.errors import MalformedInvoiceError, ToleranceWarning
from libfattura.extractor import Node, as_sequence, compute_tax_summary, extract, to_cents
from libfattura.model import Line
from libfattura.xml_tree import parse_xml

REPO_ROOT = Path(__file__).resolve().parents[1]
FIXTURES_DIR = REPO_ROOT / "tests" / "fixtures"
SIMPLE_INVOICE_PATH = FIXTURES_DIR / "IT01234567890_FPR01.xml"
MULTI_INVOICE_PATH = FIXTURES_DIR / "IT01234567890_FPR02.xml"
MISSING_VAT_PATH = FIXTURES_DIR / "missing_invoicee_vat.xml"

HEADER_PATH = "FatturaElettronica.FatturaElettronicaHeader"
BODY_PATH = "FatturaElettronica.FatturaElettronicaBody"


@pytest.fixture
def simple_tree():
    return parse_xml(SIMPLE_INVOICE_PATH.read_bytes())


@pytest.fixture
def multi_tree():
    return parse_xml(MULTI_INVOICE_PATH.read_bytes())


def _body(tree):
    return tree["FatturaElettronica"]["FatturaElettronicaBody"]


def _line(tree):
    return _body(tree)["DatiBeniServizi"]["DettaglioLinee"]


def test_as_sequence():
    assert as_sequence(None) == []
    assert as_sequence([1, 2]) == [1, 2]
    assert as_sequence({"a": 1}) == [{"a": 1}]
    assert as_sequence("x") == ["x"]


def test_to_cents_rounds_half_up():
    assert to_cents(Decimal("2.345")) == Decimal("2.35")
    assert to_cents(Decimal("2.344")) == Decimal("2.34")
    assert to_cents(Decimal("-2.345")) == Decimal("-2.35")


def test_node_paths():
    """Paths use dots for children and an index only when the element repeats."""
    node = Node({"A": {"B": [{"C": 1}, {"C": 2}], "D": {"C": 3}}}, "Root")

    assert node.require("A", "D", "C").path == "Root.A.D.C"
    assert [n.path for n in node.require("A").sequence("B")] == ["Root.A.B[0]", "Root.A.B[1]"]
    assert [n.path for n in node.require("A").sequence("D")] == ["Root.A.D"]
    assert node.require("A").sequence("Missing") == []
    assert node.find("A", "Missing", "C") is None

    with pytest.raises(MalformedInvoiceError) as exc_info:
        node.require("A", "Missing")
    assert exc_info.value.path == "Root.A.Missing"


def test_node_decimal_rejects_garbage():
    with pytest.raises(MalformedInvoiceError, match="expected a number"):
        Node("abc", "X").decimal()
    with pytest.raises(MalformedInvoiceError, match="finite"):
        Node("NaN", "X").decimal()
    with pytest.raises(MalformedInvoiceError, match="text value"):
        Node({"Nested": 1}, "X").decimal()
    assert Node(3, "X").decimal() == Decimal(3)
    assert Node({"_": Decimal("1.50"), "attributes": {"a": "b"}}, "X").decimal() == Decimal("1.50")


def test_node_date():
    assert Node("2024-03-01", "X").date() == datetime.date(2024, 3, 1)
    assert Node("2024-03-01T10:00:00", "X").date() == datetime.date(2024, 3, 1)
    with pytest.raises(MalformedInvoiceError, match="YYYY-MM-DD"):
        Node("01/03/2024", "X").date()
    with pytest.raises(MalformedInvoiceError, match="invalid date"):
        Node("2024-02-30", "X").date()


@pytest.mark.parametrize("value", ["2024-03-01garbage", "2024-03-011", "2024-03-01T10", " 2024-03-01", "2024-03-01\n"])
def test_node_date_rejects_trailing_text(value):
    """Only a full date, optionally followed by a time, is accepted."""
    with pytest.raises(MalformedInvoiceError, match="YYYY-MM-DD"):
        Node(value, "X").date()


def test_node_date_accepts_timezone():
    assert Node("2024-03-01+01:00", "X").date() == datetime.date(2024, 3, 1)
    assert Node("2024-03-01T10:00:00.5Z", "X").date() == datetime.date(2024, 3, 1)


def test_compute_tax_summary_groups_by_rate():
    """Tax is rounded once per rate, not once per line."""
    lines = [
        Line(number=1, description="a", single_price=Decimal("0.33"), amount=Decimal("0.33"), tax=Decimal("22")),
        Line(number=2, description="b", single_price=Decimal("0.33"), amount=Decimal("0.33"), tax=Decimal("22")),
        Line(number=3, description="c", single_price=Decimal("10"), amount=Decimal("10.00"), tax=Decimal("0")),
    ]
    summary = compute_tax_summary(lines)

    assert summary.payment_amount == Decimal("10.66")
    # 0.66 * 22% = 0.1452, while per line rounding would give 0.07 + 0.07
    assert summary.tax_amount == Decimal("0.15")


def test_extract_simple_invoice(simple_tree):
    """A single body invoice with one line: 2 x 10.00 at 22%."""
    invoice = extract(simple_tree)

    assert invoice.invoicer.name == "ALPHA SRL"
    assert invoice.invoicer.vat == "01234567890"
    assert invoice.invoicer.office.postal_code == "07100"
    assert invoice.invoicer.office.number == "543"
    assert invoice.invoicer.contacts.phone == "079123456"
    assert invoice.invoicee.name == "BETA SPA"
    assert invoice.invoicee.vat == "09876543210"
    assert invoice.invoicee.contacts is None
    assert invoice.third_party is None

    assert len(invoice.installments) == 1
    installment = invoice.installments[0]
    assert installment.number == "123"
    assert installment.issue_date == datetime.date(2024, 3, 1)
    assert installment.currency == "EUR"
    assert installment.description is None
    assert installment.attachments is None
    assert installment.stamp_duty is None

    (line,) = installment.lines
    assert line.number == 1
    assert line.description == "Consulenza tecnica"
    assert line.quantity == Decimal("2")
    assert line.single_price == Decimal("10")
    assert line.amount == Decimal("20.00")
    assert line.tax == Decimal("22")

    assert installment.tax_summary.payment_amount == Decimal("20.00")
    assert installment.tax_summary.tax_amount == Decimal("4.40")
    assert installment.total_amount == Decimal("24.40")

    payment = installment.payment
    assert payment.method == "MP05"
    assert payment.bank == "BANCA ESEMPIO"
    assert payment.iban == "IT60X0542811101000000123456"
    assert payment.regular_payment_date == datetime.date(2024, 3, 31)
    assert payment.amount == Decimal("24.40")

    assert invoice.warnings == ()


def test_extract_multi_body_invoice(multi_tree):
    """Each body is an installment, in document order."""
    invoice = extract(multi_tree)

    assert invoice.invoicee.name == "MARIO ROSSI"
    assert invoice.invoicee.vat == "RSSMRA80A01H501U"
    assert invoice.invoicee.contacts.email == "mario.rossi@example.org"
    assert invoice.third_party.name == "GAMMA SERVIZI SRL"
    assert invoice.third_party.vat == "11223344556"

    first, second = invoice.installments
    assert first.number == "FPR 1/24"
    assert first.description == "Fornitura materiale di consumo\ncome da ordine del 15/02/2024"
    assert first.stamp_duty == Decimal("2.00")
    assert [line.number for line in first.lines] == [1, 2]
    assert first.lines[1].quantity == Decimal(1)
    assert first.tax_summary.payment_amount == Decimal("146.50")
    assert first.tax_summary.tax_amount == Decimal("20.23")
    assert first.total_amount == Decimal("168.73")
    assert first.payment.bank is None
    assert [(a.name, a.description) for a in first.attachments] == [("ordine.pdf", "Ordine di acquisto")]

    assert second.number == "FPR 2/24"
    assert second.issue_date == datetime.date(2024, 4, 1)
    assert second.payment is None
    assert second.attachments is None
    assert second.total_amount == Decimal("61.00")

    assert invoice.warnings == ()


def test_extract_single_and_list_forms_are_equivalent(simple_tree):
    """Bare line and body objects extract like one element lists."""
    as_list = copy.deepcopy(simple_tree)
    _body(as_list)["DatiBeniServizi"]["DettaglioLinee"] = [_line(as_list)]
    as_list["FatturaElettronica"]["FatturaElettronicaBody"] = [_body(as_list)]

    assert extract(as_list) == extract(simple_tree)


def test_extract_is_idempotent_and_leaves_tree_untouched(multi_tree):
    snapshot = copy.deepcopy(multi_tree)

    assert extract(multi_tree) == extract(multi_tree)
    assert multi_tree == snapshot


def test_extract_missing_invoicee_vat():
    """The error names the invoicee VAT field."""
    tree = parse_xml(MISSING_VAT_PATH.read_bytes())

    with pytest.raises(MalformedInvoiceError) as exc_info:
        extract(tree)

    assert exc_info.value.path == f"{HEADER_PATH}.CessionarioCommittente.DatiAnagrafici.IdFiscaleIVA.IdCodice"
    assert "CessionarioCommittente" in str(exc_info.value)


def test_extract_non_numeric_amount(simple_tree):
    _line(simple_tree)["PrezzoUnitario"] = "dieci"

    with pytest.raises(MalformedInvoiceError) as exc_info:
        extract(simple_tree)

    assert exc_info.value.path == f"{BODY_PATH}.DatiBeniServizi.DettaglioLinee.PrezzoUnitario"


def test_extract_invalid_date(simple_tree):
    _body(simple_tree)["DatiGenerali"]["DatiGeneraliDocumento"]["Data"] = "2024-13-01"

    with pytest.raises(MalformedInvoiceError) as exc_info:
        extract(simple_tree)

    assert exc_info.value.path == f"{BODY_PATH}.DatiGenerali.DatiGeneraliDocumento.Data"


def test_extract_missing_lines(simple_tree):
    del _body(simple_tree)["DatiBeniServizi"]["DettaglioLinee"]

    with pytest.raises(MalformedInvoiceError, match="at least one element"):
        extract(simple_tree)


def test_extract_missing_root():
    with pytest.raises(MalformedInvoiceError) as exc_info:
        extract({"FatturaElettronicaSemplificata": {}})
    assert exc_info.value.path == "FatturaElettronica"


def test_extract_same_vat_for_both_parties(simple_tree):
    header = simple_tree["FatturaElettronica"]["FatturaElettronicaHeader"]
    header["CessionarioCommittente"]["DatiAnagrafici"]["IdFiscaleIVA"]["IdCodice"] = "01234567890"

    with pytest.raises(MalformedInvoiceError, match="same VAT id"):
        extract(simple_tree)


def test_extract_same_code_in_another_country(simple_tree):
    """Parties are told apart by country and code together."""
    header = simple_tree["FatturaElettronica"]["FatturaElettronicaHeader"]
    fiscal_id = header["CessionarioCommittente"]["DatiAnagrafici"]["IdFiscaleIVA"]
    fiscal_id["IdPaese"] = "DE"
    fiscal_id["IdCodice"] = "01234567890"

    invoice = extract(simple_tree)

    assert invoice.invoicer.tax_identity == ("IT", "01234567890")
    assert invoice.invoicee.tax_identity == ("DE", "01234567890")


def test_extract_duplicate_installment_numbers(multi_tree):
    bodies = _body(multi_tree)
    bodies[1]["DatiGenerali"]["DatiGeneraliDocumento"]["Numero"] = "FPR 1/24"

    with pytest.raises(MalformedInvoiceError, match="unique"):
        extract(multi_tree)


def test_extract_payment_without_iban(simple_tree):
    del _body(simple_tree)["DatiPagamento"]["DettaglioPagamento"]["IBAN"]

    with pytest.raises(MalformedInvoiceError) as exc_info:
        extract(simple_tree)

    assert exc_info.value.path == f"{BODY_PATH}.DatiPagamento.DettaglioPagamento.IBAN"


def test_extract_uses_first_payment_detail(simple_tree):
    payment = _body(simple_tree)["DatiPagamento"]
    second = dict(payment["DettaglioPagamento"], IBAN="IT02L1234512345123456789012")
    payment["DettaglioPagamento"] = [payment["DettaglioPagamento"], second]

    invoice = extract(simple_tree)

    assert invoice.installments[0].payment.iban == "IT60X0542811101000000123456"


def test_extract_negative_stamp_duty(simple_tree):
    document = _body(simple_tree)["DatiGenerali"]["DatiGeneraliDocumento"]
    document["DatiBollo"] = {"ImportoBollo": Decimal("-2.00")}

    with pytest.raises(MalformedInvoiceError, match="stamp duty"):
        extract(simple_tree)


def test_extract_declared_total_mismatch_warns(simple_tree):
    """The recomputed total wins and the mismatch is reported."""
    _body(simple_tree)["DatiGenerali"]["DatiGeneraliDocumento"]["ImportoTotaleDocumento"] = Decimal("30.00")

    invoice = extract(simple_tree)

    assert invoice.installments[0].total_amount == Decimal("24.40")
    assert invoice.warnings == (
        ToleranceWarning(
            f"{BODY_PATH}.DatiGenerali.DatiGeneraliDocumento.ImportoTotaleDocumento",
            Decimal("30.00"),
            Decimal("24.40"),
        ),
    )
    assert "warnings" not in invoice.model_dump()


def test_extract_within_tolerance_is_silent(simple_tree):
    _body(simple_tree)["DatiGenerali"]["DatiGeneraliDocumento"]["ImportoTotaleDocumento"] = Decimal("24.41")

    assert extract(simple_tree).warnings == ()
    assert len(extract(simple_tree, tolerance=Decimal("0")).warnings) == 1


def test_extract_declared_line_total_wins(simple_tree):
    """A discounted PrezzoTotale is kept as the line amount."""
    _line(simple_tree)["PrezzoTotale"] = Decimal("18.00")

    invoice = extract(simple_tree)
    installment = invoice.installments[0]

    assert installment.lines[0].amount == Decimal("18.00")
    assert installment.tax_summary.payment_amount == Decimal("18.00")
    assert installment.tax_summary.tax_amount == Decimal("3.96")
    assert installment.total_amount == Decimal("21.96")
    assert invoice.warnings[0].path == f"{BODY_PATH}.DatiBeniServizi.DettaglioLinee.PrezzoTotale"
    assert invoice.warnings[0].computed == Decimal("20.00")


def test_extract_line_renumbering(multi_tree):
    """Lines are numbered by position whatever NumeroLinea says."""
    lines = _body(multi_tree)[0]["DatiBeniServizi"]["DettaglioLinee"]
    lines[0]["NumeroLinea"] = 10
    lines[1]["NumeroLinea"] = 20

    invoice = extract(multi_tree)

    assert [line.number for line in invoice.installments[0].lines] == [1, 2]


def test_invoice_dump_uses_camel_case(multi_tree):
    dumped = extract(multi_tree).model_dump(by_alias=True)

    assert set(dumped) == {"invoicer", "invoicee", "thirdParty", "installments"}
    installment = dumped["installments"][0]
    assert installment["issueDate"] == datetime.date(2024, 3, 1)
    assert installment["taxSummary"]["paymentAmount"] == Decimal("146.50")
    assert installment["lines"][0]["singlePrice"] == Decimal("15.50")
    assert dumped["invoicer"]["office"]["postalCode"] == "07100"
