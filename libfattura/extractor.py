"""Map the generic FatturaPA tree onto the strict domain model.

The generic tree is loosely typed: a repeated element is a list, a single one
is a bare value, numbers may or may not have been coerced and optional blocks
may be missing altogether. ``extract`` walks it with a path-aware ``Node``
wrapper so that every failure names the offending field, recomputes every
aggregate from the invoice lines and reports declared aggregates that
disagree as ``ToleranceWarning``.
"""

from __future__ import annotations

import datetime
import logging
import re
from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError

from .errors import MalformedInvoiceError, ToleranceWarning
from .model import (
    Attachment,
    Company,
    Contacts,
    Installment,
    Invoice,
    Line,
    Office,
    Payment,
    TaxSummary,
)
from .xml_tree import TEXT_KEY

logger = logging.getLogger(__name__)

ROOT_TAG = "FatturaElettronica"
CURRENCY_QUANT = Decimal("0.01")
DEFAULT_TOLERANCE = Decimal("0.01")

_DATE_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})(?:T\d{2}:\d{2}:\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:\d{2})?")


def as_sequence(value: Any) -> list[Any]:
    """Normalize a generic tree value to a list.

    The tree collapses a one element list to the bare element, so every field
    that may repeat goes through here: ``None`` gives ``[]``, a list is
    returned as is and anything else is wrapped.
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CURRENCY_QUANT, rounding=ROUND_HALF_UP)


class Node:
    """A value of the generic tree together with its path from the root."""

    def __init__(self, value: Any, path: str):
        self.value = value
        self.path = path

    def _join(self, name: str) -> str:
        return f"{self.path}.{name}" if self.path else name

    def get(self, name: str) -> Node | None:
        """Return the child ``name`` or None when absent or empty."""
        if not isinstance(self.value, dict):
            return None
        value = self.value.get(name)
        if value is None or value == "":
            return None
        return Node(value, self._join(name))

    def find(self, *names: str) -> Node | None:
        node: Node | None = self
        for name in names:
            node = node.get(name) if node is not None else None
        return node

    def require(self, *names: str) -> Node:
        node = self.find(*names)
        if node is None:
            raise MalformedInvoiceError(self._join(".".join(names)), "required field is missing")
        return node

    def sequence(self, name: str, required: bool = False) -> list[Node]:
        values = as_sequence(self.value.get(name)) if isinstance(self.value, dict) else []
        if required and not values:
            raise MalformedInvoiceError(self._join(name), "at least one element is required")
        if len(values) == 1:
            return [Node(values[0], self._join(name))]
        return [Node(value, f"{self._join(name)}[{index}]") for index, value in enumerate(values)]

    def _scalar(self) -> Any:
        value = self.value
        if isinstance(value, dict):
            value = value.get(TEXT_KEY)
        if value is None or isinstance(value, (dict, list)):
            raise MalformedInvoiceError(self.path, f"expected a text value, got {type(self.value).__name__}")
        return value

    def text(self) -> str:
        return str(self._scalar())

    def decimal(self) -> Decimal:
        value = self._scalar()
        if isinstance(value, bool):
            raise MalformedInvoiceError(self.path, f"expected a number, got {value!r}")
        try:
            number = Decimal(value) if isinstance(value, (int, Decimal)) else Decimal(str(value).strip())
        except InvalidOperation as e:
            raise MalformedInvoiceError(self.path, f"expected a number, got {value!r}") from e
        if not number.is_finite():
            raise MalformedInvoiceError(self.path, f"expected a finite number, got {value!r}")
        return number

    def date(self) -> datetime.date:
        value = self.text()
        match = _DATE_RE.fullmatch(value)
        if match is None:
            raise MalformedInvoiceError(self.path, f"expected a YYYY-MM-DD date, got {value!r}")
        try:
            return datetime.date(*(int(part) for part in match.groups()))
        except ValueError as e:
            raise MalformedInvoiceError(self.path, f"invalid date {value!r}: {e}") from e


def _optional_text(node: Node, *names: str) -> str | None:
    found = node.find(*names)
    return found.text() if found is not None else None


def _optional_decimal(node: Node, *names: str) -> Decimal | None:
    found = node.find(*names)
    return found.decimal() if found is not None else None


class _Collector:
    """Accumulates tolerance warnings for one extraction."""

    def __init__(self, tolerance: Decimal):
        self.tolerance = tolerance
        self.warnings: list[ToleranceWarning] = []

    def check(self, path: str, declared: Decimal | None, computed: Decimal) -> None:
        if declared is None or abs(declared - computed) <= self.tolerance:
            return
        warning = ToleranceWarning(path, declared, computed)
        logger.warning(f"Tolerance exceeded: {warning}")
        self.warnings.append(warning)


def extract_company(node: Node) -> Company:
    """Build a Company from a CedentePrestatore-like block."""
    registry = node.require("DatiAnagrafici")

    vat_country = _optional_text(registry, "IdFiscaleIVA", "IdPaese")
    vat_node = registry.find("IdFiscaleIVA", "IdCodice")
    if vat_node is None:
        vat_country = None
        vat_node = registry.get("CodiceFiscale")
    if vat_node is None:
        raise MalformedInvoiceError(f"{registry.path}.IdFiscaleIVA.IdCodice", "VAT id is missing")

    personal = registry.find("Anagrafica")
    name = _optional_text(registry, "Anagrafica", "Denominazione")
    if name is None and personal is not None:
        parts = [_optional_text(personal, "Nome"), _optional_text(personal, "Cognome")]
        name = " ".join(part for part in parts if part) or None
    if name is None:
        raise MalformedInvoiceError(f"{registry.path}.Anagrafica.Denominazione", "company name is missing")

    office = None
    seat = node.get("Sede")
    if seat is not None:
        office = Office(
            address=_optional_text(seat, "Indirizzo"),
            number=_optional_text(seat, "NumeroCivico"),
            postal_code=_optional_text(seat, "CAP"),
            city=_optional_text(seat, "Comune"),
            province=_optional_text(seat, "Provincia"),
            country=_optional_text(seat, "Nazione"),
        )

    contacts = None
    contact_node = node.get("Contatti")
    if contact_node is not None:
        contacts = Contacts(
            phone=_optional_text(contact_node, "Telefono"),
            email=_optional_text(contact_node, "Email"),
        )

    return Company(name=name, vat=vat_node.text(), vat_country=vat_country, office=office, contacts=contacts)


def extract_line(node: Node, position: int, collector: _Collector) -> Line:
    description = node.require("Descrizione").text()
    quantity = _optional_decimal(node, "Quantita")
    if quantity is None:
        quantity = Decimal(1)
    single_price = node.require("PrezzoUnitario").decimal()
    tax = node.require("AliquotaIVA").decimal()
    if tax < 0:
        raise MalformedInvoiceError(f"{node.path}.AliquotaIVA", f"tax rate must not be negative, got {tax}")

    declared_number = _optional_text(node, "NumeroLinea")
    if declared_number is not None and declared_number != str(position):
        logger.debug(f"{node.path}: NumeroLinea {declared_number} renumbered as {position}")

    amount = to_cents(quantity * single_price)
    declared = _optional_decimal(node, "PrezzoTotale")
    if declared is not None and abs(declared - amount) > collector.tolerance:
        # discounts and surcharges are folded into the declared total
        collector.check(f"{node.path}.PrezzoTotale", declared, amount)
        amount = declared

    return Line(
        number=position,
        description=description,
        quantity=quantity,
        single_price=single_price,
        amount=amount,
        tax=tax,
    )


def compute_tax_summary(lines: list[Line]) -> TaxSummary:
    """Sum taxable amounts and compute tax per rate group, rounded to cents."""
    by_rate: dict[Decimal, Decimal] = defaultdict(Decimal)
    for line in lines:
        by_rate[line.tax] += line.amount

    payment_amount = sum((line.amount for line in lines), Decimal(0))
    tax_amount = sum((to_cents(base * rate / 100) for rate, base in by_rate.items()), Decimal(0))
    return TaxSummary(payment_amount=to_cents(payment_amount), tax_amount=to_cents(tax_amount))


def extract_payment(node: Node, total_amount: Decimal, collector: _Collector) -> Payment | None:
    details = node.sequence("DettaglioPagamento")
    if not details:
        return None
    if len(details) > 1:
        logger.debug(f"{node.path}: {len(details)} payment details, using the first one")

    detail = details[0]
    amount = _optional_decimal(detail, "ImportoPagamento")
    if amount is None:
        amount = total_amount
    else:
        collector.check(f"{detail.path}.ImportoPagamento", amount, total_amount)

    regular_date = detail.get("DataScadenzaPagamento")
    return Payment(
        method=_optional_text(detail, "ModalitaPagamento"),
        bank=_optional_text(detail, "IstitutoFinanziario"),
        iban=detail.require("IBAN").text(),
        regular_payment_date=regular_date.date() if regular_date is not None else None,
        amount=amount,
    )


def extract_installment(body: Node, collector: _Collector) -> Installment:
    """Build one Installment from a FatturaElettronicaBody block."""
    document = body.require("DatiGenerali", "DatiGeneraliDocumento")
    goods = body.require("DatiBeniServizi")

    causes = [cause.text() for cause in document.sequence("Causale")]
    description = "\n".join(causes) if causes else None

    stamp_duty = _optional_decimal(document, "DatiBollo", "ImportoBollo")
    if stamp_duty is not None and stamp_duty < 0:
        raise MalformedInvoiceError(
            f"{document.path}.DatiBollo.ImportoBollo", f"stamp duty must not be negative, got {stamp_duty}"
        )

    lines = [
        extract_line(line, position, collector)
        for position, line in enumerate(goods.sequence("DettaglioLinee", required=True), start=1)
    ]
    tax_summary = compute_tax_summary(lines)

    summaries = goods.sequence("DatiRiepilogo")
    if summaries:
        declared_taxable = sum((s.require("ImponibileImporto").decimal() for s in summaries), Decimal(0))
        declared_tax = sum((s.require("Imposta").decimal() for s in summaries), Decimal(0))
        collector.check(f"{goods.path}.DatiRiepilogo.ImponibileImporto", declared_taxable, tax_summary.payment_amount)
        collector.check(f"{goods.path}.DatiRiepilogo.Imposta", declared_tax, tax_summary.tax_amount)

    total_amount = tax_summary.payment_amount + tax_summary.tax_amount + (stamp_duty or Decimal(0))
    collector.check(
        f"{document.path}.ImportoTotaleDocumento", _optional_decimal(document, "ImportoTotaleDocumento"), total_amount
    )

    payment = None
    payment_nodes = body.sequence("DatiPagamento")
    if payment_nodes:
        payment = extract_payment(payment_nodes[0], total_amount, collector)

    attachments = None
    attachment_nodes = body.sequence("Allegati")
    if attachment_nodes:
        attachments = tuple(
            Attachment(
                name=attachment.require("NomeAttachment").text(),
                description=_optional_text(attachment, "DescrizioneAttachment"),
            )
            for attachment in attachment_nodes
        )

    try:
        return Installment(
            number=document.require("Numero").text(),
            issue_date=document.require("Data").date(),
            currency=document.require("Divisa").text(),
            description=description,
            lines=tuple(lines),
            attachments=attachments,
            stamp_duty=stamp_duty,
            payment=payment,
            tax_summary=tax_summary,
            total_amount=total_amount,
        )
    except ValidationError as e:
        raise MalformedInvoiceError(body.path, str(e)) from e


def extract(tree: dict[str, Any], *, tolerance: Decimal = DEFAULT_TOLERANCE) -> Invoice:
    """Build an Invoice from a generic FatturaPA tree.

    Args:
        tree: Output of ``xml_tree.parse_xml``.
        tolerance: Largest accepted difference between a declared aggregate
            and the recomputed one before a ToleranceWarning is recorded.

    Returns:
        Invoice: The immutable invoice, with any warnings on ``Invoice.warnings``.

    Raises:
        MalformedInvoiceError: If a required field is missing or mistyped.
    """
    root = Node(tree, "").require(ROOT_TAG)
    header = root.require("FatturaElettronicaHeader")
    collector = _Collector(tolerance)

    invoicer = extract_company(header.require("CedentePrestatore"))
    invoicee = extract_company(header.require("CessionarioCommittente"))
    third_party_node = header.get("TerzoIntermediarioOSoggettoEmittente")
    third_party = extract_company(third_party_node) if third_party_node is not None else None

    if invoicer.tax_identity == invoicee.tax_identity:
        raise MalformedInvoiceError(
            f"{header.path}.CessionarioCommittente.DatiAnagrafici",
            f"invoicee has the same VAT id as the invoicer ({invoicer.vat})",
        )

    installments = [extract_installment(body, collector) for body in root.sequence("FatturaElettronicaBody", True)]

    try:
        invoice = Invoice(
            invoicer=invoicer,
            invoicee=invoicee,
            third_party=third_party,
            installments=tuple(installments),
            warnings=tuple(collector.warnings),
        )
    except ValidationError as e:
        raise MalformedInvoiceError(root.path, str(e)) from e

    logger.debug(f"Extracted invoice with {len(installments)} installment(s), {len(collector.warnings)} warning(s)")
    return invoice
