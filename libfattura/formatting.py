"""Locale aware labels and number/date/currency formatting."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from decimal import Decimal

from .errors import RenderFallback

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "it"

CURRENCY_SYMBOLS: dict[str, str] = {
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
}

# FatturaPA ModalitaPagamento codes
PAYMENT_METHODS: dict[str, str] = {
    "MP01": "contanti",
    "MP02": "assegno",
    "MP03": "assegno circolare",
    "MP04": "contanti presso Tesoreria",
    "MP05": "bonifico",
    "MP06": "vaglia cambiario",
    "MP07": "bollettino bancario",
    "MP08": "carta di pagamento",
    "MP09": "RID",
    "MP10": "RID utenze",
    "MP11": "RID veloce",
    "MP12": "RIBA",
    "MP13": "MAV",
    "MP14": "quietanza erario",
    "MP15": "giroconto su conti di contabilità speciale",
    "MP16": "domiciliazione bancaria",
    "MP17": "domiciliazione postale",
    "MP18": "bollettino di c/c postale",
    "MP19": "SEPA Direct Debit",
    "MP20": "SEPA Direct Debit CORE",
    "MP21": "SEPA Direct Debit B2B",
    "MP22": "trattenuta su somme già riscosse",
    "MP23": "PagoPA",
}


@dataclass(frozen=True, slots=True)
class LocaleSpec:
    """Separators, date layout and labels of a supported locale."""

    code: str
    decimal_sep: str
    group_sep: str
    date_format: str
    labels: dict[str, str]


_IT_LABELS = {
    "number": "Numero",
    "date": "Data",
    "supplier": "Fornitore",
    "customer": "Cliente",
    "intermediary": "Intermediario",
    "vat_id": "P. IVA",
    "phone": "tel",
    "cause": "Causale",
    "products_and_services": "Prodotti e servizi",
    "line_number": "N°",
    "description": "Descrizione",
    "quantity": "Quantità",
    "price": "Prezzo",
    "total": "Totale",
    "vat": "IVA",
    "attached_docs": "Documenti allegati",
    "name": "Nome",
    "stamp_duty": "Imposta di bollo",
    "payment_details": "Dettagli di pagamento",
    "payment_method": "Modalità di pagamento",
    "bank": "Banca",
    "due_date": "Scadenza",
    "amount": "Importo",
    "total_products_services": "Totale prodotti e servizi",
    "total_vat": "Totale IVA",
    "generated_by": "Documento generato con libfattura",
}

_EN_LABELS = {
    "number": "Number",
    "date": "Date",
    "supplier": "Supplier",
    "customer": "Customer",
    "intermediary": "Intermediary",
    "vat_id": "VAT",
    "phone": "tel",
    "cause": "Cause",
    "products_and_services": "Products and services",
    "line_number": "No.",
    "description": "Description",
    "quantity": "Quantity",
    "price": "Price",
    "total": "Total",
    "vat": "VAT",
    "attached_docs": "Attached documents",
    "name": "Name",
    "stamp_duty": "Stamp duty",
    "payment_details": "Payment details",
    "payment_method": "Payment method",
    "bank": "Bank",
    "due_date": "Due date",
    "amount": "Amount",
    "total_products_services": "Total products and services",
    "total_vat": "Total VAT",
    "generated_by": "Document generated with libfattura",
}

_DE_LABELS = {
    "number": "Nummer",
    "date": "Datum",
    "supplier": "Lieferant",
    "customer": "Kunde",
    "intermediary": "Vermittler",
    "vat_id": "USt-IdNr.",
    "phone": "Tel.",
    "cause": "Verwendungszweck",
    "products_and_services": "Produkte und Dienstleistungen",
    "line_number": "Nr.",
    "description": "Beschreibung",
    "quantity": "Menge",
    "price": "Preis",
    "total": "Gesamt",
    "vat": "MwSt.",
    "attached_docs": "Anlagen",
    "name": "Name",
    "stamp_duty": "Stempelsteuer",
    "payment_details": "Zahlungsinformationen",
    "payment_method": "Zahlungsart",
    "bank": "Bank",
    "due_date": "Fällig am",
    "amount": "Betrag",
    "total_products_services": "Summe Produkte und Dienstleistungen",
    "total_vat": "Summe MwSt.",
    "generated_by": "Dokument erstellt mit libfattura",
}

LOCALES: dict[str, LocaleSpec] = {
    "it": LocaleSpec("it", ",", ".", "%d/%m/%Y", _IT_LABELS),
    "en": LocaleSpec("en", ".", ",", "%m/%d/%Y", _EN_LABELS),
    "de": LocaleSpec("de", ",", ".", "%d.%m.%Y", _DE_LABELS),
}


def resolve_locale(locale: str | None) -> tuple[LocaleSpec, RenderFallback | None]:
    """Map a BCP-47-ish tag (``it``, ``it-IT``, ``en_US``) to a supported locale.

    Unknown tags resolve to ``DEFAULT_LOCALE`` together with the
    RenderFallback describing the substitution.
    """
    language = (locale or DEFAULT_LOCALE).replace("_", "-").split("-")[0].lower()
    if language in LOCALES:
        return LOCALES[language], None

    fallback = RenderFallback("locale", str(locale), DEFAULT_LOCALE)
    logger.info(str(fallback))
    return LOCALES[DEFAULT_LOCALE], fallback


def currency_symbol(currency: str) -> str:
    """``EUR`` → ``€``, ``USD`` → ``$``, ``GBP`` → ``£``, anything else → ``" " + code``."""
    return CURRENCY_SYMBOLS.get(currency, f" {currency}")


def format_number(value: Decimal | int | float, spec: LocaleSpec, decimals: int | None = 2) -> str:
    """Format a number with the locale separators.

    Args:
        value: Number to format.
        spec: Target locale.
        decimals: Fixed number of decimals, or None to print only the
            significant ones (``2.50`` → ``2,5`` in Italian).
    """
    number = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    if decimals is None:
        text = f"{number.normalize():,f}"
        if "." in text:
            text = text.rstrip("0").rstrip(".")
    else:
        text = f"{number:,.{decimals}f}"

    return text.replace(",", "\0").replace(".", spec.decimal_sep).replace("\0", spec.group_sep)


def format_money(value: Decimal, currency: str, spec: LocaleSpec) -> str:
    return f"{format_number(value, spec)}{currency_symbol(currency)}"


def format_percent(value: Decimal, spec: LocaleSpec) -> str:
    return f"{format_number(value, spec, decimals=None)}%"


def format_date(value: datetime.date, spec: LocaleSpec) -> str:
    return value.strftime(spec.date_format)


def payment_method_label(code: str) -> str:
    description = PAYMENT_METHODS.get(code)
    return f"{description} ({code})" if description else code
