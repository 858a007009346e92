"""Turn an Invoice into layout-ready page descriptions.

The renderer does all the data shaping: it chooses the blocks of each page,
formats every value for the configured locale and decides column widths. The
layout engine (``libfattura.layout``) and the console view
(``libfattura.console``) only draw what they receive.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import RenderFallback
from .formatting import (
    CURRENCY_SYMBOLS,
    LocaleSpec,
    currency_symbol,
    format_date,
    format_money,
    format_number,
    format_percent,
    payment_method_label,
    resolve_locale,
)
from .model import Company, Installment, Invoice, Payment
from .theme import DisplayConfig, Theme

logger = logging.getLogger(__name__)

PARTIES_PER_ROW = 2


@dataclass(frozen=True, slots=True)
class Column:
    label: str
    width: float  # fraction of the available width
    align: str = "L"


@dataclass(frozen=True, slots=True)
class TableBlock:
    title: str
    columns: tuple[Column, ...]
    rows: tuple[tuple[str, ...], ...]


@dataclass(frozen=True, slots=True)
class HeaderBlock:
    number_label: str
    number: str
    date_label: str
    date: str


@dataclass(frozen=True, slots=True)
class PartyBlock:
    role: str
    name: str
    lines: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class TextBlock:
    title: str
    text: str


@dataclass(frozen=True, slots=True)
class DetailsBlock:
    title: str
    lines: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RecapRow:
    label: str
    value: str
    emphasis: bool = False


@dataclass(frozen=True, slots=True)
class PageDescription:
    """Everything needed to draw the page of one installment."""

    key: str
    theme: Theme
    header: HeaderBlock
    party_rows: tuple[tuple[PartyBlock, ...], ...]
    cause: TextBlock | None
    lines: TableBlock
    attachments: TableBlock | None
    stamp_duty: TextBlock | None
    payment: DetailsBlock | None
    recap: tuple[RecapRow, ...]
    footer: str | None


# widths of number, description, quantity, unit price, amount, tax
LINE_COLUMNS = ((0.10, "L"), (0.32, "L"), (0.10, "R"), (0.20, "R"), (0.20, "R"), (0.08, "R"))


def company_block(company: Company, role: str, spec: LocaleSpec) -> PartyBlock:
    labels = spec.labels
    lines = [f"{labels['vat_id']}: {company.vat}"]

    if company.office is not None:
        office = company.office
        street = " ".join(part for part in (office.address, office.number) if part)
        city = " ".join(part for part in (office.postal_code, office.city) if part)
        if office.province:
            city = f"{city} ({office.province})"
        place = " ".join(part for part in (city, office.country) if part)
        lines.extend(part for part in (street, place) if part)

    if company.contacts is not None:
        if company.contacts.phone:
            lines.append(f"{labels['phone']}: {company.contacts.phone}")
        if company.contacts.email:
            lines.append(company.contacts.email)

    return PartyBlock(role=role, name=company.name, lines=tuple(lines))


def chunk(blocks: list[PartyBlock], size: int = PARTIES_PER_ROW) -> tuple[tuple[PartyBlock, ...], ...]:
    return tuple(tuple(blocks[i : i + size]) for i in range(0, len(blocks), size))


def lines_table(installment: Installment, spec: LocaleSpec) -> TableBlock:
    labels = spec.labels
    header = (
        labels["line_number"],
        labels["description"],
        labels["quantity"],
        labels["price"],
        labels["total"],
        labels["vat"],
    )
    columns = tuple(Column(label, width, align) for label, (width, align) in zip(header, LINE_COLUMNS))
    rows = tuple(
        (
            str(line.number),
            line.description,
            format_number(line.quantity, spec, decimals=None),
            format_money(line.single_price, installment.currency, spec),
            format_money(line.amount, installment.currency, spec),
            format_percent(line.tax, spec),
        )
        for line in installment.lines
    )
    return TableBlock(title=labels["products_and_services"], columns=columns, rows=rows)


def attachments_table(installment: Installment, spec: LocaleSpec) -> TableBlock | None:
    if installment.attachments is None:
        return None

    labels = spec.labels
    return TableBlock(
        title=labels["attached_docs"],
        columns=(Column(labels["name"], 0.5), Column(labels["description"], 0.5)),
        rows=tuple((a.name, a.description or "") for a in installment.attachments),
    )


def payment_block(payment: Payment, currency: str, spec: LocaleSpec) -> DetailsBlock:
    labels = spec.labels
    lines = []
    if payment.method:
        lines.append(f"{labels['payment_method']}: {payment_method_label(payment.method)}")
    if payment.bank:
        lines.append(f"{labels['bank']}: {payment.bank}")
    lines.append(f"IBAN: {payment.iban}")
    if payment.regular_payment_date:
        lines.append(f"{labels['due_date']}: {format_date(payment.regular_payment_date, spec)}")
    lines.append(f"{labels['amount']}: {format_money(payment.amount, currency, spec)}")
    return DetailsBlock(title=labels["payment_details"], lines=tuple(lines))


def render_page(invoice: Invoice, installment: Installment, display: DisplayConfig, spec: LocaleSpec) -> PageDescription:
    labels = spec.labels
    currency = installment.currency

    parties = [
        company_block(invoice.invoicer, labels["supplier"], spec),
        company_block(invoice.invoicee, labels["customer"], spec),
    ]
    if invoice.third_party is not None:
        parties.append(company_block(invoice.third_party, labels["intermediary"], spec))

    cause = TextBlock(labels["cause"], installment.description) if installment.description else None
    stamp_duty = None
    if installment.stamp_duty is not None:
        stamp_duty = TextBlock(labels["stamp_duty"], format_money(installment.stamp_duty, currency, spec))
    payment = payment_block(installment.payment, currency, spec) if installment.payment is not None else None

    recap = (
        RecapRow(labels["total_products_services"], format_money(installment.tax_summary.payment_amount, currency, spec)),
        RecapRow(labels["total_vat"], format_money(installment.tax_summary.tax_amount, currency, spec)),
        RecapRow(labels["total"], format_money(installment.total_amount, currency, spec), emphasis=True),
    )

    return PageDescription(
        key=f"installment-{installment.number}",
        theme=display.colors,
        header=HeaderBlock(
            number_label=labels["number"],
            number=installment.number,
            date_label=labels["date"],
            date=format_date(installment.issue_date, spec),
        ),
        party_rows=chunk(parties),
        cause=cause,
        lines=lines_table(installment, spec),
        attachments=attachments_table(installment, spec),
        stamp_duty=stamp_duty,
        payment=payment,
        recap=recap,
        footer=labels["generated_by"] if display.footer else None,
    )


def render(
    invoice: Invoice,
    display: DisplayConfig | None = None,
    fallbacks: list[RenderFallback] | None = None,
) -> list[PageDescription]:
    """Describe one page per installment, in installment order.

    Args:
        invoice: A valid invoice, as produced by ``extractor.extract``.
        display: Locale, footer toggle and colors. Defaults apply when None.
        fallbacks: Optional list receiving a RenderFallback for an
            unsupported locale and for each unknown currency code.

    Returns:
        list[PageDescription]: Pages ready for ``layout.write_pdf``.
    """
    display = display or DisplayConfig()
    spec, fallback = resolve_locale(display.locale)
    if fallback is not None and fallbacks is not None:
        fallbacks.append(fallback)

    for installment in invoice.installments:
        if installment.currency not in CURRENCY_SYMBOLS:
            unknown = RenderFallback("currency", installment.currency, currency_symbol(installment.currency))
            logger.info(str(unknown))
            if fallbacks is not None:
                fallbacks.append(unknown)

    pages = [render_page(invoice, installment, display, spec) for installment in invoice.installments]
    logger.debug(f"Rendered {len(pages)} page(s) with locale {spec.code}")
    return pages
