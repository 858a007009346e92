"""Immutable domain model produced by the extractor.

Every model is frozen: the graph is built once from the XML and handed to the
renderer read-only. Field names are snake_case; ``model_dump(by_alias=True)``
produces the camelCase "compact JSON" shape (``thirdParty``, ``issueDate``,
``singlePrice`` ...).
"""

import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .errors import ToleranceWarning

TOTAL_TOLERANCE = Decimal("0.01")


class DomainModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class Office(DomainModel):
    address: Optional[str] = None
    number: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    country: Optional[str] = None


class Contacts(DomainModel):
    phone: Optional[str] = None
    email: Optional[str] = None


class Company(DomainModel):
    """A party of the invoice (supplier, customer or intermediary)."""

    name: str
    vat: str = Field(min_length=1)
    vat_country: Optional[str] = None
    office: Optional[Office] = None
    contacts: Optional[Contacts] = None

    @property
    def tax_identity(self) -> tuple[Optional[str], str]:
        """Country and code together; the same code may be issued in two countries."""
        return (self.vat_country, self.vat)


class Line(DomainModel):
    number: int = Field(ge=1)
    description: str
    quantity: Decimal = Decimal(1)
    single_price: Decimal
    amount: Decimal
    tax: Decimal = Field(ge=0)


class Attachment(DomainModel):
    name: str
    description: Optional[str] = None


class Payment(DomainModel):
    method: Optional[str] = None
    bank: Optional[str] = None
    iban: str = Field(min_length=1)
    regular_payment_date: Optional[datetime.date] = None
    amount: Decimal


class TaxSummary(DomainModel):
    payment_amount: Decimal
    tax_amount: Decimal


class Installment(DomainModel):
    """One billing document of the invoice, rendered as its own page.

    Attributes:
        number: Document number, unique within the invoice.
        issue_date: Calendar date of issue.
        currency: ISO 4217 currency code.
        description: Free text cause, ``None`` when absent.
        lines: Billed items, numbered from 1.
        attachments: Attached documents, ``None`` when absent.
        stamp_duty: Stamp duty amount, ``None`` when no stamp duty applies.
        payment: Payment details, ``None`` when absent.
        tax_summary: Taxable and tax totals recomputed from ``lines``.
        total_amount: Grand total (taxable + tax + stamp duty).
    """

    number: str
    issue_date: datetime.date
    currency: str
    description: Optional[str] = None
    lines: tuple[Line, ...] = Field(min_length=1)
    attachments: Optional[tuple[Attachment, ...]] = None
    stamp_duty: Optional[Decimal] = Field(default=None, ge=0)
    payment: Optional[Payment] = None
    tax_summary: TaxSummary
    total_amount: Decimal = Field(ge=0)

    @model_validator(mode="after")
    def check_consistency(self) -> "Installment":
        numbers = [line.number for line in self.lines]
        if numbers != list(range(1, len(numbers) + 1)):
            raise ValueError(f"line numbers must start at 1 and be consecutive, got {numbers}")

        expected = self.tax_summary.payment_amount + self.tax_summary.tax_amount + (self.stamp_duty or Decimal(0))
        if abs(expected - self.total_amount) > TOTAL_TOLERANCE:
            raise ValueError(f"total amount {self.total_amount} does not match computed total {expected}")
        return self


class Invoice(DomainModel):
    """Root aggregate: the parties and the installments of an electronic invoice."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    invoicer: Company
    invoicee: Company
    third_party: Optional[Company] = None
    installments: tuple[Installment, ...] = Field(min_length=1)
    warnings: tuple[ToleranceWarning, ...] = Field(default=(), exclude=True)

    @model_validator(mode="after")
    def check_identities(self) -> "Invoice":
        if self.invoicer.tax_identity == self.invoicee.tax_identity:
            raise ValueError(f"invoicer and invoicee share the same VAT id {self.invoicer.vat}")

        numbers = [installment.number for installment in self.installments]
        if len(set(numbers)) != len(numbers):
            raise ValueError(f"installment numbers must be unique, got {numbers}")
        return self
