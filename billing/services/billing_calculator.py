"""
Billing Calculator - pure pricing of time entries and flat fees.

No database writes happen here; the generator persists whatever this
module returns as the invoice's frozen snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence

from django.conf import settings

from ..models import FlatFeeBilling, Matter, TimeEntry
from ..money import Money
from ..validation import ErrorCode, FieldError, ValidationError

MINUTES_PER_HOUR = Decimal("60")


@dataclass(frozen=True)
class PricedLine:
    description: str
    amount: Money
    time_entry_id: Optional[int] = None
    entry_date: Optional[date] = None
    duration_minutes: Optional[int] = None
    hourly_rate: Optional[Money] = None


@dataclass(frozen=True)
class PricedInvoice:
    lines: List[PricedLine] = field(default_factory=list)
    subtotal: Money = Money(0)
    total: Money = Money(0)

    @property
    def currency(self) -> str:
        return self.total.currency


def price_entry(entry: TimeEntry) -> Money:
    """Amount for one entry at the rate stored on the entry, rounded half-up."""
    rate = entry.hourly_rate
    if rate is None:
        raise ValidationError(
            f"Time entry {entry.id} has no hourly rate",
            fields=[FieldError(f"time_entry_ids.{entry.id}", ErrorCode.FIELD_REQUIRED.value, "Hourly rate is required")],
        )
    minor = (Decimal(entry.duration_minutes) * Decimal(rate.amount) / MINUTES_PER_HOUR).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return Money(int(minor), rate.currency)


def price_flat_fee(matter: Matter) -> Money:
    billing = matter.billing
    if not isinstance(billing, FlatFeeBilling):
        raise ValidationError(f"Matter {matter.id} is not billed at a flat fee")
    return billing.amount


def price_invoice(matter: Matter, entries: Sequence[TimeEntry]) -> PricedInvoice:
    currency = getattr(settings, "BILLING_CURRENCY", "USD")

    if isinstance(matter.billing, FlatFeeBilling):
        amount = price_flat_fee(matter)
        lines = [PricedLine(description=f"Flat fee: {matter.title}", amount=amount)]
    else:
        lines = [
            PricedLine(
                description=entry.narrative,
                amount=price_entry(entry),
                time_entry_id=entry.id,
                entry_date=entry.entry_date,
                duration_minutes=entry.duration_minutes,
                hourly_rate=entry.hourly_rate,
            )
            for entry in entries
        ]

    subtotal = Money.sum((line.amount for line in lines), currency)
    if subtotal.is_negative:
        raise ValidationError("Invoice total cannot be negative")
    return PricedInvoice(lines=lines, subtotal=subtotal, total=subtotal)
