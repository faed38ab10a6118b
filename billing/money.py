"""
Fixed-point money.

Amounts are integers in minor currency units (cents). All invoice arithmetic
goes through ``Money`` so no float ever touches a billed amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

CURRENCY_SYMBOLS = {
    "USD": "$", "EUR": "€", "GBP": "£", "CAD": "$", "AUD": "$",
    "NGN": "₦", "ZAR": "R", "GHS": "₵", "KES": "KSh", "INR": "₹",
}

MINOR_UNITS_PER_MAJOR = 100


@dataclass(frozen=True, order=True)
class Money:
    amount: int
    currency: str = "USD"

    def __post_init__(self):
        if not isinstance(self.amount, int) or isinstance(self.amount, bool):
            raise TypeError(f"Money amount must be an int of minor units, got {type(self.amount).__name__}")

    @classmethod
    def zero(cls, currency: str = "USD") -> "Money":
        return cls(0, currency)

    @classmethod
    def from_decimal(cls, value: Union[Decimal, str], currency: str = "USD") -> "Money":
        """Build from a major-unit decimal (``"12.345"`` rounds half-up to 1235)."""
        minor = (Decimal(str(value)) * MINOR_UNITS_PER_MAJOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return cls(int(minor), currency)

    @classmethod
    def sum(cls, values: Iterable["Money"], currency: str = "USD") -> "Money":
        total = cls.zero(currency)
        for value in values:
            total = total + value
        return total

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Cannot combine Money with {type(other).__name__}")
        if other.currency != self.currency:
            raise ValueError(f"Currency mismatch: {self.currency} vs {other.currency}")

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __bool__(self) -> bool:
        return self.amount != 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def to_decimal(self) -> Decimal:
        return (Decimal(self.amount) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))

    @property
    def symbol(self) -> str:
        return CURRENCY_SYMBOLS.get(self.currency, self.currency)

    def format(self) -> str:
        sign = "-" if self.amount < 0 else ""
        return f"{sign}{self.symbol}{abs(self.to_decimal()):,.2f}"

    def __str__(self) -> str:
        return self.format()
