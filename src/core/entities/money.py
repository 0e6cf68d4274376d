"""
Money value object.

Amounts are Decimal and never negative. Currency codes are trimmed and
upper-cased. Arithmetic and ordering are only defined between values of
the same currency.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from src.core.exceptions import (
    CurrencyMismatchError,
    InvalidAmountError,
    InvalidCurrencyError,
    NegativeResultError,
)

TWO_PLACES = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Convert ints, floats, Decimals and numeric strings like '1,200.50'."""
    if isinstance(value, bool):
        raise InvalidOperation(f"boolean is not an amount: {value}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, int):
        return Decimal(value)
    return Decimal(str(value).strip().replace(",", ""))


class Money(BaseModel):
    """Immutable amount + currency pair."""

    model_config = ConfigDict(frozen=True)

    amount: Decimal
    currency: str = "USD"

    def __init__(self, amount: Any = Decimal("0"), currency: str = "USD", **data: Any):
        super().__init__(amount=amount, currency=currency, **data)

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, v: Any) -> Decimal:
        try:
            amount = to_decimal(v)
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidAmountError(v) from None
        if not amount.is_finite() or amount < 0:
            raise InvalidAmountError(v)
        return amount

    @field_validator("currency", mode="before")
    @classmethod
    def check_currency(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            raise InvalidCurrencyError(v)
        return str(v).strip().upper()

    @classmethod
    def zero(cls, currency: str = "USD") -> "Money":
        return cls(Decimal("0"), currency)

    @classmethod
    def parse(cls, text: str) -> "Money":
        """Rebuild a Money from its ``str()`` form, e.g. ``'100.50 USD'``."""
        parts = (text or "").strip().rsplit(maxsplit=1)
        if len(parts) != 2:
            raise InvalidAmountError(text)
        return cls(parts[0], parts[1])

    def rounded(self) -> "Money":
        """Round half-up to cents."""
        return Money(self.amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP), self.currency)

    def _require_same_currency(self, other: "Money", operation: str) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency, operation)

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other, "add")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other, "subtract")
        result = self.amount - other.amount
        if result < 0:
            raise NegativeResultError(str(self), str(other))
        return Money(result, self.currency)

    def __mul__(self, factor: Any) -> "Money":
        if isinstance(factor, Money):
            return NotImplemented
        try:
            multiplier = to_decimal(factor)
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidAmountError(factor) from None
        return Money(self.amount * multiplier, self.currency)

    __rmul__ = __mul__

    def __lt__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other, "compare")
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other, "compare")
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other, "compare")
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other, "compare")
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"

    def __repr__(self) -> str:
        return f"Money({str(self.amount)!r}, {self.currency!r})"
