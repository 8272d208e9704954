"""Value objects shared by the settlement domain - money, periods and order identities"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import ClassVar

from debt_settlement.domain.exceptions import MoneyUnderflowError, PreconditionViolation

CURRENCY_SUFFIX = "CNY"

_CENT = Decimal("0.01")
# Largest amount a BIGINT cents column can hold
MAX_CENTS = 2**63 - 1
_PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True, order=True)
class Money:
    """
    Non-negative monetary amount held as integer cents.

    All arithmetic returns a new instance. Subtraction that would go below
    zero raises MoneyUnderflowError instead of producing a negative amount.

    Example:
        Money.of_major("12.345") → Money(cents=1235)  (half-up at 2 decimals)
    """

    ZERO: ClassVar[Money]

    cents: int

    def __post_init__(self) -> None:
        if isinstance(self.cents, bool) or not isinstance(self.cents, int):
            raise PreconditionViolation(f"Money cents must be an integer, got {self.cents!r}")
        if self.cents < 0:
            raise PreconditionViolation(f"Money cannot be negative: {self.cents} cents")

    @classmethod
    def of_cents(cls, cents: int) -> Money:
        """Build from minor units, reusing the ZERO singleton for 0"""
        if cents == 0 and not isinstance(cents, bool):
            return cls.ZERO
        return cls(cents)

    @classmethod
    def of_major(cls, value: Decimal | int | str | None) -> Money:
        """
        Build from a major-unit amount (e.g. "12.50" or Decimal("12.5")).

        Rounds half-up to whole cents. Rejects None, blank strings,
        unparsable or non-finite values and anything below zero.
        """
        if value is None:
            raise PreconditionViolation("Amount is required")
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise PreconditionViolation("Amount is required")

        try:
            # floats go through str() so 0.1 means 0.1 and not its binary expansion
            amount = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
        except (InvalidOperation, TypeError, ValueError) as e:
            raise PreconditionViolation(f"Invalid amount: {value!r}") from e

        if not amount.is_finite():
            raise PreconditionViolation(f"Invalid amount: {value!r}")
        if amount < 0:
            raise PreconditionViolation(f"Money cannot be negative: {value}")

        try:
            cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        except InvalidOperation as e:
            raise PreconditionViolation(f"Amount out of range: {value!r}") from e
        if cents > MAX_CENTS:
            raise PreconditionViolation(f"Amount out of range: {value!r}")
        return cls.of_cents(cents)

    @property
    def major(self) -> Decimal:
        """Amount in major units with exactly 2 decimals"""
        return (Decimal(self.cents) / 100).quantize(_CENT, rounding=ROUND_HALF_UP)

    def add(self, other: Money) -> Money:
        return Money.of_cents(self.cents + other.cents)

    def subtract(self, other: Money) -> Money:
        result = self.cents - other.cents
        if result < 0:
            raise MoneyUnderflowError(
                f"Insufficient amount: {self.cents} - {other.cents} = {result} cents"
            )
        return Money.of_cents(result)

    def multiply(self, factor: int) -> Money:
        if isinstance(factor, bool) or not isinstance(factor, int):
            raise PreconditionViolation(f"Multiplier must be an integer, got {factor!r}")
        if factor < 0:
            raise PreconditionViolation(f"Multiplier cannot be negative: {factor}")
        return Money.of_cents(self.cents * factor)

    def is_zero(self) -> bool:
        return self.cents == 0

    def __add__(self, other: object) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: object) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.subtract(other)

    def __mul__(self, factor: int) -> Money:
        return self.multiply(factor)

    __rmul__ = __mul__

    def __str__(self) -> str:
        return f"{self.major} {CURRENCY_SUFFIX}"


Money.ZERO = Money(0)


@dataclass(frozen=True, order=True)
class Period:
    """Installment period identified by calendar year-month, ordered chronologically"""

    year: int
    month: int

    def __post_init__(self) -> None:
        if isinstance(self.year, bool) or not isinstance(self.year, int):
            raise PreconditionViolation(f"Year must be an integer, got {self.year!r}")
        if isinstance(self.month, bool) or not isinstance(self.month, int):
            raise PreconditionViolation(f"Month must be an integer, got {self.month!r}")
        if not 1 <= self.month <= 12:
            raise PreconditionViolation(f"Month must be between 1 and 12: {self.month}")
        if not 1 <= self.year <= 9999:
            raise PreconditionViolation(f"Year out of range: {self.year}")

    @classmethod
    def of(cls, year: int, month: int) -> Period:
        return cls(year, month)

    @classmethod
    def from_date(cls, value: date | None) -> Period:
        """Period containing the given date (datetimes are accepted too)"""
        if value is None:
            raise PreconditionViolation("Date is required to infer a period")
        return cls(value.year, value.month)

    @classmethod
    def parse(cls, text: str | None) -> Period:
        """Parse the canonical YYYY-MM form"""
        if text is None or not text.strip():
            raise PreconditionViolation("Period string is required")
        match = _PERIOD_PATTERN.match(text.strip())
        if match is None:
            raise PreconditionViolation(f"Period must look like YYYY-MM: {text!r}")
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def current(cls) -> Period:
        return cls.from_date(date.today())

    def next(self) -> Period:
        if self.month == 12:
            return Period(self.year + 1, 1)
        return Period(self.year, self.month + 1)

    def previous(self) -> Period:
        if self.month == 1:
            return Period(self.year - 1, 12)
        return Period(self.year, self.month - 1)

    def is_before(self, other: Period) -> bool:
        return self < other

    def is_after(self, other: Period) -> bool:
        return self > other

    def contains(self, value: date | None) -> bool:
        """True when the date falls in this year-month"""
        if value is None:
            return False
        return value.year == self.year and value.month == self.month

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class OrderIdentity:
    """
    Order number plus optional line-item (order detail) id.

    Order-level and line-item-level identities of the same order are
    different keys: settlements recorded against one are invisible to
    rollbacks issued against the other.
    """

    order_number: str
    line_item_id: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.order_number, str) or not self.order_number.strip():
            raise PreconditionViolation("Order number is required")

    @classmethod
    def order_level(cls, order_number: str) -> OrderIdentity:
        return cls(order_number)

    @classmethod
    def line_item_level(cls, order_number: str, line_item_id: int | None) -> OrderIdentity:
        if line_item_id is None:
            raise PreconditionViolation("Line item id is required for a line-item identity")
        return cls(order_number, line_item_id)

    def is_line_item_level(self) -> bool:
        return self.line_item_id is not None

    def __str__(self) -> str:
        if self.line_item_id is not None:
            return f"{self.order_number}#{self.line_item_id}"
        return self.order_number
