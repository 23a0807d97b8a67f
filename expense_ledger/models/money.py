"""
Money Type

Exact decimal arithmetic for every amount the ledger stores or sums.

DESIGN DECISION: Amounts are never held as binary floats.
A float appears only at the very edge, when a total is formatted
for a response, and that conversion is checked.
"""

import math
from decimal import Decimal
from typing import Any, Iterable, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from expense_ledger.errors import ConversionError


MoneyLike = Union["Money", Decimal, int, str]


class Money(BaseModel):
    """
    An immutable, exact decimal amount.

    Addition is exact, so summation order never changes a total.
    """
    model_config = ConfigDict(frozen=True)

    value: Decimal = Decimal("0")

    @model_validator(mode="before")
    @classmethod
    def wrap_bare_value(cls, data: Any) -> Any:
        """Allow ``Money.model_validate(Decimal("1.50"))`` and friends."""
        if isinstance(data, Money):
            return {"value": data.value}
        if isinstance(data, float):
            # repr() of a float is its shortest round-tripping decimal string
            return {"value": Decimal(repr(data))}
        if not isinstance(data, dict):
            return {"value": data}
        return data

    @field_validator("value")
    @classmethod
    def reject_non_finite(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError(f"Money must be a finite decimal, got {v}")
        return v

    @classmethod
    def zero(cls) -> "Money":
        return cls(value=Decimal("0"))

    @classmethod
    def of(cls, amount: MoneyLike) -> "Money":
        """Coerce a Money, Decimal, int or decimal string into Money."""
        return cls.model_validate(amount)

    @classmethod
    def sum(cls, amounts: Iterable[MoneyLike]) -> "Money":
        """Exact sum of any number of amounts. Empty input sums to zero."""
        total = cls.zero()
        for amount in amounts:
            total = total + cls.of(amount)
        return total

    def __add__(self, other: MoneyLike) -> "Money":
        if not isinstance(other, Money):
            other = Money.of(other)
        return Money(value=self.value + other.value)

    def __radd__(self, other: Any) -> "Money":
        # Supports the builtin sum(), which starts from int 0
        if other == 0:
            return self
        return self.__add__(other)

    def __str__(self) -> str:
        return str(self.value)

    def to_float(self) -> float:
        """
        Convert to a float for display.

        Raises:
            ConversionError: If the value is outside the float range
        """
        result = float(self.value)
        if not math.isfinite(result):
            raise ConversionError("cannot convert decimal to float64")
        return result
