"""Money value object: exact currency arithmetic in integer minor units.

Amounts are never held as binary floating point. Construction rejects any
input finer than one minor unit (cent) with :class:`InvalidAmount`, so
``Money.parse("10.005")`` fails instead of silently rounding.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from functools import total_ordering
from typing import Any

from ...exceptions import InvalidAmount

MINOR_UNIT_EXPONENT = 2
_QUANTUM = Decimal(1).scaleb(-MINOR_UNIT_EXPONENT)
_FACTOR = 10**MINOR_UNIT_EXPONENT


@total_ordering
@dataclass(frozen=True, slots=True)
class Money:
    """Signed amount of money in minor units.

    Attributes:
        minor: Integer number of minor units (e.g. cents)

    Example:
        >>> Money.parse("10.00") * 3
        Money('30.00')
        >>> [str(m) for m in Money.parse("10.00").split(3)]
        ['3.34', '3.33', '3.33']
    """

    minor: int

    def __post_init__(self) -> None:
        if isinstance(self.minor, bool) or not isinstance(self.minor, int):
            raise InvalidAmount(
                "Money must be built from an integer number of minor units",
                field="minor",
                value=self.minor,
            )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def zero(cls) -> Money:
        return cls(0)

    @classmethod
    def parse(cls, value: Any) -> Money:
        """Build Money from a str, Decimal, int, float or Money.

        Raises:
            InvalidAmount: If the value is not numeric, not finite, or has more
                precision than the minor unit.
        """
        if isinstance(value, Money):
            return value
        if isinstance(value, bool) or value is None:
            raise InvalidAmount("Amount is not a number", value=value)

        try:
            if isinstance(value, float):
                # repr gives the shortest string that round-trips the float
                amount = Decimal(repr(value))
            elif isinstance(value, str):
                amount = Decimal(value.strip())
            else:
                amount = Decimal(value)
        except (InvalidOperation, TypeError, ValueError) as e:
            raise InvalidAmount("Amount is not a number", value=value, original_error=e) from e

        if not amount.is_finite():
            raise InvalidAmount("Amount must be finite", value=value)

        scaled = amount * _FACTOR
        if scaled != scaled.to_integral_value():
            raise InvalidAmount(
                "Amount has more precision than the minor unit",
                value=value,
                constraint=f"max {MINOR_UNIT_EXPONENT} decimal places",
            )
        return cls(int(scaled))

    @classmethod
    def sum(cls, amounts: Any) -> Money:
        """Exact sum of an iterable of Money."""
        total = 0
        for amount in amounts:
            total += amount.minor
        return cls(total)

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor + other.minor)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor - other.minor)

    def __neg__(self) -> Money:
        return Money(-self.minor)

    def __abs__(self) -> Money:
        return Money(abs(self.minor))

    def __mul__(self, factor: int) -> Money:
        if isinstance(factor, bool) or not isinstance(factor, int):
            return NotImplemented
        return Money(self.minor * factor)

    __rmul__ = __mul__

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.minor < other.minor

    def __bool__(self) -> bool:
        return self.minor != 0

    @property
    def is_positive(self) -> bool:
        return self.minor > 0

    @property
    def is_negative(self) -> bool:
        return self.minor < 0

    def with_sign_of(self, other: Money) -> Money:
        """Return this magnitude carrying the sign of ``other``."""
        magnitude = abs(self.minor)
        return Money(-magnitude if other.minor < 0 else magnitude)

    def split(self, parts: int) -> list[Money]:
        """Split into ``parts`` shares that sum exactly to this amount.

        Every share is the equal share rounded half-to-even on minor units;
        the first share absorbs the rounding remainder.

        Raises:
            ValueError: If parts < 1
        """
        if parts < 1:
            raise ValueError(f"parts must be >= 1, got {parts}")
        share = int((Decimal(self.minor) / parts).to_integral_value(rounding=ROUND_HALF_EVEN))
        first = self.minor - share * (parts - 1)
        return [Money(first)] + [Money(share) for _ in range(parts - 1)]

    def prorate(self, numerator: int, denominator: int) -> Money:
        """Return ``self * numerator / denominator`` rounded half-to-even on minor units."""
        if denominator <= 0:
            raise ValueError(f"denominator must be > 0, got {denominator}")
        scaled = Decimal(self.minor * numerator) / denominator
        return Money(int(scaled.to_integral_value(rounding=ROUND_HALF_EVEN)))

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_decimal(self) -> Decimal:
        return (Decimal(self.minor) / _FACTOR).quantize(_QUANTUM)

    def __str__(self) -> str:
        return str(self.to_decimal())

    def __repr__(self) -> str:
        return f"Money('{self}')"


ZERO = Money.zero()
