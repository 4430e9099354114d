"""Custom column types."""

from decimal import Decimal
from typing import Any

from sqlalchemy import Numeric
from sqlalchemy.types import TypeDecorator

from ...ledger.domain.money import Money


class MoneyType(TypeDecorator[Money]):
    """Store :class:`Money` as ``NUMERIC(12, 2)`` and load it back exactly."""

    impl = Numeric(12, 2, asdecimal=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Decimal | None:
        if value is None:
            return None
        return Money.parse(value).to_decimal()

    def process_result_value(self, value: Any, dialect: Any) -> Money | None:
        if value is None:
            return None
        return Money.parse(Decimal(value).quantize(Decimal("0.01")))
