"""Fee scheduling: how much a member owes as of a date.

Fee periods are laid out from ``membership_start`` every ``interval`` units.
Month boundaries are always computed from the start date and clamped to the
month end (31 Jan, 29 Feb, 31 Mar, ...), never by repeatedly adding a month
to the previous boundary.
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING

from ....exceptions import InvalidAmount, InvalidInterval
from ...domain.enums import FeeTiming, IntervalUnit
from ...domain.money import Money
from ...domain.value_objects import FeePeriod

if TYPE_CHECKING:
    from ...domain.models import Member


@dataclass(frozen=True)
class FeePolicy:
    """How fee periods are measured and when they become due.

    Attributes:
        unit: Unit of the member's ``interval``
        timing: IN_ARREARS charges a period once it is complete,
            IN_ADVANCE as soon as it has started
        prorate_final_period: Charge the partial period cut short by
            ``membership_end`` proportionally (IN_ARREARS only)
    """

    unit: IntervalUnit = IntervalUnit.MONTHS
    timing: FeeTiming = FeeTiming.IN_ARREARS
    prorate_final_period: bool = False


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


class FeeScheduler:
    """Compute fees due for a member.

    Example:
        >>> scheduler = FeeScheduler()
        >>> member.fee, member.interval, member.membership_start
        (Money('10.00'), 1, datetime.date(2024, 1, 1))
        >>> scheduler.amount_due_through(member, date(2024, 4, 1))
        Money('30.00')
    """

    def __init__(self, policy: FeePolicy | None = None) -> None:
        self.policy = policy or FeePolicy()

    def amount_due_through(self, member: "Member", as_of: date) -> Money:
        """Total fees charged from ``membership_start`` through ``as_of``.

        Zero before the membership starts and monotonic in ``as_of``.

        Raises:
            InvalidInterval: If the member's interval is not a positive integer
            InvalidAmount: If the member's fee is not positive
        """
        fee, _ = self._validate(member)
        total = fee * self.period_count(member, as_of)
        partial = self._final_partial_period(member, as_of)
        if partial is not None:
            total += partial.amount
        return total

    def period_count(self, member: "Member", as_of: date) -> int:
        """Number of full periods charged through ``as_of``."""
        _, interval = self._validate(member)
        start = member.membership_start
        end = member.membership_end

        if self.policy.timing is FeeTiming.IN_ADVANCE:
            # Periods whose first day is covered by both as_of and the membership
            if as_of < start or (end is not None and end <= start):
                return 0
            last_day = as_of if end is None else min(as_of, end - timedelta(days=1))
            return self._boundaries_through(start, interval, last_day) + 1

        limit = as_of if end is None else min(as_of, end)
        if limit <= start:
            return 0
        return self._boundaries_through(start, interval, limit)

    def fee_periods(
        self, member: "Member", through: date, since: date | None = None
    ) -> list[FeePeriod]:
        """Charged periods accrued after ``since`` and through ``through``.

        The amounts add up to ``amount_due_through(through) -
        amount_due_through(since)``.
        """
        fee, interval = self._validate(member)
        first = 0 if since is None else self.period_count(member, since)
        last = self.period_count(member, through)

        periods = []
        for k in range(first, last):
            start = self.boundary(member.membership_start, interval, k)
            end = self.boundary(member.membership_start, interval, k + 1)
            periods.append(FeePeriod(start, end, fee, self._describe(start, end, interval)))

        partial = self._final_partial_period(member, through)
        already_charged = since is not None and self._final_partial_period(member, since) is not None
        if partial is not None and not already_charged:
            periods.append(partial)
        return periods

    def boundary(self, start: date, interval: int, k: int) -> date:
        """Start of period ``k`` (0-based)."""
        if self.policy.unit is IntervalUnit.DAYS:
            return start + timedelta(days=interval * k)
        return add_months(start, interval * k)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate(self, member: "Member") -> tuple[Money, int]:
        interval = member.interval
        if isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0:
            raise InvalidInterval(
                "Fee interval must be a positive integer",
                field="interval",
                value=interval,
                constraint="> 0",
            )
        fee = Money.parse(member.fee)
        if not fee.is_positive:
            raise InvalidAmount("Member fee must be positive", field="fee", value=fee, constraint="> 0")
        return fee, interval

    def _boundaries_through(self, start: date, interval: int, limit: date) -> int:
        """Largest k >= 0 with ``boundary(k) <= limit``."""
        if self.policy.unit is IntervalUnit.DAYS:
            return (limit - start).days // interval

        months = (limit.year - start.year) * 12 + (limit.month - start.month)
        k = max(months // interval, 0)
        # Month-end clamping can put the estimate one period off
        while k > 0 and self.boundary(start, interval, k) > limit:
            k -= 1
        while self.boundary(start, interval, k + 1) <= limit:
            k += 1
        return k

    def _final_partial_period(self, member: "Member", as_of: date) -> FeePeriod | None:
        """Pro-rated period cut short by ``membership_end``, once ``as_of`` reached it."""
        end = member.membership_end
        if (
            not self.policy.prorate_final_period
            or self.policy.timing is not FeeTiming.IN_ARREARS
            or end is None
            or as_of < end
            or end <= member.membership_start
        ):
            return None

        fee, interval = self._validate(member)
        k = self._boundaries_through(member.membership_start, interval, end)
        period_start = self.boundary(member.membership_start, interval, k)
        if period_start == end:
            return None
        period_end = self.boundary(member.membership_start, interval, k + 1)

        amount = fee.prorate((end - period_start).days, (period_end - period_start).days)
        if not amount:
            return None
        return FeePeriod(
            start=period_start,
            end=end,
            amount=amount,
            description="Pro-rated " + self._describe(period_start, end, interval, partial=True),
        )

    def _describe(self, start: date, end: date, interval: int, partial: bool = False) -> str:
        if self.policy.unit is IntervalUnit.MONTHS and interval == 1 and not partial:
            return f"Monthly member fee for {start.strftime('%B %Y')}"
        last_day = end - timedelta(days=1)
        prefix = "member fee" if partial else "Member fee"
        return f"{prefix} for {start.isoformat()} to {last_day.isoformat()}"
