"""
Module: producao_engines.calendar
Responsibility:
    Month windows and business-day arithmetic: first/last instant of a
    month, the following (billing) month window, payment-date prediction on
    the Nth business day and holiday-aware business-day counting.

Architecture position:
    Engines -- pure calculation layer.  The holiday calendar is injected
    (built by the caller from the ``holidays`` package) and the current time
    is always passed in; this module never reads the clock.

Invariants enforced:
    - ``Period.end >= Period.start``; start is 00:00:00 on the first day and
      end is 23:59:59 on the last day.
    - A predicted payment date is a business day under the supplied
      calendar, or the processing date when the business day already passed.
    - Business-day counts are memoized per (year, month) for the lifetime of
      one calendar instance.

Failure modes:
    - ValueError when asked to walk forward fewer than one business day.

Usage:
    import holidays
    from producao_engines.calendar import BusinessCalendar, Period

    calendar = BusinessCalendar(holidays.country_holidays("BR"))
    period = Period.for_month(date(2023, 5, 1))
    payment_date, processing_time = calendar.predicted_payment_date(
        period.next_start, pay_on_business_day_n=5, now=clock.now(),
    )
"""

from __future__ import annotations

import calendar as _stdcalendar
from collections.abc import Container
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta

from producao_kernel.logging_config import get_logger

logger = get_logger("engines.calendar")

SATURDAY = 5


def start_of_month(value: date) -> datetime:
    """First instant (00:00:00) of the month containing ``value``."""
    return datetime(value.year, value.month, 1)


def end_of_month(value: date) -> datetime:
    """Last second (23:59:59) of the month containing ``value``."""
    last_day = _stdcalendar.monthrange(value.year, value.month)[1]
    return datetime.combine(date(value.year, value.month, last_day), time(23, 59, 59))


def add_months(value: date, months: int) -> date:
    """First day of the month ``months`` away from ``value``'s month."""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


@dataclass(frozen=True)
class Period:
    """
    A work month and the schedule derived from it.

    Contract:
        ``start``/``end`` bound the month in which work was logged.  Revenue
        earned by that work is billed in the following month
        (``next_start``/``next_end``).  ``payment_date`` and
        ``processing_time`` are filled in by :meth:`BusinessCalendar.schedule`.
    """

    start: datetime
    end: datetime
    payment_date: date | None = None
    processing_time: datetime | None = None
    pay_on_business_day_n: int | None = None

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("Period end must not precede its start")

    @classmethod
    def for_month(cls, value: date) -> Period:
        return cls(start=start_of_month(value), end=end_of_month(value))

    @property
    def next_start(self) -> datetime:
        return start_of_month(add_months(self.start.date(), 1))

    @property
    def next_end(self) -> datetime:
        return end_of_month(add_months(self.start.date(), 1))

    @property
    def label(self) -> str:
        """Work month as ``YYYY-MM``."""
        return self.start.strftime("%Y-%m")

    @property
    def billing_month(self) -> str:
        """Billing (competence) month as ``YYYY-MM``."""
        return self.next_start.strftime("%Y-%m")


def next_month_window(period: Period) -> tuple[datetime, datetime]:
    """Start and end instants of the month following ``period``."""
    return period.next_start, period.next_end


class BusinessCalendar:
    """
    Business days are Monday to Friday, excluding holidays.

    Contract:
        ``holidays`` is any container of dates, typically a
        ``holidays.HolidayBase`` for the cooperative's country/subdivision.

    Guarantees:
        - ``count_business_days_in_month`` computes each month once.

    Non-goals:
        - Does not decide which month is the target of a payment; callers
          pass the month whose successor holds the payment.
    """

    def __init__(self, holidays: Container[date]):
        self._holidays = holidays
        self._month_counts: dict[tuple[int, int], int] = {}

    def is_business_day(self, value: date) -> bool:
        return value.weekday() < SATURDAY and value not in self._holidays

    def nth_business_day(self, month_start: date, n: int) -> date:
        """Walk forward ``n`` business days from the first day of the month.

        The first day itself is the starting point and is not counted, so
        the result is always a business day strictly after it.

        Raises:
            ValueError: If ``n`` is less than 1.
        """
        if n < 1:
            raise ValueError(f"Business day ordinal must be >= 1, got {n}")
        current = date(month_start.year, month_start.month, 1)
        remaining = n
        while remaining:
            current += timedelta(days=1)
            if self.is_business_day(current):
                remaining -= 1
        return current

    def predicted_payment_date(
        self,
        target_month: date,
        pay_on_business_day_n: int,
        now: datetime,
    ) -> tuple[date, datetime]:
        """Payment date for work billed in ``target_month``.

        Payment falls on the Nth business day of the month after
        ``target_month``.  Payments are never backdated: when that day has
        already passed relative to ``now``, the processing date is used.
        A date clipped this way is not moved to a business day, so it may
        fall on a weekend or holiday.

        Returns:
            ``(payment_date, processing_time)``, where ``processing_time`` is
            ``now`` so that every document of a run shares one timestamp.
        """
        payment_month = add_months(target_month, 1)
        predicted = self.nth_business_day(payment_month, pay_on_business_day_n)
        if predicted < now.date():
            logger.info(
                "payment_date_clipped_to_processing_date",
                extra={"predicted": predicted, "processing_date": now.date()},
            )
            predicted = now.date()
        return predicted, now

    def schedule(
        self,
        period: Period,
        pay_on_business_day_n: int,
        now: datetime,
    ) -> Period:
        """Return ``period`` with its payment date and processing time set."""
        payment_date, processing_time = self.predicted_payment_date(
            period.next_start.date(), pay_on_business_day_n, now
        )
        return replace(
            period,
            payment_date=payment_date,
            processing_time=processing_time,
            pay_on_business_day_n=pay_on_business_day_n,
        )

    def count_business_days_in_month(self, month: date) -> int:
        key = (month.year, month.month)
        if key not in self._month_counts:
            last_day = _stdcalendar.monthrange(month.year, month.month)[1]
            self._month_counts[key] = sum(
                1
                for day in range(1, last_day + 1)
                if self.is_business_day(date(month.year, month.month, day))
            )
        return self._month_counts[key]

    def vacation_reserve_payout_date(
        self,
        now: datetime,
        payout_month: int,
        pay_on_business_day_n: int,
    ) -> date:
        """Nth business day of the next vacation-reserve payout month.

        The payout month of the current year is used while it is still
        ahead of ``now``; from that month on, the following year's.
        """
        year = now.year + 1 if now.month >= payout_month else now.year
        return self.nth_business_day(date(year, payout_month, 1), pay_on_business_day_n)
