"""Firm billing period aggregation"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from config import DEFAULT_PAYMENT_DAYS, DEFAULT_PERIOD_LIMIT, PERIOD_STATUSES, UPCOMING_PAYMENT_DAYS
from .dates import month_end, next_weekday_on_or_after, parse_day, week_start
from .exceptions import ValidationError
from .models import BillingPeriod, DayTotals, validate_period_status
from .state import LedgerState

logger = logging.getLogger(__name__)


def _nominal_biweek_start(start_of_week: date) -> date:
    epoch = week_start(date(start_of_week.year, 1, 1))
    week_number = (start_of_week - epoch).days // 7
    return epoch + timedelta(days=14 * (week_number // 2))


def biweek_weeks(day: date) -> List[date]:
    """
    Week starts (Sundays) making up the bi-week that contains the given day.

    Weeks are numbered from the Sunday on or before January 1 of the week's
    year, and consecutive pairs of weeks form one bi-week. Numbering restarts
    every year, so a bi-week at a year boundary can hold a single week.
    """
    start_of_week = week_start(day)
    nominal = _nominal_biweek_start(start_of_week)
    candidates = (start_of_week + timedelta(days=7 * offset) for offset in (-1, 0, 1))
    return [week for week in candidates if _nominal_biweek_start(week) == nominal]


def biweek_start(day: date) -> date:
    """Start (a Sunday) of the bi-week containing the given day."""
    return biweek_weeks(day)[0]


def period_bounds(day: date, schedule: str) -> Tuple[date, date]:
    """Inclusive [start, end] of the billing period containing the given day."""
    if schedule == 'weekly':
        start = week_start(day)
        return start, start + timedelta(days=6)
    if schedule == 'bi-weekly':
        weeks = biweek_weeks(day)
        return weeks[0], weeks[-1] + timedelta(days=6)
    if schedule == 'monthly':
        return day.replace(day=1), month_end(day)
    raise ValidationError(f"Unknown payment schedule: {schedule!r}")


def period_identifier(day: date, schedule: str) -> str:
    if schedule == 'monthly':
        return f"{day.year}-{day.month:02d}"
    return period_bounds(day, schedule)[0].isoformat()


def period_key(firm_name: str, day: date, schedule: str) -> str:
    return f"{firm_name}_{schedule}_{period_identifier(day, schedule)}"


@dataclass
class UpcomingPayment:
    """A billing period that has not been paid yet, with its due date"""
    firm_name: str
    period_key: str
    due_date: date
    amount: Decimal
    files: int
    status: str


class BillingPeriodAggregator:
    """
    Rolls finalized daily firm breakdowns into firm billing periods.

    A period's totals are always recomputed as the sum of its daily
    breakdown, so rolling the same day up twice overwrites that day's entry
    instead of counting it again.
    """

    def __init__(self, state: LedgerState, persist: Callable[[], None],
                 clock: Callable[[], datetime] = datetime.now):
        self._state = state
        self._persist = persist
        self._clock = clock

    def period_key(self, firm_name: str, day: date, schedule: str) -> str:
        return period_key(firm_name, day, schedule)

    def period_bounds(self, day: date, schedule: str) -> Tuple[date, date]:
        return period_bounds(day, schedule)

    def roll_up(self, firm_name: str, day: date, totals: DayTotals, save: bool = True) -> Optional[BillingPeriod]:
        """
        Add one day's totals for a firm into the firm's billing period.

        Args:
            firm_name: Firm the totals belong to
            day: The finalized day
            totals: That firm's jobs/amount/miles for the day
            save: Persist after updating (the end-of-day flow saves once at the end)

        Returns:
            The updated BillingPeriod, or None if the firm has no configuration
        """
        config = self._state.firm_configs.get(firm_name)
        if config is None:
            logger.warning("Skipping roll-up for %s on %s: firm is not configured", firm_name, day)
            return None

        schedule = config.payment_schedule
        key = period_key(firm_name, day, schedule)
        period = self._state.billing_periods.get(key)
        if period is None:
            start, end = period_bounds(day, schedule)
            period = BillingPeriod(
                period_key=key,
                firm_name=firm_name,
                payment_schedule=schedule,
                start_date=start,
                end_date=end,
            )
            self._state.billing_periods[key] = period

        period.daily_breakdown[day] = totals.copy()
        period.recompute_totals()

        if save:
            self._persist()
        return period

    def get_period(self, key: str) -> Optional[BillingPeriod]:
        return self._state.billing_periods.get(key)

    def list_periods(self, firm_name: str, limit: int = DEFAULT_PERIOD_LIMIT) -> List[BillingPeriod]:
        """A firm's periods, most recent first."""
        periods = [p for p in self._state.billing_periods.values() if p.firm_name == firm_name]
        periods.sort(key=lambda p: p.start_date, reverse=True)
        return periods[:limit]

    def current_periods(self, today: Optional[date] = None) -> Dict[str, BillingPeriod]:
        """For each configured firm, the period containing today (if one exists yet)."""
        today = today or self._clock().date()
        current = {}
        for firm_name, config in self._state.firm_configs.items():
            period = self._state.billing_periods.get(period_key(firm_name, today, config.payment_schedule))
            if period:
                current[firm_name] = period
        return current

    def set_status(self, key: str, status: str) -> Optional[BillingPeriod]:
        """
        Move a period forward through pending -> billed -> paid.

        Steps may be skipped (pending straight to paid) and setting the
        current status again is a no-op, but a period never moves back.
        Marking a period billed also marks its completed jobs as billed.
        Returns None if the period key is unknown.

        Raises:
            ValidationError: unknown status, or a backward transition
        """
        status = validate_period_status(status)
        period = self._state.billing_periods.get(key)
        if period is None:
            return None

        if PERIOD_STATUSES.index(status) < PERIOD_STATUSES.index(period.status):
            raise ValidationError(f"Period {key} is already {period.status} and cannot move back to {status}")
        if status == period.status:
            return period

        period.status = status
        if status == 'billed':
            now = self._clock()
            for totals in period.daily_breakdown.values():
                for job_id in totals.job_ids:
                    job = self._state.jobs.get(job_id)
                    if job and job.status == 'completed':
                        job.status = 'billed'
                        job.billed_date = now
                        job.last_updated = now

        self._persist()
        return period

    def payment_due_date(self, period: BillingPeriod) -> date:
        """
        When the firm pays for a period.

        Weekly and bi-weekly periods are paid on the first configured weekday
        on or after the period end. Monthly periods are paid on the configured
        day of the following month (clamped to that month's length), except
        "31" which means the last day of the period month.
        """
        config = self._state.firm_configs.get(period.firm_name)
        payment_day = config.payment_day if config else DEFAULT_PAYMENT_DAYS[period.payment_schedule]

        if period.payment_schedule == 'monthly':
            day_number = int(payment_day)
            if day_number == 31:
                return period.end_date
            next_month = period.end_date + timedelta(days=1)
            return next_month.replace(day=min(day_number, month_end(next_month).day))

        return next_weekday_on_or_after(period.end_date, payment_day)

    def upcoming_payments(self, days: int = UPCOMING_PAYMENT_DAYS,
                          today: Optional[date] = None) -> List[UpcomingPayment]:
        """Unpaid periods due between today and today + days, soonest first."""
        today = parse_day(today) if today else self._clock().date()
        horizon = today + timedelta(days=days)

        upcoming = []
        for period in self._state.billing_periods.values():
            if period.status == 'paid':
                continue
            due = self.payment_due_date(period)
            if today <= due <= horizon:
                upcoming.append(UpcomingPayment(
                    firm_name=period.firm_name,
                    period_key=period.period_key,
                    due_date=due,
                    amount=period.total_amount,
                    files=period.total_files,
                    status=period.status,
                ))

        upcoming.sort(key=lambda p: (p.due_date, p.firm_name))
        return upcoming
