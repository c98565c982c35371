"""Earnings analytics over the daily tally history"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from config import DEFAULT_ANALYTICS_DAYS
from .dates import parse_day, week_start
from .money import ZERO, non_negative_int, to_cents
from .state import LedgerState


@dataclass
class FirmEarnings:
    jobs: int = 0
    amount: Decimal = ZERO
    miles: Decimal = ZERO
    share: Decimal = ZERO  # Percent of total earnings in the window


@dataclass
class DailyTrend:
    day: date
    earnings: Decimal
    jobs: int
    miles: Decimal


@dataclass
class WeeklySummary:
    week_start: date
    earnings: Decimal = ZERO
    jobs: int = 0
    work_days: int = 0
    days: List[date] = field(default_factory=list)


@dataclass
class EarningsAnalytics:
    """Rolling-window earnings totals, per-firm shares, and the daily trend series"""
    window_days: int
    start_date: date
    end_date: date
    total_earnings: Decimal = ZERO
    total_jobs: int = 0
    total_miles: Decimal = ZERO
    average_per_job: Decimal = ZERO
    daily_average: Decimal = ZERO
    firm_breakdown: Dict[str, FirmEarnings] = field(default_factory=dict)
    daily_trends: List[DailyTrend] = field(default_factory=list)

    @property
    def best_day(self) -> Optional[DailyTrend]:
        """Day with the highest earnings (earliest wins a tie)."""
        if not self.daily_trends:
            return None
        return max(self.daily_trends, key=lambda t: (t.earnings, -t.day.toordinal()))

    @property
    def busiest_day(self) -> Optional[DailyTrend]:
        """Day with the most jobs (earliest wins a tie)."""
        if not self.daily_trends:
            return None
        return max(self.daily_trends, key=lambda t: (t.jobs, -t.day.toordinal()))

    @property
    def top_firm(self) -> Optional[str]:
        if not self.firm_breakdown:
            return None
        return max(self.firm_breakdown.items(), key=lambda item: item[1].amount)[0]

    def weekly_summary(self) -> List[WeeklySummary]:
        """Group the daily trend series by Sunday-start week."""
        weeks: Dict[date, WeeklySummary] = {}
        for trend in self.daily_trends:
            start = week_start(trend.day)
            week = weeks.setdefault(start, WeeklySummary(week_start=start))
            week.earnings += trend.earnings
            week.jobs += trend.jobs
            week.days.append(trend.day)
            if trend.jobs > 0:
                week.work_days += 1
        return [weeks[start] for start in sorted(weeks)]


class AnalyticsEngine:
    """Read-only statistics computed from the daily tallies; never mutates state."""

    def __init__(self, state: LedgerState, clock: Callable[[], datetime] = datetime.now):
        self._state = state
        self._clock = clock

    def earnings_analytics(self, window_days: Any = DEFAULT_ANALYTICS_DAYS,
                           today: Any = None) -> EarningsAnalytics:
        """
        Summarize every daily tally dated within [today - window_days, today].

        Args:
            window_days: Size of the look-back window in days
            today: End of the window (defaults to the current date)

        Returns:
            EarningsAnalytics for the window
        """
        window_days = non_negative_int(window_days, 'window_days')
        end = parse_day(today) if today is not None else self._clock().date()
        start = end - timedelta(days=window_days)

        analytics = EarningsAnalytics(window_days=window_days, start_date=start, end_date=end)

        for day in sorted(self._state.daily_tallies):
            if not start <= day <= end:
                continue
            tally = self._state.daily_tallies[day]
            analytics.total_earnings += tally.total_earnings
            analytics.total_jobs += tally.total_jobs
            analytics.total_miles += tally.total_miles
            analytics.daily_trends.append(DailyTrend(
                day=day,
                earnings=tally.total_earnings,
                jobs=tally.total_jobs,
                miles=tally.total_miles,
            ))

            for firm_name, totals in tally.firm_breakdown.items():
                firm = analytics.firm_breakdown.setdefault(firm_name, FirmEarnings())
                firm.jobs += totals.jobs
                firm.amount += totals.amount
                firm.miles += totals.miles

        if analytics.total_jobs > 0:
            analytics.average_per_job = analytics.total_earnings / analytics.total_jobs
        if window_days > 0:
            analytics.daily_average = analytics.total_earnings / window_days
        if analytics.total_earnings:
            for firm in analytics.firm_breakdown.values():
                firm.share = to_cents(firm.amount / analytics.total_earnings * 100)

        return analytics
