"""Tests for daily tallies and end-of-day finalization"""
import asyncio
import sys
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from adjuster_billing.events import DAY_FINALIZED
from adjuster_billing.models import DayTotals
from adjuster_billing.service import JobBillingService


class FixedClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def firm(name, file_rate, schedule='weekly'):
    return {
        'name': name,
        'file_rate': file_rate,
        'mileage_rate': '0.50',
        'free_mileage': 0,
        'payment_schedule': schedule,
    }


class TestDailyTally:
    def setup_method(self):
        self.clock = FixedClock(datetime(2025, 1, 10, 18, 0))
        self.service = JobBillingService(clock=self.clock)
        self.service.add_firm_config(firm('Acme', 100))
        self.service.add_firm_config(firm('Beta', 200, schedule='monthly'))

    def complete(self, firm_name, claim_number, miles, completed_date):
        job = asyncio.run(self.service.create_job({
            'firm_name': firm_name,
            'claim_number': claim_number,
            'pre_calculated_mileage': {'calculated': True, 'miles': miles},
        }))
        return self.service.complete_job(job.job_id, {'completed_date': completed_date})

    def test_empty_day(self):
        tally = self.service.get_current_daily_tally('2025-01-10')

        assert tally.day == date(2025, 1, 10)
        assert tally.total_jobs == 0
        assert tally.total_earnings == 0
        assert tally.firm_breakdown == {}
        assert self.service.get_daily_tally('2025-01-10') is None

    def test_firm_breakdown(self):
        """
        Test: Two Acme jobs and one Beta job on the same day
        Acme: $100 + 10mi * $0.50, $100 + 20mi * $0.50 -> $215
        Beta: $200 + 4mi * $0.50 -> $202
        """
        a1 = self.complete('Acme', 'A1', 10, '2025-01-10T09:00:00')
        a2 = self.complete('Acme', 'A2', 20, '2025-01-10T11:00:00')
        b1 = self.complete('Beta', 'B1', 4, '2025-01-10T10:00:00')
        self.complete('Acme', 'A3', 30, '2025-01-11T09:00:00')

        tally = self.service.get_daily_tally('2025-01-10')

        assert tally.total_jobs == 3
        assert tally.total_earnings == Decimal('417')
        assert tally.total_miles == Decimal('34')
        assert tally.completed_job_ids == [a1.job_id, b1.job_id, a2.job_id]
        assert tally.firm_breakdown['Acme'].jobs == 2
        assert tally.firm_breakdown['Acme'].amount == Decimal('215')
        assert tally.firm_breakdown['Acme'].job_ids == [a1.job_id, a2.job_id]
        assert tally.firm_breakdown['Beta'].amount == Decimal('202')
        assert sum(t.amount for t in tally.firm_breakdown.values()) == tally.total_earnings

    def test_default_day_is_today(self):
        self.complete('Acme', 'A1', 10, '2025-01-10T09:00:00')

        assert self.service.get_current_daily_tally().total_jobs == 1

    def test_finalize_rolls_up_each_firm(self):
        self.complete('Acme', 'A1', 10, '2025-01-10T09:00:00')
        self.complete('Beta', 'B1', 4, '2025-01-10T10:00:00')

        result = self.service.finalize_day('2025-01-10')

        assert result.finalized is True
        assert result.tally.is_finalized is True
        assert result.tally.finalized_at == self.clock.now

        acme = self.service.get_billing_period('Acme_weekly_2025-01-05')
        beta = self.service.get_billing_period('Beta_monthly_2025-01')
        assert acme.total_amount == Decimal('105')
        assert beta.total_amount == Decimal('202')
        assert beta.daily_breakdown[date(2025, 1, 10)].jobs == 1

    def test_finalize_twice_does_not_double_count(self):
        self.complete('Acme', 'A1', 10, '2025-01-10T09:00:00')
        first = self.service.finalize_day('2025-01-10')

        self.clock.now = datetime(2025, 1, 10, 19, 0)
        second = self.service.finalize_day('2025-01-10')

        assert second.finalized is False
        assert 'already finalized' in second.message
        assert second.tally is first.tally
        assert second.tally.finalized_at == datetime(2025, 1, 10, 18, 0)
        period = self.service.get_billing_period('Acme_weekly_2025-01-05')
        assert period.total_files == 1
        assert period.total_amount == Decimal('105')

    def test_finalize_empty_day(self):
        result = self.service.finalize_day('2025-01-12')

        assert result.finalized is False
        assert result.message == "Nothing to finalize"
        assert date(2025, 1, 12) not in self.service.state.daily_tallies
        assert self.service.state.billing_periods == {}

    def test_finalize_emits_event_once(self):
        events = []
        self.service.subscribe(DAY_FINALIZED, lambda event: events.append(event.tally.day))
        self.complete('Acme', 'A1', 10, '2025-01-10T09:00:00')

        self.service.finalize_day('2025-01-10')
        self.service.finalize_day('2025-01-10')

        assert events == [date(2025, 1, 10)]

    def test_finalized_days_across_a_week(self):
        self.complete('Acme', 'A1', 10, '2025-01-06T09:00:00')
        self.complete('Acme', 'A2', 20, '2025-01-08T09:00:00')
        self.service.finalize_day('2025-01-06')
        self.service.finalize_day('2025-01-08')

        period = self.service.get_billing_period('Acme_weekly_2025-01-05')
        assert period.total_files == 2
        assert period.total_amount == Decimal('215')
        assert period.total_miles == Decimal('30')
        assert sorted(period.daily_breakdown) == [date(2025, 1, 6), date(2025, 1, 8)]

    def test_roll_up_same_day_overwrites(self):
        totals = DayTotals(jobs=2, amount=Decimal('300'), miles=Decimal('40'), job_ids=['x', 'y'])

        self.service.periods.roll_up('Acme', date(2025, 1, 7), totals)
        period = self.service.periods.roll_up('Acme', date(2025, 1, 7), totals)

        assert period.total_files == 2
        assert period.total_amount == Decimal('300')

    def test_roll_up_unknown_firm(self):
        totals = DayTotals(jobs=1, amount=Decimal('10'))

        assert self.service.periods.roll_up('Nobody', date(2025, 1, 7), totals) is None
        assert self.service.state.billing_periods == {}
