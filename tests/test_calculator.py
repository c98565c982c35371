"""Tests for the job value calculator"""
import pytest
import sys
from decimal import Decimal
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from adjuster_billing.models import Job, RateSnapshot
from adjuster_billing.calculator import JobValueCalculator


def make_job(miles, file_rate='150', mileage_rate='0.67', free_mileage=25,
             time_rate='0', hours='0', adjustments='0', job_id='ACM_CLM-1_1'):
    return Job(
        job_id=job_id,
        firm_name='Acme',
        claim_number='CLM-1',
        rates=RateSnapshot(
            file_rate=Decimal(file_rate),
            mileage_rate=Decimal(mileage_rate),
            free_mileage=free_mileage,
            time_expense_rate=Decimal(time_rate),
        ),
        roundtrip_miles=Decimal(miles),
        time_expense_hours=Decimal(hours),
        adjustments=Decimal(adjustments),
    )


class TestJobValueCalculator:
    """Test cases for JobValueCalculator"""

    def setup_method(self):
        self.calc = JobValueCalculator()

    def test_miles_over_free_mileage(self):
        """
        Test: 45 roundtrip miles, 25 free, $0.67/mile, $150 file rate
        Expected:
        - Billable miles: 20
        - Mileage: $13.40
        - Total: $163.40
        """
        job = self.calc.apply(make_job('45'))

        assert job.billable_miles == Decimal('20')
        assert job.mileage_amount == Decimal('13.40')
        assert job.base_job_value == Decimal('150')
        assert job.total_job_value == Decimal('163.40')

    def test_miles_under_free_mileage(self):
        """Short trips are covered by the file rate"""
        job = self.calc.apply(make_job('20'))

        assert job.billable_miles == 0
        assert job.mileage_amount == 0
        assert job.total_job_value == Decimal('150')

    def test_miles_exactly_free_mileage(self):
        job = self.calc.apply(make_job('25'))

        assert job.billable_miles == 0
        assert job.total_job_value == Decimal('150')

    def test_fractional_values_are_not_rounded(self):
        """
        Test: 45.5 miles at $0.655/mile
        Expected: 20.5 * 0.655 = 13.4275 kept exactly
        """
        job = self.calc.apply(make_job('45.5', mileage_rate='0.655'))

        assert job.mileage_amount == Decimal('13.4275')
        assert job.total_job_value == Decimal('163.4275')

    def test_time_expense(self):
        """
        Test: 2.5 hours at $40/hour on top of the file rate
        Expected: $100 time expense, total $250
        """
        job = self.calc.apply(make_job('10', time_rate='40', hours='2.5'))

        assert job.time_expense_amount == Decimal('100.0')
        assert job.total_job_value == Decimal('250')

    def test_negative_adjustment(self):
        job = self.calc.apply(make_job('45', adjustments='-10'))

        assert job.total_job_value == Decimal('153.40')

    def test_total_uses_snapshot_rates(self):
        """Recalculating keeps using the job's own rates"""
        job = self.calc.apply(make_job('45', file_rate='200'))

        assert job.base_job_value == Decimal('200')
        assert job.total_job_value == Decimal('213.40')

    def test_summary_calculation(self):
        """Test summary totals"""
        jobs = [
            self.calc.apply(make_job('45', job_id='A')),
            self.calc.apply(make_job('20', adjustments='5', job_id='B')),
        ]

        summary = self.calc.calculate_summary(jobs)

        assert summary['job_count'] == 2
        assert summary['total_files'] == Decimal('300')
        assert summary['total_miles'] == Decimal('65')
        assert summary['total_billable_miles'] == Decimal('20')
        assert summary['total_mileage'] == Decimal('13.40')
        assert summary['total_adjustments'] == Decimal('5')
        assert summary['total_value'] == Decimal('318.40')

    def test_summary_of_no_jobs(self):
        summary = self.calc.calculate_summary([])

        assert summary['job_count'] == 0
        assert summary['total_value'] == 0


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
