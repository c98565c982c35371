"""Job value calculation logic for Adjuster Billing"""
from decimal import Decimal
from typing import Dict, List

from .models import Job, RateSnapshot
from .money import ZERO


class JobValueCalculator:
    """
    Calculates the billed value of a job from its frozen rate snapshot.

    Business Logic:
    ===============

    Every completed claim pays the firm's flat file rate.

    Mileage:
    - The first `free_mileage` roundtrip miles are included in the file rate
    - Billable miles = max(0, roundtrip miles - free mileage)
    - Mileage amount = billable miles * mileage rate

    Time expense (optional, hourly firms only):
    - Time expense amount = hours * time expense rate

    Total = file rate + mileage amount + time expense amount + adjustments

    Rates always come from the job's snapshot, never from the live firm
    configuration, so editing a firm does not change historical jobs.
    """

    def billable_miles(self, roundtrip_miles: Decimal, rates: RateSnapshot) -> Decimal:
        return max(ZERO, roundtrip_miles - rates.free_mileage)

    def mileage_amount(self, roundtrip_miles: Decimal, rates: RateSnapshot) -> Decimal:
        return self.billable_miles(roundtrip_miles, rates) * rates.mileage_rate

    def time_expense_amount(self, hours: Decimal, rates: RateSnapshot) -> Decimal:
        return hours * rates.time_expense_rate

    def total(self, job: Job) -> Decimal:
        return job.base_job_value + job.mileage_amount + job.time_expense_amount + job.adjustments

    def apply(self, job: Job) -> Job:
        """
        Recompute every derived field of a job in place.

        Args:
            job: The job to recalculate

        Returns:
            The same job, for chaining
        """
        job.billable_miles = self.billable_miles(job.roundtrip_miles, job.rates)
        job.mileage_amount = job.billable_miles * job.rates.mileage_rate
        job.base_job_value = job.rates.file_rate
        job.time_expense_amount = self.time_expense_amount(job.time_expense_hours, job.rates)
        job.total_job_value = self.total(job)
        return job

    def calculate_summary(self, jobs: List[Job]) -> Dict[str, object]:
        """
        Calculate summary totals for a list of jobs.

        Args:
            jobs: List of Job objects

        Returns:
            Dictionary with summary totals
        """
        return {
            'job_count': len(jobs),
            'total_files': sum((j.base_job_value for j in jobs), ZERO),
            'total_miles': sum((j.roundtrip_miles for j in jobs), ZERO),
            'total_billable_miles': sum((j.billable_miles for j in jobs), ZERO),
            'total_mileage': sum((j.mileage_amount for j in jobs), ZERO),
            'total_time_expense': sum((j.time_expense_amount for j in jobs), ZERO),
            'total_adjustments': sum((j.adjustments for j in jobs), ZERO),
            'total_value': sum((j.total_job_value for j in jobs), ZERO),
        }
