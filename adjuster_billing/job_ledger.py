"""Job creation, updates, and completion"""
import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from config import MILEAGE_TIMEOUT_SECONDS
from .calculator import JobValueCalculator
from .daily_tally import DailyTallyAggregator
from .dates import parse_day, parse_timestamp
from .events import EventBus, JobCompleted
from .exceptions import (
    MileageResolutionError,
    TallyAlreadyFinalizedError,
    UnknownFirmError,
    ValidationError,
)
from .firm_config import FirmConfigStore
from .mileage import MileageProvider, estimate_mileage
from .models import Job, MileageResult, RateSnapshot, validate_job_status
from .money import non_negative, round_miles, to_decimal
from .state import LedgerState

logger = logging.getLogger(__name__)

# Fields a caller may change after creation
MUTABLE_FIELDS = (
    'adjustments', 'status', 'time_expense_hours',
    'description', 'completed_date', 'scheduled_date'
)


def _tally_signature(job: Job) -> Optional[Tuple]:
    """What a job contributes to its day's tally; None when it contributes nothing."""
    if not job.counts_toward_tally:
        return None
    return (job.completed_day, job.firm_name, job.total_job_value, job.roundtrip_miles)


class JobLedger:
    """
    Creates and updates jobs and computes their value.

    Each job carries a snapshot of its firm's rates taken at creation, and
    its total is recomputed from that snapshot after every change.
    """

    def __init__(self, state: LedgerState, persist: Callable[[], None],
                 firms: FirmConfigStore, tallies: DailyTallyAggregator, events: EventBus,
                 mileage_provider: Optional[MileageProvider] = None,
                 calculator: Optional[JobValueCalculator] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 mileage_timeout: float = MILEAGE_TIMEOUT_SECONDS):
        self._state = state
        self._persist = persist
        self._firms = firms
        self._tallies = tallies
        self._events = events
        self._mileage = mileage_provider
        self.calculator = calculator or JobValueCalculator()
        self._clock = clock
        self._mileage_timeout = mileage_timeout

    # ============ LOOKUPS ============

    def get_job(self, job_id: str) -> Optional[Job]:
        return self._state.jobs.get(job_id)

    def list_jobs(self, firm_name: Optional[str] = None, status: Optional[str] = None) -> List[Job]:
        jobs = [
            job for job in self._state.jobs.values()
            if (firm_name is None or job.firm_name == firm_name)
            and (status is None or job.status == status)
        ]
        return sorted(jobs, key=lambda job: (job.created_date or datetime.min, job.job_id))

    # ============ CREATION ============

    def generate_job_id(self, firm_name: str, claim_number: str) -> str:
        """Firm prefix + claim number + creation timestamp (ms), bumped until unique."""
        prefix = firm_name[:3].upper()
        timestamp = int(self._clock().timestamp() * 1000)
        job_id = f"{prefix}_{claim_number}_{timestamp}"
        while job_id in self._state.jobs:
            timestamp += 1
            job_id = f"{prefix}_{claim_number}_{timestamp}"
        return job_id

    async def resolve_mileage(self, home_address: str, customer_address: str,
                              timeout: Optional[float] = None) -> MileageResult:
        """
        Ask the mileage provider for the roundtrip distance.

        Falls back to the estimated mileage when there is no provider, an
        address is missing, the lookup fails, or it does not finish within
        the timeout.
        """
        if self._mileage is None or not home_address or not customer_address:
            logger.info("Mileage lookup unavailable, using estimated mileage")
            return estimate_mileage(self._clock())

        try:
            result = await asyncio.wait_for(
                self._mileage.roundtrip(home_address, customer_address),
                timeout if timeout is not None else self._mileage_timeout,
            )
            miles = round_miles(non_negative(result.miles, 'roundtrip miles'))
        except asyncio.TimeoutError:
            logger.warning("Mileage lookup timed out for %s, using estimated mileage", customer_address)
            return estimate_mileage(self._clock())
        except (MileageResolutionError, ValidationError) as e:
            logger.warning("Mileage lookup failed for %s (%s), using estimated mileage", customer_address, e)
            return estimate_mileage(self._clock())
        except Exception:
            # CancelledError is a BaseException and still propagates
            logger.exception("Mileage provider error for %s, using estimated mileage", customer_address)
            return estimate_mileage(self._clock())

        return MileageResult(miles=miles, route_details=dict(result.route_details))

    def _pre_calculated(self, value: Any) -> Optional[MileageResult]:
        if isinstance(value, MileageResult):
            return MileageResult(round_miles(non_negative(value.miles, 'roundtrip miles')), dict(value.route_details))
        if isinstance(value, Mapping) and value.get('calculated'):
            return MileageResult(
                miles=round_miles(non_negative(value.get('miles'), 'roundtrip miles')),
                route_details=dict(value.get('route_details') or {}),
            )
        return None

    async def create_job(self, data: Mapping[str, Any], timeout: Optional[float] = None) -> Job:
        """
        Create a scheduled job for a configured firm.

        Args:
            data: firm_name, claim_number, customer_address, home_address,
                scheduled_date, description, and optionally
                pre_calculated_mileage ({'calculated': True, 'miles': ...}
                or a MileageResult) to skip the distance lookup
            timeout: Seconds to wait for the mileage lookup

        Returns:
            The stored Job

        Raises:
            UnknownFirmError: no configuration for firm_name
            ValidationError: missing claim number or malformed fields
        """
        firm_name = data.get('firm_name')
        if self._firms.get(firm_name) is None:
            raise UnknownFirmError(firm_name)

        claim_number = str(data.get('claim_number') or '').strip()
        if not claim_number:
            raise ValidationError("claim_number is required")

        scheduled = data.get('scheduled_date')
        scheduled_date = parse_day(scheduled, 'scheduled_date') if scheduled else None
        customer_address = str(data.get('customer_address') or '')
        home_address = str(data.get('home_address') or '')

        mileage = self._pre_calculated(data.get('pre_calculated_mileage'))
        if mileage is None:
            mileage = await self.resolve_mileage(home_address, customer_address, timeout)

        # Rates are captured after the lookup so the snapshot matches the firm at save time
        config = self._firms.get(firm_name)
        if config is None:
            raise UnknownFirmError(firm_name)

        now = self._clock()
        job = Job(
            job_id=self.generate_job_id(firm_name, claim_number),
            firm_name=firm_name,
            claim_number=claim_number,
            customer_address=customer_address,
            home_address=home_address,
            scheduled_date=scheduled_date,
            description=str(data.get('description') or ''),
            roundtrip_miles=mileage.miles,
            route_details=mileage.route_details,
            rates=RateSnapshot.from_firm(config),
            status='scheduled',
            created_date=now,
        )
        self.calculator.apply(job)

        self._state.jobs[job.job_id] = job
        self._state.firm_job_counts[firm_name] += 1
        self._persist()
        return job

    # ============ UPDATES ============

    def _coerce_updates(self, updates: Mapping[str, Any]) -> Dict[str, Any]:
        """Validate the allowed fields; anything outside the allow-list is ignored."""
        values: Dict[str, Any] = {}
        for key in MUTABLE_FIELDS:
            if key not in updates:
                continue
            value = updates[key]
            if key == 'adjustments':
                values[key] = to_decimal(value, 'adjustments')
            elif key == 'time_expense_hours':
                values[key] = non_negative(value, 'time_expense_hours')
            elif key == 'status':
                values[key] = validate_job_status(value)
            elif key == 'description':
                values[key] = str(value or '')
            elif key == 'completed_date':
                values[key] = parse_timestamp(value, 'completed_date') if value else None
            elif key == 'scheduled_date':
                values[key] = parse_day(value, 'scheduled_date') if value else None
        return values

    def _guard_finalized(self, before: Job, after: Job) -> None:
        """Refuse changes that would alter what a finalized day already counted."""
        old_signature = _tally_signature(before)
        new_signature = _tally_signature(after)
        if old_signature == new_signature:
            return
        for job in (before, after):
            if job.counts_toward_tally and self._tallies.is_finalized(job.completed_day):
                raise TallyAlreadyFinalizedError(job.completed_day, job.job_id)

    def _refresh_open_days(self, before: Job, after: Job) -> None:
        if _tally_signature(before) == _tally_signature(after):
            return
        days = {job.completed_day for job in (before, after) if job.counts_toward_tally}
        for day in days:
            self._tallies.refresh(day)

    def update_job(self, job_id: str, updates: Mapping[str, Any]) -> Optional[Job]:
        """
        Apply allowed field changes and recompute the job total.

        Returns:
            The updated Job, or None if the id is unknown

        Raises:
            TallyAlreadyFinalizedError: the change would alter a finalized day
        """
        job = self._state.jobs.get(job_id)
        if job is None:
            return None

        updated = replace(job, **self._coerce_updates(updates))
        self.calculator.apply(updated)
        updated.last_updated = self._clock()
        self._guard_finalized(job, updated)

        self._state.jobs[job_id] = updated
        self._refresh_open_days(job, updated)
        self._persist()
        return updated

    def complete_job(self, job_id: str, completion_data: Optional[Mapping[str, Any]] = None) -> Optional[Job]:
        """
        Mark a job completed and record it in the daily tally.

        Args:
            job_id: Job to complete
            completion_data: Optional completed_date (defaults to now),
                final adjustments, and time_expense_hours

        Returns:
            The completed Job, or None if the id is unknown

        Raises:
            TallyAlreadyFinalizedError: the completion day is already finalized
        """
        job = self._state.jobs.get(job_id)
        if job is None:
            return None

        data = completion_data or {}
        values = self._coerce_updates({
            key: data[key] for key in ('adjustments', 'time_expense_hours', 'completed_date') if key in data
        })
        values['status'] = 'completed'
        if not values.get('completed_date'):
            values['completed_date'] = self._clock()

        completed = replace(job, **values)
        self.calculator.apply(completed)
        completed.last_updated = self._clock()

        if self._tallies.is_finalized(completed.completed_day):
            raise TallyAlreadyFinalizedError(completed.completed_day, job_id)
        self._guard_finalized(job, completed)

        self._state.jobs[job_id] = completed
        if job.counts_toward_tally and job.completed_day != completed.completed_day:
            self._tallies.refresh(job.completed_day)
        self._tallies.record_completion(completed)

        self._events.emit(JobCompleted(completed))
        return completed

    def remove_job(self, job_id: str) -> bool:
        """
        Delete a job and drop it from its open daily tally.

        Returns:
            False if the id is unknown

        Raises:
            TallyAlreadyFinalizedError: the job was counted in a finalized day
        """
        job = self._state.jobs.get(job_id)
        if job is None:
            return False
        if job.counts_toward_tally and self._tallies.is_finalized(job.completed_day):
            raise TallyAlreadyFinalizedError(job.completed_day, job_id)

        del self._state.jobs[job_id]
        self._state.firm_job_counts[job.firm_name] -= 1
        if self._state.firm_job_counts[job.firm_name] <= 0:
            del self._state.firm_job_counts[job.firm_name]

        if job.counts_toward_tally:
            self._tallies.refresh(job.completed_day)
        self._persist()
        return True
