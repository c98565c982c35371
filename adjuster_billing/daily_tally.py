"""Daily tally bookkeeping"""
import logging
from datetime import date, datetime
from typing import Any, Callable, Optional

from .billing_periods import BillingPeriodAggregator
from .dates import parse_day
from .events import DayFinalized, EventBus
from .exceptions import TallyAlreadyFinalizedError, ValidationError
from .models import DailyTally, DayTotals, FinalizeResult, Job
from .state import LedgerState

logger = logging.getLogger(__name__)


class DailyTallyAggregator:
    """
    Per-day summary of completed jobs.

    An open tally is a cache of a deterministic scan over the completed jobs
    for that day: every read and every job change recomputes it, so it can
    never drift from the underlying jobs. Finalizing a day freezes the tally
    and rolls each firm's share into its billing period; a finalized tally is
    authoritative and is never recomputed.
    """

    def __init__(self, state: LedgerState, persist: Callable[[], None],
                 periods: BillingPeriodAggregator, events: EventBus,
                 clock: Callable[[], datetime] = datetime.now):
        self._state = state
        self._persist = persist
        self._periods = periods
        self._events = events
        self._clock = clock

    def _resolve_day(self, day: Any) -> date:
        return parse_day(day) if day is not None else self._clock().date()

    def compute(self, day: date) -> DailyTally:
        """Build a tally from scratch out of the jobs completed on the given day."""
        jobs = sorted(
            (job for job in self._state.jobs.values()
             if job.counts_toward_tally and job.completed_day == day),
            key=lambda job: (job.completed_date, job.job_id),
        )

        tally = DailyTally(day=day)
        for job in jobs:
            tally.total_earnings += job.total_job_value
            tally.total_miles += job.roundtrip_miles
            tally.total_jobs += 1
            tally.completed_job_ids.append(job.job_id)
            tally.firm_breakdown.setdefault(job.firm_name, DayTotals()).add_job(job)
        return tally

    def is_finalized(self, day: Optional[date]) -> bool:
        if day is None:
            return False
        tally = self._state.daily_tallies.get(day)
        return bool(tally and tally.is_finalized)

    def refresh(self, day: date) -> DailyTally:
        """
        Recompute the cached tally for an open day.

        Empty days are dropped from the cache. Finalized tallies are returned as-is.
        """
        stored = self._state.daily_tallies.get(day)
        if stored and stored.is_finalized:
            return stored

        tally = self.compute(day)
        if tally.total_jobs:
            self._state.daily_tallies[day] = tally
        else:
            self._state.daily_tallies.pop(day, None)
        return tally

    def record_completion(self, job: Job) -> DailyTally:
        """
        Fold a newly completed job into the tally for its completion day.

        Raises:
            TallyAlreadyFinalizedError: if that day has already been closed
        """
        day = job.completed_day
        if day is None:
            raise ValidationError(f"Job {job.job_id} has no completion date")
        if self.is_finalized(day):
            raise TallyAlreadyFinalizedError(day, job.job_id)

        tally = self.refresh(day)
        self._persist()
        return tally

    def get_current_tally(self, day: Any = None) -> DailyTally:
        """Tally for the given day (today by default); empty when nothing was completed."""
        return self.refresh(self._resolve_day(day))

    def get_tally(self, day: Any) -> Optional[DailyTally]:
        """Tally for the given day, or None when nothing was completed on it."""
        tally = self.refresh(self._resolve_day(day))
        if tally.total_jobs == 0 and not tally.is_finalized:
            return None
        return tally

    def finalize_day(self, day: Any = None) -> FinalizeResult:
        """
        Close a day and roll its firm breakdowns into billing periods.

        Finalizing an already-finalized day returns the existing tally
        unchanged. A day with no completed jobs is not finalized; the result
        reports "Nothing to finalize" instead of raising.
        """
        day = self._resolve_day(day)

        stored = self._state.daily_tallies.get(day)
        if stored and stored.is_finalized:
            return FinalizeResult(stored, False, f"{day.isoformat()} is already finalized")

        tally = self.compute(day)
        if tally.total_jobs == 0:
            return FinalizeResult(tally, False, "Nothing to finalize")

        tally.is_finalized = True
        tally.finalized_at = self._clock()
        self._state.daily_tallies[day] = tally

        for firm_name, totals in tally.firm_breakdown.items():
            self._periods.roll_up(firm_name, day, totals, save=False)

        self._persist()
        logger.info("Finalized %s: %s from %d job(s)", day.isoformat(), tally.total_earnings, tally.total_jobs)
        self._events.emit(DayFinalized(tally))
        return FinalizeResult(
            tally, True, f"Finalized {day.isoformat()}: {tally.total_jobs} job(s), ${tally.total_earnings:,.2f}"
        )
