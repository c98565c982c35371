"""Job billing service - the engine's public operations"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from config import DEFAULT_ANALYTICS_DAYS, DEFAULT_PERIOD_LIMIT, MILEAGE_TIMEOUT_SECONDS, UPCOMING_PAYMENT_DAYS
from .analytics import AnalyticsEngine, EarningsAnalytics
from .billing_periods import BillingPeriodAggregator, UpcomingPayment
from .daily_tally import DailyTallyAggregator
from .events import EventBus, FirmDeleted, Handler
from .firm_config import FirmConfigStore
from .job_ledger import JobLedger
from .mileage import MileageProvider
from .models import BillingPeriod, DailyTally, FinalizeResult, FirmConfig, Job
from .state import LedgerState
from .storage import PersistenceAdapter

logger = logging.getLogger(__name__)


class JobBillingService:
    """
    Per-claim billing for independent adjusters.

    Wires the firm store, job ledger, daily tallies, billing periods, and
    analytics around one owned LedgerState, and saves a snapshot through the
    persistence adapter after every mutation. A failed save is logged and
    the in-memory state is kept.
    """

    def __init__(self, store: Optional[PersistenceAdapter] = None,
                 mileage_provider: Optional[MileageProvider] = None,
                 events: Optional[EventBus] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 mileage_timeout: float = MILEAGE_TIMEOUT_SECONDS):
        self.store = store
        self.events = events or EventBus()
        self._clock = clock

        self.state = LedgerState.from_snapshot(store.load()) if store is not None else LedgerState()

        self.firms = FirmConfigStore(self.state, self._save, clock)
        self.periods = BillingPeriodAggregator(self.state, self._save, clock)
        self.tallies = DailyTallyAggregator(self.state, self._save, self.periods, self.events, clock)
        self.ledger = JobLedger(
            self.state, self._save, self.firms, self.tallies, self.events,
            mileage_provider=mileage_provider, clock=clock, mileage_timeout=mileage_timeout,
        )
        self.analytics = AnalyticsEngine(self.state, clock)

    def _save(self) -> None:
        if self.store is None:
            return
        try:
            self.store.save(self.state.to_snapshot(self._clock()))
        except Exception:
            logger.exception("Error saving billing data; keeping in-memory state")

    def subscribe(self, event_name: str, handler: Handler) -> Callable[[], None]:
        return self.events.subscribe(event_name, handler)

    # ============ FIRM CONFIGURATION ============

    def add_firm_config(self, data: Mapping[str, Any]) -> FirmConfig:
        return self.firms.add_or_update(data)

    def update_firm_config(self, firm_name: str, updates: Mapping[str, Any]) -> Optional[FirmConfig]:
        return self.firms.update(firm_name, updates)

    def get_firm_config(self, firm_name: str) -> Optional[FirmConfig]:
        return self.firms.get(firm_name)

    def list_firm_configs(self) -> List[FirmConfig]:
        return self.firms.list_all()

    def delete_firm_config(self, firm_name: str) -> bool:
        """Delete a firm; raises ReferentialIntegrityError while jobs reference it."""
        removed = self.firms.delete(firm_name)
        if removed is None:
            return False
        self.events.emit(FirmDeleted(removed))
        return True

    # ============ JOBS ============

    async def create_job(self, data: Mapping[str, Any], timeout: Optional[float] = None) -> Job:
        return await self.ledger.create_job(data, timeout=timeout)

    def update_job(self, job_id: str, updates: Mapping[str, Any]) -> Optional[Job]:
        return self.ledger.update_job(job_id, updates)

    def complete_job(self, job_id: str, completion_data: Optional[Mapping[str, Any]] = None) -> Optional[Job]:
        return self.ledger.complete_job(job_id, completion_data)

    def remove_job(self, job_id: str) -> bool:
        return self.ledger.remove_job(job_id)

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.ledger.get_job(job_id)

    def list_jobs(self, firm_name: Optional[str] = None, status: Optional[str] = None) -> List[Job]:
        return self.ledger.list_jobs(firm_name, status)

    # ============ DAILY TALLIES ============

    def get_current_daily_tally(self, day: Any = None) -> DailyTally:
        return self.tallies.get_current_tally(day)

    def get_daily_tally(self, day: Any) -> Optional[DailyTally]:
        return self.tallies.get_tally(day)

    def finalize_day(self, day: Any = None) -> FinalizeResult:
        return self.tallies.finalize_day(day)

    # ============ BILLING PERIODS ============

    def get_firm_billing_periods(self, firm_name: str, limit: int = DEFAULT_PERIOD_LIMIT) -> List[BillingPeriod]:
        return self.periods.list_periods(firm_name, limit)

    def get_current_billing_periods(self) -> Dict[str, BillingPeriod]:
        return self.periods.current_periods()

    def get_billing_period(self, period_key: str) -> Optional[BillingPeriod]:
        return self.periods.get_period(period_key)

    def set_period_status(self, period_key: str, status: str) -> Optional[BillingPeriod]:
        return self.periods.set_status(period_key, status)

    def upcoming_payments(self, days: int = UPCOMING_PAYMENT_DAYS) -> List[UpcomingPayment]:
        return self.periods.upcoming_payments(days)

    # ============ ANALYTICS ============

    def get_earnings_analytics(self, window_days: int = DEFAULT_ANALYTICS_DAYS) -> EarningsAnalytics:
        return self.analytics.earnings_analytics(window_days)
