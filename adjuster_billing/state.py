"""In-memory ledger state and its persisted snapshot format"""
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Tuple

from .models import BillingPeriod, DailyTally, FirmConfig, Job

SNAPSHOT_KEYS = ('firmConfigs', 'jobs', 'dailyTallies', 'firmBillingPeriods')


@dataclass
class LedgerState:
    """
    The four entity maps owned by the billing engine.

    firm_job_counts is an index of firm name -> number of jobs referencing
    it; the ledger keeps it current so the firm deletion guard does not
    have to scan every job.
    """
    firm_configs: Dict[str, FirmConfig] = field(default_factory=dict)
    jobs: Dict[str, Job] = field(default_factory=dict)
    daily_tallies: Dict[date, DailyTally] = field(default_factory=dict)
    billing_periods: Dict[str, BillingPeriod] = field(default_factory=dict)
    firm_job_counts: Counter = field(default_factory=Counter)

    def rebuild_index(self) -> None:
        self.firm_job_counts = Counter(job.firm_name for job in self.jobs.values())

    def to_snapshot(self, saved_at: datetime) -> Dict[str, Any]:
        """Serialize as ordered (key, entity) pairs, one list per collection."""
        return {
            'firmConfigs': [[name, config.to_dict()] for name, config in self.firm_configs.items()],
            'jobs': [[job_id, job.to_dict()] for job_id, job in self.jobs.items()],
            'dailyTallies': [[day.isoformat(), tally.to_dict()] for day, tally in self.daily_tallies.items()],
            'firmBillingPeriods': [[key, period.to_dict()] for key, period in self.billing_periods.items()],
            'lastSaved': saved_at.isoformat(),
        }

    @classmethod
    def from_snapshot(cls, snapshot: Dict[str, Any]) -> 'LedgerState':
        def pairs(name: str) -> List[Tuple[str, Dict[str, Any]]]:
            return [(key, value) for key, value in (snapshot.get(name) or [])]

        state = cls(
            firm_configs={name: FirmConfig.from_dict(data) for name, data in pairs('firmConfigs')},
            jobs={job_id: Job.from_dict(data) for job_id, data in pairs('jobs')},
            daily_tallies={date.fromisoformat(day): DailyTally.from_dict(data) for day, data in pairs('dailyTallies')},
            billing_periods={key: BillingPeriod.from_dict(data) for key, data in pairs('firmBillingPeriods')},
        )
        state.rebuild_index()
        return state
