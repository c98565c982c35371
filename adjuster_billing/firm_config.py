"""Firm rate contract storage"""
import logging
from dataclasses import fields
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from .exceptions import ReferentialIntegrityError, ValidationError
from .models import FirmConfig
from .state import LedgerState

logger = logging.getLogger(__name__)

FIRM_FIELDS = {f.name for f in fields(FirmConfig)} - {'created_at', 'updated_at'}
REQUIRED_FIELDS = ('file_rate', 'mileage_rate', 'free_mileage', 'payment_schedule')


class FirmConfigStore:
    """
    Holds each firm's rate contract, keyed by firm name.

    Rate edits only affect jobs created afterwards; existing jobs keep the
    rate snapshot they were created with.
    """

    def __init__(self, state: LedgerState, persist: Callable[[], None],
                 clock: Callable[[], datetime] = datetime.now):
        self._state = state
        self._persist = persist
        self._clock = clock

    def add_or_update(self, data: Mapping[str, Any]) -> FirmConfig:
        """
        Create a firm configuration, or merge the given fields into an existing one.

        Args:
            data: Firm fields; 'name' is required, other fields are optional
                when the firm already exists (partial update)

        Returns:
            The stored FirmConfig

        Raises:
            ValidationError: unknown fields, missing required fields for a new
                firm, or invalid rates/schedule
        """
        name = data.get('name')
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Firm name is required")
        name = name.strip()

        unknown = set(data) - FIRM_FIELDS
        if unknown:
            raise ValidationError(f"Unknown firm fields: {', '.join(sorted(unknown))}")

        now = self._clock()
        existing = self._state.firm_configs.get(name)
        if existing:
            values: Dict[str, Any] = {f: getattr(existing, f) for f in FIRM_FIELDS}
            if 'payment_schedule' in data and data['payment_schedule'] != existing.payment_schedule \
                    and 'payment_day' not in data:
                # The old payment day may not be valid under the new schedule
                values['payment_day'] = ''
            created_at = existing.created_at
        else:
            missing = [f for f in REQUIRED_FIELDS if data.get(f) in (None, '')]
            if missing:
                raise ValidationError(f"Missing required firm fields: {', '.join(missing)}")
            values = {}
            created_at = now

        values.update(data)
        values['name'] = name
        config = FirmConfig(**values, created_at=created_at, updated_at=now)

        self._state.firm_configs[name] = config
        self._persist()
        return config

    def update(self, name: str, updates: Mapping[str, Any]) -> Optional[FirmConfig]:
        """Partially update an existing firm. Returns None if the firm is unknown."""
        if name not in self._state.firm_configs:
            return None
        if 'name' in updates and updates['name'] != name:
            raise ValidationError("Firm names cannot be changed; create a new firm instead")
        return self.add_or_update({**updates, 'name': name})

    def get(self, name: str) -> Optional[FirmConfig]:
        return self._state.firm_configs.get(name)

    def list_all(self) -> List[FirmConfig]:
        return list(self._state.firm_configs.values())

    def job_count(self, name: str) -> int:
        return self._state.firm_job_counts.get(name, 0)

    def delete(self, name: str) -> Optional[FirmConfig]:
        """
        Delete a firm and every billing period it owns.

        Returns:
            The removed FirmConfig, or None if the firm is unknown

        Raises:
            ReferentialIntegrityError: if any job still references the firm
        """
        config = self._state.firm_configs.get(name)
        if config is None:
            logger.warning("Firm configuration not found: %s", name)
            return None

        blocking = self.job_count(name)
        if blocking > 0:
            raise ReferentialIntegrityError(name, blocking)

        del self._state.firm_configs[name]
        period_keys = [key for key, period in self._state.billing_periods.items() if period.firm_name == name]
        for key in period_keys:
            del self._state.billing_periods[key]

        self._persist()
        logger.info("Firm configuration deleted: %s (%d billing periods removed)", name, len(period_keys))
        return config
