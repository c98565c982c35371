"""Error types raised by the billing engine"""
from datetime import date
from typing import Optional


class BillingError(Exception):
    """Base class for all billing engine errors"""


class ValidationError(BillingError, ValueError):
    """Malformed rate, claim, or job input"""


class UnknownFirmError(BillingError):
    """A job references a firm with no configuration"""

    def __init__(self, firm_name: str):
        self.firm_name = firm_name
        super().__init__(f"Firm configuration not found for: {firm_name}")


class ReferentialIntegrityError(BillingError):
    """Firm deletion blocked by jobs that still reference the firm"""

    def __init__(self, firm_name: str, job_count: int):
        self.firm_name = firm_name
        self.job_count = job_count
        super().__init__(
            f'Cannot delete firm "{firm_name}" - it has {job_count} associated job(s). '
            f'Please complete or delete those jobs first.'
        )


class TallyAlreadyFinalizedError(BillingError):
    """A change was recorded against a day that has already been closed"""

    def __init__(self, day: date, job_id: Optional[str] = None):
        self.day = day
        self.job_id = job_id
        message = f"Daily tally for {day.isoformat()} is already finalized"
        if job_id:
            message += f" (job {job_id})"
        super().__init__(message)


class MileageResolutionError(BillingError):
    """The distance provider could not produce a roundtrip distance"""


class NotFoundError(BillingError):
    """An id did not match any stored entity"""


class StorageError(BillingError):
    """A persisted snapshot could not be read or written"""
