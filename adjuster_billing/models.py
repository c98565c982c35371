"""Data models for Adjuster Billing"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from config import DEFAULT_PAYMENT_DAYS, JOB_STATUSES, PAYMENT_SCHEDULES, PERIOD_STATUSES
from .dates import WEEKDAYS, optional_timestamp
from .exceptions import ValidationError
from .money import ZERO, non_negative, non_negative_int, to_decimal

PaymentSchedule = Literal['weekly', 'bi-weekly', 'monthly']
JobStatus = Literal['scheduled', 'in-progress', 'completed', 'billed']
PeriodStatus = Literal['pending', 'billed', 'paid']


def _iso(value: Optional[Any]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def normalize_payment_day(schedule: str, payment_day: Any) -> str:
    """
    Validate a payment day against its schedule.

    Weekly and bi-weekly firms pay on a weekday name ("Friday"); monthly
    firms pay on a day of the month ("15", or "31" for the last day).
    """
    if payment_day is None or str(payment_day).strip() == '':
        return DEFAULT_PAYMENT_DAYS[schedule]

    text = str(payment_day).strip()
    if schedule == 'monthly':
        try:
            day_number = int(text)
        except ValueError:
            raise ValidationError(
                f"payment_day for a monthly schedule must be a day of the month, got {payment_day!r}"
            ) from None
        if not 1 <= day_number <= 31:
            raise ValidationError(f"payment_day must be between 1 and 31, got {payment_day!r}")
        return str(day_number)

    name = text.capitalize()
    if name not in WEEKDAYS:
        raise ValidationError(f"payment_day for a {schedule} schedule must be a weekday name, got {payment_day!r}")
    return name


@dataclass
class FirmConfig:
    """A firm's rate contract and payment terms"""
    name: str
    file_rate: Decimal
    mileage_rate: Decimal
    free_mileage: int
    payment_schedule: PaymentSchedule
    payment_day: str = ''
    time_expense_rate: Decimal = ZERO
    contact_info: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValidationError("Firm name is required")
        self.name = self.name.strip()
        self.file_rate = non_negative(self.file_rate, 'file_rate')
        self.mileage_rate = non_negative(self.mileage_rate, 'mileage_rate')
        self.free_mileage = non_negative_int(self.free_mileage, 'free_mileage')
        if self.time_expense_rate in (None, ''):
            self.time_expense_rate = ZERO
        self.time_expense_rate = non_negative(self.time_expense_rate, 'time_expense_rate')
        if self.payment_schedule not in PAYMENT_SCHEDULES:
            raise ValidationError(
                f"payment_schedule must be one of {', '.join(PAYMENT_SCHEDULES)}, got {self.payment_schedule!r}"
            )
        self.payment_day = normalize_payment_day(self.payment_schedule, self.payment_day)
        if self.contact_info is None:
            self.contact_info = {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'file_rate': str(self.file_rate),
            'mileage_rate': str(self.mileage_rate),
            'free_mileage': self.free_mileage,
            'time_expense_rate': str(self.time_expense_rate),
            'payment_schedule': self.payment_schedule,
            'payment_day': self.payment_day,
            'contact_info': dict(self.contact_info),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FirmConfig':
        return cls(
            name=data['name'],
            file_rate=data['file_rate'],
            mileage_rate=data['mileage_rate'],
            free_mileage=data['free_mileage'],
            payment_schedule=data['payment_schedule'],
            payment_day=data.get('payment_day', ''),
            time_expense_rate=data.get('time_expense_rate', '0'),
            contact_info=data.get('contact_info') or {},
            created_at=optional_timestamp(data.get('created_at')),
            updated_at=optional_timestamp(data.get('updated_at')),
        )


@dataclass(frozen=True)
class RateSnapshot:
    """Firm rates frozen onto a job when it is created"""
    file_rate: Decimal
    mileage_rate: Decimal
    free_mileage: int
    time_expense_rate: Decimal = ZERO

    @classmethod
    def from_firm(cls, config: FirmConfig) -> 'RateSnapshot':
        return cls(
            file_rate=config.file_rate,
            mileage_rate=config.mileage_rate,
            free_mileage=config.free_mileage,
            time_expense_rate=config.time_expense_rate,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'file_rate': str(self.file_rate),
            'mileage_rate': str(self.mileage_rate),
            'free_mileage': self.free_mileage,
            'time_expense_rate': str(self.time_expense_rate),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RateSnapshot':
        return cls(
            file_rate=Decimal(data['file_rate']),
            mileage_rate=Decimal(data['mileage_rate']),
            free_mileage=int(data['free_mileage']),
            time_expense_rate=Decimal(data.get('time_expense_rate', '0')),
        )


@dataclass
class MileageResult:
    """Roundtrip distance returned by a mileage provider"""
    miles: Decimal
    route_details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Job:
    """A single claim assignment and its billed value"""
    job_id: str
    firm_name: str
    claim_number: str
    rates: RateSnapshot
    roundtrip_miles: Decimal
    customer_address: str = ""
    home_address: str = ""
    scheduled_date: Optional[date] = None
    description: str = ""
    route_details: Dict[str, Any] = field(default_factory=dict)

    # Calculated amounts
    billable_miles: Decimal = ZERO
    mileage_amount: Decimal = ZERO
    base_job_value: Decimal = ZERO
    time_expense_hours: Decimal = ZERO
    time_expense_amount: Decimal = ZERO
    adjustments: Decimal = ZERO  # Manual add/subtract per job
    total_job_value: Decimal = ZERO

    # Status tracking
    status: JobStatus = 'scheduled'
    created_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    billed_date: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    @property
    def completed_day(self) -> Optional[date]:
        return self.completed_date.date() if self.completed_date else None

    @property
    def counts_toward_tally(self) -> bool:
        """Completed (or already billed) jobs with a completion date feed the daily tally."""
        return self.status in ('completed', 'billed') and self.completed_date is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'job_id': self.job_id,
            'firm_name': self.firm_name,
            'claim_number': self.claim_number,
            'customer_address': self.customer_address,
            'home_address': self.home_address,
            'scheduled_date': _iso(self.scheduled_date),
            'description': self.description,
            'roundtrip_miles': str(self.roundtrip_miles),
            'route_details': dict(self.route_details),
            'rates': self.rates.to_dict(),
            'billable_miles': str(self.billable_miles),
            'mileage_amount': str(self.mileage_amount),
            'base_job_value': str(self.base_job_value),
            'time_expense_hours': str(self.time_expense_hours),
            'time_expense_amount': str(self.time_expense_amount),
            'adjustments': str(self.adjustments),
            'total_job_value': str(self.total_job_value),
            'status': self.status,
            'created_date': _iso(self.created_date),
            'completed_date': _iso(self.completed_date),
            'billed_date': _iso(self.billed_date),
            'last_updated': _iso(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Job':
        scheduled = data.get('scheduled_date')
        return cls(
            job_id=data['job_id'],
            firm_name=data['firm_name'],
            claim_number=data['claim_number'],
            customer_address=data.get('customer_address', ''),
            home_address=data.get('home_address', ''),
            scheduled_date=date.fromisoformat(scheduled) if scheduled else None,
            description=data.get('description', ''),
            roundtrip_miles=Decimal(data['roundtrip_miles']),
            route_details=data.get('route_details') or {},
            rates=RateSnapshot.from_dict(data['rates']),
            billable_miles=Decimal(data.get('billable_miles', '0')),
            mileage_amount=Decimal(data.get('mileage_amount', '0')),
            base_job_value=Decimal(data.get('base_job_value', '0')),
            time_expense_hours=Decimal(data.get('time_expense_hours', '0')),
            time_expense_amount=Decimal(data.get('time_expense_amount', '0')),
            adjustments=Decimal(data.get('adjustments', '0')),
            total_job_value=Decimal(data.get('total_job_value', '0')),
            status=data.get('status', 'scheduled'),
            created_date=optional_timestamp(data.get('created_date')),
            completed_date=optional_timestamp(data.get('completed_date')),
            billed_date=optional_timestamp(data.get('billed_date')),
            last_updated=optional_timestamp(data.get('last_updated')),
        )


def validate_job_status(status: Any) -> str:
    if status not in JOB_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(JOB_STATUSES)}, got {status!r}")
    return status


def validate_period_status(status: Any) -> str:
    if status not in PERIOD_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(PERIOD_STATUSES)}, got {status!r}")
    return status


@dataclass
class DayTotals:
    """Jobs, amount and miles for one firm on one day"""
    jobs: int = 0
    amount: Decimal = ZERO
    miles: Decimal = ZERO
    job_ids: List[str] = field(default_factory=list)

    def add_job(self, job: Job) -> None:
        self.jobs += 1
        self.amount += job.total_job_value
        self.miles += job.roundtrip_miles
        self.job_ids.append(job.job_id)

    def copy(self) -> 'DayTotals':
        return DayTotals(jobs=self.jobs, amount=self.amount, miles=self.miles, job_ids=list(self.job_ids))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'jobs': self.jobs,
            'amount': str(self.amount),
            'miles': str(self.miles),
            'job_ids': list(self.job_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DayTotals':
        return cls(
            jobs=int(data.get('jobs', 0)),
            amount=to_decimal(data.get('amount', '0'), 'amount'),
            miles=to_decimal(data.get('miles', '0'), 'miles'),
            job_ids=list(data.get('job_ids') or []),
        )


@dataclass
class DailyTally:
    """Summary of the jobs completed on one calendar day"""
    day: date
    total_earnings: Decimal = ZERO
    total_miles: Decimal = ZERO
    total_jobs: int = 0
    firm_breakdown: Dict[str, DayTotals] = field(default_factory=dict)
    completed_job_ids: List[str] = field(default_factory=list)
    is_finalized: bool = False
    finalized_at: Optional[datetime] = None

    @property
    def date_key(self) -> str:
        return self.day.isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date_key,
            'total_earnings': str(self.total_earnings),
            'total_miles': str(self.total_miles),
            'total_jobs': self.total_jobs,
            'firm_breakdown': {name: totals.to_dict() for name, totals in self.firm_breakdown.items()},
            'completed_job_ids': list(self.completed_job_ids),
            'is_finalized': self.is_finalized,
            'finalized_at': _iso(self.finalized_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DailyTally':
        return cls(
            day=date.fromisoformat(data['date']),
            total_earnings=Decimal(data.get('total_earnings', '0')),
            total_miles=Decimal(data.get('total_miles', '0')),
            total_jobs=int(data.get('total_jobs', 0)),
            firm_breakdown={
                name: DayTotals.from_dict(totals)
                for name, totals in (data.get('firm_breakdown') or {}).items()
            },
            completed_job_ids=list(data.get('completed_job_ids') or []),
            is_finalized=bool(data.get('is_finalized', False)),
            finalized_at=optional_timestamp(data.get('finalized_at')),
        )


@dataclass
class BillingPeriod:
    """A firm's schedule-aligned invoicing window"""
    period_key: str
    firm_name: str
    payment_schedule: PaymentSchedule
    start_date: date
    end_date: date
    total_files: int = 0
    total_amount: Decimal = ZERO
    total_miles: Decimal = ZERO
    daily_breakdown: Dict[date, DayTotals] = field(default_factory=dict)
    status: PeriodStatus = 'pending'

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def recompute_totals(self) -> None:
        """Totals are always the sum over the daily breakdown, never a running increment."""
        days = self.daily_breakdown.values()
        self.total_files = sum(d.jobs for d in days)
        self.total_amount = sum((d.amount for d in days), ZERO)
        self.total_miles = sum((d.miles for d in days), ZERO)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'period_key': self.period_key,
            'firm_name': self.firm_name,
            'payment_schedule': self.payment_schedule,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'total_files': self.total_files,
            'total_amount': str(self.total_amount),
            'total_miles': str(self.total_miles),
            'daily_breakdown': {
                day.isoformat(): totals.to_dict()
                for day, totals in sorted(self.daily_breakdown.items())
            },
            'status': self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BillingPeriod':
        period = cls(
            period_key=data['period_key'],
            firm_name=data['firm_name'],
            payment_schedule=data['payment_schedule'],
            start_date=date.fromisoformat(data['start_date']),
            end_date=date.fromisoformat(data['end_date']),
            daily_breakdown={
                date.fromisoformat(day): DayTotals.from_dict(totals)
                for day, totals in (data.get('daily_breakdown') or {}).items()
            },
            status=data.get('status', 'pending'),
        )
        period.recompute_totals()
        return period


@dataclass
class FinalizeResult:
    """Outcome of an end-of-day action"""
    tally: DailyTally
    finalized: bool
    message: str
