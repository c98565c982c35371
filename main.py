"""Main entry point for Adjuster Billing"""
import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

from adjuster_billing.data_loader import FirmConfigLoader
from adjuster_billing.exceptions import BillingError, NotFoundError
from adjuster_billing.mileage import GoogleDistanceMatrixProvider
from adjuster_billing.models import BillingPeriod, DailyTally
from adjuster_billing.money import format_money
from adjuster_billing.report_generator import DailyTallyExporter, PeriodReportGenerator
from adjuster_billing.service import JobBillingService
from adjuster_billing.storage import MirroredStore, build_store
from config import (
    DEFAULT_ANALYTICS_DAYS,
    DEFAULT_DATA_DIR,
    DEFAULT_PERIOD_LIMIT,
    GOOGLE_MAPS_API_KEY,
    PAYMENT_SCHEDULES,
    PERIOD_STATUSES,
    UPCOMING_PAYMENT_DAYS,
)


def _require(value: Optional[Any], what: str) -> Any:
    if value is None:
        raise NotFoundError(f"{what} not found")
    return value


def _print_tally(tally: DailyTally) -> None:
    status = "Finalized" if tally.is_finalized else "Open"
    print(f"\n=== {tally.date_key} ({status}) ===")
    print(f"Jobs: {tally.total_jobs}")
    print(f"Earnings: {format_money(tally.total_earnings)}")
    print(f"Miles: {tally.total_miles:,.2f}")
    for firm_name, totals in sorted(tally.firm_breakdown.items()):
        print(f"  {firm_name}: {totals.jobs} jobs, {format_money(totals.amount)}, {totals.miles:,.2f} mi")


def _print_period(period: BillingPeriod) -> None:
    print(f"{period.period_key}: {period.start_date} - {period.end_date} "
          f"[{period.status}] {period.total_files} files, {format_money(period.total_amount)}")


# ============ COMMANDS ============

def cmd_firm_add(service: JobBillingService, args) -> None:
    fields = {
        'file_rate': args.file_rate,
        'mileage_rate': args.mileage_rate,
        'free_mileage': args.free_mileage,
        'time_expense_rate': args.time_rate,
        'payment_schedule': args.schedule,
        'payment_day': args.payment_day,
    }
    data: Dict[str, Any] = {k: v for k, v in fields.items() if v is not None}
    data['name'] = args.name
    config = service.add_firm_config(data)
    print(f"✅ Saved {config.name}: {format_money(config.file_rate)}/file, "
          f"{format_money(config.mileage_rate)}/mile after {config.free_mileage} free miles, "
          f"paid {config.payment_schedule} ({config.payment_day})")


def cmd_firm_list(service: JobBillingService, args) -> None:
    firms = service.list_firm_configs()
    if not firms:
        print("No firms configured yet")
        return
    for config in firms:
        print(f"{config.name}: {format_money(config.file_rate)}/file, "
              f"{format_money(config.mileage_rate)}/mile, {config.free_mileage} free miles, "
              f"{config.payment_schedule} ({config.payment_day}), "
              f"{service.firms.job_count(config.name)} job(s)")


def cmd_firm_delete(service: JobBillingService, args) -> None:
    if not service.delete_firm_config(args.name):
        raise NotFoundError(f"Firm {args.name} not found")
    print(f"✅ Deleted {args.name}")


def cmd_import_firms(service: JobBillingService, args) -> None:
    firms = FirmConfigLoader.load(args.input_file)
    print(f"Loaded {len(firms)} firms")
    for data in firms:
        config = service.add_firm_config(data)
        print(f"  ✓ {config.name}")


def cmd_job_create(service: JobBillingService, args) -> None:
    data: Dict[str, Any] = {
        'firm_name': args.firm,
        'claim_number': args.claim,
        'customer_address': args.address,
        'home_address': args.home,
        'scheduled_date': args.scheduled,
        'description': args.description,
    }
    if args.miles is not None:
        data['pre_calculated_mileage'] = {'calculated': True, 'miles': args.miles,
                                          'route_details': {'method': 'manual'}}
    job = asyncio.run(service.create_job(data))
    print(f"✅ Created {job.job_id}: {job.roundtrip_miles} mi "
          f"({job.billable_miles} billable), total {format_money(job.total_job_value)}")


def cmd_job_complete(service: JobBillingService, args) -> None:
    completion: Dict[str, Any] = {}
    if args.date:
        completion['completed_date'] = args.date
    if args.adjustments is not None:
        completion['adjustments'] = args.adjustments
    if args.hours is not None:
        completion['time_expense_hours'] = args.hours
    job = _require(service.complete_job(args.job_id, completion), f"Job {args.job_id}")
    print(f"✅ Completed {job.job_id} on {job.completed_day}: {format_money(job.total_job_value)}")


def cmd_tally(service: JobBillingService, args) -> None:
    _print_tally(service.get_current_daily_tally(args.date))


def cmd_finalize(service: JobBillingService, args) -> None:
    result = service.finalize_day(args.date)
    print(("✅ " if result.finalized else "⚠️ ") + result.message)
    if result.tally.total_jobs:
        _print_tally(result.tally)


def cmd_periods(service: JobBillingService, args) -> None:
    _require(service.get_firm_config(args.firm), f"Firm {args.firm}")
    periods = service.get_firm_billing_periods(args.firm, args.limit)
    if not periods:
        print(f"No billing periods for {args.firm} yet")
    for period in periods:
        _print_period(period)


def cmd_period_status(service: JobBillingService, args) -> None:
    period = _require(service.set_period_status(args.period_key, args.status), f"Period {args.period_key}")
    _print_period(period)


def cmd_upcoming(service: JobBillingService, args) -> None:
    payments = service.upcoming_payments(args.days)
    if not payments:
        print(f"No payments due in the next {args.days} days")
    for payment in payments:
        print(f"{payment.due_date}: {payment.firm_name} {format_money(payment.amount)} "
              f"({payment.files} files, {payment.status})")


def cmd_analytics(service: JobBillingService, args) -> None:
    analytics = service.get_earnings_analytics(args.days)
    print(f"\n=== Last {analytics.window_days} days ({analytics.start_date} - {analytics.end_date}) ===")
    print(f"Earnings: {format_money(analytics.total_earnings)}")
    print(f"Jobs: {analytics.total_jobs}")
    print(f"Miles: {analytics.total_miles:,.2f}")
    print(f"Average per job: {format_money(analytics.average_per_job)}")
    print(f"Daily average: {format_money(analytics.daily_average)}")
    for firm_name, firm in sorted(analytics.firm_breakdown.items(), key=lambda item: -item[1].amount):
        print(f"  {firm_name}: {format_money(firm.amount)} ({firm.share}%), {firm.jobs} jobs")
    if analytics.best_day:
        print(f"Best day: {analytics.best_day.day} ({format_money(analytics.best_day.earnings)})")
    if analytics.busiest_day:
        print(f"Busiest day: {analytics.busiest_day.day} ({analytics.busiest_day.jobs} jobs)")


def cmd_export_day(service: JobBillingService, args) -> None:
    tally = _require(service.get_daily_tally(args.date), f"Tally for {args.date}")
    output_path = args.output or f"output/daily/{tally.date_key}.csv"
    DailyTallyExporter(tally, service.state.jobs).to_csv(output_path)
    print(f"Export saved to: {output_path}")


def cmd_export_period(service: JobBillingService, args) -> None:
    period = _require(service.get_billing_period(args.period_key), f"Period {args.period_key}")
    if args.output:
        output_path = args.output
    else:
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        output_path = f"output/statements/{period.firm_name}_{timestamp}.xlsx"
    PeriodReportGenerator(period, service.state.jobs).export_excel(output_path)
    print(f"Statement saved to: {output_path}")


def cmd_push(service: JobBillingService, args) -> None:
    if not isinstance(service.store, MirroredStore):
        raise BillingError("Google Sheets mirror is not configured")
    service.store.push()
    print("✅ Local data pushed to Google Sheets")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Per-claim billing for independent insurance adjusters')
    parser.add_argument('--data-dir', default=DEFAULT_DATA_DIR, help='Directory for the local data file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Show info-level log messages')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('firm-add', help='Add a firm or update its rates')
    p.add_argument('name')
    p.add_argument('--file-rate')
    p.add_argument('--mileage-rate')
    p.add_argument('--free-mileage')
    p.add_argument('--time-rate')
    p.add_argument('--schedule', choices=list(PAYMENT_SCHEDULES))
    p.add_argument('--payment-day')
    p.set_defaults(func=cmd_firm_add)

    p = sub.add_parser('firm-list', help='List configured firms')
    p.set_defaults(func=cmd_firm_list)

    p = sub.add_parser('firm-delete', help='Delete a firm with no jobs')
    p.add_argument('name')
    p.set_defaults(func=cmd_firm_delete)

    p = sub.add_parser('import-firms', help='Import firms from an Excel/CSV file')
    p.add_argument('input_file')
    p.set_defaults(func=cmd_import_firms)

    p = sub.add_parser('job-create', help='Create a scheduled job')
    p.add_argument('--firm', required=True)
    p.add_argument('--claim', required=True)
    p.add_argument('--address', default='')
    p.add_argument('--home', default='')
    p.add_argument('--scheduled')
    p.add_argument('--description', default='')
    p.add_argument('--miles', help='Known roundtrip miles (skips the distance lookup)')
    p.set_defaults(func=cmd_job_create)

    p = sub.add_parser('job-complete', help='Complete a job')
    p.add_argument('job_id')
    p.add_argument('--date', help='Completion date/time (default: now)')
    p.add_argument('--adjustments')
    p.add_argument('--hours')
    p.set_defaults(func=cmd_job_complete)

    p = sub.add_parser('tally', help='Show the daily tally')
    p.add_argument('--date')
    p.set_defaults(func=cmd_tally)

    p = sub.add_parser('finalize', help='Finalize a day')
    p.add_argument('--date')
    p.set_defaults(func=cmd_finalize)

    p = sub.add_parser('periods', help="List a firm's billing periods")
    p.add_argument('firm')
    p.add_argument('--limit', type=int, default=DEFAULT_PERIOD_LIMIT)
    p.set_defaults(func=cmd_periods)

    p = sub.add_parser('period-status', help='Mark a billing period billed or paid')
    p.add_argument('period_key')
    p.add_argument('status', choices=PERIOD_STATUSES)
    p.set_defaults(func=cmd_period_status)

    p = sub.add_parser('upcoming', help='Payments due soon')
    p.add_argument('--days', type=int, default=UPCOMING_PAYMENT_DAYS)
    p.set_defaults(func=cmd_upcoming)

    p = sub.add_parser('analytics', help='Earnings analytics')
    p.add_argument('--days', type=int, default=DEFAULT_ANALYTICS_DAYS)
    p.set_defaults(func=cmd_analytics)

    p = sub.add_parser('export-day', help='Export a daily tally to CSV')
    p.add_argument('date')
    p.add_argument('--output', '-o', default=None)
    p.set_defaults(func=cmd_export_day)

    p = sub.add_parser('export-period', help='Export a billing period statement to Excel')
    p.add_argument('period_key')
    p.add_argument('--output', '-o', default=None)
    p.set_defaults(func=cmd_export_period)

    p = sub.add_parser('push', help='Push local data to the Google Sheets mirror')
    p.set_defaults(func=cmd_push)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    store = build_store(args.data_dir)
    provider = GoogleDistanceMatrixProvider() if GOOGLE_MAPS_API_KEY else None
    try:
        service = JobBillingService(store=store, mileage_provider=provider)
        args.func(service, args)
    except BillingError as e:
        print(f"❌ {e}")
        return 1
    finally:
        if isinstance(store, MirroredStore):
            store.close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
