"""Report generation for Adjuster Billing"""
from io import StringIO
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from config import APP_NAME, EXCEL_STYLES, PAYMENT_SCHEDULES
from .calculator import JobValueCalculator
from .models import BillingPeriod, DailyTally, Job
from .money import format_money, to_cents


class PeriodReportGenerator:
    """
    Generates an Excel statement for one firm billing period.
    """

    COLUMNS = ['Date', 'Claim', 'Address', 'Miles', 'Billable Miles',
               'File Rate', 'Mileage', 'Time', 'Adjustments', 'Total']

    def __init__(self, period: BillingPeriod, jobs: Mapping[str, Job]):
        self.period = period
        self.calculator = JobValueCalculator()
        self.jobs: List[Job] = []
        for day in sorted(period.daily_breakdown):
            for job_id in period.daily_breakdown[day].job_ids:
                if job_id in jobs:
                    self.jobs.append(jobs[job_id])

    def to_dataframe(self) -> pd.DataFrame:
        """
        Convert the period's jobs to a pandas DataFrame.
        """
        data = []
        for job in self.jobs:
            data.append({
                'Date': job.completed_day.strftime('%m/%d/%Y') if job.completed_day else '',
                'Claim': job.claim_number,
                'Address': job.customer_address,
                'Miles': f"{job.roundtrip_miles:,.2f}",
                'Billable Miles': f"{job.billable_miles:,.2f}",
                'File Rate': format_money(job.base_job_value),
                'Mileage': format_money(job.mileage_amount, show_zero=False),
                'Time': format_money(job.time_expense_amount, show_zero=False),
                'Adjustments': format_money(job.adjustments, show_zero=False),
                'Total': format_money(job.total_job_value),
            })

        return pd.DataFrame(data, columns=self.COLUMNS)

    def get_summary_row(self) -> dict:
        """Get summary row data."""
        summary = self.calculator.calculate_summary(self.jobs)
        return {
            'Date': f"{summary['job_count']} Files",
            'Claim': '',
            'Address': '',
            'Miles': float(summary['total_miles']),
            'Billable Miles': float(summary['total_billable_miles']),
            'File Rate': float(to_cents(summary['total_files'])),
            'Mileage': float(to_cents(summary['total_mileage'])),
            'Time': float(to_cents(summary['total_time_expense'])),
            'Adjustments': float(to_cents(summary['total_adjustments'])),
            'Total': float(to_cents(summary['total_value'])),
        }

    def export_excel(self, filepath: str) -> None:
        """
        Export the statement to an Excel file.

        Args:
            filepath: Path to save the Excel file
        """
        wb = Workbook()
        ws = wb.active
        ws.title = "Billing Statement"

        # Styles
        header_fill = PatternFill(start_color=EXCEL_STYLES['header_bg_color'],
                                  end_color=EXCEL_STYLES['header_bg_color'],
                                  fill_type='solid')
        summary_fill = PatternFill(start_color=EXCEL_STYLES['summary_bg_color'],
                                   end_color=EXCEL_STYLES['summary_bg_color'],
                                   fill_type='solid')
        header_font = Font(name=EXCEL_STYLES['font_name'],
                           size=EXCEL_STYLES['font_size'],
                           bold=True)
        title_font = Font(name=EXCEL_STYLES['font_name'],
                          size=14,
                          bold=True)
        border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )

        # Title section
        ws['A1'] = APP_NAME
        ws['A1'].font = title_font

        ws['A2'] = f"Firm: {self.period.firm_name}"
        ws['A2'].font = Font(size=12, bold=True)

        schedule = PAYMENT_SCHEDULES.get(self.period.payment_schedule, self.period.payment_schedule)
        ws['A3'] = (f"{schedule} period: {self.period.start_date.strftime('%m/%d/%Y')} - "
                    f"{self.period.end_date.strftime('%m/%d/%Y')} ({self.period.status})")

        # Data starts at row 5
        df = self.to_dataframe()
        start_row = 5

        # Headers
        for col_idx, col_name in enumerate(df.columns, 1):
            cell = ws.cell(row=start_row, column=col_idx, value=col_name)
            cell.fill = header_fill
            cell.font = header_font
            cell.border = border
            cell.alignment = Alignment(horizontal='center')

        # Data rows
        for row_idx, (_, row) in enumerate(df.iterrows()):
            for col_idx, value in enumerate(row, 1):
                cell = ws.cell(row=start_row + row_idx + 1, column=col_idx, value=value)
                cell.border = border
                if col_idx >= 4:  # Numeric columns
                    cell.alignment = Alignment(horizontal='right')

        # Summary row
        summary_row = start_row + len(df) + 1
        summary_data = self.get_summary_row()
        for col_idx, col_name in enumerate(df.columns, 1):
            cell = ws.cell(row=summary_row, column=col_idx, value=summary_data[col_name])
            cell.fill = summary_fill
            cell.font = Font(bold=True)
            cell.border = border
            if col_idx >= 4:
                cell.alignment = Alignment(horizontal='right')
                if col_idx >= 6 and isinstance(summary_data[col_name], (int, float)):
                    cell.number_format = '$#,##0.00'

        # Adjust column widths
        column_widths = [12, 16, 35, 10, 14, 12, 12, 12, 12, 12]
        for idx, width in enumerate(column_widths, 1):
            ws.column_dimensions[chr(64 + idx)].width = width

        # Save
        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        wb.save(filepath)


class DailyTallyExporter:
    """
    CSV export of one day's earnings: summary, firm breakdown, and job details.
    """

    def __init__(self, tally: DailyTally, jobs: Mapping[str, Job]):
        self.tally = tally
        self.jobs = [jobs[job_id] for job_id in tally.completed_job_ids if job_id in jobs]

    def summary_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            ['Date', self.tally.date_key],
            ['Total Earnings', format_money(self.tally.total_earnings)],
            ['Total Jobs', self.tally.total_jobs],
            ['Total Miles', f"{self.tally.total_miles:.2f}"],
            ['Status', 'Finalized' if self.tally.is_finalized else 'Active'],
        ])

    def firms_frame(self) -> pd.DataFrame:
        rows: List[Dict[str, object]] = [
            {
                'Firm Name': firm_name,
                'Jobs': totals.jobs,
                'Amount': format_money(totals.amount),
                'Miles': f"{totals.miles:.2f}",
            }
            for firm_name, totals in sorted(self.tally.firm_breakdown.items())
        ]
        return pd.DataFrame(rows, columns=['Firm Name', 'Jobs', 'Amount', 'Miles'])

    def jobs_frame(self) -> pd.DataFrame:
        rows = [
            {
                'Claim Number': job.claim_number,
                'Firm': job.firm_name,
                'Amount': format_money(job.total_job_value),
                'Miles': f"{job.roundtrip_miles:.2f}",
                'Completed Time': job.completed_date.isoformat() if job.completed_date else '',
            }
            for job in self.jobs
        ]
        return pd.DataFrame(rows, columns=['Claim Number', 'Firm', 'Amount', 'Miles', 'Completed Time'])

    def to_csv(self, filepath: Optional[str] = None) -> str:
        """Render the export; also write it to filepath when given."""
        buffer = StringIO()
        buffer.write('Daily Earnings Summary\n')
        self.summary_frame().to_csv(buffer, index=False, header=False)
        buffer.write('\nFirm Breakdown\n')
        self.firms_frame().to_csv(buffer, index=False)
        buffer.write('\nJob Details\n')
        self.jobs_frame().to_csv(buffer, index=False)
        csv = buffer.getvalue()

        if filepath:
            Path(filepath).parent.mkdir(parents=True, exist_ok=True)
            with open(filepath, 'w', encoding='utf-8', newline='') as f:
                f.write(csv)
        return csv
