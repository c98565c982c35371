"""Tests for period statements and daily CSV exports"""
import asyncio
import sys
from datetime import datetime
from pathlib import Path

from openpyxl import load_workbook

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from adjuster_billing.report_generator import DailyTallyExporter, PeriodReportGenerator
from adjuster_billing.service import JobBillingService


class TestReports:
    def setup_method(self):
        self.service = JobBillingService(clock=lambda: datetime(2025, 1, 10, 17, 0))
        self.service.add_firm_config({
            'name': 'Acme', 'file_rate': 150, 'mileage_rate': '0.67', 'free_mileage': 25,
            'payment_schedule': 'weekly', 'payment_day': 'Friday',
        })
        for claim_number, miles, when in [('CLM-1', 45, '2025-01-10T14:00:00'),
                                          ('CLM-2', 20, '2025-01-08T10:00:00')]:
            job = asyncio.run(self.service.create_job({
                'firm_name': 'Acme',
                'claim_number': claim_number,
                'customer_address': '10 Oak St, Springfield',
                'pre_calculated_mileage': {'calculated': True, 'miles': miles},
            }))
            self.service.complete_job(job.job_id, {'completed_date': when})
        self.service.finalize_day('2025-01-08')
        self.service.finalize_day('2025-01-10')
        self.period = self.service.get_billing_period('Acme_weekly_2025-01-05')

    def test_statement_dataframe(self):
        df = PeriodReportGenerator(self.period, self.service.state.jobs).to_dataframe()

        assert list(df['Claim']) == ['CLM-2', 'CLM-1']
        assert list(df['Date']) == ['01/08/2025', '01/10/2025']
        assert df.iloc[1]['Mileage'] == '$13.40'
        assert df.iloc[0]['Mileage'] == ''
        assert df.iloc[1]['Total'] == '$163.40'

    def test_summary_row(self):
        summary = PeriodReportGenerator(self.period, self.service.state.jobs).get_summary_row()

        assert summary['Date'] == '2 Files'
        assert summary['Miles'] == 65.0
        assert summary['File Rate'] == 300.0
        assert summary['Total'] == 313.4

    def test_export_excel(self, tmp_path):
        output = tmp_path / 'statements' / 'acme.xlsx'
        PeriodReportGenerator(self.period, self.service.state.jobs).export_excel(str(output))

        ws = load_workbook(output).active
        assert ws['A1'].value == 'Adjuster Billing'
        assert ws['A2'].value == 'Firm: Acme'
        assert ws['A3'].value.startswith('Weekly period: 01/05/2025 - 01/11/2025')
        assert ws.cell(row=5, column=1).value == 'Date'
        assert ws.cell(row=6, column=2).value == 'CLM-2'
        assert ws.cell(row=8, column=1).value == '2 Files'
        assert ws.cell(row=8, column=10).value == 313.4

    def test_daily_csv(self, tmp_path):
        tally = self.service.get_daily_tally('2025-01-10')
        output = tmp_path / 'daily' / '2025-01-10.csv'

        csv = DailyTallyExporter(tally, self.service.state.jobs).to_csv(str(output))

        assert output.read_text(encoding='utf-8') == csv
        lines = csv.splitlines()
        assert lines[0] == 'Daily Earnings Summary'
        assert 'Total Earnings,$163.40' in lines
        assert 'Status,Finalized' in lines
        assert 'Firm Name,Jobs,Amount,Miles' in lines
        assert 'Acme,1,$163.40,45.00' in lines
        assert any(line.startswith('CLM-1,Acme,$163.40,45.00,2025-01-10T14:00:00') for line in lines)
