"""Tests for importing firm rate contracts from spreadsheets"""
import sys
from decimal import Decimal
from pathlib import Path

import pandas as pd

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from adjuster_billing.data_loader import FirmConfigLoader
from adjuster_billing.service import JobBillingService


def firm_frame():
    return pd.DataFrame({
        'Firm Name': ['Acme', 'Beta Claims', None],
        'File Rate': [150, 200, 100],
        'Mileage Rate': [0.67, 0.5, 0.5],
        'Free Miles': [25, 30, 0],
        'Schedule': ['Weekly', 'BiWeekly', 'monthly'],
        'Payment Day': ['Friday', None, None],
        'Email': ['billing@acme.example', None, None],
    })


class TestFirmConfigLoader:
    def test_from_dataframe(self):
        firms = FirmConfigLoader.from_dataframe(firm_frame())

        assert len(firms) == 2
        acme, beta = firms
        assert acme == {
            'name': 'Acme',
            'file_rate': 150,
            'mileage_rate': 0.67,
            'free_mileage': 25,
            'payment_schedule': 'weekly',
            'payment_day': 'Friday',
            'contact_info': {'email': 'billing@acme.example'},
        }
        assert beta['payment_schedule'] == 'bi-weekly'
        assert 'payment_day' not in beta
        assert 'contact_info' not in beta

    def test_import_into_service(self):
        service = JobBillingService()

        for data in FirmConfigLoader.from_dataframe(firm_frame()):
            service.add_firm_config(data)

        acme = service.get_firm_config('Acme')
        assert acme.mileage_rate == Decimal('0.67')
        assert acme.free_mileage == 25
        beta = service.get_firm_config('Beta Claims')
        assert beta.payment_schedule == 'bi-weekly'
        assert beta.payment_day == 'Friday'

    def test_load_csv(self, tmp_path):
        path = tmp_path / 'firms.csv'
        firm_frame().to_csv(path, index=False)

        firms = FirmConfigLoader.load(str(path))

        assert [f['name'] for f in firms] == ['Acme', 'Beta Claims']
        assert firms[0]['free_mileage'] == 25

    def test_load_excel(self, tmp_path):
        path = tmp_path / 'firms.xlsx'
        firm_frame().to_excel(path, index=False)

        firms = FirmConfigLoader.load(str(path))

        assert [f['name'] for f in firms] == ['Acme', 'Beta Claims']
        assert firms[1]['payment_schedule'] == 'bi-weekly'
