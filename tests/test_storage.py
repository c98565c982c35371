"""Storage tests for the local JSON snapshot and the Google Sheets mirror."""
import asyncio
import json
import os
import sys
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import gspread
import pytest

# Force local backend for tests
os.environ["USE_LOCAL_STORAGE"] = "true"

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from adjuster_billing.exceptions import ReferentialIntegrityError, StorageError
from adjuster_billing.service import JobBillingService
from adjuster_billing.sheets_storage import GoogleSheetsClient
from adjuster_billing.storage import JsonFileStore, MirroredStore, build_store

ACME = {
    'name': 'Acme',
    'file_rate': 150,
    'mileage_rate': '0.67',
    'free_mileage': 25,
    'payment_schedule': 'weekly',
    'payment_day': 'Friday',
    'contact_info': {'email': 'billing@acme.example'},
}


def build_ledger(store):
    service = JobBillingService(store=store, clock=lambda: datetime(2025, 1, 10, 17, 0))
    service.add_firm_config(ACME)
    job = asyncio.run(service.create_job({
        'firm_name': 'Acme',
        'claim_number': 'CLM-1',
        'customer_address': '10 Oak St',
        'pre_calculated_mileage': {'calculated': True, 'miles': 45},
    }))
    service.complete_job(job.job_id, {'completed_date': '2025-01-10T14:00:00'})
    service.finalize_day('2025-01-10')
    return service, job


class MemoryStore:
    def __init__(self, snapshot=None):
        self.snapshot = snapshot or {}
        self.saves = 0

    def load(self):
        return self.snapshot

    def save(self, snapshot):
        self.saves += 1
        self.snapshot = snapshot


class FailingStore(MemoryStore):
    def save(self, snapshot):
        raise OSError("disk full")


class FakeWorksheet:
    def __init__(self, title):
        self.title = title
        self.values = []

    def clear(self):
        self.values = []

    def update(self, values=None, range_name=None):
        self.values = [list(row) for row in values]

    def get_all_values(self):
        return [list(row) for row in self.values]


class FakeSpreadsheet:
    def __init__(self):
        self.worksheets = {}

    def worksheet(self, name):
        if name not in self.worksheets:
            raise gspread.WorksheetNotFound(name)
        return self.worksheets[name]

    def add_worksheet(self, title, rows, cols):
        self.worksheets[title] = FakeWorksheet(title)
        return self.worksheets[title]


class TestJsonFileStore:
    def test_missing_file_loads_empty(self, tmp_path):
        store = JsonFileStore(data_dir=str(tmp_path / 'data'))

        assert store.load() == {}
        assert (tmp_path / 'data').is_dir()

    def test_corrupt_file_raises(self, tmp_path):
        store = JsonFileStore(data_dir=str(tmp_path))
        store.data_file.write_text('{not json', encoding='utf-8')

        with pytest.raises(StorageError):
            store.load()

    def test_non_object_raises(self, tmp_path):
        store = JsonFileStore(data_dir=str(tmp_path))
        store.data_file.write_text('[]', encoding='utf-8')

        with pytest.raises(StorageError):
            store.load()

    def test_save_replaces_file_atomically(self, tmp_path):
        store = JsonFileStore(data_dir=str(tmp_path))
        store.save({'jobs': []})
        store.save({'jobs': [['a', {}]]})

        assert store.load() == {'jobs': [['a', {}]]}
        assert [p.name for p in tmp_path.iterdir()] == [store.data_file.name]

    def test_failed_save_keeps_previous_file(self, tmp_path):
        store = JsonFileStore(data_dir=str(tmp_path))
        store.save({'jobs': []})

        with pytest.raises(TypeError):
            store.save({'jobs': [object()]})

        assert store.load() == {'jobs': []}
        assert [p.name for p in tmp_path.iterdir()] == [store.data_file.name]

    def test_snapshot_layout(self, tmp_path):
        store = JsonFileStore(data_dir=str(tmp_path))
        _, job = build_ledger(store)

        data = json.loads(store.data_file.read_text(encoding='utf-8'))

        assert set(data) == {'firmConfigs', 'jobs', 'dailyTallies', 'firmBillingPeriods', 'lastSaved'}
        assert data['firmConfigs'][0][0] == 'Acme'
        assert data['jobs'][0][0] == job.job_id
        assert Decimal(data['jobs'][0][1]['total_job_value']) == Decimal('163.40')
        assert data['dailyTallies'][0][0] == '2025-01-10'
        assert data['firmBillingPeriods'][0][0] == 'Acme_weekly_2025-01-05'
        assert data['lastSaved'] == '2025-01-10T17:00:00'

    def test_reload_restores_state(self, tmp_path):
        build_ledger(JsonFileStore(data_dir=str(tmp_path)))

        service = JobBillingService(store=JsonFileStore(data_dir=str(tmp_path)))

        config = service.get_firm_config('Acme')
        assert config.mileage_rate == Decimal('0.67')
        assert config.contact_info == {'email': 'billing@acme.example'}

        job = service.list_jobs()[0]
        assert job.total_job_value == Decimal('163.40')
        assert job.rates.free_mileage == 25
        assert job.completed_date == datetime(2025, 1, 10, 14, 0)

        tally = service.get_daily_tally('2025-01-10')
        assert tally.is_finalized is True
        assert tally.firm_breakdown['Acme'].job_ids == [job.job_id]

        period = service.get_billing_period('Acme_weekly_2025-01-05')
        assert period.total_amount == Decimal('163.40')
        assert period.daily_breakdown[date(2025, 1, 10)].jobs == 1

        # The firm -> job index is rebuilt on load
        with pytest.raises(ReferentialIntegrityError):
            service.delete_firm_config('Acme')

    def test_failed_save_keeps_memory_state(self):
        service = JobBillingService(store=FailingStore())

        config = service.add_firm_config(ACME)

        assert service.get_firm_config('Acme') is config


class TestMirroredStore:
    def test_local_is_authoritative(self):
        local, mirror = MemoryStore({'jobs': []}), MemoryStore()
        store = MirroredStore(local, mirror)

        store.save({'jobs': [['a', {}]]})
        store.close()

        assert store.load() == {'jobs': [['a', {}]]}
        assert mirror.snapshot == {'jobs': [['a', {}]]}

    def test_mirror_failure_does_not_reach_caller(self):
        local = MemoryStore()
        store = MirroredStore(local, FailingStore())

        store.save({'lastSaved': 'now'})
        store.close()

        assert local.saves == 1
        assert local.snapshot == {'lastSaved': 'now'}

    def test_push_copies_local_snapshot(self):
        local, mirror = MemoryStore({'firmConfigs': [['Acme', {}]]}), MemoryStore()
        store = MirroredStore(local, mirror)

        store.push()
        store.close()

        assert mirror.snapshot == {'firmConfigs': [['Acme', {}]]}

    def test_build_store_uses_local_storage(self, tmp_path):
        store = build_store(str(tmp_path))

        assert isinstance(store, JsonFileStore)


class TestGoogleSheetsClient:
    def test_save_and_load_round_trip(self, tmp_path):
        local = JsonFileStore(data_dir=str(tmp_path))
        build_ledger(local)
        snapshot = local.load()

        spreadsheet = FakeSpreadsheet()
        client = GoogleSheetsClient(spreadsheet=spreadsheet)
        client.save(snapshot)

        assert set(spreadsheet.worksheets) == {'firm_configs', 'jobs', 'daily_tallies', 'billing_periods', 'meta'}
        assert spreadsheet.worksheets['jobs'].values[0] == ['key', 'data']
        assert client.load() == snapshot

    def test_save_replaces_previous_rows(self):
        spreadsheet = FakeSpreadsheet()
        client = GoogleSheetsClient(spreadsheet=spreadsheet)

        client.write_collection('jobs', [['a', {'n': 1}], ['b', {'n': 2}]])
        client.write_collection('jobs', [['c', {'n': 3}]])

        assert client.read_collection('jobs') == [['c', {'n': 3}]]

    def test_sheet_backed_service(self):
        client = GoogleSheetsClient(spreadsheet=FakeSpreadsheet())
        build_ledger(client)

        service = JobBillingService(store=client)

        assert service.get_firm_config('Acme').file_rate == Decimal('150')
        assert service.get_billing_period('Acme_weekly_2025-01-05').total_files == 1
