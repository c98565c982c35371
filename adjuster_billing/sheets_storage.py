"""Google Sheets mirror for the ledger snapshot"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import gspread
import streamlit as st
from google.oauth2.service_account import Credentials

from config import SHEET_COLLECTIONS, SHEET_ID, SHEET_META_WORKSHEET

logger = logging.getLogger(__name__)

# Google Sheets configuration
SCOPES = [
    'https://www.googleapis.com/auth/spreadsheets',
    'https://www.googleapis.com/auth/drive'
]

HEADER = ['key', 'data']


class GoogleSheetsClient:
    """
    Mirrors each snapshot collection into its own worksheet.

    Every row holds an entity key and the entity as JSON; the 'meta'
    worksheet records when the snapshot was saved.
    """

    def __init__(self, spreadsheet=None, sheet_id: str = SHEET_ID):
        self.client = None
        self.spreadsheet = spreadsheet
        if self.spreadsheet is None:
            self._connect(sheet_id)

    def _get_credentials(self) -> Optional[Credentials]:
        """Get Google credentials from various sources"""

        # Option 1: Streamlit secrets (for deployed app)
        try:
            if hasattr(st, 'secrets') and 'gcp_service_account' in st.secrets:
                creds_dict = dict(st.secrets['gcp_service_account'])
                return Credentials.from_service_account_info(creds_dict, scopes=SCOPES)
        except Exception:
            # st.secrets raises when no secrets file exists
            pass

        # Option 2: Environment variable with JSON content
        creds_json = os.environ.get('GOOGLE_CREDENTIALS_JSON')
        if creds_json:
            try:
                creds_dict = json.loads(creds_json)
                return Credentials.from_service_account_info(creds_dict, scopes=SCOPES)
            except ValueError as e:
                logger.warning("GOOGLE_CREDENTIALS_JSON is not usable: %s", e)

        # Option 3: Local file in secrets folder
        secrets_path = Path(__file__).parent.parent / "secrets" / "google_credentials.json"
        if secrets_path.exists():
            return Credentials.from_service_account_file(str(secrets_path), scopes=SCOPES)

        # Option 4: File path from environment variable
        creds_file = os.environ.get('GOOGLE_CREDENTIALS_FILE')
        if creds_file and Path(creds_file).exists():
            return Credentials.from_service_account_file(creds_file, scopes=SCOPES)

        return None

    def _connect(self, sheet_id: str):
        """Connect to Google Sheets"""
        if not sheet_id:
            raise ValueError("BILLING_SHEET_ID is not set")

        creds = self._get_credentials()
        if not creds:
            raise ValueError(
                "Google credentials not found. Please provide credentials via:\n"
                "1. Streamlit secrets (gcp_service_account)\n"
                "2. GOOGLE_CREDENTIALS_JSON environment variable\n"
                "3. secrets/google_credentials.json file\n"
                "4. GOOGLE_CREDENTIALS_FILE environment variable"
            )

        self.client = gspread.authorize(creds)
        self.spreadsheet = self.client.open_by_key(sheet_id)

    def get_worksheet(self, name: str):
        """Get or create a worksheet by name"""
        try:
            return self.spreadsheet.worksheet(name)
        except gspread.WorksheetNotFound:
            return self.spreadsheet.add_worksheet(title=name, rows=1000, cols=len(HEADER))

    # ============ COLLECTIONS ============

    def write_collection(self, worksheet_name: str, pairs: List[List[Any]]) -> None:
        """Replace a worksheet's rows with the given (key, entity) pairs"""
        worksheet = self.get_worksheet(worksheet_name)
        rows = [HEADER] + [[str(key), json.dumps(entity, ensure_ascii=False)] for key, entity in pairs]
        worksheet.clear()
        worksheet.update(values=rows, range_name='A1')

    def read_collection(self, worksheet_name: str) -> List[List[Any]]:
        """Read (key, entity) pairs back from a worksheet"""
        worksheet = self.get_worksheet(worksheet_name)
        rows = worksheet.get_all_values()
        pairs = []
        for row in rows[1:]:
            if len(row) < 2 or not row[0]:
                continue
            pairs.append([row[0], json.loads(row[1])])
        return pairs

    # ============ SNAPSHOT ============

    def save(self, snapshot: Dict[str, Any]) -> None:
        for collection, worksheet_name in SHEET_COLLECTIONS.items():
            self.write_collection(worksheet_name, snapshot.get(collection) or [])
        self.write_collection(SHEET_META_WORKSHEET, [['lastSaved', snapshot.get('lastSaved')]])

    def load(self) -> Dict[str, Any]:
        snapshot: Dict[str, Any] = {
            collection: self.read_collection(worksheet_name)
            for collection, worksheet_name in SHEET_COLLECTIONS.items()
        }
        meta = dict(self.read_collection(SHEET_META_WORKSHEET))
        snapshot['lastSaved'] = meta.get('lastSaved')
        return snapshot


# Singleton instance - cached as Streamlit resource (survives reruns)
@st.cache_resource
def get_sheets_client() -> GoogleSheetsClient:
    """Get or create the Google Sheets client singleton (cached across reruns)."""
    return GoogleSheetsClient()
