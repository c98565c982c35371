"""Data loading utilities for Adjuster Billing"""
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd

# Accepted column headings (lower-cased) for each firm field
COLUMN_ALIASES = {
    'name': ['name', 'firm', 'firm name'],
    'file_rate': ['file rate', 'file_rate', 'rate', 'claim rate'],
    'mileage_rate': ['mileage rate', 'mileage_rate', 'per mile'],
    'free_mileage': ['free mileage', 'free_mileage', 'free miles'],
    'time_expense_rate': ['time expense rate', 'time_expense_rate', 'hourly rate', 'time rate'],
    'payment_schedule': ['payment schedule', 'payment_schedule', 'schedule'],
    'payment_day': ['payment day', 'payment_day', 'pay day'],
}

CONTACT_COLUMNS = ['contact', 'email', 'phone']


class FirmConfigLoader:
    """
    Load firm rate contracts from spreadsheet files.
    """

    @staticmethod
    def _normalize_schedule(value: Any) -> Any:
        if isinstance(value, str):
            text = value.strip().lower().replace(' ', '-')
            return 'bi-weekly' if text in ('biweekly', 'bi-weekly') else text
        return value

    @staticmethod
    def from_dataframe(df: pd.DataFrame) -> List[Dict[str, Any]]:
        """
        Convert a DataFrame into firm config dictionaries.

        Expected columns (case-insensitive):
        - Name / Firm
        - File Rate
        - Mileage Rate
        - Free Mileage
        - Payment Schedule (weekly, bi-weekly, monthly)
        - Time Expense Rate (optional)
        - Payment Day (optional)
        - Contact / Email / Phone (optional)

        Returns:
            List of dictionaries ready for add_firm_config; validation
            happens there
        """
        # Normalize column names
        df = df.copy()
        df.columns = df.columns.str.strip().str.lower()

        columns = {}
        for field_name, aliases in COLUMN_ALIASES.items():
            for alias in aliases:
                if alias in df.columns:
                    columns[field_name] = alias
                    break

        firms = []
        for _, row in df.iterrows():
            name = row.get(columns.get('name', 'name'))
            if pd.isna(name) or not str(name).strip():
                continue

            firm: Dict[str, Any] = {'name': str(name).strip()}
            for field_name, column in columns.items():
                if field_name == 'name':
                    continue
                value = row.get(column)
                if pd.notna(value) and str(value).strip() != '':
                    if hasattr(value, 'item'):
                        # numpy scalar -> plain Python number
                        value = value.item()
                    firm[field_name] = value if not isinstance(value, str) else value.strip()

            if 'free_mileage' in firm and isinstance(firm['free_mileage'], float):
                if firm['free_mileage'].is_integer():
                    firm['free_mileage'] = int(firm['free_mileage'])
            if 'payment_schedule' in firm:
                firm['payment_schedule'] = FirmConfigLoader._normalize_schedule(firm['payment_schedule'])
            if 'payment_day' in firm and isinstance(firm['payment_day'], float) and firm['payment_day'].is_integer():
                firm['payment_day'] = str(int(firm['payment_day']))

            contact = {
                col: str(row[col]).strip()
                for col in CONTACT_COLUMNS
                if col in df.columns and pd.notna(row[col]) and str(row[col]).strip()
            }
            if contact:
                firm['contact_info'] = contact

            firms.append(firm)

        return firms

    @staticmethod
    def load_from_excel(filepath: str) -> List[Dict[str, Any]]:
        """Load firm configs from an Excel file."""
        return FirmConfigLoader.from_dataframe(pd.read_excel(filepath))

    @staticmethod
    def load_from_csv(filepath: str) -> List[Dict[str, Any]]:
        """Load firm configs from a CSV file."""
        return FirmConfigLoader.from_dataframe(pd.read_csv(filepath))

    @staticmethod
    def load(filepath: str) -> List[Dict[str, Any]]:
        if Path(filepath).suffix.lower() == '.csv':
            return FirmConfigLoader.load_from_csv(filepath)
        return FirmConfigLoader.load_from_excel(filepath)
