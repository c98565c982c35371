"""Configuration settings for Adjuster Billing"""
import os

# Application Information
APP_NAME = "Adjuster Billing"

# Local storage
DEFAULT_DATA_DIR = os.environ.get('BILLING_DATA_DIR', 'data')
STORAGE_FILE_NAME = 'billing_data.json'

# Mileage resolution
ESTIMATED_ROUNDTRIP_MILES = 50  # Used when the distance lookup fails or times out
MILEAGE_TIMEOUT_SECONDS = float(os.environ.get('MILEAGE_TIMEOUT_SECONDS', '10'))
GOOGLE_MAPS_API_KEY = os.environ.get('GOOGLE_MAPS_API_KEY', '')
DISTANCE_MATRIX_URL = 'https://maps.googleapis.com/maps/api/distancematrix/json'
METERS_TO_MILES = 0.000621371

# Payment schedules
PAYMENT_SCHEDULES = {
    'weekly': 'Weekly',
    'bi-weekly': 'Bi-Weekly',
    'monthly': 'Monthly'
}

# Default payment day per schedule ('31' means last day of the month)
DEFAULT_PAYMENT_DAYS = {
    'weekly': 'Friday',
    'bi-weekly': 'Friday',
    'monthly': '31'
}

# Job status values
JOB_STATUSES = ['scheduled', 'in-progress', 'completed', 'billed']

# Billing period status values
PERIOD_STATUSES = ['pending', 'billed', 'paid']

# Defaults for read-side queries
DEFAULT_PERIOD_LIMIT = 6
DEFAULT_ANALYTICS_DAYS = 30
UPCOMING_PAYMENT_DAYS = 7

# Google Sheets mirror
SHEET_ID = os.environ.get('BILLING_SHEET_ID', '')
SHEET_COLLECTIONS = {
    'firmConfigs': 'firm_configs',
    'jobs': 'jobs',
    'dailyTallies': 'daily_tallies',
    'firmBillingPeriods': 'billing_periods'
}
SHEET_META_WORKSHEET = 'meta'

# Excel styling
EXCEL_STYLES = {
    'header_bg_color': 'D3D3D3',  # Light gray
    'summary_bg_color': '00FFFF',  # Cyan
    'font_name': 'Arial',
    'font_size': 10
}
