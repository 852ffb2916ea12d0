# Configuration constants
import os
import streamlit as st

# App Configuration
APP_TITLE = "EzLaunch Admin"
PAGE_LAYOUT = "wide"
INITIAL_SIDEBAR_STATE = "expanded"

# Navigation
PAGES = ["Dashboard", "Product Master", "Users", "Analytics", "Settings"]


# Supabase Configuration
def get_supabase_config():
    try:
        secrets = dict(st.secrets)
    except FileNotFoundError:
        # No secrets.toml; rely on the environment
        secrets = {}

    section = secrets.get("supabase", {})
    url = section.get("url") or secrets.get("SUPABASE_URL") or os.getenv("SUPABASE_URL", "")
    key = section.get("key") or secrets.get("SUPABASE_KEY") or os.getenv("SUPABASE_KEY", "")

    if not url or not key:
        raise ValueError("No Supabase credentials provided in secrets.toml or environment")

    return {
        'url': url.strip(),
        'key': key.strip(),
    }


# Remote tables
PRODUCTS_TABLE = "product_master"
CATEGORIES_TABLE = "categories"
UNITS_TABLE = "units"
LOGS_TABLE = "onboarding_logs"

# Scan log columns
LOG_TIMESTAMP_COLUMN = "scanned_at"
LOG_IDENTITY_COLUMN = "user_email"

# Scan statuses
SCAN_STATUSES = ["found", "not_found", "added"]
MATCHED_STATUSES = ["found", "added"]

ACTIVITY_LABELS = {
    "found": "Scanned product",
    "added": "Added new product",
}
FAILED_ACTIVITY_LABEL = "Scan failed"

# Data Processing Configuration
PRODUCT_STRING_COLUMNS = ["id", "item_name", "unit", "category", "hsn_code", "barcode"]
PRODUCT_NUMERIC_COLUMNS = ["mrp", "tax_rate"]
LOG_STRING_COLUMNS = ["id", "user_email", "barcode", "product_id", "status"]

DEFAULT_CATEGORY = "Other"
ANONYMOUS_USER = "Anonymous"
UNFOUND_REASON = "Missing in Master"

# Product form
PRODUCT_FORM_FIELDS = {
    "item_name": "Item Name",
    "barcode": "Barcode",
    "category": "Category",
    "hsn_code": "HSN Code",
    "unit": "Unit",
    "mrp": "MRP",
    "tax_rate": "Tax Rate (%)",
}
REQUIRED_PRODUCT_FIELDS = ["item_name", "barcode"]

# CSV import
CSV_HEADER_ALIASES = {
    "barcode": "barcode",
    "item_name": "item_name",
    "name": "item_name",
    "category": "category",
    "hsn_code": "hsn_code",
    "hsn": "hsn_code",
    "unit": "unit",
    "mrp": "mrp",
    "tax_rate": "tax_rate",
    "tax": "tax_rate",
    "gst": "tax_rate",
}
CSV_NUMERIC_FIELDS = ["mrp", "tax_rate"]
CSV_CONFLICT_KEY = "barcode"
CSV_TEMPLATE_HEADER = ["barcode", "item_name", "category", "unit", "mrp", "tax_rate", "hsn_code"]
CSV_TEMPLATE_SAMPLE = ["890123456789", "Sample Product", "Groceries", "Unit", "199", "18", "2106"]
CSV_TEMPLATE_FILENAME = "ezlaunch_product_template.csv"

# Analytics
ANALYTICS_WINDOW_OPTIONS = [7, 30, 90]
DEFAULT_ANALYTICS_WINDOW = 7
DASHBOARD_TREND_DAYS = 7
TOP_UNFOUND_LIMIT = 5
RECENT_ACTIVITY_LIMIT = 5

# Team targets
TEAM_TARGET_SCANS = 1000
POWER_USER_THRESHOLD = 10
LEADERBOARD_SIZE = 3

# UI Configuration
CHART_COLORS = ['#2563EB', '#8B5CF6', '#EC4899', '#F59E0B', '#10B981', '#6366F1']
NOT_FOUND_COLOR = "#e2e8f0"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Timezone
TIMEZONE = os.getenv("DASHBOARD_TIMEZONE", "UTC")
