"""
settings.py — Environment-driven configuration.
Values come from the process environment, with a .env file at the project
root loaded first (existing environment variables win).
"""

import os

from dotenv import load_dotenv

# BASE_DIR points to the project root (parent of clinic_dashboard/)
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
load_dotenv(os.path.join(BASE_DIR, ".env"))


def _int_env(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


# ── Server ───────────────────────────────────────────────────────────────────
PORT = _int_env("PORT", 8070)
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# ── Local data ───────────────────────────────────────────────────────────────
DATA_DIR = os.environ.get("DATA_DIR", os.path.join(BASE_DIR, "data"))
RECORDS_SNAPSHOT = os.environ.get("RECORDS_SNAPSHOT", os.path.join(DATA_DIR, "daily_accounts.json"))

# ── Practice-management API (Medical Force) ─────────────────────────────────
MF_API_BASE_URL = os.environ.get("MF_API_BASE_URL", "https://api.medical-force.com/").rstrip("/") + "/"
MF_TOKEN_AUDIENCE = os.environ.get("MF_TOKEN_AUDIENCE", "mf-developer-api/api.edit")
API_TIMEOUT = _int_env("API_TIMEOUT", 120)
FETCH_DAYS = _int_env("FETCH_DAYS", 365)

# ── Aggregation defaults ─────────────────────────────────────────────────────
TRAILING_MONTHS = _int_env("TRAILING_MONTHS", 12)

# ── Browser local storage ────────────────────────────────────────────────────
GOALS_STORAGE_KEY = os.environ.get("GOALS_STORAGE_KEY", "clinic_sales_goals")

# ── CSV import ───────────────────────────────────────────────────────────────
MAX_CSV_BYTES = _int_env("MAX_CSV_BYTES", 10 * 1024 * 1024)


def clinic_credentials(clinic_id):
    """Return (client_id, client_secret) for a clinic, or None if unset."""
    key = clinic_id.upper()
    client_id = os.environ.get(f"MF_CLIENT_ID_{key}", "")
    client_secret = os.environ.get(f"MF_CLIENT_SECRET_{key}", "")
    if not client_id or not client_secret:
        return None
    return client_id, client_secret
