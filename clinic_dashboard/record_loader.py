"""
record_loader.py — Load visit records from the Medical Force API (with
local-snapshot fallback).

Returns plain record dicts in the daily-accounts shape, each tagged with the
clinicId it was fetched for. Nothing here raises into the dashboard: API
problems are logged and the local snapshot is used instead.
"""

import datetime
import json
import logging
import os
from typing import NamedTuple

import requests

from clinic_dashboard import settings
from clinic_dashboard.accessors import CLINIC_NAMES
from clinic_dashboard.aggregation import DateRange


log = logging.getLogger(__name__)


class LoadResult(NamedTuple):
    records: list
    source: str            # "api" | "snapshot" | "none"
    api_connected: bool
    errors: list


class ApiError(RuntimeError):
    """The API answered, but not with usable data."""


# ── API client ──────────────────────────────────────────────────────────────

class MedicalForceClient:
    """Client-credentials session against the developer API for one clinic."""

    def __init__(self, client_id, client_secret, base_url=None, timeout=None, session=None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url or settings.MF_API_BASE_URL
        self.timeout = timeout or settings.API_TIMEOUT
        self.session = session or requests.Session()
        self._token = None

    def token(self, refresh=False) -> str:
        if self._token and not refresh:
            return self._token
        resp = self.session.post(
            self.base_url + "token",
            json={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "client_credentials",
                "audience": settings.MF_TOKEN_AUDIENCE,
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        token = resp.json().get("access_token")
        if not token:
            raise ApiError("No access token in token response")
        self._token = token
        return token

    def _get(self, path, params):
        url = self.base_url + path
        headers = {"accept": "application/json", "Authorization": f"Bearer {self.token()}"}
        resp = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        if resp.status_code == 401:
            # Expired token: refresh once and retry
            headers["Authorization"] = f"Bearer {self.token(refresh=True)}"
            resp = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def daily_accounts(self, start: datetime.date, end: datetime.date) -> list[dict]:
        payload = self._get("developer/daily-accounts",
                            {"epoch_from": start.isoformat(), "epoch_to": end.isoformat()})
        values = payload.get("values") if isinstance(payload, dict) else None
        if not isinstance(values, list):
            raise ApiError("daily-accounts response has no values list")
        return values


def month_chunks(start, end):
    """Split [start, end] into per-calendar-month (start, end) pairs."""
    chunks = []
    for key in DateRange(start, end).month_keys():
        year, month = (int(p) for p in key.split("-"))
        span = DateRange.for_month(year, month)
        chunks.append((max(span.start, start), min(span.end, end)))
    return chunks


def fetch_clinic_records(clinic_id, start, end, client=None):
    """All daily-account records of one clinic, fetched a month at a time."""
    if client is None:
        creds = settings.clinic_credentials(clinic_id)
        if creds is None:
            return None
        client = MedicalForceClient(*creds)
    records = []
    for chunk_start, chunk_end in month_chunks(start, end):
        values = client.daily_accounts(chunk_start, chunk_end)
        records.extend({**v, "clinicId": v.get("clinicId") or clinic_id} for v in values)
        log.debug("%s %s..%s: %d records", clinic_id, chunk_start, chunk_end, len(values))
    return records


# ── Local snapshot ──────────────────────────────────────────────────────────

def load_snapshot(path=None):
    path = path or settings.RECORDS_SNAPSHOT
    if not os.path.exists(path):
        return []
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("values", [])
    return [r for r in data if isinstance(r, dict)]


def save_snapshot(records, path=None):
    path = path or settings.RECORDS_SNAPSHOT
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"values": list(records)}, f, ensure_ascii=False)


# ── Public API ──────────────────────────────────────────────────────────────

def load_records(days=None, end=None, clinics=None, snapshot_path=None) -> LoadResult:
    """
    Load records for the last `days` days.  Tries the API for every clinic
    with credentials; falls back to the local snapshot when none succeed.
    """
    end = end or datetime.date.today()
    start = end - datetime.timedelta(days=days or settings.FETCH_DAYS)
    errors = []
    records = []
    fetched_any = False

    for clinic_id in clinics or CLINIC_NAMES:
        try:
            clinic_records = fetch_clinic_records(clinic_id, start, end)
        except (requests.RequestException, ApiError, ValueError) as e:
            log.warning("API load failed for %s (%s)", clinic_id, e)
            errors.append(f"{clinic_id}: {e}")
            continue
        if clinic_records is None:
            continue
        fetched_any = True
        records.extend(clinic_records)
        log.info("Loaded %d records for %s from API", len(clinic_records), clinic_id)

    if fetched_any:
        try:
            save_snapshot(records, snapshot_path)
        except OSError as e:
            log.warning("Could not write records snapshot (%s)", e)
        return LoadResult(records, "api", True, errors)

    # ── Fallback to local snapshot ──────────────────────────────────────
    try:
        records = load_snapshot(snapshot_path)
    except (OSError, ValueError) as e:
        log.error("Snapshot load failed (%s)", e)
        errors.append(f"snapshot: {e}")
        records = []
    source = "snapshot" if records else "none"
    log.info("Loaded %d records from local snapshot", len(records))
    return LoadResult(records, source, False, errors)
