"""
accessors.py — Field accessors over raw visit records.

Raw records arrive as dicts whose field names differ between API versions
and CSV imports. Every accessor here is total: a missing or malformed field
yields None, 0.0 or a sentinel label, never an exception.
"""

import datetime
import math
import re
from collections.abc import Mapping

import pandas as pd


CLINIC_NAMES = {
    "yokohama": "横浜院",
    "koriyama": "郡山院",
    "mito": "水戸院",
    "omiya": "大宮院",
}
UNSET_LABEL = "未設定"
UNKNOWN_LABEL = "不明"
OTHER_LABEL = "その他"

# Field priority lists (first non-empty wins)
DATE_FIELDS = ("recordDate", "visitDate", "treatmentDate", "accountingDate")
AGE_FIELDS = ("visitorAge", "age", "patientAge")
GENDER_FIELDS = ("visitorGender", "gender", "patientGender", "sex")
VISITOR_KEY_FIELDS = ("visitorId", "visitorCode", "visitorKarteNumber", "visitorName")
CANCEL_FIELDS = ("cancelPriceWithTax", "refundPriceWithTax", "coolingoffPriceWithTax")

# Substrings in paymentTags / visitorName that mark a non-treatment visit
OTHER_MARKERS = ("ピアス", "物販", "麻酔針パック", "麻酔・針・パック")

_GENDER_ALIASES = {
    "female": "女性", "f": "女性", "woman": "女性",
    "male": "男性", "m": "男性", "man": "男性",
}

_NON_NUMERIC = re.compile(r"[^\d.\-]")


def _get(record, field):
    if not isinstance(record, Mapping):
        return None
    return record.get(field)


def _first(record, fields):
    for field in fields:
        value = _get(record, field)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _str(value):
    if value is None:
        return ""
    return str(value).strip()


def to_number(value):
    """Coerce an amount to float; anything unusable becomes 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        try:
            num = float(str(value).strip())
        except ValueError:
            # currency symbols and thousands separators
            cleaned = _NON_NUMERIC.sub("", str(value))
            try:
                num = float(cleaned)
            except ValueError:
                return 0.0
    if math.isnan(num) or math.isinf(num):
        return 0.0
    return num


def parse_date(value):
    """Parse a date-like value to datetime.date, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        ts = pd.to_datetime(value.strip(), errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return ts.date()


def effective_date(record):
    """First of recordDate / visitDate / treatmentDate / accountingDate that parses."""
    for field in DATE_FIELDS:
        parsed = parse_date(_get(record, field))
        if parsed is not None:
            return parsed
    return None


def month_key(date):
    """'YYYY-MM' for a date, or None."""
    if date is None:
        return None
    return f"{date.year}-{date.month:02d}"


def payment_items(record):
    """The record's payment items as a list of dicts (possibly empty)."""
    items = _get(record, "paymentItems")
    if not isinstance(items, (list, tuple)):
        return []
    return [it for it in items if isinstance(it, Mapping)]


def item_revenue(item):
    return to_number(_get(item, "priceWithTax"))


def item_staff(item):
    return _str(_get(item, "mainStaffName")) or UNSET_LABEL


def effective_revenue(record):
    """Sum of paymentItems[].priceWithTax, else totalWithTax, else 0."""
    items = payment_items(record)
    if items:
        return sum(item_revenue(it) for it in items)
    return to_number(_get(record, "totalWithTax"))


def clinic_label(record):
    name = _str(_get(record, "clinicName"))
    if name:
        return name
    clinic_id = _str(_get(record, "clinicId")).lower()
    return CLINIC_NAMES.get(clinic_id, UNSET_LABEL)


def is_first_visit(record):
    return _get(record, "isFirst") is True or _get(record, "isFirstVisit") is True


def patient_type(record):
    """'other' for piercing/retail/anesthesia visits, else 'new' or 'existing'."""
    tags = _str(_get(record, "paymentTags"))
    name = _str(_get(record, "visitorName"))
    if any(m in tags or m in name for m in OTHER_MARKERS):
        return "other"
    return "new" if is_first_visit(record) else "existing"


def visitor_key(record):
    value = _first(record, VISITOR_KEY_FIELDS)
    return _str(value) or "unknown"


def visitor_age(record):
    value = _first(record, AGE_FIELDS)
    if value is None or isinstance(value, bool):
        return None
    try:
        age = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(age) or math.isinf(age):
        return None
    return age


def age_band(record):
    """10-year band label such as '30代'; '不明' when the age is unusable."""
    age = visitor_age(record)
    if age is None or not 0 < age < 150:
        return UNKNOWN_LABEL
    return f"{int(age) // 10 * 10}代"


def gender_label(record):
    raw = _str(_first(record, GENDER_FIELDS))
    if not raw:
        return OTHER_LABEL
    return _GENDER_ALIASES.get(raw.lower(), raw)


def referral_source(record):
    return _str(_get(record, "visitorInflowSourceName")) or UNKNOWN_LABEL


def appointment_route(record):
    return _str(_get(record, "reservationInflowPathLabel")) or UNKNOWN_LABEL


def visitor_name(record):
    return _str(_get(record, "visitorName"))


def cancel_amount(record):
    """Cancelled, refunded and cooling-off amounts combined."""
    return sum(to_number(_get(record, field)) for field in CANCEL_FIELDS)


def first_item_name(record):
    items = payment_items(record)
    return _str(items[0].get("name")) if items else ""
