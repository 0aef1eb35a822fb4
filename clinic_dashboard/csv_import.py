"""
csv_import.py — Parse and validate visit CSV exports from the clinic system.

The CSV carries Japanese column headers (see FIELD_MAPPING). Each data row
becomes a ParsedRow holding its raw cell text, the converted field values
and any findings. Rows can be edited in the draft table and are re-validated
on every edit; only rows without error findings are turned into records.
"""

import base64
import binascii
import datetime
import io
import logging
import re
from dataclasses import dataclass, field, replace

import pandas as pd

from clinic_dashboard import accessors as acc
from clinic_dashboard.validation import ERROR, WARNING, Finding, FindingType


log = logging.getLogger(__name__)

FIELD_MAPPING = {
    "担当者": "mainStaffName",
    "院": "clinicName",
    "来院日": "visitDate",
    "施術日": "treatmentDate",
    "名前": "visitorName",
    "年齢": "visitorAge",
    "予約内容": "appointmentContent",
    "流入元": "visitorInflowSourceName",
    "予約経路": "reservationInflowPathLabel",
    "処置内容": "treatmentContent",
    "前受金入金日": "advancePaymentDate",
    "合計": "totalWithTax",
    "U/C": "patientType",
}
HEADER_FOR_FIELD = {v: k for k, v in FIELD_MAPPING.items()}

DATE_COLUMNS = ("visitDate", "treatmentDate", "advancePaymentDate")

# Encodings tried in order; Excel on Japanese Windows saves cp932
ENCODINGS = ("utf-8-sig", "cp932")

MIN_AGE, MAX_AGE = 0, 120

_LEADING_INT = re.compile(r"^\s*(-?\d+)")
_NON_NUMERIC = re.compile(r"[^\d.\-]")


class CSVImportError(ValueError):
    """The upload cannot be parsed at all (nothing is imported)."""


@dataclass(frozen=True)
class ParsedRow:
    row_number: int              # line number in the file, header is line 1
    raw: dict                    # field -> cell text as uploaded (or edited)
    data: dict                   # field -> converted value
    findings: tuple = field(default_factory=tuple)
    is_edited: bool = False

    @property
    def has_error(self):
        return any(f.severity == ERROR for f in self.findings)

    @property
    def has_warning(self):
        return any(f.severity == WARNING for f in self.findings)


# ── Decoding ─────────────────────────────────────────────────────────────────

def decode_upload(contents, filename):
    """Decode a dcc.Upload data URL into bytes; rejects non-CSV uploads."""
    if not filename or not str(filename).lower().endswith(".csv"):
        raise CSVImportError("CSVファイルを選択してください")
    try:
        _, content_string = contents.split(",", 1)
        return base64.b64decode(content_string)
    except (AttributeError, ValueError, binascii.Error) as e:
        raise CSVImportError(f"ファイルを読み込めません: {e}") from e


def decode_bytes(raw):
    for encoding in ENCODINGS:
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise CSVImportError("文字コードを判別できません（UTF-8 または Shift_JIS で保存してください）")


def _clean(value):
    # Short rows come back from read_csv padded with NaN
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).replace('"', "").strip()


# ── Field conversion ─────────────────────────────────────────────────────────

def _convert(raw, row_number):
    """Convert one row's cell text into typed fields plus findings."""
    data = {}
    findings = []

    for fname, value in raw.items():
        if not value:
            continue
        if fname == "visitorAge":
            match = _LEADING_INT.match(value)
            age = int(match.group(1)) if match else None
            if age is None or not MIN_AGE <= age <= MAX_AGE:
                findings.append(Finding(FindingType.MISSING_AGE, "年齢が無効です", row_number, value))
            else:
                data[fname] = age
        elif fname == "totalWithTax":
            try:
                data[fname] = float(_NON_NUMERIC.sub("", value))
            except ValueError:
                findings.append(Finding(FindingType.INVALID_DATA, "金額が無効です", row_number, value))
        elif fname in DATE_COLUMNS:
            parsed = acc.parse_date(value)
            if parsed is None:
                findings.append(Finding(FindingType.INVALID_DATA, "日付が無効です", row_number, value))
            else:
                data[fname] = parsed.isoformat()
        else:
            data[fname] = value

    if not data.get("visitorName"):
        findings.append(Finding(FindingType.MISSING_PATIENT_CODE, "患者名が必須です", row_number))
    if not data.get("mainStaffName"):
        findings.append(Finding(FindingType.MISSING_STAFF, "担当者が必須です", row_number,
                                severity=WARNING))
    return data, findings


def _flag_duplicates(rows):
    """Re-mark identical rows; the first occurrence stays clean."""
    seen = set()
    out = []
    for row in rows:
        findings = tuple(f for f in row.findings if f.type != FindingType.DUPLICATE_DATA)
        signature = tuple(sorted(row.raw.items()))
        if signature in seen:
            findings += (Finding(FindingType.DUPLICATE_DATA, "重複データです", row.row_number,
                                 row.raw.get("visitorName"), WARNING),)
        seen.add(signature)
        out.append(replace(row, findings=findings))
    return out


# ── Parsing ──────────────────────────────────────────────────────────────────

def parse_csv_text(text):
    """Parse CSV text into ParsedRows. Raises CSVImportError when unusable."""
    lines = [line for line in (text or "").splitlines() if line.strip()]
    if len(lines) < 2:
        raise CSVImportError("CSVファイルにデータがありません")

    try:
        df = pd.read_csv(io.StringIO("\n".join(lines)), dtype=str, keep_default_na=False,
                         skipinitialspace=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise CSVImportError(f"CSVファイルの解析に失敗しました: {e}") from e

    columns = {col: FIELD_MAPPING.get(_clean(col)) for col in df.columns}
    if not any(columns.values()):
        raise CSVImportError("認識できる列がありません（担当者・名前・合計 などの見出しが必要です）")

    rows = []
    for i, record in enumerate(df.to_dict("records")):
        row_number = i + 2
        raw = {fname: _clean(record.get(col)) for col, fname in columns.items() if fname}
        data, findings = _convert(raw, row_number)
        rows.append(ParsedRow(row_number, raw, data, tuple(findings)))

    rows = _flag_duplicates(rows)
    log.info("Parsed %d CSV rows (%d with errors)", len(rows), sum(r.has_error for r in rows))
    return rows


def parse_csv_bytes(raw):
    return parse_csv_text(decode_bytes(raw))


def parse_upload(contents, filename):
    """dcc.Upload contents + filename -> ParsedRows."""
    return parse_csv_bytes(decode_upload(contents, filename))


# ── Draft editing ────────────────────────────────────────────────────────────

def edit_row(rows, row_number, field_name, value):
    """Return new rows with one cell replaced and that row re-validated.

    field_name may be the record field (visitorAge) or the CSV header (年齢).
    """
    fname = FIELD_MAPPING.get(field_name, field_name)
    if fname not in HEADER_FOR_FIELD:
        raise KeyError(f"Unknown CSV field: {field_name!r}")
    out = []
    for row in rows:
        if row.row_number == row_number:
            raw = {**row.raw, fname: _clean(value)}
            data, findings = _convert(raw, row_number)
            row = ParsedRow(row_number, raw, data, tuple(findings), is_edited=True)
        out.append(row)
    return _flag_duplicates(out)


# ── Results ──────────────────────────────────────────────────────────────────

def valid_rows(rows):
    """Rows without any error-severity finding (warnings are allowed)."""
    return [r for r in rows if not r.has_error]


def all_findings(rows):
    return [f for r in rows for f in r.findings]


def row_counts(rows):
    return {
        "total": len(rows),
        "errors": sum(r.has_error for r in rows),
        "warnings": sum(r.has_warning for r in rows),
        "edited": sum(r.is_edited for r in rows),
    }


def _is_first(value):
    # "C" marks a continuing (existing) patient; anything else counts as a first visit
    return str(value or "").strip().upper() not in ("C", "既存")


def to_records(rows, today=None):
    """Build visit records from the valid rows."""
    today = today or datetime.date.today()
    records = []
    for row in valid_rows(rows):
        n = row.row_number
        data = dict(row.data)
        total = data.get("totalWithTax", 0.0)
        items = []
        if data.get("treatmentContent"):
            items.append({
                "category": None,
                "name": data["treatmentContent"],
                "priceWithTax": total,
                "mainStaffName": data.get("mainStaffName", ""),
            })
        records.append({
            **data,
            "visitorId": f"imported_{n}",
            "visitorCode": f"VC{n:06d}",
            "visitorKarteNumber": f"K{n:06d}",
            "recordDate": data.get("visitDate") or data.get("treatmentDate") or today.isoformat(),
            "isFirst": _is_first(data.get("patientType")),
            "paymentTags": "",
            "totalWithTax": total,
            "paymentItems": items,
        })
    return records


def rows_to_table(rows):
    """Flatten ParsedRows for a dash_table.DataTable."""
    table = []
    for row in rows:
        entry = {"row": row.row_number}
        for header, fname in FIELD_MAPPING.items():
            entry[header] = row.raw.get(fname, "")
        entry["status"] = "エラー" if row.has_error else ("警告" if row.has_warning else "OK")
        entry["edited"] = "編集済" if row.is_edited else ""
        entry["messages"] = " / ".join(f.message for f in row.findings)
        table.append(entry)
    return table


def rows_to_store(rows):
    """JSON-safe form for a dcc.Store."""
    return [{"row_number": r.row_number, "raw": r.raw, "is_edited": r.is_edited} for r in rows]


def rows_from_store(stored):
    """Rebuild ParsedRows from rows_to_store output (re-validated)."""
    rows = []
    for entry in stored or []:
        raw = {k: _clean(v) for k, v in (entry.get("raw") or {}).items()}
        data, findings = _convert(raw, entry["row_number"])
        rows.append(ParsedRow(entry["row_number"], raw, data, tuple(findings),
                              bool(entry.get("is_edited"))))
    return _flag_duplicates(rows)
