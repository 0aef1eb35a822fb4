"""
validation.py — Data-quality findings for visit records.

Findings never abort processing; they are collected and shown on the data
hub. Rows with an error-severity finding are left out of CSV imports.
"""

import enum
from dataclasses import dataclass

from clinic_dashboard import accessors as acc


class FindingType(str, enum.Enum):
    MISSING_PATIENT_CODE = "MISSING_PATIENT_CODE"
    MISSING_AGE = "MISSING_AGE"
    MISSING_REFERRAL_SOURCE = "MISSING_REFERRAL_SOURCE"
    MISSING_APPOINTMENT_ROUTE = "MISSING_APPOINTMENT_ROUTE"
    MISSING_TREATMENT_CATEGORY = "MISSING_TREATMENT_CATEGORY"
    MISSING_STAFF = "MISSING_STAFF"
    INVALID_DATA = "INVALID_DATA"
    DUPLICATE_DATA = "DUPLICATE_DATA"


ERROR = "error"
WARNING = "warning"

FINDING_LABELS = {
    FindingType.MISSING_PATIENT_CODE: "患者コード未入力",
    FindingType.MISSING_AGE: "年齢不正",
    FindingType.MISSING_REFERRAL_SOURCE: "流入元未入力",
    FindingType.MISSING_APPOINTMENT_ROUTE: "予約経路未入力",
    FindingType.MISSING_TREATMENT_CATEGORY: "施術カテゴリー未入力",
    FindingType.MISSING_STAFF: "担当者未入力",
    FindingType.INVALID_DATA: "不正なデータ",
    FindingType.DUPLICATE_DATA: "重複データ",
}


@dataclass(frozen=True)
class Finding:
    type: FindingType
    message: str
    row: int
    value: object = None
    severity: str = ERROR

    @property
    def is_error(self):
        return self.severity == ERROR

    def to_dict(self):
        return {
            "type": self.type.value,
            "label": FINDING_LABELS[self.type],
            "message": self.message,
            "row": self.row,
            "value": "" if self.value is None else str(self.value),
            "severity": self.severity,
        }


def has_errors(findings):
    return any(f.is_error for f in findings)


def error_rows(findings):
    """Row numbers carrying at least one error-severity finding."""
    return {f.row for f in findings if f.is_error}


def count_by_type(findings):
    counts = {}
    for f in findings:
        counts[f.type] = counts.get(f.type, 0) + 1
    return counts


def validate_record(record, row):
    """Findings for one API record (row is 1-based)."""
    findings = []
    if acc.visitor_key(record) == "unknown":
        findings.append(Finding(FindingType.MISSING_PATIENT_CODE, "患者コードが空欄です", row))

    age = acc.visitor_age(record)
    if age is not None and age == 0:
        findings.append(Finding(FindingType.MISSING_AGE, "年齢が0または空欄です（予約キャンセル等）",
                                row, age, WARNING))

    if acc.referral_source(record) == acc.UNKNOWN_LABEL:
        findings.append(Finding(FindingType.MISSING_REFERRAL_SOURCE,
                                "流入元（知ったきっかけ）が空欄です", row))
    if acc.appointment_route(record) == acc.UNKNOWN_LABEL:
        findings.append(Finding(FindingType.MISSING_APPOINTMENT_ROUTE,
                                "予約経路（来院区分）が空欄です", row, severity=WARNING))

    for item in acc.payment_items(record):
        name = str(item.get("name") or "")
        if acc.item_staff(item) == acc.UNSET_LABEL:
            findings.append(Finding(FindingType.MISSING_STAFF, "担当者が空欄です", row, name))
        if not str(item.get("category") or "").strip():
            findings.append(Finding(FindingType.MISSING_TREATMENT_CATEGORY,
                                    "施術カテゴリーが空欄です", row, name))
    return findings


def validate_records(records):
    """Audit a record collection; one list of findings across all rows."""
    findings = []
    for index, record in enumerate(records or ()):
        findings.extend(validate_record(record, index + 1))
    return findings
