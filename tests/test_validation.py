from clinic_dashboard.validation import (
    ERROR, WARNING, FindingType, count_by_type, error_rows, has_errors, validate_record,
    validate_records,
)


COMPLETE = {
    "visitorId": "v1",
    "visitorAge": 30,
    "visitorInflowSourceName": "Instagram",
    "reservationInflowPathLabel": "WEB予約",
    "paymentItems": [{"category": "注入", "name": "ボトックス", "mainStaffName": "田中太郎",
                      "priceWithTax": 30000}],
}


def _types(findings):
    return {f.type for f in findings}


def test_complete_record_is_clean():
    assert validate_record(COMPLETE, 1) == []


def test_missing_fields():
    record = {"visitorId": "v1", "visitorAge": 30,
              "paymentItems": [{"name": "x", "priceWithTax": 1}]}
    findings = validate_record(record, 4)
    assert _types(findings) == {
        FindingType.MISSING_REFERRAL_SOURCE,
        FindingType.MISSING_APPOINTMENT_ROUTE,
        FindingType.MISSING_STAFF,
        FindingType.MISSING_TREATMENT_CATEGORY,
    }
    assert all(f.row == 4 for f in findings)
    route = next(f for f in findings if f.type == FindingType.MISSING_APPOINTMENT_ROUTE)
    assert route.severity == WARNING


def test_missing_patient_code():
    record = {**COMPLETE, "visitorId": None}
    findings = validate_record(record, 1)
    assert _types(findings) == {FindingType.MISSING_PATIENT_CODE}
    assert findings[0].severity == ERROR


def test_zero_age_is_a_warning():
    findings = validate_record({**COMPLETE, "visitorAge": 0}, 1)
    assert [f.type for f in findings] == [FindingType.MISSING_AGE]
    assert not has_errors(findings)


def test_validate_records_numbers_rows_from_one():
    findings = validate_records([COMPLETE, {**COMPLETE, "visitorId": ""}])
    assert error_rows(findings) == {2}
    assert count_by_type(findings) == {FindingType.MISSING_PATIENT_CODE: 1}


def test_finding_to_dict():
    finding = validate_record({**COMPLETE, "visitorAge": 0}, 3)[0]
    assert finding.to_dict() == {
        "type": "MISSING_AGE",
        "label": "年齢不正",
        "message": finding.message,
        "row": 3,
        "value": "0.0",
        "severity": "warning",
    }
