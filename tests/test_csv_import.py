import base64
import datetime

import pytest

from clinic_dashboard import aggregation as agg
from clinic_dashboard import csv_import as ci
from clinic_dashboard.validation import FindingType


HEADER = "担当者,院,来院日,名前,年齢,処置内容,合計,U/C"


def _csv(*rows):
    return "\n".join((HEADER,) + rows) + "\n"


def _types(row):
    return [f.type for f in row.findings]


def test_valid_row_has_no_findings():
    rows = ci.parse_csv_text(_csv('山田,横浜院,2024-05-01,佐藤,45,二重埋没法,"¥10,000",U'))
    assert len(rows) == 1
    row = rows[0]
    assert row.row_number == 2
    assert row.findings == ()
    assert row.data["visitorAge"] == 45
    assert row.data["totalWithTax"] == 10000
    assert row.data["visitDate"] == "2024-05-01"


def test_out_of_range_age_is_an_error():
    rows = ci.parse_csv_text(_csv("山田,横浜院,2024-05-01,佐藤,150,,5000,U"))
    assert _types(rows[0]) == [FindingType.MISSING_AGE]
    assert ci.valid_rows(rows) == []


def test_missing_name_excludes_the_row():
    rows = ci.parse_csv_text(_csv(
        "山田,横浜院,2024-05-01,,30,,5000,C",
        "山田,横浜院,2024-05-02,鈴木,30,,5000,C",
    ))
    assert FindingType.MISSING_PATIENT_CODE in _types(rows[0])
    assert [r.row_number for r in ci.valid_rows(rows)] == [3]


def test_missing_staff_is_only_a_warning():
    rows = ci.parse_csv_text(_csv(",横浜院,2024-05-01,佐藤,30,,5000,U"))
    assert _types(rows[0]) == [FindingType.MISSING_STAFF]
    assert rows[0].has_warning and not rows[0].has_error
    assert len(ci.valid_rows(rows)) == 1


def test_invalid_date_and_amount():
    rows = ci.parse_csv_text(_csv("山田,横浜院,2024-13-45,佐藤,30,,abc,U"))
    assert _types(rows[0]) == [FindingType.INVALID_DATA, FindingType.INVALID_DATA]


def test_short_rows_are_padded():
    rows = ci.parse_csv_text(_csv("山田,横浜院"))
    assert rows[0].raw["visitorName"] == ""
    assert FindingType.MISSING_PATIENT_CODE in _types(rows[0])


def test_duplicates_flag_the_second_occurrence():
    line = "山田,横浜院,2024-05-01,佐藤,30,,5000,U"
    rows = ci.parse_csv_text(_csv(line, line))
    assert rows[0].findings == ()
    assert _types(rows[1]) == [FindingType.DUPLICATE_DATA]
    assert len(ci.valid_rows(rows)) == 2


@pytest.mark.parametrize("text", ["", "担当者,名前\n", "\n\n担当者,名前\n\n"])
def test_no_data_rows(text):
    with pytest.raises(ci.CSVImportError):
        ci.parse_csv_text(text)


def test_unrecognised_columns():
    with pytest.raises(ci.CSVImportError):
        ci.parse_csv_text("foo,bar\n1,2\n")


def test_upload_rejects_non_csv():
    with pytest.raises(ci.CSVImportError, match="CSVファイルを選択してください"):
        ci.decode_upload("data:text/plain;base64,AAAA", "visits.txt")


def test_upload_shift_jis():
    raw = _csv("山田,横浜院,2024-05-01,佐藤,45,,5000,U").encode("cp932")
    contents = "data:text/csv;base64," + base64.b64encode(raw).decode("ascii")
    rows = ci.parse_upload(contents, "visits.CSV")
    assert rows[0].data["visitorName"] == "佐藤"


class TestEditing:
    def test_fixing_a_cell_revalidates(self):
        rows = ci.parse_csv_text(_csv("山田,横浜院,2024-05-01,佐藤,150,,5000,U"))
        edited = ci.edit_row(rows, 2, "年齢", "40")
        assert edited[0].findings == ()
        assert edited[0].is_edited
        assert edited[0].data["visitorAge"] == 40
        assert rows[0].has_error

    def test_field_name_also_accepted(self):
        rows = ci.parse_csv_text(_csv("山田,横浜院,2024-05-01,,30,,5000,U"))
        edited = ci.edit_row(rows, 2, "visitorName", "佐藤")
        assert not edited[0].has_error

    def test_unknown_field(self):
        rows = ci.parse_csv_text(_csv("山田,横浜院,2024-05-01,佐藤,30,,5000,U"))
        with pytest.raises(KeyError):
            ci.edit_row(rows, 2, "血液型", "A")

    def test_store_round_trip_keeps_edits(self):
        rows = ci.parse_csv_text(_csv("山田,横浜院,2024-05-01,佐藤,150,,5000,U"))
        edited = ci.edit_row(rows, 2, "年齢", "40")
        restored = ci.rows_from_store(ci.rows_to_store(edited))
        assert restored == edited
        assert ci.row_counts(restored) == {"total": 1, "errors": 0, "warnings": 0, "edited": 1}


def test_table_rows():
    rows = ci.parse_csv_text(_csv("山田,横浜院,2024-05-01,佐藤,150,,5000,U"))
    table = ci.rows_to_table(rows)
    assert table[0]["row"] == 2
    assert table[0]["年齢"] == "150"
    assert table[0]["status"] == "エラー"
    assert table[0]["messages"] == "年齢が無効です"


def test_to_records_feeds_aggregation():
    rows = ci.parse_csv_text(_csv(
        "山田,横浜院,2024-05-01,佐藤,45,二重埋没法,10000,U",
        "山田,大宮院,,鈴木,30,,5000,C",
        "山田,横浜院,2024-05-03,,30,,7000,U",
    ))
    records = ci.to_records(rows, today=datetime.date(2024, 6, 1))
    assert len(records) == 2

    first, second = records
    assert first["visitorId"] == "imported_2"
    assert first["visitorCode"] == "VC000002"
    assert first["recordDate"] == "2024-05-01"
    assert first["isFirst"] is True
    assert first["paymentItems"] == [{"category": None, "name": "二重埋没法",
                                      "priceWithTax": 10000.0, "mainStaffName": "山田"}]
    assert second["isFirst"] is False
    assert second["recordDate"] == "2024-06-01"
    assert second["paymentItems"] == []

    buckets = {b.key: b for b in agg.aggregate(records, "category")}
    assert buckets["surgery_double_eyelid"].revenue == 10000
    clinics = {b.key: b.revenue for b in agg.aggregate(records, "clinic")}
    assert clinics == {"横浜院": 10000, "大宮院": 5000}
