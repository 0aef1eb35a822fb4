import datetime

import pytest

from clinic_dashboard import accessors as acc


class TestRevenue:
    def test_item_prices_win_over_total(self):
        record = {"totalWithTax": 999,
                  "paymentItems": [{"priceWithTax": 1000}, {"priceWithTax": "2,500"}]}
        assert acc.effective_revenue(record) == 3500

    def test_total_used_when_no_items(self):
        assert acc.effective_revenue({"totalWithTax": 50000, "paymentItems": []}) == 50000

    def test_missing_everything_is_zero(self):
        assert acc.effective_revenue({}) == 0
        assert acc.effective_revenue(None) == 0

    @pytest.mark.parametrize("value", [None, True, float("nan"), float("inf"), "abc", ""])
    def test_to_number_unusable_values(self, value):
        assert acc.to_number(value) == 0.0

    def test_to_number_strips_currency(self):
        assert acc.to_number("¥12,300") == 12300.0

    @pytest.mark.parametrize("value,expected", [("1e5", 100000.0), (" 2.5 ", 2.5), ("-300", -300.0)])
    def test_to_number_plain_numeric_strings(self, value, expected):
        assert acc.to_number(value) == expected

    @pytest.mark.parametrize("value", ["nan", "inf", "-Infinity"])
    def test_to_number_non_finite_strings(self, value):
        assert acc.to_number(value) == 0.0

    def test_cancel_amount(self):
        record = {"cancelPriceWithTax": 10000, "refundPriceWithTax": "5,000",
                  "coolingoffPriceWithTax": None}
        assert acc.cancel_amount(record) == 15000
        assert acc.cancel_amount({}) == 0


class TestDates:
    def test_priority_skips_unparseable_fields(self):
        record = {"recordDate": "bad", "visitDate": "2024-05-03", "treatmentDate": "2024-05-01"}
        assert acc.effective_date(record) == datetime.date(2024, 5, 3)

    def test_iso_datetime(self):
        assert acc.effective_date({"accountingDate": "2024-05-03T10:00:00"}) == datetime.date(2024, 5, 3)

    def test_no_date(self):
        assert acc.effective_date({"recordDate": ""}) is None
        assert acc.effective_date(None) is None

    def test_month_key(self):
        assert acc.month_key(datetime.date(2024, 3, 9)) == "2024-03"
        assert acc.month_key(None) is None


class TestPatientType:
    def test_piercing_tag_overrides_first_visit(self):
        assert acc.patient_type({"paymentTags": "ピアス", "isFirst": True}) == "other"

    def test_marker_in_visitor_name(self):
        assert acc.patient_type({"visitorName": "麻酔・針・パック"}) == "other"

    def test_first_visit_flags(self):
        assert acc.patient_type({"isFirst": True}) == "new"
        assert acc.patient_type({"isFirstVisit": True}) == "new"
        assert acc.patient_type({"isFirst": False}) == "existing"

    def test_non_dict_record(self):
        assert acc.patient_type("garbage") == "existing"


def test_clinic_label_fallbacks():
    assert acc.clinic_label({"clinicName": "横浜院", "clinicId": "mito"}) == "横浜院"
    assert acc.clinic_label({"clinicId": "Mito"}) == "水戸院"
    assert acc.clinic_label({"clinicId": "osaka"}) == "未設定"


@pytest.mark.parametrize("record,expected", [
    ({"visitorAge": 34}, "30代"),
    ({"age": "45"}, "40代"),
    ({"visitorAge": None, "age": 25}, "20代"),
    ({}, "不明"),
    ({"visitorAge": 200}, "不明"),
    ({"visitorAge": "n/a"}, "不明"),
])
def test_age_band(record, expected):
    assert acc.age_band(record) == expected


def test_gender_label():
    assert acc.gender_label({"visitorGender": "female"}) == "女性"
    assert acc.gender_label({"gender": "M"}) == "男性"
    assert acc.gender_label({}) == "その他"


def test_visitor_key_fallbacks():
    assert acc.visitor_key({"visitorCode": "VC1", "visitorName": "佐藤"}) == "VC1"
    assert acc.visitor_key({"visitorName": "佐藤"}) == "佐藤"
    assert acc.visitor_key({}) == "unknown"


def test_item_staff_unset():
    assert acc.item_staff({"mainStaffName": "  "}) == acc.UNSET_LABEL
    assert acc.item_staff({"mainStaffName": "田中太郎"}) == "田中太郎"
