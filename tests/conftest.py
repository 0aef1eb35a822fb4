import datetime

import pytest

from clinic_dashboard import data_state as ds


END = datetime.date(2024, 6, 30)


@pytest.fixture
def end():
    return END


@pytest.fixture
def make_record():
    """Factory for daily-account style records."""
    def _make(date=None, items=None, total=None, clinic="横浜院", visitor="v1", first=False,
              tags="", **extra):
        record = {
            "visitorId": visitor,
            "clinicName": clinic,
            "isFirst": first,
            "paymentTags": tags,
            "paymentItems": items if items is not None else [],
        }
        if date is not None:
            record["recordDate"] = date
        if total is not None:
            record["totalWithTax"] = total
        record.update(extra)
        return record
    return _make


@pytest.fixture
def item():
    def _item(price, category=None, name=None, staff="田中太郎"):
        return {"category": category, "name": name, "priceWithTax": price, "mainStaffName": staff}
    return _item


@pytest.fixture
def records(make_record, item):
    """Two clinics over May/June 2024 plus one undated record."""
    return [
        make_record("2024-05-10", [item(100000, "surgery_double_eyelid")], visitor="a", first=True),
        make_record("2024-05-20", total=50000, visitor="b"),
        make_record("2024-06-02", [item(30000, None, "ヒアルロン酸注入", staff="佐藤花子"),
                                   item(20000, None, "ボトックス", staff="田中太郎")],
                    clinic="大宮院", visitor="a"),
        make_record("2024-06-15", [item(8000, "物販")], visitor="c", tags="物販", first=True),
        make_record(None, total=12000, clinic="大宮院", visitor="d"),
    ]


@pytest.fixture
def clean_state():
    """Isolate the process-wide dashboard state."""
    saved = ds.get_state()
    ds.set_state(ds.DashboardState())
    yield
    ds.set_state(saved)
