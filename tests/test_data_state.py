import dataclasses

import pytest

from clinic_dashboard import data_state as ds
from clinic_dashboard.record_loader import LoadResult


pytestmark = pytest.mark.usefixtures("clean_state")


def _loader(records, source="api"):
    return lambda: LoadResult(list(records), source, source == "api", [])


def test_reload_swaps_in_new_state(records):
    result = ds.reload(_loader(records))
    assert result == {"records": 5, "source": "api", "api_connected": True, "errors": []}
    state = ds.get_state()
    assert isinstance(state.records, tuple)
    assert state.loaded_at is not None
    assert state.clinics() == ["横浜院", "大宮院"]


def test_state_is_immutable(records):
    ds.reload(_loader(records))
    with pytest.raises(dataclasses.FrozenInstanceError):
        ds.get_state().records = ()


def test_add_csv_records(records):
    ds.reload(_loader([], source="none"))
    state = ds.add_csv_records(records[:2])
    assert state.csv_loaded
    assert state.source == "csv"
    assert len(ds.get_state().records) == 2
    ds.add_csv_records(records[2:])
    assert ds.get_state().source == "csv"
    assert len(ds.get_state().records) == 5


def test_filtered_state(records, end):
    ds.reload(_loader(records))
    state = ds.filtered_state({"clinic": "大宮院", "months": 3}, end=end)
    assert state.window.month_keys() == ["2024-04", "2024-05", "2024-06"]
    assert len(state.scoped_records()) == 2
    assert len(ds.filtered_state({}, end=end).scoped_records()) == 5
    assert ds.filtered_state({"months": "bad"}, end=end).window.month_keys()[-1] == "2024-06"


def test_diagnostics_reconcile(records, end):
    ds.reload(_loader(records))
    report = ds.diagnostics(end=end)
    assert report["records"] == 5
    assert report["undated_records"] == 1
    assert report["total_revenue"] == 220000
    assert report["reconcile"] == {"month": 0, "clinic": 0, "category": 0}


@pytest.mark.parametrize("value,expected", [
    (1234567, "¥1,234,567"), (-500, "-¥500"), (None, "¥0"), ("abc", "¥0"),
])
def test_yen(value, expected):
    assert ds.yen(value) == expected


def test_pct():
    assert ds.pct(12.345) == "12.3%"
    assert ds.pct(None, 0) == "0%"
