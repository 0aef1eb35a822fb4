import datetime
import importlib

import pytest

from clinic_dashboard import data_state as ds
from clinic_dashboard import settings
from clinic_dashboard.callbacks.navigation_cb import PAGES
from clinic_dashboard.record_loader import LoadResult


pytestmark = pytest.mark.usefixtures("clean_state")

FILTERS = {"clinic": ds.ALL_CLINICS, "months": 12}


@pytest.fixture
def recent_records(make_record, item):
    today = datetime.date.today()
    day = lambda n: (today - datetime.timedelta(days=n)).isoformat()
    return [
        make_record(day(40), [item(100000, "surgery_double_eyelid")], visitor="a", first=True,
                    visitorAge=28, visitorGender="female", visitorInflowSourceName="Instagram"),
        make_record(day(10), [item(30000, None, "ヒアルロン酸注入", staff="佐藤花子")],
                    clinic="大宮院", visitor="a", visitorAge=28),
        make_record(day(5), total=8000, visitor="b", tags="ピアス"),
        make_record(None, total=12000, visitor="c"),
    ]


@pytest.mark.parametrize("module_name", sorted(set(PAGES.values())))
def test_every_page_builds_with_data(module_name, recent_records):
    ds.reload(lambda: LoadResult(recent_records, "api", True, []))
    page = importlib.import_module(f"clinic_dashboard.pages.{module_name}")
    assert page.layout(FILTERS) is not None


@pytest.mark.parametrize("module_name", sorted(set(PAGES.values())))
def test_every_page_builds_without_data(module_name):
    page = importlib.import_module(f"clinic_dashboard.pages.{module_name}")
    assert page.layout(FILTERS) is not None


def test_flask_routes(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "clinic_credentials", lambda clinic_id: None)
    monkeypatch.setattr(settings, "RECORDS_SNAPSHOT", str(tmp_path / "missing.json"))
    from clinic_dashboard.app import server

    client = server.test_client()
    reloaded = client.get("/api/reload").get_json()
    assert reloaded["status"] == "ok"
    assert reloaded["source"] == "none"

    report = client.get("/api/diagnostics").get_json()
    assert report["records"] == 0
    assert set(report["reconcile"]) == {"month", "clinic", "category"}
