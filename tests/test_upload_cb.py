import dash_bootstrap_components as dbc
import pytest

from clinic_dashboard import csv_import as ci
from clinic_dashboard import data_state as ds
from clinic_dashboard import settings
from clinic_dashboard.callbacks import upload_cb
from clinic_dashboard.record_loader import LoadResult


pytestmark = pytest.mark.usefixtures("clean_state")

HEADER = "担当者,院,来院日,名前,年齢,処置内容,合計,U/C"
GOOD = "山田,横浜院,2024-05-01,佐藤,45,二重埋没法,10000,U"
NO_NAME = "山田,横浜院,2024-05-02,,45,,5000,U"
NO_STAFF = ",横浜院,2024-05-03,鈴木,30,,7000,C"


def _draft(*rows):
    return ci.rows_to_store(ci.parse_csv_text("\n".join((HEADER,) + rows) + "\n"))


def _empty_state():
    ds.reload(lambda: LoadResult([], "none", False, []))


def _callback(app, output):
    key = next(k for k in app.callback_map if output in k)
    return app.callback_map[key]["callback"].__wrapped__


@pytest.fixture
def dash_app(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "clinic_credentials", lambda clinic_id: None)
    monkeypatch.setattr(settings, "RECORDS_SNAPSHOT", str(tmp_path / "missing.json"))
    from clinic_dashboard.app import app
    _empty_state()
    return app


class TestCommitBlocked:
    def test_no_draft(self):
        assert upload_cb.commit_blocked(None)
        assert upload_cb.commit_blocked([])

    def test_error_row_blocks(self):
        assert upload_cb.commit_blocked(_draft(GOOD, NO_NAME))

    def test_warnings_do_not_block(self):
        assert not upload_cb.commit_blocked(_draft(GOOD, NO_STAFF))

    def test_fixing_the_error_unblocks(self):
        rows = ci.parse_csv_text("\n".join((HEADER, GOOD, NO_NAME)) + "\n")
        rows = ci.edit_row(rows, 3, "名前", "高橋")
        assert not upload_cb.commit_blocked(ci.rows_to_store(rows))


class TestCommitRows:
    def test_refused_while_errors_remain(self):
        _empty_state()
        alert = upload_cb.commit_rows(_draft(GOOD, NO_NAME))
        assert isinstance(alert, dbc.Alert)
        assert alert.color == "warning"
        state = ds.get_state()
        assert state.records == ()
        assert not state.csv_loaded

    def test_imports_rows_with_warnings(self):
        _empty_state()
        alert = upload_cb.commit_rows(_draft(GOOD, NO_STAFF))
        assert alert.color == "success"
        state = ds.get_state()
        assert len(state.records) == 2
        assert state.csv_loaded


class TestRegisteredCallbacks:
    def test_commit_button_disabled_by_errors(self, dash_app):
        toggle = _callback(dash_app, "csv-commit-btn.disabled")
        assert toggle(None) is True
        assert toggle(_draft(GOOD, NO_NAME)) is True
        assert toggle(_draft(GOOD)) is False

    def test_commit_callback_imports_nothing_with_errors(self, dash_app):
        commit = _callback(dash_app, "csv-commit-status.children")
        alert = commit(1, _draft(GOOD, NO_NAME))
        assert alert.color == "warning"
        assert ds.get_state().records == ()
        assert not ds.get_state().csv_loaded

    def test_commit_callback_imports_clean_draft(self, dash_app):
        commit = _callback(dash_app, "csv-commit-status.children")
        commit(1, _draft(GOOD))
        assert len(ds.get_state().records) == 1
        assert ds.get_state().csv_loaded
