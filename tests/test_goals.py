import base64
import datetime
import json

import pytest

from clinic_dashboard import csv_import as ci
from clinic_dashboard import goals as gl


NOW = datetime.datetime(2024, 5, 1, 12, 34, 56)


@pytest.fixture
def staff_records(make_record, item):
    return [
        make_record("2024-05-10", [item(100000, "surgery_double_eyelid"), item(20000, "物販")],
                    first=True),
        make_record("2024-06-01", [item(50000, "注入")]),
        make_record("2024-06-03", [item(30000, "注入", staff="佐藤花子")]),
    ]


def test_achievement_rate():
    assert gl.achievement_rate(50, 0) == 0
    assert gl.achievement_rate(50, -10) == 0
    assert gl.achievement_rate(120, 100) == 120


class TestStorage:
    def test_empty_storage_gives_samples(self):
        samples = gl.load_goals(None)
        assert [g.staff_name for g in samples] == ["田中太郎", "佐藤花子"]
        assert gl.load_goals([]) == samples

    def test_round_trip(self):
        goals = gl.sample_goals()
        stored = gl.dump_goals(goals)
        json.dumps(stored)
        assert gl.load_goals(stored) == goals

    def test_camel_case_keys(self):
        entry = gl.dump_goals(gl.sample_goals())[0]
        assert entry["staffId"] == "sample_1"
        assert entry["targetAmount"] == 5000000
        assert entry["newAchievementRate"] == 106.7

    def test_malformed_entries_skipped(self):
        stored = [{"foo": 1}, "x", gl.goal_to_dict(gl.StaffGoal("g1", "鈴木一郎", 100))]
        goals = gl.load_goals(stored)
        assert [g.staff_id for g in goals] == ["g1"]

    def test_upsert_and_delete(self):
        goals = gl.sample_goals()
        changed = gl.StaffGoal("sample_1", "田中太郎", 1)
        goals = gl.upsert_goal(goals, changed)
        assert goals[0].target_amount == 1
        goals = gl.upsert_goal(goals, gl.StaffGoal("g9", "山田健太"))
        assert [g.staff_id for g in goals] == ["sample_1", "sample_2", "g9"]
        assert [g.staff_id for g in gl.delete_goal(goals, "sample_2")] == ["sample_1", "g9"]


class TestPerformance:
    def test_staff_actuals_from_items(self, staff_records):
        perf = gl.staff_performance(staff_records, "田中太郎")
        assert perf == {
            "current_amount": 170000,
            "current_new_average": 120000,
            "current_existing_average": 50000,
            "current_beauty_revenue": 150000,
            "current_other_revenue": 20000,
        }

    def test_unknown_staff_has_zero_actuals(self, staff_records):
        assert gl.staff_performance(staff_records, "誰か")["current_amount"] == 0

    def test_with_performance_recomputes_rates(self, staff_records):
        goal = gl.StaffGoal("g1", "田中太郎", target_amount=100000, target_beauty_revenue=300000)
        goal = gl.with_performance(goal, staff_records)
        assert goal.achievement_rate == pytest.approx(170)
        assert goal.beauty_achievement_rate == pytest.approx(50)
        assert goal.new_achievement_rate == 0

    def test_refresh_without_records_keeps_goals(self):
        goals = gl.sample_goals()
        assert gl.refresh_all(goals, []) == goals

    def test_available_staff(self, staff_records):
        assert gl.available_staff([]) == list(gl.SAMPLE_STAFF)
        assert gl.available_staff(staff_records) == sorted(["田中太郎", "佐藤花子"])

    def test_totals(self):
        t = gl.totals(gl.sample_goals())
        assert t["target"] == 9000000
        assert t["current"] == 9400000
        assert t["achieved"] == 1
        assert t["staff"] == 2


class TestCsv:
    def test_export(self):
        lines = gl.export_csv(gl.sample_goals()).splitlines()
        assert lines[0] == ",".join(gl.EXPORT_HEADERS)
        assert lines[1] == ("田中太郎,5000000,150000,120000,4000000,1000000,"
                            "6000000,160000,130000,4800000,1200000,"
                            "120.0,106.7,108.3,120.0,120.0")
        assert len(lines) == 3

    def test_export_filename(self):
        assert gl.export_filename(NOW) == "goals_export_2024-05-01T12-34-56.csv"

    def test_import_skips_short_rows(self):
        text = gl.export_csv(gl.sample_goals()) + "短い,1,2\n"
        goals = gl.import_csv(text, now=NOW)
        assert [g.staff_name for g in goals] == ["田中太郎", "佐藤花子"]
        assert goals[0].target_amount == 5000000
        assert goals[0].current_amount == 6000000
        assert goals[1].achievement_rate == 85
        assert goals[0].staff_id.startswith("imported_")
        assert goals[0].staff_id != goals[1].staff_id

    def test_import_computes_missing_actuals(self, staff_records):
        text = "スタッフ名,目標金額,新規単価目標,既存単価目標,美容売上目標,その他売上目標\n" \
               "田中太郎,100000,0,0,0,0\n"
        goal = gl.import_csv(text, staff_records, now=NOW)[0]
        assert goal.current_amount == 170000
        assert goal.achievement_rate == pytest.approx(170)

    def test_import_without_rows(self):
        with pytest.raises(ValueError):
            gl.import_csv(",".join(gl.EXPORT_HEADERS) + "\n")

    @pytest.mark.parametrize("encoding", ["utf-8-sig", "cp932"])
    def test_import_upload_decodes_excel_exports(self, encoding):
        raw = gl.export_csv(gl.sample_goals()).encode(encoding)
        contents = "data:text/csv;base64," + base64.b64encode(raw).decode("ascii")
        goals = gl.import_upload(contents, "goals.csv")
        assert [g.staff_name for g in goals] == ["田中太郎", "佐藤花子"]

    def test_import_upload_rejects_other_files(self):
        with pytest.raises(ci.CSVImportError):
            gl.import_upload("data:text/plain;base64,", "goals.txt")
