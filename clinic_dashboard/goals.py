"""
goals.py — Per-staff sales goals: model, local-storage round-trip, actuals
and CSV export/import.

Goals live in the browser (dcc.Store with storage_type="local") as a list of
camelCase dicts. Every edit replaces the whole list.
"""

import csv
import datetime
import io
import logging
from dataclasses import asdict, dataclass, fields, replace

from clinic_dashboard import accessors as acc
from clinic_dashboard import csv_import as ci
from clinic_dashboard.aggregation import item_frame
from clinic_dashboard.categories import BEAUTY_SPECIALTIES


log = logging.getLogger(__name__)

SAMPLE_STAFF = ("田中太郎", "佐藤花子", "鈴木一郎", "高橋美咲", "山田健太")

EXPORT_HEADERS = (
    "スタッフ名", "目標金額", "新規単価目標", "既存単価目標", "美容売上目標", "その他売上目標",
    "実績金額", "新規単価実績", "既存単価実績", "美容売上実績", "その他売上実績",
    "達成率", "新規達成率", "既存達成率", "美容達成率", "その他達成率",
)

# Minimum cells for an import row: name plus the five targets
MIN_IMPORT_VALUES = 6


@dataclass(frozen=True)
class StaffGoal:
    staff_id: str
    staff_name: str
    target_amount: float = 0.0
    target_new_average: float = 0.0
    target_existing_average: float = 0.0
    target_beauty_revenue: float = 0.0
    target_other_revenue: float = 0.0
    current_amount: float = 0.0
    current_new_average: float = 0.0
    current_existing_average: float = 0.0
    current_beauty_revenue: float = 0.0
    current_other_revenue: float = 0.0
    achievement_rate: float = 0.0
    new_achievement_rate: float = 0.0
    existing_achievement_rate: float = 0.0
    beauty_achievement_rate: float = 0.0
    other_achievement_rate: float = 0.0


# (target field, current field, rate field)
_RATE_FIELDS = (
    ("target_amount", "current_amount", "achievement_rate"),
    ("target_new_average", "current_new_average", "new_achievement_rate"),
    ("target_existing_average", "current_existing_average", "existing_achievement_rate"),
    ("target_beauty_revenue", "current_beauty_revenue", "beauty_achievement_rate"),
    ("target_other_revenue", "current_other_revenue", "other_achievement_rate"),
)

# Column order of the CSV export (after the staff name)
_EXPORT_FIELDS = (
    [t for t, _, _ in _RATE_FIELDS]
    + [c for _, c, _ in _RATE_FIELDS]
    + [r for _, _, r in _RATE_FIELDS]
)


def _camel(name):
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


_CAMEL = {f.name: _camel(f.name) for f in fields(StaffGoal)}


# ══════════════════════════════════════════════════════════════════════════════
#  RATES & ACTUALS
# ══════════════════════════════════════════════════════════════════════════════

def achievement_rate(current, target):
    """current / target * 100, 0 when there is no target."""
    if not target or target <= 0:
        return 0.0
    return current / target * 100


def recompute_rates(goal):
    updates = {rate: achievement_rate(getattr(goal, cur), getattr(goal, tgt))
               for tgt, cur, rate in _RATE_FIELDS}
    return replace(goal, **updates)


def staff_performance(records, staff_name, window=None):
    """Actuals for one staff member from their payment items.

    Averages are revenue per distinct record of that patient type; beauty
    covers the surgery, dermatology and hair-removal specialties.
    """
    frame = item_frame(records, window)
    frame = frame[frame["staff"] == staff_name]
    if frame.empty:
        return {"current_amount": 0.0, "current_new_average": 0.0,
                "current_existing_average": 0.0, "current_beauty_revenue": 0.0,
                "current_other_revenue": 0.0}

    def _average(ptype):
        sub = frame[frame["patient_type"] == ptype]
        count = sub["pos"].nunique()
        return float(sub["revenue"].sum()) / count if count else 0.0

    beauty = frame["specialty"].isin(BEAUTY_SPECIALTIES)
    return {
        "current_amount": float(frame["revenue"].sum()),
        "current_new_average": _average("new"),
        "current_existing_average": _average("existing"),
        "current_beauty_revenue": float(frame.loc[beauty, "revenue"].sum()),
        "current_other_revenue": float(frame.loc[~beauty, "revenue"].sum()),
    }


def with_performance(goal, records, window=None):
    """Goal with actuals refreshed from records and rates recomputed."""
    return recompute_rates(replace(goal, **staff_performance(records, goal.staff_name, window)))


def refresh_all(goals, records, window=None):
    if not records:
        return list(goals)
    return [with_performance(g, records, window) for g in goals]


def available_staff(records):
    """Staff names found on payment items, sorted; sample names when there are none."""
    names = {acc.item_staff(item) for r in records or () for item in acc.payment_items(r)}
    names.discard(acc.UNSET_LABEL)
    return sorted(names) if names else list(SAMPLE_STAFF)


def totals(goals):
    target = sum(g.target_amount for g in goals)
    current = sum(g.current_amount for g in goals)
    return {
        "target": target,
        "current": current,
        "rate": achievement_rate(current, target),
        "achieved": sum(1 for g in goals if g.achievement_rate >= 100),
        "staff": len(goals),
    }


# ══════════════════════════════════════════════════════════════════════════════
#  LOCAL STORAGE
# ══════════════════════════════════════════════════════════════════════════════

def sample_goals():
    return [
        StaffGoal("sample_1", "田中太郎",
                  5000000, 150000, 120000, 4000000, 1000000,
                  6000000, 160000, 130000, 4800000, 1200000,
                  120, 106.7, 108.3, 120, 120),
        StaffGoal("sample_2", "佐藤花子",
                  4000000, 140000, 110000, 3200000, 800000,
                  3400000, 135000, 105000, 2720000, 680000,
                  85, 96.4, 95.5, 85, 85),
    ]


def goal_to_dict(goal):
    return {_CAMEL[k]: v for k, v in asdict(goal).items()}


def goal_from_dict(data):
    kwargs = {}
    for f in fields(StaffGoal):
        value = data.get(_CAMEL[f.name], data.get(f.name))
        if f.name in ("staff_id", "staff_name"):
            kwargs[f.name] = str(value or "")
        else:
            kwargs[f.name] = acc.to_number(value)
    return StaffGoal(**kwargs)


def dump_goals(goals):
    """JSON-serializable list for the local-storage store."""
    return [goal_to_dict(g) for g in goals]


def load_goals(stored):
    """Goals from the local-storage store; sample goals when nothing is stored."""
    goals = []
    for entry in stored or []:
        if not isinstance(entry, dict) or not entry.get("staffName"):
            log.warning("Skipping malformed stored goal: %r", entry)
            continue
        goals.append(goal_from_dict(entry))
    return goals or sample_goals()


# ── Editing ──────────────────────────────────────────────────────────────────

def new_goal_id(now=None):
    now = now or datetime.datetime.now()
    return f"goal_{int(now.timestamp() * 1000)}"


def upsert_goal(goals, goal):
    """Replace the goal with the same staff_id, or append it."""
    out = [goal if g.staff_id == goal.staff_id else g for g in goals]
    if not any(g.staff_id == goal.staff_id for g in goals):
        out.append(goal)
    return out


def delete_goal(goals, staff_id):
    return [g for g in goals if g.staff_id != staff_id]


# ══════════════════════════════════════════════════════════════════════════════
#  CSV EXPORT / IMPORT
# ══════════════════════════════════════════════════════════════════════════════

def _plain(value):
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


def export_csv(goals):
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for g in goals:
        row = [g.staff_name]
        for name in _EXPORT_FIELDS:
            value = getattr(g, name)
            row.append(f"{value:.1f}" if name.endswith("achievement_rate") else _plain(value))
        writer.writerow(row)
    return buf.getvalue()


def export_filename(now=None):
    """goals_export_<YYYY-MM-DDTHH-MM-SS>.csv (UTC)."""
    now = now or datetime.datetime.now(datetime.timezone.utc)
    return f"goals_export_{now.strftime('%Y-%m-%dT%H-%M-%S')}.csv"


def _float(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def import_csv(text, records=None, window=None, now=None):
    """Goals from an exported CSV. Rows with fewer than six values are skipped.

    A row without actuals gets them computed from `records` when given.
    """
    lines = [line for line in (text or "").splitlines() if line.strip()]
    if len(lines) < 2:
        raise ValueError("CSVファイルにデータがありません")

    stamp = int((now or datetime.datetime.now()).timestamp() * 1000)
    goals = []
    for i, values in enumerate(csv.reader(lines[1:]), start=1):
        values = [v.replace('"', "").strip() for v in values]
        if len(values) < MIN_IMPORT_VALUES:
            continue
        values += [""] * (len(EXPORT_HEADERS) - len(values))
        numbers = {name: _float(values[j + 1]) for j, name in enumerate(_EXPORT_FIELDS)}
        goal = StaffGoal(staff_id=f"imported_{stamp}_{i}", staff_name=values[0], **numbers)
        if goal.current_amount == 0 and records:
            goal = with_performance(goal, records, window)
        goals.append(goal)
    log.info("Imported %d goals from CSV", len(goals))
    return goals


def import_upload(contents, filename, records=None, window=None):
    """Goals from a dcc.Upload data URL; UTF-8 and Shift_JIS exports both decode."""
    text = ci.decode_bytes(ci.decode_upload(contents, filename))
    return import_csv(text, records, window)
