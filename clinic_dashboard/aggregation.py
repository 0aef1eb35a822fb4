"""
aggregation.py — The shared aggregation engine behind every dashboard tab.

Records are normalised through the accessors into a pandas frame (one row
per record, or one row per payment item for item-keyed dimensions) and
grouped into Buckets. Every call recomputes from the records it is given;
nothing is cached between calls.
"""

import calendar
import datetime
import math
from dataclasses import dataclass, field, replace

import pandas as pd

from clinic_dashboard import accessors as acc
from clinic_dashboard.categories import classify, label_for, specialty_label


DEFAULT_TRAILING_MONTHS = 12

PATIENT_TYPES = ("new", "existing", "other")
PATIENT_TYPE_LABELS = {"new": "新規", "existing": "既存", "other": "その他"}

# Sunday first, as on the clinic calendars
WEEKDAY_LABELS = ("日曜日", "月曜日", "火曜日", "水曜日", "木曜日", "金曜日", "土曜日")

RECORD_DIMENSIONS = ("month", "clinic", "gender", "age_band", "patient_type", "referral_source", "weekday")
ITEM_DIMENSIONS = ("staff", "category", "specialty")
DIMENSIONS = RECORD_DIMENSIONS + ITEM_DIMENSIONS

# Keyed by the lower-cased name with underscores removed, so camelCase works too
_DIMENSION_ALIASES = {
    "categoryid": "category",
    "ageband": "age_band",
    "patienttype": "patient_type",
    "referralsource": "referral_source",
    "referral": "referral_source",
}

_FRAME_COLUMNS = ["pos", "month", "weekday", "clinic", "patient_type", "gender",
                  "age_band", "referral_source", "revenue"]
_ITEM_COLUMNS = _FRAME_COLUMNS + ["staff", "category", "specialty"]


# ══════════════════════════════════════════════════════════════════════════════
#  TYPES
# ══════════════════════════════════════════════════════════════════════════════

def _add_months(year, month, delta):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar-date window."""
    start: datetime.date
    end: datetime.date

    def contains(self, date):
        return date is not None and self.start <= date <= self.end

    def month_keys(self):
        """Every calendar month touched by the window, oldest first."""
        keys = []
        y, m = self.start.year, self.start.month
        while (y, m) <= (self.end.year, self.end.month):
            keys.append(f"{y}-{m:02d}")
            y, m = _add_months(y, m, 1)
        return keys

    @classmethod
    def trailing_months(cls, months, end=None):
        """The `months` calendar months ending with the month of `end` (today by default)."""
        end = end or datetime.date.today()
        months = max(int(months), 1)
        y, m = _add_months(end.year, end.month, -(months - 1))
        return cls(datetime.date(y, m, 1), end)

    @classmethod
    def for_month(cls, year, month):
        last = calendar.monthrange(year, month)[1]
        return cls(datetime.date(year, month, 1), datetime.date(year, month, last))


def trailing_months(n, end=None):
    return DateRange.trailing_months(n, end)


def month_range(start, end):
    """'YYYY-MM' keys from the month of `start` through the month of `end`."""
    return DateRange(start, end).month_keys()


@dataclass(frozen=True)
class Bucket:
    key: object
    label: str
    revenue: float = 0.0
    count: int = 0
    new_count: int = 0
    existing_count: int = 0
    other_count: int = 0
    new_revenue: float = 0.0
    existing_revenue: float = 0.0
    other_revenue: float = 0.0

    @property
    def unit_price(self):
        return self.revenue / self.count if self.count else 0.0

    def count_for(self, patient_type):
        return getattr(self, f"{patient_type}_count")

    def revenue_for(self, patient_type):
        return getattr(self, f"{patient_type}_revenue")

    def unit_price_for(self, patient_type):
        count = self.count_for(patient_type)
        return self.revenue_for(patient_type) / count if count else 0.0


# KPI-strip totals share the Bucket shape (key "all")
Summary = Bucket


@dataclass(frozen=True)
class PeriodComparison:
    month: str
    label: str
    current: float
    previous: float
    ratio: float


@dataclass(frozen=True)
class PatientSpend:
    visitor_key: str
    name: str
    clinic: str
    revenue: float
    visits: int
    last_visit: datetime.date = None


@dataclass(frozen=True)
class RepeatAnalysis:
    total_patients: int = 0
    repeat_patients: int = 0
    repeat_rate: float = 0.0
    average_days_to_repeat: float = 0.0
    repeat_revenue: float = 0.0
    average_repeat_revenue: float = 0.0
    heatmap: dict = field(default_factory=dict)


REPEAT_INTERVAL_BANDS = ("90日以内", "180日以内", "365日以内", "それ以上")
REPEAT_COUNT_BANDS = ("10回以上", "5回以上", "2回以上", "リピートなし")


@dataclass(frozen=True)
class CrossSell:
    """Category transitions between a patient's visits.

    `first_next` counts first-visit category -> second-visit category once
    per patient; `first_to_all` counts first-visit category against every
    later visit.
    """
    categories: tuple = ()
    first_next: dict = field(default_factory=dict)
    first_to_all: dict = field(default_factory=dict)

    def matrix(self, kind="first_next"):
        counts = getattr(self, kind)
        return [[counts.get((row, col), 0) for col in self.categories] for row in self.categories]

    def top_combinations(self, n=12, kind="first_next"):
        pairs = [(src, dst, count) for (src, dst), count in getattr(self, kind).items()]
        return top_n(pairs, n, key=lambda p: p[2])


@dataclass(frozen=True)
class CancellationAnalysis:
    """Cancelled amounts; every Bucket's revenue holds the cancelled amount."""
    monthly: list = field(default_factory=list)
    monthly_by_category: dict = field(default_factory=dict)
    by_category: list = field(default_factory=list)
    by_clinic: list = field(default_factory=list)
    by_age_gender: list = field(default_factory=list)
    by_procedure: list = field(default_factory=list)

    @property
    def total_amount(self):
        return sum(b.revenue for b in self.monthly)

    @property
    def total_count(self):
        return sum(b.count for b in self.monthly)


@dataclass(frozen=True)
class DayStatus:
    date: datetime.date
    count: int = 0
    revenue: float = 0.0

    @property
    def is_closed(self):
        return self.count == 0


@dataclass(frozen=True)
class ClosedDayStats:
    total_days: int = 0
    closed_days: int = 0
    open_days: int = 0
    closed_rate: float = 0.0


@dataclass(frozen=True)
class DailyRevenue:
    """One clinic's revenue per calendar day of a month (index 0 is the 1st)."""
    clinic: str
    daily: tuple
    count: int = 0
    existing_count: int = 0
    multi_item_count: int = 0

    SECOND_HALF_FROM = 16

    @property
    def revenue(self):
        return sum(self.daily)

    @property
    def daily_average(self):
        return self.revenue / len(self.daily) if self.daily else 0.0

    @property
    def existing_ratio(self):
        return self.existing_count / self.count * 100 if self.count else 0.0

    @property
    def upsell_ratio(self):
        return self.multi_item_count / self.count * 100 if self.count else 0.0

    @property
    def second_half_revenue(self):
        return sum(self.daily[self.SECOND_HALF_FROM - 1:])

    @property
    def second_half_average(self):
        days = len(self.daily) - self.SECOND_HALF_FROM + 1
        return self.second_half_revenue / days if days > 0 else 0.0


# ══════════════════════════════════════════════════════════════════════════════
#  FRAME BUILDING
# ══════════════════════════════════════════════════════════════════════════════

def resolve_dimension(group_by):
    key = str(group_by or "").strip().lower().replace("-", "_")
    key = _DIMENSION_ALIASES.get(key.replace("_", ""), key)
    if key not in DIMENSIONS:
        raise ValueError(f"Unknown dimension: {group_by!r}")
    return key


def month_label(month_key):
    year, month = month_key.split("-")
    return f"{year[-2:]}年{int(month)}月"


def _record_row(pos, record):
    date = acc.effective_date(record)
    return {
        "pos": pos,
        "date": date,
        "month": acc.month_key(date),
        "weekday": date.isoweekday() % 7 if date else None,
        "clinic": acc.clinic_label(record),
        "patient_type": acc.patient_type(record),
        "gender": acc.gender_label(record),
        "age_band": acc.age_band(record),
        "referral_source": acc.referral_source(record),
        "revenue": acc.effective_revenue(record),
    }


def _item_rows(row, record):
    items = acc.payment_items(record)
    if not items:
        # Item-less records still reconcile: their total becomes one pseudo-item
        cls = classify(None, None)
        return [{**row, "staff": acc.UNSET_LABEL, "category": cls.category_id,
                 "specialty": cls.specialty}]
    rows = []
    for item in items:
        cls = classify(item.get("category"), item.get("name"))
        rows.append({**row, "revenue": acc.item_revenue(item), "staff": acc.item_staff(item),
                     "category": cls.category_id, "specialty": cls.specialty})
    return rows


def _rows(records, window=None, dated_only=False):
    """(row, record) pairs, filtered to the window when one is given."""
    out = []
    for pos, record in enumerate(records or ()):
        row = _record_row(pos, record)
        if window is not None and not window.contains(row["date"]):
            continue
        if dated_only and row["date"] is None:
            continue
        out.append((row, record))
    return out


def record_frame(records, window=None, dated_only=False):
    """One row per record with every record-level dimension resolved."""
    rows = [row for row, _ in _rows(records, window, dated_only)]
    return pd.DataFrame(rows, columns=_FRAME_COLUMNS)


def item_frame(records, window=None, dated_only=False):
    """One row per payment item; revenue is the item's own price."""
    rows = []
    for row, record in _rows(records, window, dated_only):
        rows.extend(_item_rows(row, record))
    return pd.DataFrame(rows, columns=_ITEM_COLUMNS)


def _label(dimension, key):
    if dimension == "month":
        return month_label(key)
    if dimension == "weekday":
        return WEEKDAY_LABELS[int(key)]
    if dimension == "patient_type":
        return PATIENT_TYPE_LABELS[key]
    if dimension == "category":
        return label_for(key)
    if dimension == "specialty":
        return specialty_label(key)
    return str(key)


def _summarise(frame, dimension, keys):
    totals = stats = None
    if not frame.empty:
        # Grouping column is copied so patient_type can be grouped against itself
        frame = frame.assign(_key=frame[dimension])
        totals = frame.groupby("_key", sort=False).agg(
            revenue=("revenue", "sum"), count=("pos", "nunique"))
        stats = frame.groupby(["_key", "patient_type"], sort=False).agg(
            revenue=("revenue", "sum"), count=("pos", "nunique"))

    buckets = []
    for key in keys:
        values = {}
        if totals is not None and key in totals.index:
            values["revenue"] = float(totals.loc[key, "revenue"])
            values["count"] = int(totals.loc[key, "count"])
            for ptype in PATIENT_TYPES:
                if (key, ptype) in stats.index:
                    values[f"{ptype}_revenue"] = float(stats.loc[(key, ptype), "revenue"])
                    values[f"{ptype}_count"] = int(stats.loc[(key, ptype), "count"])
        buckets.append(Bucket(key=key, label=_label(dimension, key), **values))
    return buckets


def _keys_for(dimension, frame, window):
    if dimension == "month":
        return window.month_keys()
    if dimension == "weekday":
        return list(range(7))
    if dimension == "patient_type":
        return list(PATIENT_TYPES)
    return list(dict.fromkeys(frame[dimension].tolist()))


# ══════════════════════════════════════════════════════════════════════════════
#  AGGREGATION
# ══════════════════════════════════════════════════════════════════════════════

def _frame_for(records, dimension, window):
    date_bucketed = dimension in ("month", "weekday")
    if dimension in ITEM_DIMENSIONS:
        return item_frame(records, window, dated_only=date_bucketed)
    return record_frame(records, window, dated_only=date_bucketed)


def aggregate(records, group_by, window=None, months=DEFAULT_TRAILING_MONTHS, end=None):
    """Group records into Buckets along one dimension.

    Month buckets always cover every calendar month of `window` (or the
    trailing `months` ending at `end`), zero-filled and oldest first.
    Without a window, record-level dimensions other than month/weekday also
    count records whose date cannot be resolved.
    """
    dimension = resolve_dimension(group_by)
    if dimension == "month" and window is None:
        window = DateRange.trailing_months(months, end)
    frame = _frame_for(records, dimension, window)
    keys = _keys_for(dimension, frame, window)
    if dimension == "month":
        frame = frame[frame["month"].isin(keys)]
    return _summarise(frame, dimension, keys)


def breakdown_by_month(records, group_by, window=None, months=DEFAULT_TRAILING_MONTHS, end=None):
    """{key: [month Buckets]} for every key of `group_by`, in first-seen order."""
    dimension = resolve_dimension(group_by)
    if dimension == "month":
        raise ValueError("breakdown_by_month needs a non-month dimension")
    if window is None:
        window = DateRange.trailing_months(months, end)
    month_keys = window.month_keys()
    frame = _frame_for(records, dimension, window)
    frame = frame[frame["month"].isin(month_keys)]
    result = {}
    for key in _keys_for(dimension, frame, window):
        result[key] = _summarise(frame[frame[dimension] == key], "month", month_keys)
    return result


def summarize(records, window=None):
    """Single all-records Summary (KPI strip totals)."""
    frame = record_frame(records, window)
    frame = frame.assign(scope="all")
    return replace(_summarise(frame, "scope", ["all"])[0], label="全体")


def reconcile(records, buckets, window=None):
    """Bucket revenue minus raw revenue of the records in scope (0 when consistent)."""
    raw = sum(acc.effective_revenue(r) for row, r in _rows(records, window))
    return sum(b.revenue for b in buckets) - raw


def growth_ratio(current, previous):
    """current / previous as a percentage; 0 when the baseline is 0."""
    if not previous:
        return 0.0
    ratio = current / previous * 100
    return ratio if math.isfinite(ratio) else 0.0


def compare_periods(records, months=DEFAULT_TRAILING_MONTHS, lag=1, end=None, metric="revenue"):
    """Month-over-month (lag=1) or year-over-year (lag=12) comparison per month."""
    window = DateRange.trailing_months(months + lag, end)
    buckets = aggregate(records, "month", window)
    comparisons = []
    for i in range(lag, len(buckets)):
        cur = getattr(buckets[i], metric)
        prev = getattr(buckets[i - lag], metric)
        comparisons.append(PeriodComparison(buckets[i].key, buckets[i].label, cur, prev,
                                            growth_ratio(cur, prev)))
    return comparisons


def cumulative(buckets, metric="revenue"):
    """Running total per bucket, each recomputed from the first bucket."""
    return [sum(getattr(b, metric) for b in buckets[:i + 1]) for i in range(len(buckets))]


def top_n(items, n, key=lambda b: b.revenue):
    """Descending by key; ties keep their original order."""
    return sorted(items, key=key, reverse=True)[:max(n, 0)]


def top_patients(records, n=10, window=None):
    """Visitors ranked by total effective revenue."""
    spend = {}
    for row, record in _rows(records, window):
        vkey = acc.visitor_key(record)
        entry = spend.setdefault(vkey, {"name": acc.visitor_name(record) or vkey,
                                        "clinic": row["clinic"], "revenue": 0.0,
                                        "visits": 0, "last_visit": None})
        entry["revenue"] += row["revenue"]
        entry["visits"] += 1
        if row["date"] and (entry["last_visit"] is None or row["date"] > entry["last_visit"]):
            entry["last_visit"] = row["date"]
    ranked = [PatientSpend(visitor_key=k, **v) for k, v in spend.items()]
    return top_n(ranked, n)


def repeat_analysis(records, months=None, end=None):
    """Repeat-visit statistics per patient.

    Same-day visits of one patient merge into one visit. With `months`, only
    patients whose first visit falls in the trailing window are counted.
    """
    visits = {}
    for row, record in _rows(records, dated_only=True):
        by_day = visits.setdefault(acc.visitor_key(record), {})
        by_day[row["date"]] = by_day.get(row["date"], 0.0) + row["revenue"]

    window = DateRange.trailing_months(months, end) if months else None
    heatmap = {(r, c): {"patients": 0, "revenue": 0.0}
               for r in REPEAT_INTERVAL_BANDS for c in REPEAT_COUNT_BANDS}
    total = repeaters = 0
    gaps = []
    repeat_revenue = 0.0

    for by_day in visits.values():
        days = sorted(by_day)
        if window is not None and not window.contains(days[0]):
            continue
        total += 1
        revenue = sum(by_day.values())
        count = len(days)
        if count >= 10:
            col = "10回以上"
        elif count >= 5:
            col = "5回以上"
        elif count >= 2:
            col = "2回以上"
        else:
            col = "リピートなし"
        row_band = "それ以上"
        if count >= 2:
            repeaters += 1
            repeat_revenue += revenue
            gap = (days[1] - days[0]).days
            gaps.append(gap)
            if gap <= 90:
                row_band = "90日以内"
            elif gap <= 180:
                row_band = "180日以内"
            elif gap <= 365:
                row_band = "365日以内"
        cell = heatmap[(row_band, col)]
        cell["patients"] += 1
        cell["revenue"] += revenue

    return RepeatAnalysis(
        total_patients=total,
        repeat_patients=repeaters,
        repeat_rate=repeaters / total * 100 if total else 0.0,
        average_days_to_repeat=sum(gaps) / len(gaps) if gaps else 0.0,
        repeat_revenue=repeat_revenue,
        average_repeat_revenue=repeat_revenue / repeaters if repeaters else 0.0,
        heatmap=heatmap,
    )


# ══════════════════════════════════════════════════════════════════════════════
#  VISIT ANALYSIS
# ══════════════════════════════════════════════════════════════════════════════

def _first_category(record):
    items = acc.payment_items(record)
    item = items[0] if items else {}
    return classify(item.get("category"), item.get("name")).category_id


def cross_sell(records, window=None):
    """Category transitions between consecutive visit days of each patient.

    A visit's category is that of its first payment item; several visits on
    one day count once, as the earliest of them.
    """
    visits = {}
    for row, record in _rows(records, window, dated_only=True):
        visits.setdefault(acc.visitor_key(record), []).append(
            (row["date"], row["pos"], _first_category(record)))

    categories = {}
    first_next, first_to_all = {}, {}
    for entries in visits.values():
        by_day = {}
        for date, _, category in sorted(entries):
            by_day.setdefault(date, category)
        sequence = [by_day[d] for d in sorted(by_day)]
        for category in sequence:
            categories.setdefault(category, None)
        if len(sequence) < 2:
            continue
        first = sequence[0]
        first_next[(first, sequence[1])] = first_next.get((first, sequence[1]), 0) + 1
        for later in sequence[1:]:
            first_to_all[(first, later)] = first_to_all.get((first, later), 0) + 1

    return CrossSell(categories=tuple(categories), first_next=first_next,
                     first_to_all=first_to_all)


def cancellation_analysis(records, months=DEFAULT_TRAILING_MONTHS, end=None, window=None, n=12):
    """Cancelled, refunded and cooling-off amounts per month and ranked by attribute.

    Only records with a positive cancelled amount are counted.
    """
    if window is None:
        window = DateRange.trailing_months(months, end)
    rows = []
    for row, record in _rows(records, window, dated_only=True):
        amount = acc.cancel_amount(record)
        if amount <= 0:
            continue
        rows.append({**row, "revenue": amount, "category": _first_category(record),
                     "age_gender": f"{row['age_band']}・{row['gender']}",
                     "procedure": acc.first_item_name(record) or acc.UNSET_LABEL})
    frame = pd.DataFrame(rows, columns=_FRAME_COLUMNS + ["category", "age_gender", "procedure"])

    month_keys = window.month_keys()

    def ranking(dimension):
        keys = list(dict.fromkeys(frame[dimension].tolist()))
        return top_n(_summarise(frame, dimension, keys), n)

    return CancellationAnalysis(
        monthly=_summarise(frame, "month", month_keys),
        monthly_by_category={
            key: _summarise(frame[frame["category"] == key], "month", month_keys)
            for key in dict.fromkeys(frame["category"].tolist())
        },
        by_category=ranking("category"),
        by_clinic=ranking("clinic"),
        by_age_gender=ranking("age_gender"),
        by_procedure=ranking("procedure"),
    )


def detect_closed_days(records, window=None):
    """Every calendar day from the first to the last dated record, oldest first.

    A day with no record at all is a closed day.
    """
    per_day = {}
    for row, _ in _rows(records, window, dated_only=True):
        count, revenue = per_day.get(row["date"], (0, 0.0))
        per_day[row["date"]] = (count + 1, revenue + row["revenue"])
    if not per_day:
        return []
    days = []
    day = min(per_day)
    while day <= max(per_day):
        count, revenue = per_day.get(day, (0, 0.0))
        days.append(DayStatus(day, count, revenue))
        day += datetime.timedelta(days=1)
    return days


def closed_day_stats(days):
    total = len(days)
    closed = sum(1 for d in days if d.is_closed)
    return ClosedDayStats(
        total_days=total,
        closed_days=closed,
        open_days=total - closed,
        closed_rate=closed / total * 100 if total else 0.0,
    )


def daily_revenue(records, year, month):
    """Per-clinic revenue for each day of one calendar month, clinics in first-seen order."""
    window = DateRange.for_month(year, month)
    n_days = window.end.day
    clinics = {}
    for row, record in _rows(records, window):
        entry = clinics.setdefault(row["clinic"], {"daily": [0.0] * n_days, "count": 0,
                                                   "existing_count": 0, "multi_item_count": 0})
        entry["daily"][row["date"].day - 1] += row["revenue"]
        entry["count"] += 1
        if not acc.is_first_visit(record):
            entry["existing_count"] += 1
        if len(acc.payment_items(record)) > 1:
            entry["multi_item_count"] += 1
    return [DailyRevenue(clinic=name, daily=tuple(v.pop("daily")), **v)
            for name, v in clinics.items()]
