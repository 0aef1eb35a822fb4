"""
data_state.py — Immutable dashboard state and the process-wide snapshot.

Views never touch module globals directly: they take a DashboardState from
get_state(), narrow it with with_filters() and hand its records to the
aggregation functions. Reloads build a new state and rebind _STATE in one
assignment.
"""

import datetime
import logging
from dataclasses import dataclass, replace

from clinic_dashboard import accessors as acc
from clinic_dashboard import aggregation as agg
from clinic_dashboard import record_loader, settings


log = logging.getLogger(__name__)

ALL_CLINICS = "all"


def yen(val):
    """Format an amount as ¥1,234,567 (negatives as -¥...)."""
    val = acc.to_number(val)
    if val < 0:
        return f"-¥{abs(val):,.0f}"
    return f"¥{val:,.0f}"


def pct(val, digits=1):
    return f"{acc.to_number(val):.{digits}f}%"


@dataclass(frozen=True)
class DashboardState:
    records: tuple = ()
    source: str = "none"
    api_connected: bool = False
    csv_loaded: bool = False
    window: agg.DateRange = None
    clinic: str = ALL_CLINICS
    loaded_at: datetime.datetime = None
    errors: tuple = ()

    def with_filters(self, window=None, clinic=None):
        return replace(self, window=window or self.window, clinic=clinic or self.clinic)

    def scoped_records(self):
        """Records of the selected clinic (all clinics by default)."""
        if not self.clinic or self.clinic == ALL_CLINICS:
            return self.records
        return tuple(r for r in self.records if acc.clinic_label(r) == self.clinic)

    def effective_window(self, end=None):
        return self.window or agg.DateRange.trailing_months(settings.TRAILING_MONTHS, end)

    def clinics(self):
        """Clinic labels present in the records, first-seen order."""
        return list(dict.fromkeys(acc.clinic_label(r) for r in self.records))

    @property
    def has_data(self):
        return bool(self.records)


_STATE = DashboardState()


def get_state():
    return _STATE


def set_state(state):
    global _STATE
    _STATE = state
    return state


def filtered_state(filters=None, end=None):
    """Current state narrowed to the header filters ({"clinic", "months"})."""
    filters = filters or {}
    try:
        months = int(filters.get("months") or settings.TRAILING_MONTHS)
    except (TypeError, ValueError):
        months = settings.TRAILING_MONTHS
    window = agg.DateRange.trailing_months(months, end)
    return get_state().with_filters(window=window, clinic=filters.get("clinic") or ALL_CLINICS)


# ══════════════════════════════════════════════════════════════════════════════
#  RELOAD
# ══════════════════════════════════════════════════════════════════════════════

def reload(loader=record_loader.load_records):
    """Reload records through `loader` and swap in a fresh state."""
    result = loader()
    current = get_state()
    state = DashboardState(
        records=tuple(result.records),
        source=result.source,
        api_connected=result.api_connected,
        csv_loaded=False,
        window=current.window,
        clinic=current.clinic,
        loaded_at=datetime.datetime.now(),
        errors=tuple(result.errors),
    )
    set_state(state)
    log.info("State reloaded: %d records from %s", len(state.records), state.source)
    return {
        "records": len(state.records),
        "source": state.source,
        "api_connected": state.api_connected,
        "errors": list(state.errors),
    }


def add_csv_records(records):
    """Append CSV-imported records to the shared state."""
    current = get_state()
    state = replace(
        current,
        records=current.records + tuple(records),
        source=current.source if current.records else "csv",
        csv_loaded=True,
        loaded_at=datetime.datetime.now(),
    )
    set_state(state)
    log.info("Added %d CSV records (total %d)", len(records), len(state.records))
    return state


def diagnostics(state=None, end=None):
    """Record counts and revenue reconciliation for /api/diagnostics."""
    state = state or get_state()
    records = state.records
    window = state.effective_window(end)
    months = agg.aggregate(records, "month", window)
    clinics = agg.aggregate(records, "clinic")
    categories = agg.aggregate(records, "category")
    undated = sum(1 for r in records if acc.effective_date(r) is None)
    return {
        "records": len(records),
        "source": state.source,
        "api_connected": state.api_connected,
        "csv_loaded": state.csv_loaded,
        "loaded_at": state.loaded_at.isoformat() if state.loaded_at else None,
        "undated_records": undated,
        "window": {"start": window.start.isoformat(), "end": window.end.isoformat()},
        "total_revenue": sum(acc.effective_revenue(r) for r in records),
        "reconcile": {
            "month": agg.reconcile(records, months, window),
            "clinic": agg.reconcile(records, clinics),
            "category": agg.reconcile(records, categories),
        },
        "errors": list(state.errors),
    }
