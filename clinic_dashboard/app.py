"""
Clinic Sales Dashboard
Run:  python -m clinic_dashboard.app
Open: http://127.0.0.1:8070
"""

import logging
import os

import dash
from dash import html, dcc
import dash_bootstrap_components as dbc
import flask

from clinic_dashboard import settings
from clinic_dashboard import data_state as ds
from clinic_dashboard.theme import BG, SIDEBAR_WIDTH, CONTENT_MARGIN

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

# ── Create the Dash app ──────────────────────────────────────────────────────
app = dash.Dash(
    __name__,
    suppress_callback_exceptions=True,
    external_stylesheets=[
        dbc.themes.DARKLY,
        "https://fonts.googleapis.com/css2?family=Noto+Sans+JP:wght@400;500;700&display=swap",
    ],
    assets_folder=os.path.join(os.path.dirname(__file__), "assets"),
    title="Clinic Sales Dashboard",
)
server = app.server  # For deployment (Gunicorn)

# Initial load; gunicorn.conf.py reloads again once the worker is up
ds.reload()

# ── Sidebar navigation ──────────────────────────────────────────────────────
NAV_ITEMS = [
    {"label": "概要",         "icon": "\U0001f4ca", "value": "/"},
    {"label": "売上分析",     "icon": "\U0001f4b9", "value": "/sales"},
    {"label": "院別比較",     "icon": "\U0001f3e5", "value": "/clinics"},
    "---",
    {"label": "施術別",       "icon": "\U0001f489", "value": "/treatments"},
    {"label": "担当者別",     "icon": "\U0001f469‍⚕️", "value": "/staff"},
    {"label": "患者属性",     "icon": "\U0001f465", "value": "/demographics"},
    {"label": "リピート",     "icon": "\U0001f501", "value": "/repeat"},
    {"label": "クロスセル",   "icon": "\U0001f500", "value": "/cross-sell"},
    {"label": "キャンセル",   "icon": "\u274c", "value": "/cancellation"},
    {"label": "日別・休診日", "icon": "\U0001f4c5", "value": "/daily"},
    "---",
    {"label": "目標管理",     "icon": "\U0001f3af", "value": "/goals"},
    {"label": "データハブ",   "icon": "⬆️",  "value": "/data-hub"},
]

MONTH_OPTIONS = [3, 6, 12, 24]


def _build_sidebar():
    nav_links = []
    for item in NAV_ITEMS:
        if item == "---":
            nav_links.append(html.Hr(className="sidebar-divider"))
        else:
            nav_links.append(
                dbc.NavLink(
                    [html.Span(item["icon"], className="nav-icon"), item["label"]],
                    href=item["value"],
                    active="exact",
                )
            )

    return html.Div([
        html.Div([
            html.H4("CLINIC SALES"),
            html.Small("売上分析ダッシュボード"),
        ], className="sidebar-brand"),
        dbc.Nav(nav_links, vertical=True, pills=True),
    ], className="sidebar", style={"width": SIDEBAR_WIDTH})


def _build_filters(state):
    clinic_options = [{"label": "全院", "value": ds.ALL_CLINICS}]
    clinic_options += [{"label": c, "value": c} for c in state.clinics()]
    return html.Div([
        dcc.Dropdown(id="filter-clinic", options=clinic_options, value=ds.ALL_CLINICS,
                     clearable=False, persistence=True, style={"width": "180px"},
                     className="dash-dark-dropdown"),
        dcc.Dropdown(id="filter-months",
                     options=[{"label": f"直近{m}ヶ月", "value": m} for m in MONTH_OPTIONS],
                     value=settings.TRAILING_MONTHS, clearable=False, persistence=True,
                     style={"width": "150px"}, className="dash-dark-dropdown"),
    ], style={"display": "flex", "gap": "8px"})


# ── App layout ───────────────────────────────────────────────────────────────
def serve_layout():
    state = ds.get_state()
    source = {"api": "API", "snapshot": "スナップショット", "csv": "CSV"}.get(state.source, "データなし")
    subtitle = f"{len(state.records):,} 件  |  取得元: {source}  |  院: {len(state.clinics())}"
    return html.Div([
        dcc.Location(id="url", refresh=False),

        _build_sidebar(),

        html.Div([
            html.Div([
                html.Div([
                    html.H3("クリニック売上ダッシュボード"),
                    html.Div(subtitle, className="header-subtitle", id="app-header-content"),
                ]),
                _build_filters(state),
            ], className="app-header",
                style={"display": "flex", "justifyContent": "space-between", "alignItems": "center"}),

            html.Div(id="page-content"),

            # Goals persist in browser local storage under this id
            dcc.Store(id=settings.GOALS_STORAGE_KEY, storage_type="local"),
        ], className="main-content", style={"marginLeft": CONTENT_MARGIN, "backgroundColor": BG}),
    ])


app.layout = serve_layout


# ── Flask endpoints ──────────────────────────────────────────────────────────
@server.route("/api/reload")
def api_reload():
    """Force-reload records from the API (or the local snapshot)."""
    result = ds.reload()
    return flask.jsonify({"status": "ok", **result})


@server.route("/api/diagnostics")
def api_diagnostics():
    """Record counts and revenue reconciliation as JSON for remote debugging."""
    return flask.jsonify(ds.diagnostics())


# ── Register callbacks ───────────────────────────────────────────────────────
# Import callback modules AFTER app is created so they can reference `app`
from clinic_dashboard.callbacks import navigation_cb, upload_cb, goals_cb
navigation_cb.register_callbacks(app)
upload_cb.register_callbacks(app)
goals_cb.register_callbacks(app)

# ── Run ──────────────────────────────────────────────────────────────────────
if __name__ == "__main__":
    log.info("Clinic Sales Dashboard on http://127.0.0.1:%d", settings.PORT)
    app.run(debug=False, host="0.0.0.0", port=settings.PORT)
