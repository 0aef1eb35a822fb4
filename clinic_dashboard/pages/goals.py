"""Goals page — staff goals editor, achievement table and CSV export/import.

The goal list itself lives in the browser (local-storage store in app.py);
everything here is filled in by callbacks/goals_cb.py.
"""
from dash import html, dcc, dash_table
import dash_bootstrap_components as dbc

from clinic_dashboard.theme import *
from clinic_dashboard.components.cards import section
from clinic_dashboard import data_state as ds
from clinic_dashboard import goals as gl


TARGET_INPUTS = (
    ("goal-target-amount", "目標金額"),
    ("goal-target-new", "新規単価目標"),
    ("goal-target-existing", "既存単価目標"),
    ("goal-target-beauty", "美容売上目標"),
    ("goal-target-other", "その他売上目標"),
)

GOAL_COLUMNS = [
    {"name": "スタッフ名", "id": "staffName"},
    {"name": "目標金額", "id": "targetAmount"},
    {"name": "実績金額", "id": "currentAmount"},
    {"name": "達成率", "id": "achievementRate"},
    {"name": "新規単価", "id": "newAverage"},
    {"name": "新規達成率", "id": "newAchievementRate"},
    {"name": "既存単価", "id": "existingAverage"},
    {"name": "既存達成率", "id": "existingAchievementRate"},
    {"name": "美容売上", "id": "beautyRevenue"},
    {"name": "美容達成率", "id": "beautyAchievementRate"},
    {"name": "その他売上", "id": "otherRevenue"},
    {"name": "その他達成率", "id": "otherAchievementRate"},
]


def _editor(staff_options):
    return dbc.Row([
        dbc.Col([
            dbc.Label("スタッフ", style={"fontSize": "12px", "color": GRAY}),
            dcc.Dropdown(id="goal-staff", options=[{"label": s, "value": s} for s in staff_options],
                         placeholder="スタッフを選択", className="dash-dark-dropdown"),
        ], md=3),
        *[
            dbc.Col([
                dbc.Label(label, style={"fontSize": "12px", "color": GRAY}),
                dbc.Input(id=input_id, type="number", min=0, step=1000, placeholder="0"),
            ], md=True)
            for input_id, label in TARGET_INPUTS
        ],
        dbc.Col([
            dbc.Label(" ", style={"fontSize": "12px"}),
            dbc.Button("保存", id="goal-save-btn", color="success", className="w-100"),
        ], md=1),
    ], className="g-2 mb-2")


def layout(filters=None):
    """Build the Goals page shell."""
    state = ds.filtered_state(filters)
    staff_options = gl.available_staff(state.records)

    return html.Div([
        html.Div(id="goals-kpis", className="mb-3"),
        section("目標の追加・編集", [
            _editor(staff_options),
            html.P("既存のスタッフを選ぶと目標を上書きします。行を選択して削除できます。",
                   style={"color": DARKGRAY, "fontSize": "11px", "margin": "0"}),
        ], GREEN),
        section("スタッフ別 達成状況", [
            dash_table.DataTable(
                id="goals-table", columns=GOAL_COLUMNS, data=[],
                row_selectable="single", page_size=20,
                **TABLE_STYLE,
            ),
            html.Div([
                dbc.Button("選択した目標を削除", id="goal-delete-btn", color="danger", size="sm",
                           outline=True, className="me-2"),
                dbc.Button("CSV エクスポート", id="goal-export-btn", color="info", size="sm",
                           className="me-2"),
                dcc.Upload(
                    id="upload-goals-csv",
                    children=dbc.Button("CSV インポート", color="secondary", size="sm"),
                    accept=".csv",
                    style={"display": "inline-block"},
                ),
            ], className="mt-2"),
            html.Div(id="goal-status", className="mt-2"),
            dcc.Download(id="goal-download"),
        ], CYAN),
        dcc.Graph(id="goals-chart", config={"displayModeBar": False}),
    ])
