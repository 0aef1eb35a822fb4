"""Goals page callbacks — render, save, delete, CSV export/import.

The goal list is kept in the browser's local storage; every callback reads
the stored list, builds a new one and writes it back whole.
"""

from dash import html, dcc, Input, Output, State, no_update
import dash_bootstrap_components as dbc
import plotly.graph_objects as go

from clinic_dashboard import csv_import as ci
from clinic_dashboard import data_state as ds
from clinic_dashboard import goals as gl
from clinic_dashboard import settings
from clinic_dashboard.components.cards import make_chart
from clinic_dashboard.components.kpi import kpi_card
from clinic_dashboard.pages.goals import TARGET_INPUTS
from clinic_dashboard.theme import *


GOALS_STORE = settings.GOALS_STORAGE_KEY


def _table_rows(goals):
    rows = []
    for g in goals:
        rows.append({
            "staffId": g.staff_id,
            "staffName": g.staff_name,
            "targetAmount": ds.yen(g.target_amount),
            "currentAmount": ds.yen(g.current_amount),
            "achievementRate": ds.pct(g.achievement_rate),
            "newAverage": f"{ds.yen(g.current_new_average)} / {ds.yen(g.target_new_average)}",
            "newAchievementRate": ds.pct(g.new_achievement_rate),
            "existingAverage": f"{ds.yen(g.current_existing_average)} / {ds.yen(g.target_existing_average)}",
            "existingAchievementRate": ds.pct(g.existing_achievement_rate),
            "beautyRevenue": f"{ds.yen(g.current_beauty_revenue)} / {ds.yen(g.target_beauty_revenue)}",
            "beautyAchievementRate": ds.pct(g.beauty_achievement_rate),
            "otherRevenue": f"{ds.yen(g.current_other_revenue)} / {ds.yen(g.target_other_revenue)}",
            "otherAchievementRate": ds.pct(g.other_achievement_rate),
        })
    return rows


def _row_styles(goals):
    styles = []
    for i, g in enumerate(goals):
        if g.achievement_rate >= 100:
            styles.append({"if": {"row_index": i}, "color": GREEN})
        elif g.achievement_rate < 80:
            styles.append({"if": {"row_index": i}, "color": RED})
    return styles


def _chart(goals):
    names = [g.staff_name for g in goals]
    fig = go.Figure()
    fig.add_trace(go.Bar(x=names, y=[g.target_amount for g in goals], name="目標", marker_color=DARKGRAY))
    fig.add_trace(go.Bar(x=names, y=[g.current_amount for g in goals], name="実績",
                         marker_color=[GREEN if g.achievement_rate >= 100 else ORANGE for g in goals]))
    fig.update_layout(barmode="group", title="スタッフ別 目標 / 実績")
    return make_chart(fig, height=340)


def _kpis(goals):
    t = gl.totals(goals)
    return html.Div([
        kpi_card("目標合計", ds.yen(t["target"]), CYAN),
        kpi_card("実績合計", ds.yen(t["current"]), GREEN),
        kpi_card("全体達成率", ds.pct(t["rate"]), ORANGE if t["rate"] < 100 else GREEN),
        kpi_card("達成スタッフ", f"{t['achieved']} / {t['staff']}", PURPLE),
    ], style={"display": "flex", "gap": "12px", "flexWrap": "wrap"})


def _current_goals(stored, filters=None):
    """Stored goals with actuals refreshed from the loaded records."""
    state = ds.filtered_state(filters)
    return gl.refresh_all(gl.load_goals(stored), state.scoped_records(), state.effective_window())


def register_callbacks(app):
    # ── Render ────────────────────────────────────────────────────────────
    @app.callback(
        Output("goals-table", "data"),
        Output("goals-table", "style_data_conditional"),
        Output("goals-kpis", "children"),
        Output("goals-chart", "figure"),
        Input(GOALS_STORE, "data"),
        Input("filter-clinic", "value"),
        Input("filter-months", "value"),
    )
    def render_goals(stored, clinic, months):
        goals = _current_goals(stored, {"clinic": clinic, "months": months})
        return _table_rows(goals), _row_styles(goals), _kpis(goals), _chart(goals)

    # ── Load a goal into the editor when its row is selected ─────────────
    @app.callback(
        Output("goal-staff", "value"),
        *[Output(input_id, "value") for input_id, _ in TARGET_INPUTS],
        Input("goals-table", "selected_rows"),
        State("goals-table", "data"),
        State(GOALS_STORE, "data"),
        prevent_initial_call=True,
    )
    def select_goal(selected, table_rows, stored):
        if not selected or not table_rows:
            return (no_update,) * (len(TARGET_INPUTS) + 1)
        staff_id = table_rows[selected[0]]["staffId"]
        goal = next((g for g in gl.load_goals(stored) if g.staff_id == staff_id), None)
        if goal is None:
            return (no_update,) * (len(TARGET_INPUTS) + 1)
        return (goal.staff_name, goal.target_amount, goal.target_new_average,
                goal.target_existing_average, goal.target_beauty_revenue, goal.target_other_revenue)

    # ── Save (add or overwrite by staff name) ─────────────────────────────
    @app.callback(
        Output(GOALS_STORE, "data", allow_duplicate=True),
        Output("goal-status", "children", allow_duplicate=True),
        Input("goal-save-btn", "n_clicks"),
        State("goal-staff", "value"),
        *[State(input_id, "value") for input_id, _ in TARGET_INPUTS],
        State(GOALS_STORE, "data"),
        State("filter-clinic", "value"),
        State("filter-months", "value"),
        prevent_initial_call=True,
    )
    def save_goal(n_clicks, staff_name, amount, new_avg, existing_avg, beauty, other,
                  stored, clinic, months):
        if not n_clicks:
            return no_update, no_update
        if not staff_name:
            return no_update, dbc.Alert("スタッフを選択してください", color="warning", duration=4000)
        goals = gl.load_goals(stored)
        existing = next((g for g in goals if g.staff_name == staff_name), None)
        goal = gl.StaffGoal(
            staff_id=existing.staff_id if existing else gl.new_goal_id(),
            staff_name=staff_name,
            target_amount=float(amount or 0),
            target_new_average=float(new_avg or 0),
            target_existing_average=float(existing_avg or 0),
            target_beauty_revenue=float(beauty or 0),
            target_other_revenue=float(other or 0),
        )
        state = ds.filtered_state({"clinic": clinic, "months": months})
        goal = gl.with_performance(goal, state.scoped_records(), state.effective_window())
        goals = gl.upsert_goal(goals, goal)
        return gl.dump_goals(goals), dbc.Alert(f"{staff_name} の目標を保存しました", color="success",
                                               duration=3000)

    # ── Delete selected ───────────────────────────────────────────────────
    @app.callback(
        Output(GOALS_STORE, "data", allow_duplicate=True),
        Output("goal-status", "children", allow_duplicate=True),
        Input("goal-delete-btn", "n_clicks"),
        State("goals-table", "selected_rows"),
        State("goals-table", "data"),
        State(GOALS_STORE, "data"),
        prevent_initial_call=True,
    )
    def delete_goal(n_clicks, selected, table_rows, stored):
        if not n_clicks or not selected or not table_rows:
            return no_update, no_update
        row = table_rows[selected[0]]
        goals = gl.delete_goal(gl.load_goals(stored), row["staffId"])
        return gl.dump_goals(goals), dbc.Alert(f"{row['staffName']} の目標を削除しました",
                                               color="info", duration=3000)

    # ── CSV export ────────────────────────────────────────────────────────
    @app.callback(
        Output("goal-download", "data"),
        Output("goal-status", "children", allow_duplicate=True),
        Input("goal-export-btn", "n_clicks"),
        State(GOALS_STORE, "data"),
        State("filter-clinic", "value"),
        State("filter-months", "value"),
        prevent_initial_call=True,
    )
    def export_goals(n_clicks, stored, clinic, months):
        if not n_clicks:
            return no_update, no_update
        goals = _current_goals(stored, {"clinic": clinic, "months": months})
        if not goals:
            return no_update, dbc.Alert("エクスポートする目標データがありません", color="warning")
        return (dcc.send_string(gl.export_csv(goals), gl.export_filename()),
                dbc.Alert(f"目標データをエクスポートしました: {len(goals)}件のレコード",
                          color="success", duration=3000))

    # ── CSV import ────────────────────────────────────────────────────────
    @app.callback(
        Output(GOALS_STORE, "data", allow_duplicate=True),
        Output("goal-status", "children", allow_duplicate=True),
        Input("upload-goals-csv", "contents"),
        State("upload-goals-csv", "filename"),
        State(GOALS_STORE, "data"),
        prevent_initial_call=True,
    )
    def import_goals(contents, filename, stored):
        if contents is None:
            return no_update, no_update
        state = ds.get_state()
        try:
            imported = gl.import_upload(contents, filename, state.records, state.effective_window())
        except ci.CSVImportError as e:
            return no_update, dbc.Alert(str(e), color="danger")
        except ValueError as e:
            return no_update, dbc.Alert(f"CSVファイルの解析に失敗しました: {e}", color="danger")
        goals = gl.load_goals(stored) + imported
        return gl.dump_goals(goals), dbc.Alert(
            f"目標データをインポートしました: {len(imported)}件のレコード", color="success", duration=4000)
