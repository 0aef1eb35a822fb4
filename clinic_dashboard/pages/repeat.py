"""Repeat page — repeat rate, time-to-second-visit heatmap, top patients."""
from dash import html, dcc
import dash_bootstrap_components as dbc
import plotly.graph_objects as go

from clinic_dashboard.theme import *
from clinic_dashboard.components.kpi import kpi_card
from clinic_dashboard.components.cards import section, make_chart, chart_context, empty_state
from clinic_dashboard.components.tables import ranking_table
from clinic_dashboard import aggregation as agg
from clinic_dashboard import data_state as ds


def _heatmap(analysis):
    z = [[analysis.heatmap[(row, col)]["patients"] for col in agg.REPEAT_COUNT_BANDS]
         for row in agg.REPEAT_INTERVAL_BANDS]
    fig = go.Figure(go.Heatmap(
        z=z, x=list(agg.REPEAT_COUNT_BANDS), y=list(agg.REPEAT_INTERVAL_BANDS),
        colorscale="Blues", text=z, texttemplate="%{text}", hovertemplate="%{y} × %{x}: %{z}人<extra></extra>",
    ))
    fig.update_layout(title="2回目来院までの日数 × 来院回数")
    return make_chart(fig, height=360, legend_h=False)


def layout(filters=None):
    state = ds.filtered_state(filters)
    records = state.scoped_records()
    if not records:
        return empty_state()

    window = state.effective_window()
    months = len(window.month_keys())
    analysis = agg.repeat_analysis(records, months=months, end=window.end)
    patients = agg.top_patients(records, 20, window)

    rows = [{
        "rank": i + 1,
        "name": p.name,
        "clinic": p.clinic,
        "visits": p.visits,
        "revenue": ds.yen(p.revenue),
        "last_visit": p.last_visit.isoformat() if p.last_visit else "",
    } for i, p in enumerate(patients)]

    return html.Div([
        chart_context("同日の複数会計は 1 来院として数えます。期間内に初回来院した患者が対象です。"),
        html.Div([
            kpi_card("対象患者", f"{analysis.total_patients:,}人", CYAN),
            kpi_card("リピート患者", f"{analysis.repeat_patients:,}人", GREEN),
            kpi_card("リピート率", ds.pct(analysis.repeat_rate), ORANGE),
            kpi_card("2回目までの平均日数", f"{analysis.average_days_to_repeat:.0f}日", PURPLE),
            kpi_card("リピート患者 平均売上", ds.yen(analysis.average_repeat_revenue), PINK),
        ], style={"display": "flex", "gap": "12px", "flexWrap": "wrap"}, className="mb-3"),
        dcc.Graph(figure=_heatmap(analysis), config={"displayModeBar": False}),
        section("売上上位の患者", ranking_table(rows, [
            {"name": "順位", "id": "rank"},
            {"name": "患者", "id": "name"},
            {"name": "院", "id": "clinic"},
            {"name": "来院", "id": "visits"},
            {"name": "売上", "id": "revenue"},
            {"name": "最終来院", "id": "last_visit"},
        ], "repeat-top-patients"), CYAN),
    ])
