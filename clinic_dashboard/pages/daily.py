"""Daily page — per-clinic revenue for each day of the latest month, and closed days."""
from dash import html, dcc
import dash_bootstrap_components as dbc
import plotly.graph_objects as go

from clinic_dashboard.theme import *
from clinic_dashboard.components.kpi import kpi_card
from clinic_dashboard.components.cards import section, make_chart, chart_context, empty_state
from clinic_dashboard.components.tables import ranking_table
from clinic_dashboard import aggregation as agg
from clinic_dashboard import data_state as ds


def _daily_chart(clinics, year, month):
    fig = go.Figure()
    for i, clinic in enumerate(clinics):
        fig.add_trace(go.Bar(x=list(range(1, len(clinic.daily) + 1)), y=list(clinic.daily),
                             name=clinic.clinic, marker_color=SERIES_COLORS[i % len(SERIES_COLORS)]))
    fig.update_layout(barmode="stack", title=f"{year}年{month}月 日別売上",
                      xaxis=dict(title="日", dtick=1))
    return make_chart(fig, height=360)


def _closed_day_chart(days):
    fig = go.Figure(go.Bar(
        x=[d.date for d in days], y=[d.revenue for d in days],
        marker_color=[RED if d.is_closed else CYAN for d in days],
        customdata=[d.count for d in days],
        hovertemplate="%{x}<br>売上 ¥%{y:,.0f}<br>件数 %{customdata}<extra></extra>",
    ))
    fig.update_layout(title="日別売上（赤は休診日）")
    return make_chart(fig, height=300, legend_h=False)


def layout(filters=None):
    state = ds.filtered_state(filters)
    records = state.scoped_records()
    if not records:
        return empty_state()

    window = state.effective_window()
    year, month = window.end.year, window.end.month
    clinics = agg.daily_revenue(records, year, month)
    days = agg.detect_closed_days(records, window)
    stats = agg.closed_day_stats(days)

    rows = [{
        "clinic": c.clinic,
        "revenue": ds.yen(c.revenue),
        "count": c.count,
        "daily_average": ds.yen(c.daily_average),
        "second_half": ds.yen(c.second_half_revenue),
        "second_half_average": ds.yen(c.second_half_average),
        "existing_ratio": ds.pct(c.existing_ratio),
        "upsell_ratio": ds.pct(c.upsell_ratio),
    } for c in clinics]

    return html.Div([
        chart_context("来院記録が 1 件もない日を休診日として数えます。期間は最初と最後の記録日の間です。",
                      metrics=[("対象月", f"{year}年{month}月", CYAN)]),
        html.Div([
            kpi_card("対象日数", f"{stats.total_days:,}日", CYAN),
            kpi_card("営業日", f"{stats.open_days:,}日", GREEN),
            kpi_card("休診日", f"{stats.closed_days:,}日", RED),
            kpi_card("休診率", ds.pct(stats.closed_rate), ORANGE),
        ], style={"display": "flex", "gap": "12px", "flexWrap": "wrap"}, className="mb-3"),
        dbc.Row([
            dbc.Col(dcc.Graph(figure=_daily_chart(clinics, year, month), config={"displayModeBar": False}),
                    md=12),
        ]),
        dcc.Graph(figure=_closed_day_chart(days), config={"displayModeBar": False}) if days else html.Div(),
        section("院別 日次サマリー", ranking_table(rows, [
            {"name": "院", "id": "clinic"},
            {"name": "売上", "id": "revenue"},
            {"name": "件数", "id": "count"},
            {"name": "日平均", "id": "daily_average"},
            {"name": "16日以降", "id": "second_half"},
            {"name": "16日以降 日平均", "id": "second_half_average"},
            {"name": "既存比率", "id": "existing_ratio"},
            {"name": "複数施術率", "id": "upsell_ratio"},
        ], "daily-clinics"), CYAN),
    ])
