"""Sales page — trend, month-over-month / year-over-year, cumulative, weekday."""
from dash import html, dcc
import dash_bootstrap_components as dbc
import plotly.graph_objects as go

from clinic_dashboard.theme import *
from clinic_dashboard.components.cards import section, make_chart, chart_context, empty_state
from clinic_dashboard.components.tables import bucket_table
from clinic_dashboard import aggregation as agg
from clinic_dashboard import data_state as ds


def _comparison_chart(mom, yoy):
    fig = go.Figure()
    fig.add_trace(go.Bar(x=[c.label for c in yoy], y=[c.current for c in yoy],
                         name="当年", marker_color=CYAN))
    fig.add_trace(go.Bar(x=[c.label for c in yoy], y=[c.previous for c in yoy],
                         name="前年", marker_color=DARKGRAY))
    fig.add_trace(go.Scatter(x=[c.label for c in yoy], y=[c.ratio for c in yoy],
                             name="前年比 %", yaxis="y2", mode="lines+markers",
                             line=dict(color=ORANGE)))
    fig.add_trace(go.Scatter(x=[c.label for c in mom], y=[c.ratio for c in mom],
                             name="前月比 %", yaxis="y2", mode="lines+markers",
                             line=dict(color=GREEN, dash="dot")))
    fig.update_layout(barmode="group", title="前年同月 / 前月 比較",
                      yaxis2=dict(overlaying="y", side="right", showgrid=False, ticksuffix="%"))
    return make_chart(fig, height=380)


def _cumulative_chart(months):
    running = agg.cumulative(months)
    fig = go.Figure(go.Scatter(x=[b.label for b in months], y=running, fill="tozeroy",
                               mode="lines+markers", line=dict(color=PINK), name="累計売上"))
    fig.update_layout(title="累計売上")
    return make_chart(fig, height=300, legend_h=False)


def _weekday_chart(weekdays):
    fig = go.Figure(go.Bar(x=[b.label for b in weekdays], y=[b.revenue for b in weekdays],
                           marker_color=TEAL, text=[b.count for b in weekdays],
                           hovertemplate="%{x}<br>売上 ¥%{y:,.0f}<br>件数 %{text}<extra></extra>"))
    fig.update_layout(title="曜日別 売上")
    return make_chart(fig, height=300, legend_h=False)


def layout(filters=None):
    """Build the Sales page."""
    state = ds.filtered_state(filters)
    records = state.scoped_records()
    if not records:
        return empty_state()

    window = state.effective_window()
    n_months = len(window.month_keys())
    months = agg.aggregate(records, "month", window)
    mom = agg.compare_periods(records, months=n_months, lag=1, end=window.end)
    yoy = agg.compare_periods(records, months=n_months, lag=12, end=window.end)
    weekdays = agg.aggregate(records, "weekday", window)
    best = agg.top_n(months, 1)

    return html.Div([
        chart_context(
            "当年と前年同月、前月との売上比較。比較元が 0 円の月は比率 0% と表示します。",
            metrics=[("最高月", f"{best[0].label} {ds.yen(best[0].revenue)}" if best else "—", CYAN),
                     ("直近前年比", ds.pct(yoy[-1].ratio) if yoy else "—", ORANGE)],
        ),
        dcc.Graph(figure=_comparison_chart(mom, yoy), config={"displayModeBar": False}),
        dbc.Row([
            dbc.Col(dcc.Graph(figure=_cumulative_chart(months), config={"displayModeBar": False}), md=6),
            dbc.Col(dcc.Graph(figure=_weekday_chart(weekdays), config={"displayModeBar": False}), md=6),
        ], className="mb-3"),
        section("月別明細", bucket_table(months, "月", table_id="sales-months", with_share=False), CYAN),
    ])
