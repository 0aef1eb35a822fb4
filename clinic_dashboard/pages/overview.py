"""Overview page — KPI strip + monthly revenue + specialty mix + clinic table."""
from dash import html, dcc
import dash_bootstrap_components as dbc
import plotly.graph_objects as go

from clinic_dashboard.theme import *
from clinic_dashboard.components.kpi import kpi_strip
from clinic_dashboard.components.cards import section, make_chart, chart_context, empty_state
from clinic_dashboard.components.tables import bucket_table
from clinic_dashboard import aggregation as agg
from clinic_dashboard import data_state as ds


def _monthly_chart(months):
    fig = go.Figure()
    for ptype in agg.PATIENT_TYPES:
        fig.add_trace(go.Bar(
            x=[b.label for b in months], y=[b.revenue_for(ptype) for b in months],
            name=agg.PATIENT_TYPE_LABELS[ptype], marker_color=PATIENT_TYPE_COLORS[ptype],
        ))
    fig.add_trace(go.Scatter(
        x=[b.label for b in months], y=[b.unit_price for b in months],
        name="客単価", yaxis="y2", mode="lines+markers", line=dict(color=WHITE, width=2),
    ))
    fig.update_layout(barmode="stack", yaxis2=dict(overlaying="y", side="right", showgrid=False),
                      title="月別売上（新規 / 既存 / その他）")
    return make_chart(fig)


def _specialty_donut(specialties):
    fig = go.Figure(go.Pie(
        labels=[b.label for b in specialties], values=[b.revenue for b in specialties],
        hole=0.55, marker=dict(colors=[SPECIALTY_COLORS.get(b.key, GRAY) for b in specialties]),
    ))
    fig.update_layout(title="診療科別 売上構成")
    return make_chart(fig, height=320)


def layout(filters=None):
    """Build the Overview page."""
    state = ds.filtered_state(filters)
    records = state.scoped_records()
    if not records:
        return empty_state()

    window = state.effective_window()
    summary = agg.summarize(records, window)
    months = agg.aggregate(records, "month", window)
    mom = agg.compare_periods(records, months=1, lag=1, end=window.end)
    specialties = agg.aggregate(records, "specialty", window)
    clinics = agg.aggregate(records, "clinic", window)

    return html.Div([
        kpi_strip(summary, growth=mom[-1].ratio if mom else None),
        dbc.Row([
            dbc.Col([
                chart_context(
                    f"{window.start:%Y/%m/%d} 〜 {window.end:%Y/%m/%d} の月別売上",
                    metrics=[("期間売上", ds.yen(summary.revenue), CYAN),
                             ("月平均", ds.yen(summary.revenue / len(months) if months else 0), GREEN)],
                ),
                dcc.Graph(figure=_monthly_chart(months), config={"displayModeBar": False}),
            ], md=8),
            dbc.Col(dcc.Graph(figure=_specialty_donut(specialties), config={"displayModeBar": False}), md=4),
        ], className="mb-3"),
        section("院別サマリー", bucket_table(clinics, "院", table_id="overview-clinics"), CYAN),
    ])
