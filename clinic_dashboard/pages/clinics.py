"""Clinic comparison page — monthly revenue per clinic + clinic table."""
from dash import html, dcc
import plotly.graph_objects as go

from clinic_dashboard.theme import *
from clinic_dashboard.components.cards import section, make_chart, empty_state
from clinic_dashboard.components.tables import bucket_table
from clinic_dashboard import aggregation as agg
from clinic_dashboard import data_state as ds


def layout(filters=None):
    """Clinic comparison ignores the clinic filter: every clinic is shown."""
    state = ds.filtered_state(filters)
    records = state.records
    if not records:
        return empty_state()

    window = state.effective_window()
    per_clinic = agg.breakdown_by_month(records, "clinic", window)

    revenue_fig = go.Figure()
    unit_fig = go.Figure()
    for i, (clinic, months) in enumerate(per_clinic.items()):
        labels = [b.label for b in months]
        revenue_fig.add_trace(go.Scatter(x=labels, y=[b.revenue for b in months], name=clinic,
                                         mode="lines+markers", line=dict(color=series_color(i))))
        unit_fig.add_trace(go.Bar(x=labels, y=[b.unit_price for b in months], name=clinic,
                                  marker_color=series_color(i)))
    revenue_fig.update_layout(title="院別 月次売上")
    unit_fig.update_layout(title="院別 客単価", barmode="group")

    return html.Div([
        dcc.Graph(figure=make_chart(revenue_fig), config={"displayModeBar": False}),
        dcc.Graph(figure=make_chart(unit_fig, height=320), config={"displayModeBar": False}),
        section("院別集計", bucket_table(agg.aggregate(records, "clinic", window), "院",
                                         table_id="clinics-table"), CYAN),
    ])
