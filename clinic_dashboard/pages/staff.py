"""Staff page — revenue ranking per staff member (item-level attribution)."""
from dash import html, dcc
import plotly.graph_objects as go

from clinic_dashboard.theme import *
from clinic_dashboard.components.cards import section, make_chart, chart_context, empty_state
from clinic_dashboard.components.tables import bucket_table
from clinic_dashboard import aggregation as agg
from clinic_dashboard import data_state as ds


def layout(filters=None):
    state = ds.filtered_state(filters)
    records = state.scoped_records()
    if not records:
        return empty_state()

    window = state.effective_window()
    staff = agg.aggregate(records, "staff", window)
    ranked = agg.top_n(staff, 15)

    fig = go.Figure()
    for ptype in agg.PATIENT_TYPES:
        fig.add_trace(go.Bar(
            y=[b.label for b in reversed(ranked)], x=[b.revenue_for(ptype) for b in reversed(ranked)],
            name=agg.PATIENT_TYPE_LABELS[ptype], orientation="h",
            marker_color=PATIENT_TYPE_COLORS[ptype],
        ))
    fig.update_layout(barmode="stack", title="担当者別 売上 TOP15")

    return html.Div([
        chart_context(
            "施術明細の担当者ごとに明細金額を集計。担当者未入力の明細は「未設定」に計上します。",
            metrics=[("担当者数", f"{len(staff)}", CYAN)],
        ),
        dcc.Graph(figure=make_chart(fig, height=480), config={"displayModeBar": False}),
        section("担当者別集計", bucket_table(agg.top_n(staff, len(staff)), "担当者",
                                             table_id="staff-table"), GREEN),
    ])
