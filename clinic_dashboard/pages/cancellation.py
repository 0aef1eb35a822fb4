"""Cancellation page — cancelled, refunded and cooling-off amounts by month and attribute."""
from dash import html, dcc
import dash_bootstrap_components as dbc
import plotly.graph_objects as go

from clinic_dashboard.theme import *
from clinic_dashboard.components.kpi import kpi_card
from clinic_dashboard.components.cards import section, make_chart, chart_context, empty_state
from clinic_dashboard.components.tables import ranking_table
from clinic_dashboard.categories import label_for
from clinic_dashboard import aggregation as agg
from clinic_dashboard import data_state as ds


def _monthly_chart(analysis):
    labels = [b.label for b in analysis.monthly]
    fig = go.Figure()
    for i, (category, buckets) in enumerate(analysis.monthly_by_category.items()):
        fig.add_trace(go.Bar(x=labels, y=[b.revenue for b in buckets], name=label_for(category),
                             marker_color=SERIES_COLORS[i % len(SERIES_COLORS)]))
    fig.add_trace(go.Scatter(x=labels, y=[b.count for b in analysis.monthly], name="取消件数",
                             yaxis="y2", mode="lines+markers", line=dict(color=WHITE)))
    fig.update_layout(barmode="stack", title="月別 取消金額（カテゴリ別）",
                      yaxis2=dict(overlaying="y", side="right", showgrid=False))
    return make_chart(fig, height=380)


def _ranking(buckets, header, table_id):
    rows = [{
        "rank": i + 1,
        "label": b.label,
        "amount": ds.yen(b.revenue),
        "count": b.count,
        "average": ds.yen(b.unit_price),
    } for i, b in enumerate(buckets)]
    return ranking_table(rows, [
        {"name": "順位", "id": "rank"},
        {"name": header, "id": "label"},
        {"name": "取消金額", "id": "amount"},
        {"name": "件数", "id": "count"},
        {"name": "平均", "id": "average"},
    ], table_id)


def layout(filters=None):
    state = ds.filtered_state(filters)
    records = state.scoped_records()
    if not records:
        return empty_state()

    analysis = agg.cancellation_analysis(records, window=state.effective_window())
    if not analysis.total_count:
        return empty_state("期間内に取消・返金・クーリングオフのデータがありません。")

    total = analysis.total_count
    return html.Div([
        chart_context("取消・返金・クーリングオフ金額の合計が 0 円を超える会計を 1 件として数えます。"),
        html.Div([
            kpi_card("取消金額", ds.yen(analysis.total_amount), RED),
            kpi_card("取消件数", f"{total:,}件", ORANGE),
            kpi_card("平均取消額", ds.yen(analysis.total_amount / total), PURPLE),
        ], style={"display": "flex", "gap": "12px", "flexWrap": "wrap"}, className="mb-3"),
        dcc.Graph(figure=_monthly_chart(analysis), config={"displayModeBar": False}),
        dbc.Row([
            dbc.Col(section("カテゴリ別", _ranking(analysis.by_category, "カテゴリ", "cancel-category"), RED), md=6),
            dbc.Col(section("院別", _ranking(analysis.by_clinic, "院", "cancel-clinic"), ORANGE), md=6),
        ]),
        dbc.Row([
            dbc.Col(section("年代・性別", _ranking(analysis.by_age_gender, "年代・性別", "cancel-age-gender"),
                            PINK), md=6),
            dbc.Col(section("施術別", _ranking(analysis.by_procedure, "施術", "cancel-procedure"), PURPLE), md=6),
        ]),
    ])
