"""Cross-sell page — what patients book on their next visit, by first-visit category."""
from dash import html, dcc
import plotly.graph_objects as go

from clinic_dashboard.theme import *
from clinic_dashboard.components.cards import section, make_chart, chart_context, empty_state
from clinic_dashboard.components.tables import ranking_table
from clinic_dashboard.categories import label_for
from clinic_dashboard import aggregation as agg
from clinic_dashboard import data_state as ds


def _matrix(analysis, kind, title):
    labels = [label_for(c) for c in analysis.categories]
    z = analysis.matrix(kind)
    fig = go.Figure(go.Heatmap(
        z=z, x=labels, y=labels, colorscale="Blues", text=z, texttemplate="%{text}",
        hovertemplate="初回 %{y} → %{x}: %{z}<extra></extra>",
    ))
    fig.update_layout(title=title, xaxis_title="次の来院", yaxis_title="初回来院")
    return make_chart(fig, height=max(360, 40 * len(labels) + 120), legend_h=False)


def _combo_rows(analysis, kind):
    return [{
        "rank": i + 1,
        "first": label_for(src),
        "next": label_for(dst),
        "count": count,
    } for i, (src, dst, count) in enumerate(analysis.top_combinations(12, kind))]


COMBO_COLUMNS = [
    {"name": "順位", "id": "rank"},
    {"name": "初回", "id": "first"},
    {"name": "次回", "id": "next"},
    {"name": "人数", "id": "count"},
]


def layout(filters=None):
    state = ds.filtered_state(filters)
    records = state.scoped_records()
    if not records:
        return empty_state()

    analysis = agg.cross_sell(records, state.effective_window())
    if not analysis.first_next:
        return html.Div([
            chart_context("初回来院のカテゴリから、次回以降に受けた施術カテゴリへの流れを表示します。"),
            empty_state("期間内に 2 日以上来院した患者がいません。"),
        ])

    return html.Div([
        chart_context("初回来院のカテゴリから、次回以降に受けた施術カテゴリへの流れを表示します。",
                      look_for="対角線の外側が多い組み合わせはクロスセルの導線です。"),
        dcc.Graph(figure=_matrix(analysis, "first_next", "初回 → 2回目"), config={"displayModeBar": False}),
        dcc.Graph(figure=_matrix(analysis, "first_to_all", "初回 → 以降すべての来院"),
                  config={"displayModeBar": False}),
        section("初回 → 2回目 上位の組み合わせ",
                ranking_table(_combo_rows(analysis, "first_next"), COMBO_COLUMNS, "cross-sell-next"), CYAN),
        section("初回 → 以降 上位の組み合わせ",
                ranking_table(_combo_rows(analysis, "first_to_all"), COMBO_COLUMNS, "cross-sell-all"), PURPLE),
    ])
