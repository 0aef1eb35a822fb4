"""Treatments page — specialty trend, category ranking and the category tree."""
from dash import html, dcc
import dash_bootstrap_components as dbc
import plotly.graph_objects as go

from clinic_dashboard.theme import *
from clinic_dashboard.components.cards import section, make_chart, empty_state
from clinic_dashboard.components.tables import bucket_table
from clinic_dashboard.categories import category_hierarchy, specialty_label
from clinic_dashboard import aggregation as agg
from clinic_dashboard import data_state as ds


def _hierarchy(categories):
    revenue = {b.key: b.revenue for b in categories}
    blocks = []
    for node in category_hierarchy():
        color = SPECIALTY_COLORS.get(node["specialty"], GRAY)
        blocks.append(html.Div([
            html.Div(node["label"], style={"color": color, "fontWeight": "bold", "fontSize": "13px"}),
            html.Ul([
                html.Li([
                    html.Span(cat.label, style={"color": WHITE}),
                    html.Span(f"  {ds.yen(revenue.get(cat.category_id, 0))}",
                              style={"color": GRAY, "fontFamily": "monospace"}),
                ], style={"fontSize": "12px"})
                for cat in node["subcategories"]
            ], style={"marginBottom": "8px"}),
        ]))
    return html.Div(blocks)


def layout(filters=None):
    """Build the Treatments page."""
    state = ds.filtered_state(filters)
    records = state.scoped_records()
    if not records:
        return empty_state()

    window = state.effective_window()
    per_specialty = agg.breakdown_by_month(records, "specialty", window)
    categories = agg.aggregate(records, "category", window)

    fig = go.Figure()
    for specialty, months in per_specialty.items():
        fig.add_trace(go.Bar(x=[b.label for b in months], y=[b.revenue for b in months],
                             name=specialty_label(specialty),
                             marker_color=SPECIALTY_COLORS.get(specialty, GRAY)))
    fig.update_layout(barmode="stack", title="診療科別 月次売上")

    top = agg.top_n(categories, 10)
    bar = go.Figure(go.Bar(x=[b.revenue for b in reversed(top)], y=[b.label for b in reversed(top)],
                           orientation="h", marker_color=PINK))
    bar.update_layout(title="施術カテゴリー TOP10")

    return html.Div([
        dcc.Graph(figure=make_chart(fig), config={"displayModeBar": False}),
        dbc.Row([
            dbc.Col(dcc.Graph(figure=make_chart(bar, height=420, legend_h=False),
                              config={"displayModeBar": False}), md=7),
            dbc.Col(section("カテゴリー体系", _hierarchy(categories), PURPLE), md=5),
        ], className="mb-3"),
        section("カテゴリー別集計", bucket_table(categories, "カテゴリー", table_id="treatments-table"), PINK),
    ])
