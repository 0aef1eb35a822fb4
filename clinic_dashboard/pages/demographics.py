"""Demographics page — gender, age band, referral source and patient type."""
from dash import html, dcc
import dash_bootstrap_components as dbc
import plotly.graph_objects as go

from clinic_dashboard.theme import *
from clinic_dashboard.components.cards import section, make_chart, empty_state
from clinic_dashboard.components.tables import bucket_table
from clinic_dashboard import aggregation as agg
from clinic_dashboard import data_state as ds


def _pie(buckets, title, colors=None):
    fig = go.Figure(go.Pie(labels=[b.label for b in buckets], values=[b.count for b in buckets],
                           hole=0.5, marker=dict(colors=colors) if colors else None))
    fig.update_layout(title=title)
    return make_chart(fig, height=320)


def _age_sort_key(bucket):
    # "20代" sorts numerically; "不明" goes last
    digits = bucket.key[:-1]
    return int(digits) if digits.isdigit() else 999


def layout(filters=None):
    state = ds.filtered_state(filters)
    records = state.scoped_records()
    if not records:
        return empty_state()

    window = state.effective_window()
    genders = agg.aggregate(records, "gender", window)
    ages = sorted(agg.aggregate(records, "age_band", window), key=_age_sort_key)
    referrals = agg.top_n(agg.aggregate(records, "referral_source", window), 12, key=lambda b: b.count)
    ptypes = agg.aggregate(records, "patient_type", window)

    age_fig = go.Figure()
    for ptype in ("new", "existing"):
        age_fig.add_trace(go.Bar(x=[b.label for b in ages], y=[b.count_for(ptype) for b in ages],
                                 name=agg.PATIENT_TYPE_LABELS[ptype],
                                 marker_color=PATIENT_TYPE_COLORS[ptype]))
    age_fig.update_layout(barmode="group", title="年代別 来院数")

    ref_fig = go.Figure(go.Bar(x=[b.count for b in reversed(referrals)],
                               y=[b.label for b in reversed(referrals)],
                               orientation="h", marker_color=ORANGE))
    ref_fig.update_layout(title="流入元別 来院数")

    return html.Div([
        dbc.Row([
            dbc.Col(dcc.Graph(figure=_pie(genders, "性別"), config={"displayModeBar": False}), md=4),
            dbc.Col(dcc.Graph(figure=_pie(ptypes, "新規 / 既存 / その他",
                                          [PATIENT_TYPE_COLORS[b.key] for b in ptypes]),
                              config={"displayModeBar": False}), md=4),
            dbc.Col(dcc.Graph(figure=make_chart(age_fig, height=320), config={"displayModeBar": False}),
                    md=4),
        ], className="mb-3"),
        dcc.Graph(figure=make_chart(ref_fig, height=420, legend_h=False), config={"displayModeBar": False}),
        section("年代別集計", bucket_table(ages, "年代", table_id="demo-ages"), PURPLE),
    ])
