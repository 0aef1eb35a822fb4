"""Reusable card/section builders."""
from dash import html
import dash_bootstrap_components as dbc
from clinic_dashboard.theme import *


def section(title, children, color=ORANGE):
    """Titled section card with colored top border."""
    return dbc.Card([
        dbc.CardHeader(title, style={"color": color, "fontWeight": "bold", "fontSize": "16px",
                                      "borderBottom": f"2px solid {color}",
                                      "backgroundColor": "transparent", "padding": "12px 16px"}),
        dbc.CardBody(children, style={"padding": "16px"}),
    ], className="mb-3")


def chart_context(description, metrics=None, look_for=None):
    """Compact context block displayed above a chart."""
    children = [
        html.P(description, style={"color": GRAY, "margin": "0 0 6px 0", "fontSize": "12px"}),
    ]
    if metrics:
        children.append(html.Div([
            html.Span([
                html.Span(f"{label}: ", style={"color": GRAY, "fontSize": "11px"}),
                html.Span(value, style={"color": color, "fontFamily": "monospace", "fontWeight": "bold"}),
            ], style={"marginRight": "16px", "whiteSpace": "nowrap"})
            for label, value, color in metrics
        ], style={"display": "flex", "flexWrap": "wrap"}))
    if look_for:
        children.append(html.P(f"→ 注目: {look_for}", style={"color": "#888888", "fontSize": "11px",
                                                              "margin": "4px 0 0 0"}))
    return dbc.Card(
        dbc.CardBody(children, style={"padding": "10px 14px"}),
        style={"borderLeft": f"3px solid {CYAN}"},
        className="mb-2",
    )


def make_chart(fig, height=360, legend_h=True):
    """Apply consistent styling to a Plotly figure."""
    layout = {**CHART_LAYOUT, "height": height}
    if legend_h:
        layout["legend"] = dict(orientation="h", y=1.12, x=0.5, xanchor="center")
    fig.update_layout(**layout)
    return fig


def empty_state(message="データがありません。データハブから CSV を取り込むか、API 接続を確認してください。"):
    return dbc.Alert(message, color="secondary", className="mb-3")
