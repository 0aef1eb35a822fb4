"""KPI pill/card builders using dash-bootstrap-components."""
from dash import html
import dash_bootstrap_components as dbc
from clinic_dashboard.theme import *
from clinic_dashboard.data_state import yen


def _detail(detail):
    return dbc.Accordion([
        dbc.AccordionItem(
            html.P(detail, style={"color": GRAY, "fontSize": "11px", "margin": "0",
                                   "lineHeight": "1.4"}),
            title="詳細",
        ),
    ], start_collapsed=True, flush=True, className="kpi-detail-accordion")


def icon_badge(text, color):
    """Colored 36px icon circle for KPI pills."""
    return html.Div(text, style={
        "width": "36px", "height": "36px", "borderRadius": "50%",
        "background": f"linear-gradient(135deg, {color}, {color}88)",
        "color": "#ffffff",
        "display": "inline-flex", "alignItems": "center", "justifyContent": "center",
        "fontSize": "15px", "fontWeight": "bold", "flexShrink": "0",
        "boxShadow": f"0 3px 10px {color}44",
    })


def delta_badge(ratio):
    """Growth badge: ratio is current/previous*100, 0 means no baseline."""
    if not ratio:
        return html.Span("前期比 —", style={"color": DARKGRAY, "fontSize": "11px"})
    color = GREEN if ratio >= 100 else RED
    return html.Span(f"前期比 {ratio:.1f}%", style={"color": color, "fontSize": "11px",
                                                    "fontWeight": "600"})


def kpi_pill(icon, label, value, color, subtitle="", detail=""):
    """KPI pill with gradient icon, bold value and optional expandable detail."""
    text_children = [
        html.Div(label, style={"color": GRAY, "fontSize": "11px", "fontWeight": "600",
                                "letterSpacing": "1.2px", "lineHeight": "1"}),
        html.Div(value, style={"color": WHITE, "fontSize": "26px", "fontWeight": "bold",
                                "fontFamily": "monospace", "lineHeight": "1.1",
                                "marginTop": "3px",
                                "textShadow": f"0 0 12px {color}33"}),
    ]
    if subtitle:
        sub = subtitle if not isinstance(subtitle, str) else html.Div(
            subtitle, style={"color": DARKGRAY, "fontSize": "11px"})
        text_children.append(html.Div(sub, style={"marginTop": "2px"}))
    if detail:
        text_children.append(_detail(detail))
    return dbc.Card(
        dbc.CardBody([
            icon_badge(icon, color),
            html.Div(text_children, style={"marginLeft": "12px", "minWidth": "0"}),
        ], style={"display": "flex", "alignItems": "center", "padding": "14px 18px"}),
        style={"borderLeft": f"4px solid {color}", "flex": "1", "minWidth": "150px"},
        className="kpi-pill",
    )


def kpi_card(label, value, color, subtitle=""):
    """Simpler centered KPI card (goal totals, repeat stats)."""
    body_children = [
        html.Div(label, className="kpi-label"),
        html.Div(value, className="kpi-value", style={"color": color}),
    ]
    if subtitle:
        body_children.append(html.Div(subtitle, className="kpi-subtitle"))
    return dbc.Card(
        dbc.CardBody(body_children, style={"padding": "14px", "textAlign": "center"}),
        style={"borderTop": f"3px solid {color}", "flex": "1", "minWidth": "130px"},
        className="kpi-card-top",
    )


def kpi_strip(summary, growth=None):
    """Standard revenue / visits / unit-price / new-vs-existing strip."""
    return html.Div([
        kpi_pill("¥", "売上", yen(summary.revenue), CYAN,
                 delta_badge(growth) if growth is not None else ""),
        kpi_pill("#", "来院数", f"{summary.count:,}", GREEN),
        kpi_pill("Ø", "客単価", yen(summary.unit_price), ORANGE),
        kpi_pill("新", "新規", f"{summary.new_count:,}", PATIENT_TYPE_COLORS["new"],
                 f"単価 {yen(summary.unit_price_for('new'))}"),
        kpi_pill("既", "既存", f"{summary.existing_count:,}", PATIENT_TYPE_COLORS["existing"],
                 f"単価 {yen(summary.unit_price_for('existing'))}"),
        kpi_pill("他", "その他", f"{summary.other_count:,}", PATIENT_TYPE_COLORS["other"],
                 yen(summary.other_revenue),
                 detail="ピアス・物販・麻酔針パックの来院は新規/既存とは別に集計します"),
    ], style={"display": "flex", "gap": "12px", "flexWrap": "wrap"}, className="mb-3")
