"""Page routing callback — renders the correct page based on URL and header filters."""
import importlib

from dash import html, Input, Output


PAGES = {
    "/": "overview",
    "/sales": "sales",
    "/clinics": "clinics",
    "/treatments": "treatments",
    "/staff": "staff",
    "/demographics": "demographics",
    "/repeat": "repeat",
    "/cross-sell": "cross_sell",
    "/cancellation": "cancellation",
    "/daily": "daily",
    "/goals": "goals",
    "/data-hub": "data_hub",
}


def register_callbacks(app):
    @app.callback(
        Output("page-content", "children"),
        Input("url", "pathname"),
        Input("filter-clinic", "value"),
        Input("filter-months", "value"),
    )
    def route_page(pathname, clinic, months):
        module_name = PAGES.get(pathname or "/")
        if module_name is None:
            return html.Div([
                html.H3("404 — ページが見つかりません", style={"color": "#e74c3c"}),
                html.P(f"'{pathname}' はありません"),
            ], style={"padding": "40px"})
        page = importlib.import_module(f"clinic_dashboard.pages.{module_name}")
        return page.layout({"clinic": clinic, "months": months})
