"""
Theme constants — colors, chart layout, Bootstrap overrides.
Import from here instead of hardcoding colors anywhere.
"""

# ── Color Palette ────────────────────────────────────────────────────────────
BG = "#0a0a14"
CARD = "#141828"
CARD2 = "#1a1a2e"
GREEN = "#2ecc71"
RED = "#e74c3c"
BLUE = "#3498db"
ORANGE = "#f39c12"
PURPLE = "#9b59b6"
TEAL = "#1abc9c"
PINK = "#e91e8f"
WHITE = "#ffffff"
GRAY = "#aaaaaa"
DARKGRAY = "#666666"
CYAN = "#00d4ff"

# ── Specialty / patient-type colors ──────────────────────────────────────────
SPECIALTY_COLORS = {
    "surgery": PINK,
    "dermatology": CYAN,
    "hair_removal": PURPLE,
    "other": GRAY,
}

PATIENT_TYPE_COLORS = {
    "new": GREEN,
    "existing": BLUE,
    "other": ORANGE,
}

# Cycled for clinics, staff and other open-ended series
SERIES_COLORS = [CYAN, PINK, GREEN, ORANGE, PURPLE, BLUE, TEAL, RED]

# ── Plotly Chart Layout ──────────────────────────────────────────────────────
CHART_LAYOUT = dict(
    template="plotly_dark",
    paper_bgcolor="rgba(0,0,0,0)",
    plot_bgcolor="rgba(0,0,0,0)",
    font={"color": WHITE, "family": "Noto Sans JP, Inter, sans-serif"},
    margin=dict(t=50, b=30, l=60, r=20),
)

# ── Sidebar Dimensions ───────────────────────────────────────────────────────
SIDEBAR_WIDTH = "250px"
CONTENT_MARGIN = "266px"  # sidebar + gap


# ── DataTable styling (dark) ─────────────────────────────────────────────────
TABLE_STYLE = dict(
    style_table={"overflowX": "auto"},
    style_header={"backgroundColor": CARD2, "color": WHITE, "fontWeight": "bold",
                  "border": "1px solid #ffffff15"},
    style_cell={"backgroundColor": CARD, "color": WHITE, "border": "1px solid #ffffff10",
                "fontSize": "12px", "padding": "6px 10px", "textAlign": "left"},
)


def series_color(i):
    return SERIES_COLORS[i % len(SERIES_COLORS)]
