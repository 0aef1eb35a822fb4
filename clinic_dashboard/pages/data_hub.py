"""Data Hub page — data source status, API reload, visit CSV import, data checks."""
from dash import html, dcc
import dash_bootstrap_components as dbc

from clinic_dashboard.theme import *
from clinic_dashboard.components.cards import section
from clinic_dashboard.components.tables import findings_table
from clinic_dashboard import data_state as ds
from clinic_dashboard import settings
from clinic_dashboard.validation import validate_records, count_by_type, FINDING_LABELS


# Cap on findings rendered for loaded records
MAX_FINDINGS = 500


def _upload_zone(upload_id, title, icon, description, accept, color=CYAN):
    """Build a single upload dropzone."""
    return dbc.Card(dbc.CardBody([
        html.Div([
            html.Span(icon, style={"fontSize": "32px", "marginBottom": "8px", "display": "block"}),
            html.H5(title, style={"color": color, "fontWeight": "bold", "marginBottom": "4px"}),
            html.P(description, style={"color": GRAY, "fontSize": "12px", "marginBottom": "12px"}),
        ], style={"textAlign": "center"}),
        dcc.Upload(
            id=upload_id,
            children=html.Div([
                html.Span("ドラッグ＆ドロップ または "),
                html.A("ファイルを選択", style={"color": CYAN, "textDecoration": "underline"}),
            ], style={"color": GRAY, "fontSize": "13px"}),
            style={
                "width": "100%", "borderWidth": "2px", "borderStyle": "dashed",
                "borderColor": f"{color}44", "borderRadius": "10px",
                "textAlign": "center", "padding": "20px",
                "cursor": "pointer",
            },
            accept=accept,
            max_size=settings.MAX_CSV_BYTES,
            className="upload-zone",
        ),
    ]), style={"borderTop": f"3px solid {color}"}, className="mb-3")


def _status_line(label, value, color):
    return html.Div([
        html.Span(f"{label}: ", style={"color": GRAY, "fontSize": "13px"}),
        html.Span(value, style={"color": color, "fontSize": "13px"}),
    ])


def _source_status(state):
    source_labels = {"api": "Medical Force API", "snapshot": "ローカルスナップショット",
                     "csv": "CSV 取込", "none": "なし"}
    return section("データソース", [
        _status_line("取得元", source_labels.get(state.source, state.source), CYAN),
        _status_line("API 接続", "接続済み" if state.api_connected else "未接続",
                     GREEN if state.api_connected else ORANGE),
        _status_line("CSV 取込", "あり" if state.csv_loaded else "なし", GRAY),
        _status_line("レコード数", f"{len(state.records):,} 件", WHITE),
        _status_line("院", "、".join(state.clinics()) or "—", WHITE),
        _status_line("最終読込", f"{state.loaded_at:%Y/%m/%d %H:%M}" if state.loaded_at else "—", GRAY),
        *[html.Div(err, style={"color": RED, "fontSize": "11px"}) for err in state.errors],
        dbc.Button("再読込", id="datahub-reload-btn", color="info", size="sm", className="mt-2"),
        dcc.Loading(html.Div(id="datahub-reload-status", className="mt-2")),
    ], CYAN)


def _record_checks(state):
    findings = validate_records(state.records)
    counts = count_by_type(findings)
    summary = html.Div([
        html.Span(f"{FINDING_LABELS[t]} {n:,}件", style={"marginRight": "16px", "fontSize": "12px",
                                                         "color": ORANGE})
        for t, n in counts.items()
    ], className="mb-2")
    return section("データチェック（読込済みレコード）", [
        summary,
        findings_table(findings[:MAX_FINDINGS], table_id="datahub-findings"),
    ], ORANGE)


def layout(filters=None):
    """Build the Data Hub page."""
    state = ds.get_state()

    return html.Div([
        html.P("API から取得したデータの状態確認と、来院 CSV の取り込みを行います。",
               style={"color": GRAY, "fontSize": "13px", "marginBottom": "16px"}),
        dbc.Row([
            dbc.Col(_source_status(state), md=4),
            dbc.Col([
                _upload_zone(
                    "upload-visits-csv",
                    "来院データ CSV",
                    "\U0001f4ca",
                    "見出し: 担当者, 院, 来院日, 施術日, 名前, 年齢, 予約内容, 流入元, 予約経路, "
                    "処置内容, 前受金入金日, 合計, U/C",
                    ".csv",
                    GREEN,
                ),
                html.Div(id="upload-visits-status"),
            ], md=8),
        ], className="g-3 mb-3"),
        section("取込プレビュー（セルを編集すると再検証します）", [
            html.Div(id="csv-draft-container"),
            dbc.Button("取り込む", id="csv-commit-btn", color="success", size="sm", disabled=True,
                       className="mt-2"),
            html.Div(id="csv-commit-status", className="mt-2"),
        ], GREEN),
        dcc.Store(id="csv-draft-store", storage_type="memory"),
        _record_checks(state),
    ])
