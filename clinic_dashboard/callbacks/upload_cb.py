"""Data Hub callbacks — visit CSV upload, draft editing, commit, API reload."""
import logging

from dash import html, Input, Output, State, no_update
import dash_bootstrap_components as dbc

from clinic_dashboard import csv_import as ci
from clinic_dashboard import data_state as ds
from clinic_dashboard.components.tables import csv_draft_table, findings_table
from clinic_dashboard.theme import *


log = logging.getLogger(__name__)


def _changed_cells(table_rows, parsed_rows):
    """(row_number, field, value) for every cell that differs from the draft."""
    by_number = {r.row_number: r for r in parsed_rows}
    changes = []
    for entry in table_rows or []:
        row = by_number.get(entry.get("row"))
        if row is None:
            continue
        for header, fname in ci.FIELD_MAPPING.items():
            value = entry.get(header)
            value = "" if value is None else str(value)
            if value.strip() != row.raw.get(fname, ""):
                changes.append((row.row_number, fname, value))
    return changes


def commit_blocked(stored):
    """True while there is no draft or any draft row still has an error."""
    if not stored:
        return True
    return ci.row_counts(ci.rows_from_store(stored))["errors"] > 0


def commit_rows(stored):
    """Import the draft into the live dataset; refused while any row has an error."""
    rows = ci.rows_from_store(stored)
    errors = ci.row_counts(rows)["errors"]
    if errors:
        log.info("CSV commit refused: %d rows with errors", errors)
        return dbc.Alert(f"エラーのある行が {errors} 行あります。修正してから取り込んでください。",
                         color="warning")
    records = ci.to_records(rows)
    if not records:
        return dbc.Alert("取り込める行がありません", color="warning")
    state = ds.add_csv_records(records)
    return dbc.Alert(f"{len(records)} 件を取り込みました。合計 {len(state.records):,} 件",
                     color="success")


def register_callbacks(app):
    # ── Visit CSV Upload ──────────────────────────────────────────────────
    @app.callback(
        Output("upload-visits-status", "children"),
        Output("csv-draft-store", "data"),
        Input("upload-visits-csv", "contents"),
        State("upload-visits-csv", "filename"),
        prevent_initial_call=True,
    )
    def upload_visits_csv(contents, filename):
        if contents is None:
            return no_update, no_update
        try:
            rows = ci.parse_upload(contents, filename)
        except ci.CSVImportError as e:
            log.warning("CSV upload rejected (%s): %s", filename, e)
            return dbc.Alert(str(e), color="danger"), None

        counts = ci.row_counts(rows)
        color = "warning" if counts["errors"] else "success"
        return dbc.Alert(
            f"{filename}: {counts['total']} 行を読み込みました "
            f"(エラー {counts['errors']} 行 / 警告 {counts['warnings']} 行)",
            color=color,
        ), ci.rows_to_store(rows)

    # ── Draft preview ─────────────────────────────────────────────────────
    @app.callback(
        Output("csv-draft-container", "children"),
        Input("csv-draft-store", "data"),
    )
    def render_draft(stored):
        if not stored:
            return html.P("CSV をアップロードするとここに表示されます。",
                          style={"color": DARKGRAY, "fontSize": "12px"})
        rows = ci.rows_from_store(stored)
        return html.Div([
            csv_draft_table(ci.rows_to_table(rows)),
            html.H6("検出された問題", style={"color": ORANGE, "marginTop": "12px"}),
            findings_table(ci.all_findings(rows), table_id="csv-findings"),
        ])

    # ── Draft cell edits ──────────────────────────────────────────────────
    @app.callback(
        Output("csv-draft-store", "data", allow_duplicate=True),
        Input("csv-draft-table", "data_timestamp"),
        State("csv-draft-table", "data"),
        State("csv-draft-store", "data"),
        prevent_initial_call=True,
    )
    def edit_draft(_ts, table_rows, stored):
        rows = ci.rows_from_store(stored)
        changes = _changed_cells(table_rows, rows)
        if not changes:
            return no_update
        for row_number, fname, value in changes:
            rows = ci.edit_row(rows, row_number, fname, value)
        return ci.rows_to_store(rows)

    # ── Commit ────────────────────────────────────────────────────────────
    @app.callback(
        Output("csv-commit-btn", "disabled"),
        Input("csv-draft-store", "data"),
    )
    def toggle_commit(stored):
        return commit_blocked(stored)

    @app.callback(
        Output("csv-commit-status", "children"),
        Input("csv-commit-btn", "n_clicks"),
        State("csv-draft-store", "data"),
        prevent_initial_call=True,
    )
    def commit_draft(n_clicks, stored):
        if not n_clicks or not stored:
            return no_update
        return commit_rows(stored)

    # ── API reload ────────────────────────────────────────────────────────
    @app.callback(
        Output("datahub-reload-status", "children"),
        Input("datahub-reload-btn", "n_clicks"),
        prevent_initial_call=True,
    )
    def reload_records(n_clicks):
        if not n_clicks:
            return no_update
        result = ds.reload()
        color = "success" if result["api_connected"] else "warning"
        message = f"{result['records']:,} 件を読み込みました（取得元: {result['source']}）"
        if result["errors"]:
            message += " / " + "; ".join(result["errors"])
        return dbc.Alert(message, color=color)
