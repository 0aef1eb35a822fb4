"""Reusable table builders."""
from dash import dash_table, html
from clinic_dashboard.theme import *
from clinic_dashboard.csv_import import FIELD_MAPPING
from clinic_dashboard.data_state import yen, pct


def bucket_table(buckets, key_header, table_id=None, with_share=True):
    """Aggregation buckets as a dark DataTable (revenue, visits, unit price, split)."""
    total = sum(b.revenue for b in buckets)
    rows = []
    for b in buckets:
        row = {
            "label": b.label,
            "revenue": yen(b.revenue),
            "count": b.count,
            "unit_price": yen(b.unit_price),
            "new": b.new_count,
            "existing": b.existing_count,
            "other": b.other_count,
        }
        if with_share:
            row["share"] = pct(b.revenue / total * 100 if total else 0)
        rows.append(row)
    columns = [
        {"name": key_header, "id": "label"},
        {"name": "売上", "id": "revenue"},
        {"name": "件数", "id": "count"},
        {"name": "単価", "id": "unit_price"},
        {"name": "新規", "id": "new"},
        {"name": "既存", "id": "existing"},
        {"name": "その他", "id": "other"},
    ]
    if with_share:
        columns.append({"name": "構成比", "id": "share"})
    return dash_table.DataTable(
        id=table_id or f"tbl-{key_header}",
        columns=columns, data=rows, sort_action="native", page_size=20,
        **TABLE_STYLE,
    )


def findings_table(findings, table_id="findings-table"):
    """Validation findings, errors highlighted."""
    if not findings:
        return html.P("問題は見つかりませんでした。", style={"color": GREEN, "fontSize": "12px"})
    return dash_table.DataTable(
        id=table_id,
        columns=[
            {"name": "行", "id": "row"},
            {"name": "種別", "id": "label"},
            {"name": "内容", "id": "message"},
            {"name": "値", "id": "value"},
            {"name": "重要度", "id": "severity"},
        ],
        data=[f.to_dict() for f in findings],
        page_size=15, sort_action="native",
        style_data_conditional=[
            {"if": {"filter_query": '{severity} = "error"'}, "color": RED},
            {"if": {"filter_query": '{severity} = "warning"'}, "color": ORANGE},
        ],
        **TABLE_STYLE,
    )


def csv_draft_table(table_rows, table_id="csv-draft-table"):
    """Editable draft of an uploaded CSV; cells map back to FIELD_MAPPING headers."""
    columns = [{"name": "行", "id": "row", "editable": False}]
    columns += [{"name": header, "id": header, "editable": True} for header in FIELD_MAPPING]
    columns += [
        {"name": "状態", "id": "status", "editable": False},
        {"name": "", "id": "edited", "editable": False},
        {"name": "メッセージ", "id": "messages", "editable": False},
    ]
    return dash_table.DataTable(
        id=table_id, columns=columns, data=table_rows, page_size=20,
        style_data_conditional=[
            {"if": {"filter_query": '{status} = "エラー"'}, "backgroundColor": "#3a1414"},
            {"if": {"filter_query": '{status} = "警告"'}, "backgroundColor": "#3a2a10"},
        ],
        **TABLE_STYLE,
    )


def ranking_table(rows, columns, table_id):
    return dash_table.DataTable(id=table_id, columns=columns, data=rows, page_size=10,
                                **TABLE_STYLE)
