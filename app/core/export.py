import csv
import io
from datetime import date
from typing import Any, Dict, List, Optional, Sequence
from openpyxl import Workbook
from app.schemas.reconciliation import ReconciliationOutcome, Remark

EXPORT_COLUMNS = [
    "Remark",
    "Confidence",
    "GSTIN",
    "Name",
    "Invoice No.",
    "Invoice Date",
    "Taxable Value (File A)",
    "Taxable Value (File B)",
    "Difference",
    "Diff Columns",
]

SHEET_NAME = "Reconciliation Results"


def _format_date(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


def build_export_rows(outcomes: Sequence[ReconciliationOutcome], remark: Optional[Remark] = None) -> List[Dict[str, Any]]:
    """One flat row per outcome, A-side identity fields preferred over B-side."""
    rows = []
    for outcome in outcomes:
        if remark is not None and outcome.remark != remark:
            continue
        a, b = outcome.record_a, outcome.record_b
        value_a = a.taxable_value if a else 0.0
        value_b = b.taxable_value if b else 0.0
        rows.append({
            "Remark": outcome.remark.value,
            "Confidence": outcome.confidence.value if outcome.confidence else "",
            "GSTIN": (a.gstin if a and a.gstin else b.gstin if b else ""),
            "Name": (a.name if a and a.name else b.name if b else ""),
            "Invoice No.": (a.invoice_number if a and a.invoice_number else b.invoice_number if b else ""),
            "Invoice Date": _format_date(a.invoice_date if a and a.invoice_date else b.invoice_date if b else None),
            "Taxable Value (File A)": round(value_a, 2),
            "Taxable Value (File B)": round(value_b, 2),
            "Difference": round(value_a - value_b, 2),
            "Diff Columns": ", ".join(outcome.field_diffs or []),
        })
    return rows


def rows_to_csv(rows: Sequence[Dict[str, Any]]) -> bytes:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    writer.writerows(rows)
    return output.getvalue().encode("utf-8")


def rows_to_xlsx(rows: Sequence[Dict[str, Any]]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SHEET_NAME
    sheet.append(EXPORT_COLUMNS)
    for row in rows:
        sheet.append([row[column] for column in EXPORT_COLUMNS])

    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()
