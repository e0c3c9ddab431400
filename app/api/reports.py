from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response, StreamingResponse
from typing import Optional
import uuid
import logging
import io
from reportlab.lib.pagesizes import A4, landscape
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib import colors
from app.api.deps import get_latest_run, get_tenant_id
from app.core.config import settings
from app.core.export import build_export_rows, rows_to_csv, rows_to_xlsx
from app.core.summary import aggregate_counterparties
from app.schemas.reconciliation import Remark
from app.schemas.report import ReportResponse, RunInfo, DiscrepancyDetail, ReportAudit

router = APIRouter()
logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

TABLE_STYLE = TableStyle([
    ('BACKGROUND', (0, 0), (-1, 0), colors.navy),
    ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
    ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
    ('FONTSIZE', (0, 0), (-1, -1), 8),
    ('GRID', (0, 0), (-1, -1), 0.5, colors.grey)
])


def build_report(tenant_id: str) -> ReportResponse:
    """Aggregates report data for the JSON and PDF endpoints."""
    run = get_latest_run(tenant_id)
    outcomes = run["outcomes"]

    discrepancies = []
    for outcome in outcomes:
        if outcome.remark == Remark.MATCH:
            continue
        if len(discrepancies) >= settings.REPORT_DETAIL_LIMIT:
            break
        a, b = outcome.record_a, outcome.record_b
        record = a or b
        value_a = a.taxable_value if a else 0.0
        value_b = b.taxable_value if b else 0.0
        discrepancies.append(DiscrepancyDetail(
            key=outcome.key,
            remark=outcome.remark.value,
            confidence=outcome.confidence.value if outcome.confidence else None,
            gstin=record.gstin or "-",
            name=record.name or "-",
            invoice_number=record.invoice_number or "-",
            taxable_value_a=round(value_a, 2),
            taxable_value_b=round(value_b, 2),
            difference=round(value_a - value_b, 2),
            field_diffs=outcome.field_diffs or []
        ))

    return ReportResponse(
        run=RunInfo(
            run_id=run["run_id"],
            tenant_id=tenant_id,
            file_a=run.get("file_a") or "-",
            file_b=run.get("file_b") or "-",
            reconciled_at=run.get("timestamp", "-")
        ),
        summary=run["summary"],
        counterparties=aggregate_counterparties(outcomes),
        discrepancies=discrepancies,
        audit=ReportAudit(report_id=str(uuid.uuid4()))
    )


def render_pdf(report: ReportResponse) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=landscape(A4))
    styles = getSampleStyleSheet()
    elements = []

    # 1. Header & Run Info
    elements.append(Paragraph("Invoice Reconciliation Report", styles['Title']))
    elements.append(Spacer(1, 12))
    elements.append(Paragraph(f"<b>Tenant ID:</b> {report.run.tenant_id}", styles['Normal']))
    elements.append(Paragraph(f"<b>File A:</b> {report.run.file_a} &nbsp; <b>File B:</b> {report.run.file_b}", styles['Normal']))
    elements.append(Paragraph(f"<b>Generated:</b> {report.audit.generated_at.strftime('%Y-%m-%d %H:%M:%S')}", styles['Normal']))
    elements.append(Spacer(1, 24))

    # 2. Summary Table
    summary = report.summary
    elements.append(Paragraph("Reconciliation Summary", styles['Heading2']))
    summary_data = [
        ["Metric", "Value"],
        ["Records in File A", str(summary.records_in_a)],
        ["Records in File B", str(summary.records_in_b)],
        ["Matched", str(summary.matched_count)],
        ["Partially Matched", f"{summary.partially_matched_count} ({summary.low_confidence_count} low confidence)"],
        ["In File A only", str(summary.only_in_a_count)],
        ["In File B only", str(summary.only_in_b_count)],
        ["Total Value (File A)", f"Rs. {summary.total_value_a:.2f}"],
        ["Total Value (File B)", f"Rs. {summary.total_value_b:.2f}"],
        ["Matched Value", f"Rs. {summary.matched_value:.2f}"]
    ]
    summary_table = Table(summary_data, colWidths=[200, 200])
    summary_table.setStyle(TABLE_STYLE)
    elements.append(summary_table)
    elements.append(Spacer(1, 24))

    # 3. Counterparties
    if report.counterparties:
        elements.append(Paragraph("Counterparties", styles['Heading2']))
        rows = [["GSTIN", "Name", "Match", "Partial", "A only", "B only", "Value Gap", "Risk"]]
        for c in report.counterparties[:25]:
            rows.append([c.gstin, c.name[:40], str(c.matched_count), str(c.partially_matched_count),
                         str(c.only_in_a_count), str(c.only_in_b_count), f"{c.value_gap:.2f}", c.risk_level.value])
        table = Table(rows, repeatRows=1)
        table.setStyle(TABLE_STYLE)
        elements.append(table)
        elements.append(Spacer(1, 24))

    # 4. Discrepancies
    if report.discrepancies:
        elements.append(Paragraph("Discrepancies", styles['Heading2']))
        rows = [["Remark", "GSTIN", "Invoice No.", "Value A", "Value B", "Difference", "Diff Columns"]]
        for d in report.discrepancies:
            remark = f"{d.remark} (Low)" if d.confidence == "Low" else d.remark
            rows.append([remark, d.gstin, d.invoice_number, f"{d.taxable_value_a:.2f}",
                         f"{d.taxable_value_b:.2f}", f"{d.difference:.2f}", ", ".join(d.field_diffs)])
        table = Table(rows, repeatRows=1)
        table.setStyle(TABLE_STYLE)
        elements.append(table)

    elements.append(Spacer(1, 48))
    footer_text = "Generated by the invoice reconciliation engine. Low confidence pairings require manual review."
    elements.append(Paragraph(footer_text, ParagraphStyle(name='Footer', fontSize=8, textColor=colors.grey, alignment=1)))

    doc.build(elements)
    return buffer.getvalue()


@router.get("/reports/reconciliation", response_model=ReportResponse)
async def get_reconciliation_report(tenant_id: str = Depends(get_tenant_id)):
    logger.info(f"JSON Report requested for tenant: {tenant_id}")
    return build_report(tenant_id)


@router.get("/reports/reconciliation/pdf")
async def get_reconciliation_pdf(tenant_id: str = Depends(get_tenant_id)):
    logger.info(f"PDF Report Generation STARTED for tenant: {tenant_id}")
    report = build_report(tenant_id)

    try:
        pdf_bytes = render_pdf(report)
    except Exception as e:
        logger.error(f"PDF Build Failed: {str(e)}")
        raise HTTPException(status_code=500, detail="PDF generation failed during document build.")

    return StreamingResponse(
        io.BytesIO(pdf_bytes),
        media_type="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename=Reconciliation_Report_{report.run.run_id[:8]}.pdf",
            "Content-Length": str(len(pdf_bytes))
        }
    )


@router.get("/reports/reconciliation/export")
async def export_reconciliation(
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    remark: Optional[Remark] = Query(None),
    tenant_id: str = Depends(get_tenant_id)
):
    run = get_latest_run(tenant_id)
    rows = build_export_rows(run["outcomes"], remark)
    suffix = "all" if remark is None else remark.name.lower()
    filename = f"reconciliation_{suffix}_{run['run_id'][:8]}.{format}"

    if format == "xlsx":
        content, media_type = rows_to_xlsx(rows), XLSX_MEDIA_TYPE
    else:
        content, media_type = rows_to_csv(rows), "text/csv"

    logger.info(f"Exported {len(rows)} rows as {format} for tenant: {tenant_id}")
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
