from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime, timezone
from app.schemas.counterparty import CounterpartySummary
from app.schemas.reconciliation import ReconciliationSummary

# REPORT SCHEMA
# Any changes to this schema must be reflected in BOTH JSON and PDF report formats.

class RunInfo(BaseModel):
    run_id: str
    tenant_id: str
    file_a: str = "-"
    file_b: str = "-"
    reconciled_at: str = "-"

class DiscrepancyDetail(BaseModel):
    key: str
    remark: str
    confidence: Optional[str] = None
    gstin: str
    name: str = "-"
    invoice_number: str = "-"
    taxable_value_a: float = 0.0
    taxable_value_b: float = 0.0
    difference: float = 0.0
    field_diffs: List[str] = []

class ReportAudit(BaseModel):
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    report_id: str
    engine_version: str = "1.0.0"

class ReportResponse(BaseModel):
    run: RunInfo
    summary: ReconciliationSummary
    counterparties: List[CounterpartySummary] = []
    discrepancies: List[DiscrepancyDetail] = []
    audit: ReportAudit
