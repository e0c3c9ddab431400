from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Query, UploadFile
from typing import Dict, List, Optional
import json
import logging
import uuid
from datetime import datetime, timezone
from app.api.deps import get_latest_run, get_tenant_id
from app.core.config import settings
from app.core.ingestion import IngestionError, RowLimitExceeded, load_ledger
from app.core.reconciliation import DuplicateKeyError, reconcile
from app.core.summary import summarize_outcomes
from app.db.memory import APP_STATE
from app.schemas.invoice import InvoiceRecord
from app.schemas.reconciliation import OutcomePage, ReconciliationRunResponse, Remark

router = APIRouter()
logger = logging.getLogger(__name__)


def parse_mapping_field(raw: Optional[str], field_name: str) -> Optional[Dict[str, str]]:
    if not raw:
        return None
    try:
        mapping = json.loads(raw)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail=f"{field_name} must be a JSON object")
    if not isinstance(mapping, dict) or not all(isinstance(v, str) for v in mapping.values()):
        raise HTTPException(status_code=400, detail=f"{field_name} must map field names to header strings")
    return mapping


async def read_ledger(upload: UploadFile, mapping: Optional[Dict[str, str]], max_rows: int, label: str) -> List[InvoiceRecord]:
    content = await upload.read()
    try:
        return load_ledger(upload.filename, content, mapping=mapping, max_rows=max_rows)
    except RowLimitExceeded as e:
        raise HTTPException(status_code=413, detail=f"File {label}: {e}")
    except IngestionError as e:
        raise HTTPException(status_code=400, detail=f"File {label}: {e}")


@router.post("/reconcile/upload", response_model=ReconciliationRunResponse)
async def upload_and_reconcile(
    file_a: UploadFile = File(...),
    file_b: UploadFile = File(...),
    mapping_a: Optional[str] = Form(None),
    mapping_b: Optional[str] = Form(None),
    x_plan: str = Header("BASIC", alias="X-Plan"),
    tenant_id: str = Depends(get_tenant_id)
):
    """
    Ingest two ledgers and reconcile them.
    Column mappings are optional JSON objects (canonical field -> header); headers are matched by alias otherwise.
    """
    if x_plan not in settings.PLAN_LIMITS:
        raise HTTPException(status_code=400, detail=f"Invalid plan '{x_plan}'")
    max_rows = settings.PLAN_LIMITS[x_plan]

    records_a = await read_ledger(file_a, parse_mapping_field(mapping_a, "mapping_a"), max_rows, "A")
    records_b = await read_ledger(file_b, parse_mapping_field(mapping_b, "mapping_b"), max_rows, "B")

    try:
        outcomes = reconcile(records_a, records_b)
    except DuplicateKeyError as e:
        # Ingestion aggregates, so this only fires if aggregation is bypassed
        logger.error(f"Reconciliation rejected for tenant {tenant_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    summary = summarize_outcomes(outcomes)
    run_id = str(uuid.uuid4())

    # Update authoritative central store
    APP_STATE[tenant_id] = {
        "run_id": run_id,
        "file_a": file_a.filename,
        "file_b": file_b.filename,
        "outcomes": outcomes,
        "summary": summary,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

    logger.info(f"Reconciliation run {run_id} stored for tenant: {tenant_id}. Outcomes: {len(outcomes)}")

    return ReconciliationRunResponse(run_id=run_id, summary=summary, outcomes=outcomes)


@router.get("/reconcile/results", response_model=OutcomePage)
async def get_results(
    remark: Optional[Remark] = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    tenant_id: str = Depends(get_tenant_id)
):
    """Pages through the stored outcomes in engine order, optionally filtered by remark."""
    run = get_latest_run(tenant_id)
    outcomes = run["outcomes"]
    if remark is not None:
        outcomes = [o for o in outcomes if o.remark == remark]

    return OutcomePage(
        run_id=run["run_id"],
        total=len(outcomes),
        offset=offset,
        limit=limit,
        outcomes=outcomes[offset:offset + limit]
    )
