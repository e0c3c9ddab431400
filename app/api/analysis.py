from fastapi import APIRouter, Depends
from openai import OpenAI
from typing import Optional
from app.api.deps import get_latest_run, get_tenant_id
from app.core.ai import generate_reconciliation_analysis, get_ai_client
from app.schemas.analysis import AnalysisResponse

router = APIRouter()

@router.post("/reconcile/analysis", response_model=AnalysisResponse)
async def analyze_reconciliation(
    tenant_id: str = Depends(get_tenant_id),
    client: Optional[OpenAI] = Depends(get_ai_client)
):
    """
    Narrative summary of the latest run.
    This is a read-only operation and does not alter any outcome.
    """
    run = get_latest_run(tenant_id)
    analysis, source = generate_reconciliation_analysis(run["summary"], client)
    return AnalysisResponse(run_id=run["run_id"], analysis=analysis, source=source, summary=run["summary"])
