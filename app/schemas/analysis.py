from pydantic import BaseModel
from app.schemas.reconciliation import ReconciliationSummary

class AnalysisResponse(BaseModel):
    run_id: str
    analysis: str
    source: str
    summary: ReconciliationSummary
