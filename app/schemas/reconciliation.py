from enum import Enum
from pydantic import BaseModel, ConfigDict, model_validator
from typing import Optional, List
from app.schemas.invoice import InvoiceRecord
from app.core.config import settings

# Remark labels are exported verbatim; renaming them needs a migration note for consumers.
class Remark(str, Enum):
    MATCH = "Match"
    PARTIALLY_MATCHED = "Partially Matched"
    ONLY_IN_A = "In File A only"
    ONLY_IN_B = "In File B only"

class MatchConfidence(str, Enum):
    HIGH = "High"
    LOW = "Low"

# Field labels used in field_diffs
FIELD_GSTIN = "GSTIN"
FIELD_INVOICE_NUMBER = "Invoice no."
FIELD_NAME = "Name"
FIELD_INVOICE_DATE = "Invoice date"
FIELD_TAXABLE_VALUE = "taxable value"

class MatchPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    value_tolerance: float = 1.0
    value_epsilon: float = 0.001
    date_tolerance_days: int = 7
    name_weight: int = 2
    value_weight: int = 1
    date_weight: int = 1
    score_threshold: int = 2

    @classmethod
    def from_settings(cls) -> "MatchPolicy":
        return cls(
            value_tolerance=settings.FUZZY_VALUE_TOLERANCE,
            value_epsilon=settings.EXACT_VALUE_EPSILON,
            date_tolerance_days=settings.DATE_TOLERANCE_DAYS,
            score_threshold=settings.FUZZY_SCORE_THRESHOLD
        )

class ReconciliationOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    record_a: Optional[InvoiceRecord] = None
    record_b: Optional[InvoiceRecord] = None
    remark: Remark
    confidence: Optional[MatchConfidence] = None
    field_diffs: Optional[List[str]] = None

    @model_validator(mode='after')
    def check_records_present(self):
        if self.record_a is None and self.record_b is None:
            raise ValueError("Outcome must carry at least one record")
        return self

class ReconciliationSummary(BaseModel):
    total_outcomes: int = 0
    records_in_a: int = 0
    records_in_b: int = 0
    matched_count: int = 0
    partially_matched_count: int = 0
    only_in_a_count: int = 0
    only_in_b_count: int = 0
    low_confidence_count: int = 0
    total_value_a: float = 0.0
    total_value_b: float = 0.0
    matched_value: float = 0.0

class ReconciliationRunResponse(BaseModel):
    run_id: str
    status: str = "success"
    summary: ReconciliationSummary
    outcomes: List[ReconciliationOutcome] = []

class OutcomePage(BaseModel):
    run_id: str
    total: int
    offset: int
    limit: int
    outcomes: List[ReconciliationOutcome] = []
