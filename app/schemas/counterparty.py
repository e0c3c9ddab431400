from enum import Enum
from pydantic import BaseModel

class RiskLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

class CounterpartySummary(BaseModel):
    gstin: str
    name: str = "-"
    total_outcomes: int
    matched_count: int
    partially_matched_count: int
    only_in_a_count: int
    only_in_b_count: int
    value_a: float
    value_b: float
    value_gap: float
    risk_level: RiskLevel
