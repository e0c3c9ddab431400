from typing import Dict, Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Invoice Ledger Reconciliation"
    LOG_LEVEL: str = "INFO"

    # AI assistance (optional, features fall back when unset)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"

    # Matching policy
    FUZZY_VALUE_TOLERANCE: float = 1.0
    EXACT_VALUE_EPSILON: float = 0.001
    DATE_TOLERANCE_DAYS: int = 7
    FUZZY_SCORE_THRESHOLD: int = 2

    # Ingestion
    HEADER_SEARCH_ROWS: int = 10
    PLAN_LIMITS: Dict[str, int] = {
        "BASIC": 1000,
        "PRO": 5000,
        "ENTERPRISE": 20000
    }

    # Reports
    REPORT_DETAIL_LIMIT: int = 100

    class Config:
        case_sensitive = True

settings = Settings()
