from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import date
from typing import Optional

class InvoiceRecord(BaseModel):
    """
    One normalized invoice line from a ledger.
    Coercion from raw spreadsheet cells happens in ingestion; records are immutable afterwards.
    """
    model_config = ConfigDict(frozen=True)

    gstin: str = ""
    name: str = ""
    invoice_number: str = ""
    invoice_date: Optional[date] = None
    taxable_value: float = Field(0.0, ge=0)
    row_number: Optional[int] = None

    @field_validator('gstin', 'name', 'invoice_number', mode='before')
    @classmethod
    def coerce_text(cls, v):
        # Spreadsheet cells arrive as numbers or None as often as strings
        if v is None:
            return ""
        return str(v)
