from pydantic import BaseModel
from typing import Dict, List

class ColumnMappingResponse(BaseModel):
    filename: str
    header_row_index: int
    headers: List[str]
    mapping: Dict[str, str]
    unmapped_fields: List[str] = []
    source: str = "heuristic"
