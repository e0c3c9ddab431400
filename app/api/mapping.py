from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from openai import OpenAI
from typing import Optional
from app.core.ai import SOURCE_HEURISTIC, get_ai_client, suggest_column_mapping_ai
from app.core.ingestion import CANONICAL_COLUMNS, IngestionError, read_headers, suggest_column_mapping
from app.schemas.mapping import ColumnMappingResponse

router = APIRouter()

@router.post("/column-mapping/suggest", response_model=ColumnMappingResponse)
async def suggest_mapping(
    file: UploadFile = File(...),
    use_ai: bool = Form(False),
    client: Optional[OpenAI] = Depends(get_ai_client)
):
    content = await file.read()
    try:
        header_row_index, headers = read_headers(file.filename, content)
    except IngestionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if use_ai:
        mapping, source = suggest_column_mapping_ai(headers, client)
    else:
        mapping, source = suggest_column_mapping(headers), SOURCE_HEURISTIC

    return ColumnMappingResponse(
        filename=file.filename,
        header_row_index=header_row_index,
        headers=headers,
        mapping=mapping,
        unmapped_fields=[field for field in CANONICAL_COLUMNS if field not in mapping],
        source=source
    )
