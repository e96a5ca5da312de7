from __future__ import annotations

from typing import List

from fastapi import APIRouter, File, HTTPException, UploadFile
from loguru import logger
from pydantic import BaseModel

from advisor.models.records import Position, PreviewRow, ValidationResult
from advisor.services.table_import import (
    TableReadError,
    load_upload,
    parse_table,
    validate_positions,
)

router = APIRouter()  # no prefix

class PasteInput(BaseModel):
    text: str = ""

@router.post("/paste", response_model=ValidationResult, response_model_exclude_none=True)
def import_paste(payload: PasteInput) -> ValidationResult:
    return parse_table(payload.text)

@router.post("/file", response_model=ValidationResult, response_model_exclude_none=True)
async def import_file(file: UploadFile = File(...)) -> ValidationResult:
    content = await file.read()
    try:
        result = load_upload(content, file.filename or "")
    except TableReadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(
        f"Imported {file.filename}: {result.total_imported} valid, {result.total_skipped} skipped"
    )
    return result

@router.post("/positions", response_model=List[Position])
def confirm_positions(rows: List[PreviewRow]) -> List[Position]:
    return validate_positions(rows)
