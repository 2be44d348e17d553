from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, UploadFile

from hwpreader.core.config import load_settings
from hwpreader.core.errors import HwpParseError
from hwpreader.core.schemas import Document, ParseErrorResponse, TextResponse
from hwpreader.utils.file_reader import extract_from_file, parse_from_file

router = APIRouter(prefix="/hwp", tags=["hwp"])
logger = logging.getLogger(__name__)

_ERROR_RESPONSES = {422: {"model": ParseErrorResponse, "description": "문서 해석 실패"}}


@router.post("/parse", response_model=Document, responses=_ERROR_RESPONSES)
async def parse_document(file: UploadFile):
    try:
        return await parse_from_file(file)
    except HTTPException:
        raise
    except HwpParseError as e:
        raise HTTPException(422, detail=e.to_dict())
    except Exception as e:
        logger.exception("HWP 파싱 중 오류: filename=%s", getattr(file, "filename", None))
        raise HTTPException(500, detail=str(e))


@router.post("/text", response_model=TextResponse, responses=_ERROR_RESPONSES)
async def extract_text(file: UploadFile):
    try:
        return await extract_from_file(file)
    except HTTPException:
        raise
    except HwpParseError as e:
        raise HTTPException(422, detail=e.to_dict())
    except Exception as e:
        logger.exception("텍스트 추출 중 오류: filename=%s", getattr(file, "filename", None))
        raise HTTPException(500, detail=str(e))


@router.get("/settings")
async def get_settings():
    settings = load_settings()
    return {
        "supported_version": str(settings.supported_version),
        "version_policy": settings.version_policy.value,
        "section_workers": settings.section_workers,
        "parse_timeout": settings.parse_timeout,
    }
