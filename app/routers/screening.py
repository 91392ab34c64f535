"""
Screening API Router
====================
Upload documents for statute / criminal-history screening.

Endpoints:
- POST /api/screening/preview          analyze, nothing stored
- POST /api/screening/cases            create a case, analyze in the background
- POST /api/screening/cases?wait=true  create a case and return the full result
- GET  /api/screening/cases/{case_id}  stored case with documents, violations, priors
- GET  /api/screening/statutes/{jurisdiction}/{key}  resolve one citation
- GET  /api/screening/health           service / OCR status
"""

import logging
import mimetypes
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, Field

from app.core.config import get_settings
from app.core.database import get_session_factory
from app.services.screening.case_store import SqlCaseStore
from app.services.screening.citations import normalize_citation
from app.services.screening.models import Jurisdiction, RawDocument, StatuteFailure
from app.services.screening.pipeline import AnalysisRejected, ScreeningPipeline, get_screening_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/screening", tags=["Screening"])


# =============================================================================
# Response Models
# =============================================================================

class CaseSubmitted(BaseModel):
    """Returned when analysis continues in the background."""
    case_id: str
    status: str = "processing"


class StatuteLookupResponse(BaseModel):
    ok: bool
    jurisdiction: str
    normalized_key: str
    statute: Optional[Dict[str, Any]] = None
    failure: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    status: str
    service: str
    ocr: Dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Helpers
# =============================================================================

def get_case_store() -> SqlCaseStore:
    return SqlCaseStore(get_session_factory())


async def _read_documents(files: List[UploadFile]) -> List[RawDocument]:
    settings = get_settings()
    max_bytes = settings.max_upload_size_mb * 1024 * 1024

    documents = []
    for upload in files:
        content = await upload.read()
        if len(content) > max_bytes:
            raise HTTPException(
                status_code=400,
                detail=f"{upload.filename}: file too large (max {settings.max_upload_size_mb}MB)",
            )
        media_type = upload.content_type
        if not media_type or media_type == "application/octet-stream":
            media_type = mimetypes.guess_type(upload.filename or "")[0] or "application/pdf"
        documents.append(RawDocument(content=content, media_type=media_type, file_name=upload.filename))
    return documents


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/preview")
async def preview_analysis(
    files: List[UploadFile] = File(..., description="PDF or image documents"),
    pipeline: ScreeningPipeline = Depends(get_screening_pipeline),
):
    """Analyze documents without storing anything."""
    documents = await _read_documents(files)
    try:
        result = await pipeline.analyze(documents, persist=False)
    except AnalysisRejected as e:
        raise HTTPException(status_code=400, detail=e.message)
    return result.to_dict()


@router.post("/cases", status_code=status.HTTP_202_ACCEPTED)
async def submit_case(
    background_tasks: BackgroundTasks,
    files: List[UploadFile] = File(..., description="PDF or image documents"),
    wait: bool = Query(False, description="Run the analysis before responding"),
    pipeline: ScreeningPipeline = Depends(get_screening_pipeline),
):
    """
    Create a case from the uploaded documents.

    By default the case is returned in `processing` and the analysis runs in
    the background; poll GET /cases/{case_id}. With wait=true the stored
    result is returned directly.
    """
    documents = await _read_documents(files)
    try:
        if wait:
            result = await pipeline.analyze(documents, persist=True)
            return result.to_dict()
        case_id = await pipeline.start_case(documents)
    except AnalysisRejected as e:
        raise HTTPException(status_code=400, detail=e.message)

    background_tasks.add_task(pipeline.complete_case, case_id, documents)
    return CaseSubmitted(case_id=case_id)


@router.get("/cases/{case_id}")
async def get_case(case_id: str, store: SqlCaseStore = Depends(get_case_store)):
    case = await store.get_case(case_id)
    if case is None:
        raise HTTPException(status_code=404, detail="Case not found")
    return case


@router.get("/statutes/{jurisdiction}/{key}", response_model=StatuteLookupResponse)
async def lookup_statute(
    jurisdiction: str,
    key: str,
    pipeline: ScreeningPipeline = Depends(get_screening_pipeline),
):
    """Resolve a single citation, e.g. /statutes/UT/76-6-404."""
    try:
        jur = Jurisdiction(jurisdiction.upper())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown jurisdiction: {jurisdiction}")

    normalized = normalize_citation(key)
    lookup = await pipeline.resolver.resolve(jur, normalized)
    if isinstance(lookup, StatuteFailure):
        return StatuteLookupResponse(
            ok=False, jurisdiction=jur.value, normalized_key=normalized, failure=lookup.to_dict()
        )
    return StatuteLookupResponse(
        ok=True, jurisdiction=jur.value, normalized_key=normalized, statute=lookup.to_dict()
    )


@router.get("/health", response_model=HealthResponse)
async def screening_health(pipeline: ScreeningPipeline = Depends(get_screening_pipeline)):
    return HealthResponse(status="healthy", service="screening", ocr=pipeline.ocr.get_status())
