"""
Screening Pipeline
==================

Orchestrates one analysis request:

    documents ─┬─ extract (worker threads, per document)
               └─ OCR first 8 images per document (if configured)
                          │
                   merged text  ([DOC n] ... [OCR_PAGE_p] ...)
                          │
        ┌─────────────────┼──────────────────┐
    citations         narrative        criminal history
        │
    statute resolution (cache first, one lookup per distinct citation)
        │
    element screening per resolved statute
        │
    AnalysisResult  ──(persist)──> case store

Usage:
    pipeline = get_screening_pipeline()
    result = await pipeline.analyze([RawDocument(pdf_bytes)], persist=False)
    print(result.to_dict()["citations"])

One document, image or citation failing never aborts the batch; it is
recorded and the rest carries on. Only a request that cannot produce any
output (no documents) is rejected.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from app.core.config import Settings, get_settings
from app.core.database import get_session_factory
from app.models.models import CaseStatus
from app.services.screening.case_store import CaseStore, SqlCaseStore
from app.services.screening.citations import detect_citations
from app.services.screening.elements import evaluate_elements
from app.services.screening.models import (
    AnalysisResult,
    DocumentSummary,
    ExtractedContent,
    ExtractionFailure,
    ExtractionOutcome,
    Jurisdiction,
    OCRFailureReason,
    OCRPageFailure,
    RawDocument,
    StatuteEvaluation,
    StatuteFailure,
    StatuteRecord,
)
from app.services.screening.narrative import extract_case_identity, extract_narrative
from app.services.screening.ocr_gateway import OCRGateway, OCRResult
from app.services.screening.pdf_extractor import DocumentExtractor, get_document_extractor
from app.services.screening.priors import parse_criminal_history
from app.services.screening.statute_cache import SqlStatuteCache
from app.services.screening.statute_resolver import StatuteResolver

logger = logging.getLogger(__name__)


class AnalysisRejected(Exception):
    """The request cannot produce any output (e.g. no documents)."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ScreeningPipeline:
    """Runs extraction, detection, resolution and screening for a batch of documents."""

    def __init__(
        self,
        extractor: DocumentExtractor,
        ocr: OCRGateway,
        resolver: StatuteResolver,
        case_store: Optional[CaseStore] = None,
        settings: Optional[Settings] = None,
    ):
        self.extractor = extractor
        self.ocr = ocr
        self.resolver = resolver
        self.case_store = case_store
        self.settings = settings or get_settings()

    # =========================================================================
    # Public API
    # =========================================================================

    async def analyze(self, documents: Sequence[RawDocument], persist: bool = False) -> AnalysisResult:
        """
        Analyze a batch. With persist=True the result is written through the
        case store and result.case_id is set.
        """
        self._check_request(documents, persist)
        result = await self._run(documents)
        if not persist:
            return result

        case_id = await self.case_store.create_case({})
        try:
            await self._store_result(case_id, result)
        except Exception as e:
            await self.case_store.update_status(case_id, CaseStatus.flagged, {"error": str(e) or type(e).__name__})
            raise
        return result

    async def start_case(self, documents: Sequence[RawDocument]) -> str:
        """Create a case in `processing`; run complete_case() afterwards."""
        self._check_request(documents, persist=True)
        return await self.case_store.create_case({})

    async def complete_case(self, case_id: str, documents: Sequence[RawDocument]) -> Optional[AnalysisResult]:
        """
        Background half of an asynchronous case analysis. The case ends
        `completed`, or `flagged` when the analysis fails outright.
        """
        try:
            result = await self._run(documents)
            await self._store_result(case_id, result)
            return result
        except Exception as e:
            logger.exception("Analysis for case %s failed", case_id)
            await self.case_store.update_status(case_id, CaseStatus.flagged, {"error": str(e) or type(e).__name__})
            return None

    # =========================================================================
    # Stages
    # =========================================================================

    def _check_request(self, documents: Sequence[RawDocument], persist: bool):
        if not documents:
            raise AnalysisRejected("no documents submitted")
        limit = self.settings.max_documents_per_request
        if len(documents) > limit:
            raise AnalysisRejected(f"too many documents ({len(documents)}, limit {limit})")
        if persist and self.case_store is None:
            raise AnalysisRejected("case storage is not configured")

    async def _run(self, documents: Sequence[RawDocument]) -> AnalysisResult:
        outcomes: List[ExtractionOutcome] = list(await asyncio.gather(
            *(self._extract(doc) for doc in documents)
        ))
        ocr_results: List[List[OCRResult]] = list(await asyncio.gather(
            *(self._ocr_document(outcome) for outcome in outcomes)
        ))

        summaries: List[DocumentSummary] = []
        parts: List[str] = []
        for index, (document, outcome, ocr_pages) in enumerate(zip(documents, outcomes, ocr_results)):
            summary, text = self._summarize(index, document, outcome, ocr_pages)
            summaries.append(summary)
            parts.append(text)
        merged_text = "".join(parts)

        citations = detect_citations(merged_text)
        narrative = extract_narrative(merged_text)
        priors = parse_criminal_history(merged_text)

        resolvable = [c for c in citations if c.jurisdiction != Jurisdiction.UNKNOWN]
        lookups = await self.resolver.resolve_citations(resolvable)

        statutes: List[StatuteRecord] = []
        failures: List[StatuteFailure] = []
        evaluations: List[StatuteEvaluation] = []
        for lookup in lookups:
            if isinstance(lookup, StatuteFailure):
                failures.append(lookup)
                continue
            statutes.append(lookup)
            evaluations.append(StatuteEvaluation(
                jurisdiction=lookup.jurisdiction,
                code=lookup.normalized_key,
                title=lookup.title,
                url=lookup.url,
                result=evaluate_elements(narrative, lookup.text),
            ))

        logger.info(
            "Analyzed %d documents: %d citations, %d statutes, %d lookup failures, priors=%s",
            len(documents), len(citations), len(statutes), len(failures), priors is not None,
        )
        return AnalysisResult(
            documents=summaries,
            citations=citations,
            narrative=narrative,
            statutes=statutes,
            statute_failures=failures,
            elements=evaluations,
            priors=priors,
            merged_text=merged_text,
        )

    async def _extract(self, document: RawDocument) -> ExtractionOutcome:
        try:
            return await asyncio.to_thread(self.extractor.extract, document)
        except Exception as e:
            logger.exception("Extractor raised on %s", document.file_name or "document")
            return ExtractionFailure(error=str(e) or type(e).__name__, media_type=document.media_type)

    async def _ocr_document(self, outcome: ExtractionOutcome) -> List[OCRResult]:
        # A disabled gateway answers not_configured for each image
        if not isinstance(outcome, ExtractedContent) or not outcome.images:
            return []
        return await self.ocr.recognize_document(outcome.images)

    @staticmethod
    def _summarize(
        index: int,
        document: RawDocument,
        outcome: ExtractionOutcome,
        ocr_pages: List[OCRResult],
    ) -> Tuple[DocumentSummary, str]:
        summary = DocumentSummary(index=index, file_name=document.file_name, media_type=document.media_type)

        if isinstance(outcome, ExtractionFailure):
            logger.warning("Document %d (%s) could not be extracted: %s", index, document.file_name, outcome.error)
            summary.error = outcome.error
            return summary, f"\n\n[DOC {index + 1}]\n\n"

        recognized = [r for r in ocr_pages if r.success]
        ocr_tail = "".join(f"\n\n[OCR_PAGE_{r.page}]\n{r.text}\n" for r in recognized)

        summary.page_count = outcome.page_count
        summary.text_length = len(outcome.text)
        summary.image_count = len(outcome.images)
        summary.ocr_pages = len(recognized)
        summary.ocr_failures = [
            OCRPageFailure(
                page=r.page,
                reason=r.failure_reason or OCRFailureReason.PROVIDER_ERROR,
                details=r.details or ("no text detected" if r.failure_reason is None else None),
            )
            for r in ocr_pages if not r.success
        ]
        summary.scanned = outcome.scanned
        return summary, f"\n\n[DOC {index + 1}]\n{outcome.text}\n{ocr_tail}\n"

    async def _store_result(self, case_id: str, result: AnalysisResult):
        result.case_id = case_id
        for summary in result.documents:
            await self.case_store.record_document(case_id, summary)
        await self.case_store.record_violations(case_id, result.elements)
        if result.priors is not None:
            await self.case_store.record_criminal_history(case_id, result.priors.incidents)

        identity = extract_case_identity(result.merged_text)
        fields: Dict[str, Optional[str]] = {"narrative": result.narrative}
        if identity.case_number:
            fields["case_number"] = identity.case_number
        if identity.defendant_name:
            fields["defendant_name"] = identity.defendant_name
        await self.case_store.update_status(case_id, CaseStatus.completed, fields)


# Singleton instance
_pipeline: Optional[ScreeningPipeline] = None


def get_screening_pipeline() -> ScreeningPipeline:
    """Get the shared pipeline wired to the app database and settings."""
    global _pipeline
    if _pipeline is None:
        settings = get_settings()
        session_factory = get_session_factory()
        _pipeline = ScreeningPipeline(
            extractor=get_document_extractor(),
            ocr=OCRGateway.from_settings(settings),
            resolver=StatuteResolver(cache=SqlStatuteCache(session_factory), settings=settings),
            case_store=SqlCaseStore(session_factory),
            settings=settings,
        )
    return _pipeline


def reset_screening_pipeline():
    """Drop the shared pipeline (after settings or database changes)."""
    global _pipeline
    _pipeline = None
