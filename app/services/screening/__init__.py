"""
Case Screening Pipeline
=======================

Screens incident reports and criminal-history printouts against the
Utah State Code and the West Valley City Municipal Code.

Architecture:
- Document Extractor: PDF/image bytes -> text + page images
- OCR Gateway: optional provider-backed recognition of page images
- Citation Detector: statute references, jurisdiction by context
- Statute Resolver: cache-first lookup of statute text, validated before caching
- Narrative Extractor: officer narrative / probable cause section
- Element Evaluator: keyword screening of the narrative per statute element
- Criminal-History Parser: incidents and charges from BCI printouts
- Pipeline: sequences the above and hands results to case storage

Usage:
    from app.services.screening import RawDocument, get_screening_pipeline

    pipeline = get_screening_pipeline()
    result = await pipeline.analyze([RawDocument(pdf_bytes)], persist=False)

    for evaluation in result.elements:
        print(evaluation.code, evaluation.result.overall)
"""

from .models import (
    AnalysisResult,
    ChargeRecord,
    Citation,
    DocumentSummary,
    ElementCheck,
    ElementsResult,
    ElementStatus,
    ExtractedContent,
    ExtractedImage,
    ExtractionFailure,
    IncidentRecord,
    Jurisdiction,
    LookupFailureReason,
    OCRFailureReason,
    PriorsSummary,
    RawDocument,
    StatuteEvaluation,
    StatuteFailure,
    StatuteRecord,
)
from .citations import detect_citations, normalize_citation
from .elements import evaluate_elements
from .narrative import extract_case_identity, extract_narrative
from .priors import parse_criminal_history
from .pdf_extractor import DocumentExtractor, get_document_extractor
from .ocr_gateway import OCRGateway, OCRResult
from .statute_cache import InMemoryStatuteCache, SqlStatuteCache
from .statute_resolver import HttpStatuteFetcher, StatuteResolver
from .case_store import SqlCaseStore
from .pipeline import AnalysisRejected, ScreeningPipeline, get_screening_pipeline

__all__ = [
    "AnalysisRejected",
    "AnalysisResult",
    "ChargeRecord",
    "Citation",
    "DocumentExtractor",
    "DocumentSummary",
    "ElementCheck",
    "ElementsResult",
    "ElementStatus",
    "ExtractedContent",
    "ExtractedImage",
    "ExtractionFailure",
    "HttpStatuteFetcher",
    "IncidentRecord",
    "InMemoryStatuteCache",
    "Jurisdiction",
    "LookupFailureReason",
    "OCRFailureReason",
    "OCRGateway",
    "OCRResult",
    "PriorsSummary",
    "RawDocument",
    "ScreeningPipeline",
    "SqlCaseStore",
    "SqlStatuteCache",
    "StatuteEvaluation",
    "StatuteFailure",
    "StatuteRecord",
    "StatuteResolver",
    "detect_citations",
    "evaluate_elements",
    "extract_case_identity",
    "extract_narrative",
    "get_document_extractor",
    "get_screening_pipeline",
    "normalize_citation",
    "parse_criminal_history",
]
