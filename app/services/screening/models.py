"""
Screening Data Models
=====================

Data structures passed between the screening components. Everything here
is request-scoped except StatuteRecord, which is what the statute cache
stores.

Per-item failures are carried as values (ExtractionFailure, a failed
OCRResult, StatuteFailure) rather than raised, so one bad document, image
or citation never aborts the rest of an analysis.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


# =============================================================================
# Enums
# =============================================================================

class Jurisdiction(str, Enum):
    """Statute source a citation belongs to."""
    UTAH = "UT"          # Utah State Code (title-chapter-section)
    WVC = "WVC"          # West Valley City Municipal Code
    UNKNOWN = "UNKNOWN"  # Municipal-shaped token with no jurisdiction hint nearby

    @property
    def source_label(self) -> str:
        return JURISDICTION_LABELS[self]


JURISDICTION_LABELS = {
    Jurisdiction.UTAH: "Utah State Code",
    Jurisdiction.WVC: "West Valley City Code",
    Jurisdiction.UNKNOWN: "Unknown",
}


class OCRFailureReason(str, Enum):
    NOT_CONFIGURED = "not_configured"
    RATE_LIMITED = "rate_limited"
    PROVIDER_ERROR = "provider_error"


class LookupFailureReason(str, Enum):
    UNSUPPORTED = "unsupported"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    PARSE_ERROR = "parse_error"
    NETWORK_ERROR = "network_error"


class ElementStatus(str, Enum):
    MET = "met"
    UNCLEAR = "unclear"
    NOT_MET = "not_met"


# =============================================================================
# Documents
# =============================================================================

@dataclass
class RawDocument:
    """One uploaded document. The bytes are consumed once by the extractor."""
    content: bytes
    media_type: str = "application/pdf"
    file_name: Optional[str] = None


@dataclass
class ExtractedImage:
    """A raster image pulled from a document page (1-based page number)."""
    page: int
    data: bytes
    media_type: str = "image/png"


@dataclass
class ExtractedContent:
    """Text and images pulled from one document."""
    text: str
    page_count: int
    images: List[ExtractedImage] = field(default_factory=list)
    method_used: str = "pymupdf"
    scanned: bool = False


@dataclass
class ExtractionFailure:
    """A document that could not be read at all."""
    error: str
    media_type: str = "application/pdf"


ExtractionOutcome = Union[ExtractedContent, ExtractionFailure]


@dataclass
class OCRPageFailure:
    """An image of a document that OCR could not read."""
    page: int
    reason: OCRFailureReason
    details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "reason": self.reason.value,
            "details": self.details,
        }


@dataclass
class DocumentSummary:
    """Per-document line of the analysis result."""
    index: int
    file_name: Optional[str]
    media_type: str
    page_count: int = 0
    text_length: int = 0
    image_count: int = 0
    ocr_pages: int = 0
    ocr_failures: List[OCRPageFailure] = field(default_factory=list)
    scanned: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "file_name": self.file_name,
            "media_type": self.media_type,
            "page_count": self.page_count,
            "text_length": self.text_length,
            "image_count": self.image_count,
            "ocr_pages": self.ocr_pages,
            "ocr_failures": [f.to_dict() for f in self.ocr_failures],
            "scanned": self.scanned,
            "error": self.error,
        }


# =============================================================================
# Citations & Statutes
# =============================================================================

@dataclass(frozen=True)
class Citation:
    """A statute reference detected in merged text."""
    raw: str
    normalized_key: str
    jurisdiction: Jurisdiction
    position: int = 0

    @property
    def dedup_key(self) -> tuple:
        return (self.jurisdiction, self.normalized_key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "raw": self.raw,
            "normalized_key": self.normalized_key,
            "jurisdiction": self.jurisdiction.value,
        }


@dataclass
class StatuteRecord:
    """Validated statute text for one (jurisdiction, key)."""
    jurisdiction: Jurisdiction
    normalized_key: str
    text: str
    url: str
    fetched_at_iso: str
    title: Optional[str] = None
    cached: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jurisdiction": self.jurisdiction.value,
            "normalized_key": self.normalized_key,
            "title": self.title,
            "text": self.text,
            "url": self.url,
            "fetched_at": self.fetched_at_iso,
            "cached": self.cached,
        }


@dataclass
class StatuteFailure:
    """Why a citation could not be resolved."""
    jurisdiction: Jurisdiction
    normalized_key: str
    reason: LookupFailureReason
    details: Optional[str] = None
    url_tried: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jurisdiction": self.jurisdiction.value,
            "normalized_key": self.normalized_key,
            "reason": self.reason.value,
            "details": self.details,
            "url_tried": self.url_tried,
        }


StatuteLookup = Union[StatuteRecord, StatuteFailure]


# =============================================================================
# Element Evaluation
# =============================================================================

@dataclass
class ElementCheck:
    element: str
    status: ElementStatus
    keywords: List[str] = field(default_factory=list)
    evidence: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "element": self.element,
            "status": self.status.value,
            "keywords": list(self.keywords),
            "evidence": list(self.evidence),
        }


@dataclass
class ElementsResult:
    overall: ElementStatus
    elements: List[ElementCheck] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall.value,
            "elements": [e.to_dict() for e in self.elements],
            "notes": list(self.notes),
        }


@dataclass
class StatuteEvaluation:
    """Element screening attached to the statute it was run against."""
    jurisdiction: Jurisdiction
    code: str
    result: ElementsResult
    title: Optional[str] = None
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jurisdiction": self.jurisdiction.value,
            "code": self.code,
            "title": self.title,
            "url": self.url,
            "result": self.result.to_dict(),
        }


# =============================================================================
# Criminal History
# =============================================================================

@dataclass
class ChargeRecord:
    charge_text: str
    offense_tracking_number: Optional[str] = None
    date_of_arrest: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offense_tracking_number": self.offense_tracking_number,
            "date_of_arrest": self.date_of_arrest,
            "charge_text": self.charge_text,
        }


@dataclass
class IncidentRecord:
    label: str
    charges: List[ChargeRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "incident_label": self.label,
            "charges": [c.to_dict() for c in self.charges],
        }


@dataclass
class PriorsSummary:
    incidents: List[IncidentRecord] = field(default_factory=list)

    @property
    def incident_count(self) -> int:
        return len(self.incidents)

    @property
    def charge_count(self) -> int:
        return sum(len(i.charges) for i in self.incidents)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "incident_count": self.incident_count,
            "charge_count": self.charge_count,
            "incidents": [i.to_dict() for i in self.incidents],
        }


# =============================================================================
# Analysis Result
# =============================================================================

@dataclass
class AnalysisResult:
    """Full pipeline output, JSON-serializable through to_dict()."""
    documents: List[DocumentSummary] = field(default_factory=list)
    citations: List[Citation] = field(default_factory=list)
    narrative: str = ""
    statutes: List[StatuteRecord] = field(default_factory=list)
    statute_failures: List[StatuteFailure] = field(default_factory=list)
    elements: List[StatuteEvaluation] = field(default_factory=list)
    priors: Optional[PriorsSummary] = None
    case_id: Optional[str] = None
    merged_text: str = field(default="", repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case_id": self.case_id,
            "documents": [d.to_dict() for d in self.documents],
            "citations": [c.to_dict() for c in self.citations],
            "narrative": self.narrative,
            "statutes": [s.to_dict() for s in self.statutes],
            "statute_failures": [f.to_dict() for f in self.statute_failures],
            "elements": [e.to_dict() for e in self.elements],
            "priors": self.priors.to_dict() if self.priors else None,
        }
