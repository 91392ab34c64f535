"""
Citation Detection
Finds statute-citation-shaped tokens in merged document text.

Two independent regex passes run over the same text:

- Utah State Code: title-chapter-section, e.g. 76-6-404, 41-6a-502, 76-5-109.1
- West Valley City Code: short numeric triples, e.g. 9-1-101, tagged WVC only
  when "west valley"/"wvc" appears within 80 characters, otherwise UNKNOWN

The same substring may match both passes; both results are kept.
"""

import logging
import re
from typing import List

from app.services.screening.lexicon import CITATION_CONTEXT_WINDOW, WVC_CONTEXT_KEYWORDS
from app.services.screening.models import Citation, Jurisdiction

logger = logging.getLogger(__name__)

_DASH = r"[\-–—]"

UTAH_CODE_PATTERN = re.compile(
    rf"\b(\d{{1,3}}[a-z]?)[ \t]*{_DASH}[ \t]*(\d{{1,4}}[a-z]?)[ \t]*{_DASH}[ \t]*(\d{{1,4}}(?:\.\d+)?)\b",
    re.IGNORECASE,
)

MUNICIPAL_CODE_PATTERN = re.compile(
    rf"\b(\d{{1,2}})[ \t]*{_DASH}[ \t]*(\d{{1,3}})[ \t]*{_DASH}[ \t]*(\d{{1,4}})\b"
)

_WHITESPACE = re.compile(r"\s+")
_DASHES = re.compile(r"[–—]")


def normalize_citation(raw: str) -> str:
    """Strip whitespace and turn en/em dashes into plain hyphens."""
    return _DASHES.sub("-", _WHITESPACE.sub("", raw)).lower()


def _municipal_jurisdiction(text: str, start: int) -> Jurisdiction:
    window = text[max(0, start - CITATION_CONTEXT_WINDOW): start + CITATION_CONTEXT_WINDOW].lower()
    if any(keyword in window for keyword in WVC_CONTEXT_KEYWORDS):
        return Jurisdiction.WVC
    return Jurisdiction.UNKNOWN


def detect_citations(text: str) -> List[Citation]:
    """
    Return deduplicated citations in first-occurrence order.

    Duplicates are judged on (jurisdiction, normalized key); the first
    occurrence wins. On equal positions the Utah pass sorts first.
    """
    if not text:
        return []

    found: List[tuple] = []

    for match in UTAH_CODE_PATTERN.finditer(text):
        raw = match.group(0)
        found.append((match.start(), 0, Citation(raw, normalize_citation(raw), Jurisdiction.UTAH, match.start())))

    for match in MUNICIPAL_CODE_PATTERN.finditer(text):
        raw = match.group(0)
        jurisdiction = _municipal_jurisdiction(text, match.start())
        found.append((match.start(), 1, Citation(raw, normalize_citation(raw), jurisdiction, match.start())))

    found.sort(key=lambda item: (item[0], item[1]))

    seen = set()
    citations: List[Citation] = []
    for _, _, citation in found:
        if citation.dedup_key in seen:
            continue
        seen.add(citation.dedup_key)
        citations.append(citation)

    logger.debug("Detected %d citations", len(citations))
    return citations
