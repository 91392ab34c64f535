"""
Element Evaluation
==================

Keyword-coincidence screening of a narrative against statute text.

Statute lines carrying an obligation/prohibition phrase ("shall",
"a person", "is guilty"...) are treated as elements. Each element is
reduced to a handful of keyword stems, and the narrative is searched for
them. An element is `met` when at least two stems appear in the narrative;
the overall verdict is `met` when 60% of elements are (rounded down,
minimum one).

This is a screening aid. It does not read meaning, and every result
says so in its notes.
"""

import math
import re
from typing import Dict, List

from app.services.screening.lexicon import (
    ELEMENT_LINE_MAX,
    ELEMENT_LINE_MIN,
    ELEMENT_TRIGGERS,
    EVIDENCE_AFTER,
    EVIDENCE_BEFORE,
    FALLBACK_ELEMENTS,
    IRREGULAR_STEMS,
    MAX_ELEMENTS,
    MAX_EVIDENCE,
    MAX_KEYWORDS,
    MIN_KEYWORD_HITS,
    OVERALL_MET_RATIO,
    SCREENING_NOTE,
    STEM_SUFFIXES,
    STOP_WORDS,
)
from app.services.screening.models import ElementCheck, ElementsResult, ElementStatus

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_TOKEN = re.compile(r"[A-Za-z0-9]+")


def stem(word: str) -> str:
    """Light stemmer: irregular table, one suffix, then a trailing 'e'."""
    word = IRREGULAR_STEMS.get(word, word)
    for suffix in STEM_SUFFIXES:
        if suffix == "s" and word.endswith("ss"):
            break
        if word.endswith(suffix) and len(word) - len(suffix) >= 4:
            word = word[: -len(suffix)]
            break
    if word.endswith("e") and len(word) > 4:
        word = word[:-1]
    return word


def split_elements(statute_text: str) -> List[str]:
    lines = [line.strip() for line in re.split(r"\n+", statute_text or "")]
    lines = [line for line in lines if ELEMENT_LINE_MIN <= len(line) <= ELEMENT_LINE_MAX]

    triggered = [line for line in lines if any(t in line.lower() for t in ELEMENT_TRIGGERS)]
    if triggered:
        return triggered[:MAX_ELEMENTS]
    return lines[:FALLBACK_ELEMENTS]


def keyword_stems(element: str) -> List[str]:
    """Up to 8 distinct stems of the element's non-stop-words (4+ letters)."""
    words = _NON_ALNUM.sub(" ", element.lower()).split()
    stems: List[str] = []
    for word in words:
        if len(word) < 4 or word in STOP_WORDS:
            continue
        stemmed = stem(word)
        if stemmed not in stems:
            stems.append(stemmed)
    return stems[:MAX_KEYWORDS]


def index_narrative(narrative: str) -> Dict[str, int]:
    """Map each stem to the character offset of its first occurrence."""
    first_seen: Dict[str, int] = {}
    for match in _TOKEN.finditer(narrative):
        stemmed = stem(match.group(0).lower())
        first_seen.setdefault(stemmed, match.start())
    return first_seen


def find_evidence(narrative: str, positions: Dict[str, int], keywords: List[str]) -> List[str]:
    """Snippets around the first hit of each matching keyword (at most 3)."""
    snippets: List[str] = []
    for keyword in keywords:
        if keyword not in positions:
            continue
        idx = positions[keyword]
        start = max(0, idx - EVIDENCE_BEFORE)
        end = min(len(narrative), idx + EVIDENCE_AFTER)
        snippets.append(narrative[start:end].strip())
        if len(snippets) >= MAX_EVIDENCE:
            break
    return snippets


def evaluate_elements(narrative: str, statute_text: str) -> ElementsResult:
    """Screen every element of the statute against the narrative."""
    positions = index_narrative(narrative or "")
    checks: List[ElementCheck] = []

    for element in split_elements(statute_text):
        keywords = keyword_stems(element)
        hits = [k for k in keywords if k in positions]
        evidence = find_evidence(narrative, positions, hits)
        status = (
            ElementStatus.MET
            if len(hits) >= MIN_KEYWORD_HITS and evidence
            else ElementStatus.UNCLEAR
        )
        checks.append(ElementCheck(element=element, status=status, keywords=keywords, evidence=evidence))

    met_count = sum(1 for c in checks if c.status == ElementStatus.MET)
    threshold = max(1, math.floor(len(checks) * OVERALL_MET_RATIO))
    overall = ElementStatus.MET if met_count >= threshold else ElementStatus.UNCLEAR

    return ElementsResult(overall=overall, elements=checks, notes=[SCREENING_NOTE])
