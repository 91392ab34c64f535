"""
Narrative and case-identity extraction from merged document text.
"""

import re
from dataclasses import dataclass
from typing import Optional

from app.services.screening.lexicon import (
    CASE_NUMBER_PATTERN,
    DEFENDANT_PATTERN,
    NARRATIVE_HEADINGS,
    NARRATIVE_MAX_CHARS,
    NARRATIVE_MIN_CHARS,
)

NARRATIVE_PATTERNS = tuple(
    re.compile(
        rf"{heading}[\s\S]{{0,80}}\n([\s\S]{{{NARRATIVE_MIN_CHARS},{NARRATIVE_MAX_CHARS}}})",
        re.IGNORECASE,
    )
    for heading in NARRATIVE_HEADINGS
)

_CASE_NUMBER = re.compile(CASE_NUMBER_PATTERN, re.IGNORECASE)
_DEFENDANT = re.compile(DEFENDANT_PATTERN, re.MULTILINE)


def extract_narrative(text: str) -> str:
    """
    The officer narrative / probable-cause section, or the first 12000
    characters of the text when no heading frames one.
    """
    for pattern in NARRATIVE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return text[:NARRATIVE_MAX_CHARS].strip()


@dataclass
class CaseIdentity:
    case_number: Optional[str] = None
    defendant_name: Optional[str] = None


def extract_case_identity(text: str) -> CaseIdentity:
    """Case number and defendant name, when the report states them."""
    identity = CaseIdentity()
    case_match = _CASE_NUMBER.search(text)
    if case_match:
        identity.case_number = case_match.group(1)
    defendant_match = _DEFENDANT.search(text)
    if defendant_match:
        if defendant_match.group("last"):
            identity.defendant_name = f"{defendant_match.group('last')}, {defendant_match.group('first')}"
        else:
            identity.defendant_name = defendant_match.group("name")
    return identity
