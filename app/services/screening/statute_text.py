"""
Statute page text handling: markup to plain text, title, and the
content-sanity check that decides whether a fetched page may be cached.
"""

import re
from typing import Optional

from bs4 import BeautifulSoup

from app.services.screening.lexicon import (
    CRITICAL_NAV_PHRASES,
    HTML_ENTITIES,
    MAX_NAVIGATION_KEYWORDS,
    NAVIGATION_KEYWORDS,
    TITLE_MAX_CHARS,
    UTAH_MIN_TEXT_LENGTH,
    WVC_MIN_TEXT_LENGTH,
)
from app.services.screening.models import Jurisdiction

_BLOCKS = re.compile(r"<(script|style|nav|header|footer|noscript)\b[^>]*>[\s\S]*?</\1\s*>", re.IGNORECASE)
_SOURCE_NEWLINES = re.compile(r"[\r\n]+")
_LINE_BREAKS = re.compile(r"<br\s*/?>|</p\s*>|</li\s*>|</tr\s*>|</h[1-6]\s*>|</div\s*>", re.IGNORECASE)
_TAGS = re.compile(r"<[^>]+>")
_INLINE_SPACE = re.compile(r"[ \t]+")
_BLANK_RUNS = re.compile(r"\n\s+\n")
_SUBSECTION_MARKER = re.compile(r"\(\d+\)|\([a-z]\)|\([ivx]+\)", re.IGNORECASE)

# Containers inside #secdiv that are page furniture, not statute text
_SECDIV_NOISE = (
    "nav, header, footer, script, style, noscript, iframe, .nav, .menu, .breadcrumb, "
    ".breadcrumbs, .download, .downloads, .sidebar, .navigation, #toc, .toc"
)


def html_to_text(html: str) -> str:
    """
    Reduce markup to plain text: drop script/style (and page chrome) blocks,
    turn line-break and paragraph boundaries into newlines, strip tags,
    decode the common named entities and collapse whitespace runs.
    """
    text = _BLOCKS.sub(" ", html or "")
    text = _SOURCE_NEWLINES.sub(" ", text)
    text = _LINE_BREAKS.sub("\n", text)
    text = _TAGS.sub(" ", text)
    for entity, replacement in HTML_ENTITIES.items():
        text = text.replace(entity, replacement)
    text = _INLINE_SPACE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _BLANK_RUNS.sub("\n\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def statute_body_html(html: str) -> str:
    """
    The Utah Legislature puts section text in a #secdiv container;
    return its inner markup when present, else the whole page.
    """
    soup = BeautifulSoup(html, "html.parser")
    secdiv = soup.select_one("#secdiv")
    if secdiv is None:
        return html
    for noise in secdiv.select(_SECDIV_NOISE):
        noise.decompose()
    return secdiv.decode_contents()


def first_line(text: str) -> Optional[str]:
    """First non-empty line, truncated to 200 characters."""
    for line in text.split("\n"):
        line = line.strip()
        if line:
            return line[:TITLE_MAX_CHARS]
    return None


def validate_statute_text(jurisdiction: Jurisdiction, text: str) -> Optional[str]:
    """
    Return None when the text looks like real statute content, otherwise a
    short reason. Rejected text must never reach the cache.
    """
    min_length = UTAH_MIN_TEXT_LENGTH if jurisdiction == Jurisdiction.UTAH else WVC_MIN_TEXT_LENGTH
    if len(text) <= min_length:
        return f"text too short ({len(text)} chars, need more than {min_length})"

    lowered = text.lower()
    for phrase in CRITICAL_NAV_PHRASES:
        if phrase in lowered:
            return f"navigation phrase present: {phrase!r}"

    if jurisdiction != Jurisdiction.UTAH:
        return None

    nav_hits = sum(1 for keyword in NAVIGATION_KEYWORDS if keyword.lower() in lowered)
    if nav_hits > MAX_NAVIGATION_KEYWORDS:
        return f"navigation-dominated ({nav_hits} navigation keywords)"

    if not _SUBSECTION_MARKER.search(text):
        return "no subsection markers"

    return None
