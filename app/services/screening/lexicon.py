"""
Screening Lexicon
=================

Literal phrase tables used by the screening heuristics. Extending a
jurisdiction or tuning a heuristic should only mean editing this file.
"""

# =============================================================================
# Citation detection
# =============================================================================

# Lowercased hints that place a municipal-shaped citation in West Valley City
WVC_CONTEXT_KEYWORDS = (
    "west valley",
    "wvc",
)

# Characters either side of the start of a municipal-shaped match searched for a hint
CITATION_CONTEXT_WINDOW = 80


# =============================================================================
# Narrative headings (first match wins, order matters)
# =============================================================================

NARRATIVE_HEADINGS = (
    r"OFFICER(?:'S)?\s+NARRATIVE",
    r"PROBABLE\s+CAUSE",
    r"NARRATIVE",
)

NARRATIVE_MIN_CHARS = 200
NARRATIVE_MAX_CHARS = 12000


# =============================================================================
# Element evaluation
# =============================================================================

# Phrases marking a statute line as an obligation or prohibition
ELEMENT_TRIGGERS = (
    "commits",
    "is guilty",
    "shall",
    "may not",
    "unlawful",
    "a person",
    "must",
)

STOP_WORDS = frozenset({
    "the", "and", "or", "of", "to", "in", "on", "for", "with", "without",
    "by", "from", "is", "are", "was", "were", "shall", "may", "must", "not",
    "person", "a", "an",
})

# Irregular forms mapped to the stem of their base verb
IRREGULAR_STEMS = {
    "took": "take", "taken": "take", "taking": "take",
    "stole": "steal", "stolen": "steal",
    "struck": "strike", "stricken": "strike",
    "threw": "throw", "thrown": "throw",
    "broke": "break", "broken": "break",
    "drove": "drive", "driven": "drive",
    "fled": "flee", "fought": "fight",
    "held": "hold", "kept": "keep",
    "left": "leave", "sold": "sell",
    "bought": "buy", "brought": "bring",
    "caught": "catch", "gave": "give", "given": "give",
    "knew": "know", "known": "know",
    "made": "make", "paid": "pay",
    "said": "say", "sent": "send",
    "told": "tell", "threatened": "threaten",
    "went": "go", "gone": "go",
    "wrote": "write", "written": "write",
    "stabbed": "stab", "hit": "hit",
}

# Suffixes removed (longest first) while the remainder stays >= 4 chars
STEM_SUFFIXES = ("ing", "ed", "es", "s")

ELEMENT_LINE_MIN = 15
ELEMENT_LINE_MAX = 500
MAX_ELEMENTS = 12
FALLBACK_ELEMENTS = 8
MAX_KEYWORDS = 8
MAX_EVIDENCE = 3
EVIDENCE_BEFORE = 80
EVIDENCE_AFTER = 140
MIN_KEYWORD_HITS = 2
OVERALL_MET_RATIO = 0.6

SCREENING_NOTE = "Screening-only: based on narrative keyword evidence vs statute text."


# =============================================================================
# Statute content validation
# =============================================================================

# Any one of these (lowercased) means the page is site chrome, not a statute
CRITICAL_NAV_PHRASES = (
    "skip to content",
    "skip to main content",
    "skip to navigation",
    "skip navigation",
    "accessibility settings",
    "use the settings button",
    "all legislators",
    "find legislators",
    "view bills",
    "find a bill",
    "utah state legislature",
    "main navigation",
    "site navigation",
    "navigation menu",
    "main menu",
    "site menu",
    "my account",
    "site map",
    "privacy policy",
    "terms of use",
    "house bills",
    "senate bills",
    "quick links",
    "download as pdf",
    "download as rtf",
    "select a title from",
    "select a chapter from",
    "browse by title",
    "browse by chapter",
    "click to view",
    "click to download",
    "click to expand",
    "expand all sections",
    "collapse all sections",
    "legislative calendar",
    "bill status",
    "bill tracking",
)

# Counted case-insensitively; three or more means navigation-dominated
NAVIGATION_KEYWORDS = (
    "Find a Bill",
    "House Bills",
    "Senate Bills",
    "Session Information",
    "Legislative Meetings",
    "Interim Meetings",
    "Utah State Legislature",
    "Bills, Memorials",
    "Quick Links",
    "Legislative Schedule",
    "Skip to content",
    "Main Navigation",
    "Site Navigation",
    "All Legislators",
    "Find Legislators",
    "Keyword Search",
    "Browse by",
)

MAX_NAVIGATION_KEYWORDS = 2
UTAH_MIN_TEXT_LENGTH = 400
WVC_MIN_TEXT_LENGTH = 100
TITLE_MAX_CHARS = 200

# Named entities decoded during markup-to-text conversion
HTML_ENTITIES = {
    "&nbsp;": " ",
    "&lt;": "<",
    "&gt;": ">",
    "&#39;": "'",
    "&quot;": '"',
    # Last, so "&amp;lt;" decodes to "&lt;" and not "<"
    "&amp;": "&",
}


# =============================================================================
# Criminal history
# =============================================================================

CRIMINAL_HISTORY_HEADERS = (
    r"UTAH\s+CRIMINAL\s+HISTORY\s+RECORD",
    r"Criminal\s+History\s+Summary",
    r"Adult\s+Criminal\s+History",
    r"Utah\s+BCI",
    # Inline summary, e.g. "Criminal history - 16 arrests. Convictions: ..."
    r"Criminal\s+History\s*[-–:]",
)

# A history section ends at the next major report heading or document boundary
CRIMINAL_HISTORY_TERMINATORS = (
    r"\n[ \t]*(?:General\s+Offense|Patrol\s+Screening|Officer['’]?s?\s+Actions?"
    r"|EVIDENCE|WITNESSES|(?:OFFICER(?:'S)?\s+)?NARRATIVE|PROBABLE\s+CAUSE"
    r"|END\s+OF\s+REPORT|Involved\s+Persons?|Synopsis)",
    r"\n[ \t]*={3,}",
    r"\[DOC\s+\d+\]",
)

# Inline summaries: "'22 MB RT WVC - 221701631" style year/offense entries
INLINE_YEAR_OFFENSE = r"'(\d{2})\s+([A-Z]{2,}[A-Za-z\s]*?)(?:[-–]|\s+(?:WVC|WJ|Midvale|Salt Lake|Utah))"
INLINE_ARREST_COUNT = r"(\d+)\s+arrests?"
INLINE_CONVICTIONS = r"Convictions?[:\s]+(.+?)(?:\n|$)"
INLINE_OFFENSE_MENTIONS = (
    r"MB\s+RT",
    r"MB\s+theft",
    r"MA\s+obstruction",
    r"MA\s+POCS",
    r"POCS",
    r"possession",
    r"retail\s+theft",
    r"theft",
    r"obstruction",
)
INLINE_LABEL = "Criminal History Summary"
INLINE_CHARGE_MAX_CHARS = 100

# Uppercased prefixes / fragments that open a new charge
CHARGE_HEADER_PREFIXES = ("CHARGE", "OFFENSE LITERAL", "ARRESTING CHARGE")
CHARGE_HEADER_FRAGMENTS = ("CHARGE:",)


# =============================================================================
# Case identity
# =============================================================================

CASE_NUMBER_PATTERN = r"Case\s*(?:No\.?|Number)\s*[:\-]?\s*([A-Za-z0-9\-]+)"
# "Defendant: John Smith" or "Defendant - Smith, John A." ending the line or
# followed by another labelled field. Matched case-sensitively, line by line.
DEFENDANT_PATTERN = (
    r"\b(?:Defendant|DEFENDANT)[ \t]*[:\-][ \t]*"
    r"(?:(?P<last>[A-Z][A-Za-z'\-]+),[ \t]*(?P<first>[A-Z][A-Za-z'\-]+(?:[ \t]+[A-Z][A-Za-z'.\-]*)*)"
    r"|(?P<name>[A-Z][A-Za-z'\-]+(?:[ \t]+[A-Z][A-Za-z'.\-]+)+))"
    r"[ \t]*(?=$|(?:DOB|Date|Address|Case)\b)"
)
