"""
Criminal-History Parsing
========================

Pulls incidents and charges out of a Utah criminal-history printout
embedded in the merged text.

Only a clearly headed section is read (UTAH CRIMINAL HISTORY RECORD,
Criminal History Summary, Adult Criminal History, Utah BCI, or an inline
"Criminal history -" summary); no header means no priors. The section runs
until the next major report heading (NARRATIVE, EVIDENCE, END OF REPORT,
a ===== rule, ...) or the next [DOC n] boundary.

A section with "Incident N of M" markers is split on them and each block
is scanned line by line:

    Date of Arrest: ...        -> pending arrest date
    Offense Tracking # ...     -> pending tracking number
    CHARGE: ... / OFFENSE LITERAL ... -> flush previous charge, start a new one
    anything else              -> appended to the charge in progress

The charge in progress is also flushed at the end of the block. Pending
fields travel with the charge they are flushed with, then reset.

A section without markers is read as an inline summary ("16 arrests.
Convictions: '22 MB RT WVC - 221701631, ...") and reported as a single
"Criminal History Summary" incident.
"""

import logging
import re
from typing import List, Optional, Tuple

from app.services.screening.lexicon import (
    CHARGE_HEADER_FRAGMENTS,
    CHARGE_HEADER_PREFIXES,
    CRIMINAL_HISTORY_HEADERS,
    CRIMINAL_HISTORY_TERMINATORS,
    INLINE_ARREST_COUNT,
    INLINE_CHARGE_MAX_CHARS,
    INLINE_CONVICTIONS,
    INLINE_LABEL,
    INLINE_OFFENSE_MENTIONS,
    INLINE_YEAR_OFFENSE,
)
from app.services.screening.models import ChargeRecord, IncidentRecord, PriorsSummary

logger = logging.getLogger(__name__)

SECTION_HEADERS = tuple(re.compile(h, re.IGNORECASE) for h in CRIMINAL_HISTORY_HEADERS)
SECTION_END = re.compile("|".join(CRIMINAL_HISTORY_TERMINATORS), re.IGNORECASE)
INCIDENT_MARKER = re.compile(r"Incident\s+(\d+)\s+of\s+(\d+)", re.IGNORECASE)
ARREST_DATE = re.compile(r"Date\s+of\s+Arrest\s*[:\-]?\s*(.+)$", re.IGNORECASE)
TRACKING_NUMBER = re.compile(r"Offense\s+Tracking\s*#\s*(?:\(OTN\))?\s*[:\-]?\s*(.+)$", re.IGNORECASE)

YEAR_OFFENSE = re.compile(INLINE_YEAR_OFFENSE, re.IGNORECASE)
ARREST_COUNT = re.compile(INLINE_ARREST_COUNT, re.IGNORECASE)
CONVICTIONS = re.compile(INLINE_CONVICTIONS, re.IGNORECASE)
OFFENSE_MENTIONS = tuple(re.compile(p, re.IGNORECASE) for p in INLINE_OFFENSE_MENTIONS)


def find_history_section(text: str) -> Optional[str]:
    """Text from the first recognized section header to the next terminator, or None."""
    for header in SECTION_HEADERS:
        match = header.search(text)
        if match:
            end = SECTION_END.search(text, match.end())
            return text[match.start():end.start() if end else len(text)]
    return None


def is_charge_header(line: str) -> bool:
    upper = line.upper()
    return upper.startswith(CHARGE_HEADER_PREFIXES) or any(f in upper for f in CHARGE_HEADER_FRAGMENTS)


def parse_incident_block(block: str) -> List[ChargeRecord]:
    lines = [line.strip() for line in re.split(r"\n+", block)]
    lines = [line for line in lines if line]

    charges: List[ChargeRecord] = []
    current: List[str] = []
    arrest_date: Optional[str] = None
    tracking: Optional[str] = None

    def flush():
        nonlocal current, arrest_date, tracking
        if not current:
            return
        charges.append(ChargeRecord(
            charge_text=" ".join(current).strip(),
            offense_tracking_number=tracking,
            date_of_arrest=arrest_date,
        ))
        current = []
        arrest_date = None
        tracking = None

    for line in lines:
        date_match = ARREST_DATE.search(line)
        tracking_match = TRACKING_NUMBER.search(line)

        if is_charge_header(line):
            flush()
            current = [line]
            if date_match:
                arrest_date = date_match.group(1).strip()
            if tracking_match:
                tracking = tracking_match.group(1).strip()
            continue

        if date_match:
            arrest_date = date_match.group(1).strip()
            continue
        if tracking_match:
            tracking = tracking_match.group(1).strip()
            continue

        if current:
            current.append(line)

    flush()
    return charges


def _offense_mentions(section: str) -> List[ChargeRecord]:
    spans: List[Tuple[int, int]] = []
    found: List[Tuple[int, str]] = []
    for pattern in OFFENSE_MENTIONS:
        for match in pattern.finditer(section):
            if any(match.start() < end and start < match.end() for start, end in spans):
                continue
            spans.append(match.span())
            found.append((match.start(), match.group(0).strip()))
    return [ChargeRecord(charge_text=text) for _, text in sorted(found)]


def parse_inline_history(section: str) -> List[ChargeRecord]:
    """
    Charges from a free-text history summary: quoted-year offense entries,
    then (when there are none) offense words or the bare arrest count, then
    any comma-separated Convictions: entries not already listed.
    """
    charges = [
        ChargeRecord(charge_text=m.group(2).strip(), date_of_arrest=f"20{m.group(1)}")
        for m in YEAR_OFFENSE.finditer(section)
    ]

    if not charges:
        arrests = ARREST_COUNT.search(section)
        if arrests:
            charges = _offense_mentions(section)
            count = int(arrests.group(1))
            if not charges and count > 0:
                charges = [ChargeRecord(charge_text=f"{count} prior arrests on record")]

    for convictions in CONVICTIONS.finditer(section):
        for part in convictions.group(1).split(","):
            entry = part.strip()
            if len(entry) <= 3:
                continue
            if any(c.charge_text in entry or entry[:10] in c.charge_text for c in charges):
                continue
            charges.append(ChargeRecord(charge_text=entry[:INLINE_CHARGE_MAX_CHARS]))
    return charges


def parse_criminal_history(text: str) -> Optional[PriorsSummary]:
    """
    Parse incidents from the criminal-history section.
    Returns None when there is no section or it yields no charges.
    """
    section = find_history_section(text or "")
    if section is None:
        return None

    markers = list(INCIDENT_MARKER.finditer(section))
    incidents: List[IncidentRecord] = []
    for i, marker in enumerate(markers):
        end = markers[i + 1].start() if i + 1 < len(markers) else len(section)
        charges = parse_incident_block(section[marker.start():end])
        if not charges:
            continue
        incidents.append(IncidentRecord(label=f"Incident {marker.group(1)} of {marker.group(2)}", charges=charges))

    if not markers:
        charges = parse_inline_history(section)
        if charges:
            incidents.append(IncidentRecord(label=INLINE_LABEL, charges=charges))

    if not incidents:
        logger.info("Criminal history section found but no charges parsed")
        return None
    return PriorsSummary(incidents=incidents)
