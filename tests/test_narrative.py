"""
Tests for narrative and case identity extraction.
"""
import pytest

from app.services.screening.narrative import extract_case_identity, extract_narrative


BODY = "The officer observed the suspect leave the store with merchandise. " * 5


class TestNarrative:
    """Heading patterns and fallback."""

    def test_officer_narrative_heading(self):
        text = f"HEADER STUFF\nOFFICER'S NARRATIVE\n{BODY}"
        assert extract_narrative(text) == BODY.strip()

    def test_officer_narrative_preferred_over_probable_cause(self):
        text = f"PROBABLE CAUSE\nshort\nOFFICER NARRATIVE\n{BODY}"
        assert extract_narrative(text) == BODY.strip()

    def test_probable_cause_heading(self):
        text = f"Probable Cause Statement:\n{BODY}"
        assert extract_narrative(text) == BODY.strip()

    def test_heading_case_insensitive(self):
        text = f"narrative\n{BODY}"
        assert extract_narrative(text) == BODY.strip()

    def test_short_section_falls_back_to_prefix(self):
        text = "  NARRATIVE\nToo short to count.\n"
        assert extract_narrative(text) == text.strip()

    def test_fallback_is_first_12000_chars(self):
        text = "  " + ("x" * 20000)
        narrative = extract_narrative(text)
        assert narrative == ("  " + "x" * 20000)[:12000].strip()
        assert len(narrative) == 11998

    def test_section_capped_at_12000(self):
        text = "PROBABLE CAUSE\n" + ("y" * 15000)
        assert len(extract_narrative(text)) == 12000


class TestCaseIdentity:
    """Case number and defendant parsing."""

    def test_case_number_and_defendant(self):
        identity = extract_case_identity("Case No. 24-123456\nDefendant: Jane O'Neil\n")
        assert identity.case_number == "24-123456"
        assert identity.defendant_name == "Jane O'Neil"

    def test_case_number_variant(self):
        assert extract_case_identity("Case Number: WV2024-77").case_number == "WV2024-77"

    def test_missing_identity(self):
        identity = extract_case_identity("no identifiers here")
        assert identity.case_number is None
        assert identity.defendant_name is None

    def test_last_first_defendant(self):
        identity = extract_case_identity("Defendant: Smith, John\nDOB: 01/01/1990\n")
        assert identity.defendant_name == "Smith, John"

    def test_defendant_followed_by_dob(self):
        assert extract_case_identity("DEFENDANT - JOHN A. SMITH DOB 01/01/1990").defendant_name == "JOHN A. SMITH"

    def test_narrative_prose_is_not_a_name(self):
        text = "Officers saw the defendant took the wallet.\nThe Defendant fled on foot.\n"
        assert extract_case_identity(text).defendant_name is None
