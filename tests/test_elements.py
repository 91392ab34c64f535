"""
Tests for element screening - element split, keyword stems, evidence, verdicts.
"""
import pytest

from app.services.screening.elements import (
    evaluate_elements,
    keyword_stems,
    split_elements,
    stem,
)
from app.services.screening.lexicon import SCREENING_NOTE
from app.services.screening.models import ElementStatus


THEFT_LINE = "A person commits theft if the person takes property of another"


class TestStemming:

    def test_irregular_past_tense(self):
        assert stem("took") == stem("takes") == "take"

    def test_suffixes(self):
        assert stem("commits") == "commit"
        assert stem("stealing") == "steal"
        assert stem("trespass") == "trespass"

    def test_short_words_untouched(self):
        assert stem("uses") == "uses"


class TestSplitElements:

    def test_trigger_lines_selected(self):
        text = "\n".join([
            "Title 76 Chapter 6 Offenses",
            "A person commits theft if the person takes property of another.",
            "Definitions and general provisions follow here.",
            "An actor shall not obstruct a peace officer in the performance of duty.",
        ])
        assert split_elements(text) == [
            "A person commits theft if the person takes property of another.",
            "An actor shall not obstruct a peace officer in the performance of duty.",
        ]

    def test_length_bounds(self):
        text = "a person must\n" + ("a person shall " + "x" * 600)
        assert split_elements(text) == []

    def test_capped_at_twelve(self):
        text = "\n".join(f"A person shall comply with rule number {i}." for i in range(20))
        assert len(split_elements(text)) == 12

    def test_fallback_first_eight_lines(self):
        text = "\n".join(f"Plain descriptive statute line {i}." for i in range(10))
        lines = split_elements(text)
        assert len(lines) == 8
        assert lines[0] == "Plain descriptive statute line 0."


class TestKeywords:

    def test_stop_words_and_short_words_dropped(self):
        assert keyword_stems(THEFT_LINE) == ["commit", "theft", "take", "property", "another"]

    def test_capped_at_eight_and_deduplicated(self):
        line = "alpha bravo charlie delta echoes foxtrot golfing hotels indigo juliet alpha"
        stems = keyword_stems(line)
        assert len(stems) == 8
        assert len(set(stems)) == 8


class TestEvaluation:

    def test_took_property_marks_element_met(self):
        narrative = "Officers learned the defendant took the victim's wallet and other property."
        result = evaluate_elements(narrative, THEFT_LINE)
        assert len(result.elements) == 1
        check = result.elements[0]
        assert check.status == ElementStatus.MET
        assert 1 <= len(check.evidence) <= 3
        assert result.overall == ElementStatus.MET

    def test_single_hit_is_unclear(self):
        narrative = "The defendant was seen near the property line."
        result = evaluate_elements(narrative, THEFT_LINE)
        assert result.elements[0].status == ElementStatus.UNCLEAR
        assert result.overall == ElementStatus.UNCLEAR

    def test_evidence_stays_within_narrative(self):
        narrative = "property taken " + ("filler " * 50)
        result = evaluate_elements(narrative, THEFT_LINE)
        for snippet in result.elements[0].evidence:
            assert snippet in narrative
            assert len(snippet) <= 80 + 140

    def test_evidence_window(self):
        narrative = ("a" * 200) + " property " + ("b" * 200) + " took"
        result = evaluate_elements(narrative, THEFT_LINE)
        idx = narrative.index("property")
        assert narrative[idx - 80: idx + 140].strip() in result.elements[0].evidence

    def test_overall_threshold(self):
        statute = "\n".join([
            "A person commits theft if the person takes property of another.",
            "A person shall not damage a motor vehicle belonging to the city.",
            "A person shall not carry a concealed dangerous weapon downtown.",
        ])
        narrative = "He took her property and then drove away."
        result = evaluate_elements(narrative, statute)
        statuses = [c.status for c in result.elements]
        assert statuses.count(ElementStatus.MET) == 1
        # floor(3 * 0.6) == 1
        assert result.overall == ElementStatus.MET

    def test_overall_unclear_below_threshold(self):
        statute = "\n".join(f"A person shall not enter restricted zone number {i}." for i in range(5))
        result = evaluate_elements("Nothing relevant happened.", statute)
        assert result.overall == ElementStatus.UNCLEAR

    def test_empty_statute_is_unclear(self):
        result = evaluate_elements("anything", "")
        assert result.elements == []
        assert result.overall == ElementStatus.UNCLEAR

    def test_disclaimer_note(self):
        result = evaluate_elements("narrative", THEFT_LINE)
        assert result.notes == [SCREENING_NOTE]
        assert "Screening-only" in result.notes[0]

    def test_deterministic(self):
        narrative = "The defendant took property from another shopper."
        first = evaluate_elements(narrative, THEFT_LINE).to_dict()
        second = evaluate_elements(narrative, THEFT_LINE).to_dict()
        assert first == second
