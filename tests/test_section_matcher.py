"""
Tests for reconciling parsed headers against existing script sections.
"""
import pytest

from common.models import CandidateMethod, MatchType, ParsedSection, Section
from data_processing.script_parser import normalize_header
from data_processing.section_matcher import (
    CONTAINMENT_SCALE,
    containment_score,
    match_section,
    match_sections,
    token_similarity,
)


def _existing(*titles):
    return [Section(id=f"sec{i}", script_id="script", title=t, order=i) for i, t in enumerate(titles)]


def _parsed(header, questions=("q",)):
    return ParsedSection(header=header, normalized_header=normalize_header(header), questions=list(questions))


def test_exact_match_after_normalization():
    m = match_section(_parsed("Procesai ir įrankiai (v2)!"), _existing("Klientai", "Procesai ir įrankiai"))
    assert m.match_type == MatchType.EXACT
    assert m.matched_section_id == "sec1"
    assert m.confidence == 1.0
    assert m.alternative_matches == []


def test_exact_match_short_circuits_remaining_sections():
    m = match_section(_parsed("Intro"), _existing("Intro", "intro!", "Intro and goals"))
    assert m.match_type == MatchType.EXACT
    assert m.matched_section_id == "sec0"


def test_exact_match_later_in_list_discards_earlier_candidates():
    m = match_section(_parsed("Intro"), _existing("Intro and goals", "Intro"))
    assert m.match_type == MatchType.EXACT
    assert m.matched_section_id == "sec1"
    assert m.alternative_matches == []


def test_short_header_inside_long_title_scores_by_length_ratio():
    m = match_section(_parsed("procesai"), _existing("Procesai ir įrankiai"))

    # "procesai" (8) inside "procesai ir įrankiai" (20): 8/20 * 0.95
    expected_contains = 8 / 20 * CONTAINMENT_SCALE
    # tokens {procesai} vs {procesai, ir, įrankiai}
    expected_fuzzy = 1 / 3

    assert m.match_type == MatchType.NONE
    assert m.matched_section_id is None
    assert [(c.method, c.score) for c in m.alternative_matches] == [
        (CandidateMethod.CONTAINS, pytest.approx(expected_contains)),
        (CandidateMethod.FUZZY, pytest.approx(expected_fuzzy)),
    ]
    # deterministic across calls
    again = match_section(_parsed("procesai"), _existing("Procesai ir įrankiai"))
    assert again.model_dump() == m.model_dump()


def test_lower_accept_threshold_turns_containment_into_alias():
    m = match_section(_parsed("procesai"), _existing("Procesai ir įrankiai"), accept_threshold=0.35)
    assert m.match_type == MatchType.ALIAS
    assert m.confidence == pytest.approx(0.38)
    assert len(m.alternative_matches) == 1


def test_containment_above_threshold_is_alias_with_fuzzy_alternative():
    m = match_section(_parsed("Sales process"), _existing("Sales process map"))
    assert m.match_type == MatchType.ALIAS
    assert m.confidence == pytest.approx(13 / 17 * CONTAINMENT_SCALE)
    assert [c.method for c in m.alternative_matches] == [CandidateMethod.FUZZY]
    assert m.alternative_matches[0].score == pytest.approx(2 / 3)


def test_token_overlap_without_containment_is_fuzzy():
    m = match_section(_parsed("Tools and systems"), _existing("Budget", "Systems and tools used"))
    assert m.match_type == MatchType.FUZZY
    assert m.matched_section_id == "sec1"
    assert m.confidence == pytest.approx(0.75)


def test_single_character_tokens_are_ignored():
    assert token_similarity("a intro", "b intro") == 1.0
    assert token_similarity("a b", "a b") == 0.0


def test_no_shared_tokens_never_produces_fuzzy_candidate():
    assert token_similarity("budget planning", "team roles") == 0.0
    m = match_section(_parsed("Budget planning"), _existing("Team roles"))
    assert m.match_type == MatchType.NONE
    assert m.alternative_matches == []


def test_containment_score_helper():
    assert containment_score("abc", "xxabcxx") == pytest.approx(3 / 7 * CONTAINMENT_SCALE)
    assert containment_score("abc", "xyz") is None
    assert containment_score("", "abc") is None


def test_each_parsed_section_is_matched_independently():
    existing = _existing("Intro", "Tools")
    matches = match_sections([_parsed("Intro"), _parsed("intro"), _parsed("Unknown")], existing)
    assert [m.matched_section_id for m in matches] == ["sec0", "sec0", None]
    assert [m.match_type for m in matches] == [MatchType.EXACT, MatchType.EXACT, MatchType.NONE]
