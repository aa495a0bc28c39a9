"""
Tests for the preview/apply bulk import flow.
"""
from common.models import MatchType, ParsedSection, SectionMatch
from services.import_service import apply_import, bulk_add_questions, preview_import

PASTED = "Intro\n• New one\n• New two\n\nUnknown stuff\n• Orphan question?"


def _texts(catalog, section_id):
    return [q.text for q in catalog.get_section(section_id).questions]


def _orders(catalog, section_id):
    return [q.order for q in catalog.get_section(section_id).questions]


def test_preview_counts_and_matches(sample_script):
    preview = preview_import(PASTED, sample_script.sections)

    assert preview.total_questions == 3
    assert preview.matched_count == 1
    assert preview.unmatched_count == 1

    intro_match, unknown_match = preview.matches
    assert intro_match.match_type == MatchType.EXACT
    assert intro_match.matched_section_id == sample_script.sections[0].id
    assert unknown_match.match_type == MatchType.NONE
    assert unknown_match.matched_section_id is None


def test_preview_does_not_touch_catalog(catalog, sample_script):
    preview_import(PASTED, sample_script.sections)
    assert catalog.get_script(sample_script.id) == sample_script


def test_apply_replace_mode(catalog, sample_script):
    intro = sample_script.sections[0]
    preview = preview_import(PASTED, sample_script.sections)

    result = apply_import(catalog, preview.matches, replace_mode=True)

    assert result.questions_imported == 2
    assert result.sections_updated == 1
    assert result.failures == []
    assert _texts(catalog, intro.id) == ["New one", "New two"]
    assert _orders(catalog, intro.id) == [0, 1]


def test_apply_append_mode(catalog, sample_script):
    intro = sample_script.sections[0]
    preview = preview_import(PASTED, sample_script.sections)

    apply_import(catalog, preview.matches, replace_mode=False)

    assert len(_texts(catalog, intro.id)) == 5
    assert _texts(catalog, intro.id)[3:] == ["New one", "New two"]
    assert _orders(catalog, intro.id)[3:] == [3, 4]


def test_unmatched_sections_are_skipped(catalog, sample_script):
    preview = preview_import(PASTED, sample_script.sections)
    apply_import(catalog, preview.matches, replace_mode=True)

    script = catalog.get_script(sample_script.id)
    assert [s.title for s in script.sections] == ["Intro", "Tools"]
    assert sum(len(s.questions) for s in script.sections) == 3


def test_user_can_redirect_a_match_before_apply(catalog, sample_script):
    tools = sample_script.sections[1]
    preview = preview_import(PASTED, sample_script.sections)
    orphan = preview.matches[1].model_copy(update={"matched_section_id": tools.id, "match_type": MatchType.ALIAS})

    result = apply_import(catalog, [orphan], replace_mode=False)

    assert result.questions_imported == 1
    assert _texts(catalog, tools.id) == ["Which CRM do you use?", "Orphan question?"]


def test_failed_section_is_reported_and_others_continue(catalog, sample_script):
    intro, tools = sample_script.sections
    matches = [
        SectionMatch(
            parsed=ParsedSection(header="Gone", normalized_header="gone", questions=["q"]),
            matched_section_id="deleted-section",
            match_type=MatchType.EXACT,
            confidence=1.0,
        ),
        SectionMatch(
            parsed=ParsedSection(header="Intro", normalized_header="intro", questions=["ok", "  "]),
            matched_section_id=intro.id,
            match_type=MatchType.EXACT,
            confidence=1.0,
        ),
        SectionMatch(
            parsed=ParsedSection(header="Tools", normalized_header="tools", questions=["Which ERP?"]),
            matched_section_id=tools.id,
            match_type=MatchType.EXACT,
            confidence=1.0,
        ),
    ]

    result = apply_import(catalog, matches, replace_mode=True)

    assert result.sections_updated == 1
    assert result.questions_imported == 1
    assert [f.section_id for f in result.failures] == ["deleted-section", intro.id]
    # the failed section keeps its previous questions
    assert len(_texts(catalog, intro.id)) == 3
    assert _texts(catalog, tools.id) == ["Which ERP?"]


def test_bulk_add_questions_appends_lines(catalog, sample_script):
    tools = sample_script.sections[1]
    added = bulk_add_questions(catalog, tools.id, "• Which ERP?\n\n  Any BI tool?  \n")

    assert added == 2
    assert _texts(catalog, tools.id) == ["Which CRM do you use?", "Which ERP?", "Any BI tool?"]
    assert _orders(catalog, tools.id) == [0, 1, 2]


def test_bulk_add_with_blank_text_adds_nothing(catalog, sample_script):
    tools = sample_script.sections[1]
    assert bulk_add_questions(catalog, tools.id, "\n   \n") == 0
    assert len(_texts(catalog, tools.id)) == 1
