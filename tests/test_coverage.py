"""
Tests for the three-level section coverage estimate.
"""
from common.models import (
    CoverageLevel,
    Question,
    QuestionState,
    QuestionStatus,
    Script,
    Section,
    SessionScriptState,
)
from data_processing.coverage import coverage_hint, script_progress, section_coverage


def _section(sid, n, order=0, title=None):
    return Section(
        id=sid,
        script_id="script",
        title=title or sid,
        order=order,
        questions=[Question(id=f"{sid}-q{i}", section_id=sid, text=f"q{i}", order=i) for i in range(n)],
    )


def _progress(statuses=None, overrides=None):
    return SessionScriptState(
        question_states={
            qid: QuestionState(question_id=qid, status=st) for qid, st in (statuses or {}).items()
        },
        section_overrides=overrides or {},
    )


def test_override_wins_regardless_of_questions():
    section = _section("s1", 4)
    assert section_coverage(section, _progress(overrides={"s1": True})) == CoverageLevel.COVERED
    assert section_coverage(_section("s1", 0), _progress(overrides={"s1": True})) == CoverageLevel.COVERED


def test_false_override_is_ignored():
    assert section_coverage(_section("s1", 2), _progress(overrides={"s1": False})) == CoverageLevel.EMPTY


def test_section_without_questions_is_empty():
    assert section_coverage(_section("s1", 0), _progress()) == CoverageLevel.EMPTY


def test_asked_questions_do_not_count():
    progress = _progress({"s1-q0": QuestionStatus.ASKED, "s1-q1": QuestionStatus.ASKED})
    assert section_coverage(_section("s1", 2), progress) == CoverageLevel.EMPTY


def test_partial_below_half():
    progress = _progress({"s1-q0": QuestionStatus.DONE})
    assert section_coverage(_section("s1", 3), progress) == CoverageLevel.PARTIAL


def test_exactly_half_is_covered():
    progress = _progress({"s1-q0": QuestionStatus.DONE, "s1-q1": QuestionStatus.SKIPPED})
    assert section_coverage(_section("s1", 4), progress) == CoverageLevel.COVERED


def test_every_ratio_for_small_sections():
    for total in range(1, 7):
        section = _section("s", total)
        for answered in range(total + 1):
            progress = _progress({f"s-q{i}": QuestionStatus.DONE for i in range(answered)})
            level = section_coverage(section, progress)
            if answered == 0:
                assert level == CoverageLevel.EMPTY
            elif answered * 2 >= total:
                assert level == CoverageLevel.COVERED
            else:
                assert level == CoverageLevel.PARTIAL


def test_hint_groups_titles_by_level_in_section_order():
    sections = [
        _section("b", 2, order=2, title="Tools"),
        _section("a", 2, order=0, title="Intro"),
        _section("c", 2, order=1, title="Team"),
    ]
    progress = _progress({"a-q0": QuestionStatus.DONE, "c-q0": QuestionStatus.DONE, "c-q1": QuestionStatus.DONE})

    hint = coverage_hint(sections, progress)
    assert hint[CoverageLevel.COVERED] == ["Intro", "Team"]
    assert hint[CoverageLevel.EMPTY] == ["Tools"]
    assert hint[CoverageLevel.PARTIAL] == []


def test_script_progress_counts_done_and_skipped():
    script = Script(id="script", name="Audit", sections=[_section("a", 2), _section("b", 3, order=1)])
    progress = _progress({
        "a-q0": QuestionStatus.DONE,
        "b-q1": QuestionStatus.SKIPPED,
        "b-q2": QuestionStatus.ASKED,
    })
    assert script_progress(script, progress) == {"done": 2, "total": 5}
