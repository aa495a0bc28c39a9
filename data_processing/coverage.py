from typing import Dict, List, Sequence

from common.models import ANSWERED_STATUSES, CoverageLevel, Script, Section, SessionScriptState

# at or above this share of answered questions a section counts as covered
COVERED_RATIO = 0.5


def section_coverage(section: Section, progress: SessionScriptState) -> CoverageLevel:
    """
    Three-level coverage signal for one section.
    A manual "sufficient" override always wins; otherwise the share of
    done/skipped questions decides. Never persisted, always re-derived.
    """
    if progress.section_overrides.get(section.id):
        return CoverageLevel.COVERED
    total = len(section.questions)
    if total == 0:
        return CoverageLevel.EMPTY
    answered = sum(1 for q in section.questions if progress.status_of(q.id) in ANSWERED_STATUSES)
    ratio = answered / total
    if ratio == 0:
        return CoverageLevel.EMPTY
    if ratio >= COVERED_RATIO:
        return CoverageLevel.COVERED
    return CoverageLevel.PARTIAL


def coverage_hint(sections: Sequence[Section], progress: SessionScriptState) -> Dict[CoverageLevel, List[str]]:
    hint: Dict[CoverageLevel, List[str]] = {level: [] for level in CoverageLevel}
    for section in sorted(sections, key=lambda s: s.order):
        hint[section_coverage(section, progress)].append(section.title)
    return hint


def script_progress(script: Script, progress: SessionScriptState) -> Dict[str, int]:
    questions = [q for s in script.sections for q in s.questions]
    done = sum(1 for q in questions if progress.status_of(q.id) in ANSWERED_STATUSES)
    return {"done": done, "total": len(questions)}
