"""
Next-question selection for a live audit interview.

Stateless: everything comes from the arguments, the same input always yields
the same answer, and nothing is written. Recording the move to `asked` is the
caller's job.

Traversal order (first hit wins):
  1. current section, after the current question
  2. later sections, from their first question
  3. earlier sections from the top, then the current section up to (not
     including) the current question
  4. ad-hoc questions in list order
"""
import logging
from typing import List, Mapping, Optional, Sequence, Tuple

from common.models import (
    ANSWERED_STATUSES,
    AdHocQuestion,
    NextQuestion,
    Question,
    QuestionState,
    QuestionStatus,
    Section,
)

logger = logging.getLogger(__name__)


def _is_unanswered(question_id: str, question_states: Mapping[str, QuestionState]) -> bool:
    state = question_states.get(question_id)
    status = state.status if state else QuestionStatus.PENDING
    return status not in ANSWERED_STATUSES


def _ordered(sections: Sequence[Section]) -> List[Tuple[Section, List[Question]]]:
    # sorted() is stable, so equal order indices keep their incoming order
    return [
        (section, sorted(section.questions, key=lambda q: q.order))
        for section in sorted(sections, key=lambda s: s.order)
    ]


def _first_unanswered(
    questions: Sequence[Question],
    question_states: Mapping[str, QuestionState],
    start: int = 0,
    stop: Optional[int] = None,
) -> Optional[Question]:
    for q in questions[start:stop]:
        if _is_unanswered(q.id, question_states):
            return q
    return None


def select_next(
    sections: Sequence[Section],
    question_states: Mapping[str, QuestionState],
    ad_hoc_questions: Sequence[AdHocQuestion],
    current_section_id: Optional[str] = None,
    current_question_id: Optional[str] = None,
) -> NextQuestion:
    ordered = _ordered(sections)

    section_pos: Optional[int] = None
    if current_section_id is not None:
        for i, (section, _) in enumerate(ordered):
            if section.id == current_section_id:
                section_pos = i
                break
        if section_pos is None:
            logger.debug("current section %s not in script, starting from the top", current_section_id)

    if section_pos is not None:
        current_section, current_questions = ordered[section_pos]
        # position of the current question; -1 means "not given / not found"
        question_pos = next(
            (i for i, q in enumerate(current_questions) if q.id == current_question_id),
            -1,
        )

        # 1. same section, forward
        hit = _first_unanswered(current_questions, question_states, start=question_pos + 1)
        if hit is not None:
            return NextQuestion(question=hit, section_id=current_section.id)

        # 2. later sections
        for section, questions in ordered[section_pos + 1:]:
            hit = _first_unanswered(questions, question_states)
            if hit is not None:
                return NextQuestion(question=hit, section_id=section.id)

        # 3. wraparound: earlier sections, then the head of the current one
        for section, questions in ordered[:section_pos]:
            hit = _first_unanswered(questions, question_states)
            if hit is not None:
                return NextQuestion(question=hit, section_id=section.id)
        hit = _first_unanswered(current_questions, question_states, stop=max(question_pos, 0))
        if hit is not None:
            return NextQuestion(question=hit, section_id=current_section.id)
    else:
        # no position yet: "later sections" means every section from the first
        for section, questions in ordered:
            hit = _first_unanswered(questions, question_states)
            if hit is not None:
                return NextQuestion(question=hit, section_id=section.id)

    # 4. ad-hoc questions
    for ad_hoc in ad_hoc_questions:
        if ad_hoc.status not in ANSWERED_STATUSES:
            return NextQuestion(question=ad_hoc, is_ad_hoc=True)

    return NextQuestion(question=None, is_complete=True)
