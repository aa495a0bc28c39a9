"""
Pure transforms over SessionScriptState.

Every function takes the current state and returns a new one; the input is
never mutated, so a caller can hand the result to SessionStore.mutate/put as a
single whole-object replace.
"""
import uuid
from datetime import datetime
from typing import Optional

from common.models import (
    ANSWERED_STATUSES,
    AdHocQuestion,
    AdHocQuestionUpdate,
    QuestionState,
    QuestionStateUpdate,
    QuestionStatus,
    SessionScriptState,
    utcnow,
)
from data_processing.validators import InvariantError, NotFoundError, validate_text


def _apply_status_change(
    record,
    new_status: QuestionStatus,
    skip_reason_set: bool,
    now: datetime,
    asked_at_set: bool = False,
    completed_at_set: bool = False,
) -> None:
    """Stamp timestamps for a status change on a freshly copied record."""
    previous = record.status
    record.status = new_status
    if new_status == QuestionStatus.ASKED and record.asked_at is None and not asked_at_set:
        record.asked_at = now
    if new_status in ANSWERED_STATUSES:
        if not completed_at_set and (previous != new_status or record.completed_at is None):
            record.completed_at = now
    elif not completed_at_set:
        record.completed_at = None
    if new_status != QuestionStatus.SKIPPED and not skip_reason_set:
        record.skip_reason = None


def set_active_script(state: SessionScriptState, script_id: Optional[str]) -> SessionScriptState:
    new_state = state.model_copy(deep=True)
    new_state.active_script_id = script_id
    return new_state


def set_question_state(
    state: SessionScriptState,
    question_id: str,
    update: QuestionStateUpdate,
    now: Optional[datetime] = None,
) -> SessionScriptState:
    if not question_id:
        raise InvariantError("EMPTY_ID", "question_id must not be empty")
    now = now or utcnow()
    fields = update.model_fields_set
    new_state = state.model_copy(deep=True)

    current = new_state.question_states.get(question_id)
    record = current.model_copy() if current else QuestionState(question_id=question_id)

    if "skip_reason" in fields:
        record.skip_reason = update.skip_reason
    if "notes" in fields:
        record.notes = update.notes
    if "asked_at" in fields:
        record.asked_at = update.asked_at
    if "completed_at" in fields:
        record.completed_at = update.completed_at
    if "status" in fields:
        if update.status is None:
            raise InvariantError("INVALID_STATUS", "status cannot be null")
        _apply_status_change(
            record,
            update.status,
            skip_reason_set="skip_reason" in fields,
            now=now,
            asked_at_set="asked_at" in fields,
            completed_at_set="completed_at" in fields,
        )

    new_state.question_states[question_id] = record
    return new_state


def add_ad_hoc_question(
    state: SessionScriptState,
    text: str,
    now: Optional[datetime] = None,
) -> SessionScriptState:
    new_state = state.model_copy(deep=True)
    new_state.ad_hoc_questions.append(
        AdHocQuestion(
            id=str(uuid.uuid4()),
            text=validate_text(text, "ad-hoc question text"),
            status=QuestionStatus.PENDING,
            created_at=now or utcnow(),
        )
    )
    return new_state


def _find_ad_hoc(state: SessionScriptState, ad_hoc_id: str) -> int:
    for i, q in enumerate(state.ad_hoc_questions):
        if q.id == ad_hoc_id:
            return i
    raise NotFoundError("AD_HOC_NOT_FOUND", f"ad-hoc question {ad_hoc_id} does not exist")


def update_ad_hoc_question(
    state: SessionScriptState,
    ad_hoc_id: str,
    update: AdHocQuestionUpdate,
    now: Optional[datetime] = None,
) -> SessionScriptState:
    now = now or utcnow()
    fields = update.model_fields_set
    new_state = state.model_copy(deep=True)
    idx = _find_ad_hoc(new_state, ad_hoc_id)
    record = new_state.ad_hoc_questions[idx]

    if "text" in fields:
        record.text = validate_text(update.text, "ad-hoc question text")
    if "skip_reason" in fields:
        record.skip_reason = update.skip_reason
    if "status" in fields:
        if update.status is None:
            raise InvariantError("INVALID_STATUS", "status cannot be null")
        _apply_status_change(record, update.status, skip_reason_set="skip_reason" in fields, now=now)
    return new_state


def remove_ad_hoc_question(state: SessionScriptState, ad_hoc_id: str) -> SessionScriptState:
    new_state = state.model_copy(deep=True)
    idx = _find_ad_hoc(new_state, ad_hoc_id)
    del new_state.ad_hoc_questions[idx]
    return new_state


def toggle_section_override(state: SessionScriptState, section_id: str) -> SessionScriptState:
    new_state = state.model_copy(deep=True)
    new_state.section_overrides[section_id] = not new_state.section_overrides.get(section_id, False)
    return new_state


def set_quick_notes(state: SessionScriptState, text: Optional[str]) -> SessionScriptState:
    new_state = state.model_copy(deep=True)
    new_state.quick_notes = text or ""
    return new_state
