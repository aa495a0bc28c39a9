# controllers/sessions_controller.py
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from typing import List, Optional

from common.catalog_store import ScriptCatalog
from common.models import (
    AdHocQuestionUpdate,
    QuestionStateUpdate,
    Section,
    SessionScriptState,
)
from common.session_store import SessionStore
from common.settings import OUTPUT_DIR
from common.stores import get_catalog, get_session_store
from data_processing.coverage import coverage_hint, script_progress, section_coverage
from data_processing.exporter import save_progress_report
from data_processing.question_selector import select_next
from data_processing.validators import InvariantError
from controllers.errors import domain_errors
from services import progress_ops

router = APIRouter()


class ActiveScriptIn(BaseModel):
    script_id: Optional[str] = None


class AdHocIn(BaseModel):
    text: str


class NotesIn(BaseModel):
    text: str = ""


def _ok(state: SessionScriptState):
    return {"ok": True, "data": state.model_dump(mode="json")}


def _active_sections(state: SessionScriptState, catalog: ScriptCatalog) -> List[Section]:
    if not state.active_script_id:
        return []
    return catalog.get_script(state.active_script_id).sections


def _require_active_script(state: SessionScriptState) -> str:
    if not state.active_script_id:
        raise InvariantError("NO_ACTIVE_SCRIPT", "no script selected for this session")
    return state.active_script_id


@router.get("/sessions/{session_id}/progress")
def get_progress(session_id: str, store: SessionStore = Depends(get_session_store)):
    return _ok(store.get_or_create(session_id))


@router.put("/sessions/{session_id}/progress")
def put_progress(
    session_id: str,
    state: SessionScriptState,
    store: SessionStore = Depends(get_session_store),
    catalog: ScriptCatalog = Depends(get_catalog),
):
    with domain_errors():
        if state.active_script_id:
            catalog.get_script(state.active_script_id)
        for qid, qs in state.question_states.items():
            if qs.question_id != qid:
                raise InvariantError("STATE_KEY_MISMATCH", f"question_states[{qid}] holds state for {qs.question_id}")
        store.put(session_id, state)
    return _ok(state)


@router.post("/sessions/{session_id}/active_script")
def set_active_script(
    session_id: str,
    payload: ActiveScriptIn,
    store: SessionStore = Depends(get_session_store),
    catalog: ScriptCatalog = Depends(get_catalog),
):
    with domain_errors():
        if payload.script_id:
            catalog.get_script(payload.script_id)
        state = store.mutate(session_id, lambda s: progress_ops.set_active_script(s, payload.script_id))
    return _ok(state)


@router.patch("/sessions/{session_id}/questions/{question_id}")
def set_question_state(
    session_id: str,
    question_id: str,
    payload: QuestionStateUpdate,
    store: SessionStore = Depends(get_session_store),
    catalog: ScriptCatalog = Depends(get_catalog),
):
    with domain_errors():
        owner = catalog.question_script_id(question_id)
        active = _require_active_script(store.get_or_create(session_id))
        if owner != active:
            raise InvariantError(
                "QUESTION_NOT_IN_SCRIPT", f"question {question_id} does not belong to active script {active}"
            )
        state = store.mutate(session_id, lambda s: progress_ops.set_question_state(s, question_id, payload))
    return _ok(state)


@router.post("/sessions/{session_id}/ad_hoc")
def add_ad_hoc(session_id: str, payload: AdHocIn, store: SessionStore = Depends(get_session_store)):
    with domain_errors():
        state = store.mutate(session_id, lambda s: progress_ops.add_ad_hoc_question(s, payload.text))
    return _ok(state)


@router.patch("/sessions/{session_id}/ad_hoc/{ad_hoc_id}")
def update_ad_hoc(
    session_id: str,
    ad_hoc_id: str,
    payload: AdHocQuestionUpdate,
    store: SessionStore = Depends(get_session_store),
):
    with domain_errors():
        state = store.mutate(session_id, lambda s: progress_ops.update_ad_hoc_question(s, ad_hoc_id, payload))
    return _ok(state)


@router.delete("/sessions/{session_id}/ad_hoc/{ad_hoc_id}")
def remove_ad_hoc(session_id: str, ad_hoc_id: str, store: SessionStore = Depends(get_session_store)):
    with domain_errors():
        state = store.mutate(session_id, lambda s: progress_ops.remove_ad_hoc_question(s, ad_hoc_id))
    return _ok(state)


@router.post("/sessions/{session_id}/sections/{section_id}/override")
def toggle_override(
    session_id: str,
    section_id: str,
    store: SessionStore = Depends(get_session_store),
    catalog: ScriptCatalog = Depends(get_catalog),
):
    with domain_errors():
        catalog.get_section(section_id)
        state = store.mutate(session_id, lambda s: progress_ops.toggle_section_override(s, section_id))
    return _ok(state)


@router.put("/sessions/{session_id}/notes")
def set_notes(session_id: str, payload: NotesIn, store: SessionStore = Depends(get_session_store)):
    with domain_errors():
        state = store.mutate(session_id, lambda s: progress_ops.set_quick_notes(s, payload.text))
    return _ok(state)


@router.get("/sessions/{session_id}/next")
def next_question(
    session_id: str,
    section_id: Optional[str] = Query(None),
    question_id: Optional[str] = Query(None),
    store: SessionStore = Depends(get_session_store),
    catalog: ScriptCatalog = Depends(get_catalog),
):
    state = store.get_or_create(session_id)
    with domain_errors():
        sections = _active_sections(state, catalog)
    result = select_next(
        sections,
        state.question_states,
        state.ad_hoc_questions,
        current_section_id=section_id,
        current_question_id=question_id,
    )
    return {"ok": True, "data": result.model_dump(mode="json")}


@router.get("/sessions/{session_id}/coverage")
def get_coverage(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
    catalog: ScriptCatalog = Depends(get_catalog),
):
    state = store.get_or_create(session_id)
    with domain_errors():
        script = catalog.get_script(_require_active_script(state))
    sections = [
        {"section_id": s.id, "title": s.title, "coverage": section_coverage(s, state).value}
        for s in script.sections
    ]
    hint = {level.value: titles for level, titles in coverage_hint(script.sections, state).items()}
    return {
        "ok": True,
        "data": {"sections": sections, "hint": hint, "progress": script_progress(script, state)},
    }


@router.post("/sessions/{session_id}/export")
def export_progress(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
    catalog: ScriptCatalog = Depends(get_catalog),
):
    state = store.get_or_create(session_id)
    with domain_errors():
        script = catalog.get_script(_require_active_script(state))
    return {"ok": True, "data": {"export": save_progress_report(script, state, session_id, output_dir=OUTPUT_DIR)}}
