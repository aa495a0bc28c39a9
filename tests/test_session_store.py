"""
Tests for whole-object session progress persistence.
"""
import pytest

from common.models import QuestionStateUpdate, QuestionStatus, SessionScriptState
from common.session_store import ConcurrentUpdateError, SessionStore
from services import progress_ops


def test_get_unknown_session_returns_none(session_store):
    assert session_store.get("missing") is None


def test_get_or_create_persists_defaults(session_store):
    state = session_store.get_or_create("s1")
    assert state == SessionScriptState()
    assert session_store.get("s1") == SessionScriptState()


def test_put_replaces_whole_state(session_store):
    first = progress_ops.set_quick_notes(progress_ops.set_active_script(SessionScriptState(), "script"), "notes")
    session_store.put("s1", first)
    session_store.put("s1", SessionScriptState(quick_notes="only this"))

    stored = session_store.get("s1")
    assert stored.active_script_id is None
    assert stored.quick_notes == "only this"


def test_round_trip_keeps_nested_records(session_store):
    state = progress_ops.set_question_state(
        SessionScriptState(), "q1", QuestionStateUpdate(status=QuestionStatus.SKIPPED, skip_reason="later")
    )
    state = progress_ops.add_ad_hoc_question(state, "Extra?")
    session_store.put("s1", state)
    assert session_store.get("s1") == state


def test_mutate_applies_transform_on_stored_state(session_store):
    session_store.put("s1", SessionScriptState(quick_notes="keep"))
    result = session_store.mutate("s1", lambda s: progress_ops.toggle_section_override(s, "sec"))
    assert result.quick_notes == "keep"
    assert session_store.get("s1").section_overrides == {"sec": True}


def test_mutate_creates_missing_session(session_store):
    session_store.mutate("new", lambda s: progress_ops.set_quick_notes(s, "hello"))
    assert session_store.get("new").quick_notes == "hello"


def test_sequential_mutations_do_not_lose_updates(session_store):
    session_store.mutate("s1", lambda s: progress_ops.set_quick_notes(s, "notes"))
    session_store.mutate("s1", lambda s: progress_ops.toggle_section_override(s, "sec"))
    stored = session_store.get("s1")
    assert stored.quick_notes == "notes"
    assert stored.section_overrides == {"sec": True}


def test_mutate_retries_after_concurrent_write(session_store):
    session_store.put("s1", SessionScriptState())
    calls = []

    def transform(state):
        calls.append(1)
        if len(calls) == 1:
            # another writer sneaks in between our read and our write
            session_store.put("s1", SessionScriptState(quick_notes="other writer"))
        return progress_ops.toggle_section_override(state, "sec")

    result = session_store.mutate("s1", transform)
    assert len(calls) == 2
    assert result.quick_notes == "other writer"
    assert session_store.get("s1").section_overrides == {"sec": True}


def test_mutate_gives_up_after_max_retries(tmp_path):
    store = SessionStore(tmp_path / "s.sqlite3", max_retries=2)
    store.put("s1", SessionScriptState())

    def always_conflicting(state):
        store.put("s1", SessionScriptState())
        return state

    with pytest.raises(ConcurrentUpdateError):
        store.mutate("s1", always_conflicting)


def test_transform_errors_propagate_without_writing(session_store):
    session_store.put("s1", SessionScriptState(quick_notes="before"))

    def broken(state):
        raise ValueError("boom")

    with pytest.raises(ValueError):
        session_store.mutate("s1", broken)
    assert session_store.get("s1").quick_notes == "before"


def test_delete(session_store):
    session_store.put("s1", SessionScriptState())
    session_store.delete("s1")
    assert session_store.get("s1") is None
