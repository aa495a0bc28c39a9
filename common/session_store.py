import json, sqlite3, time, logging
from pathlib import Path
from typing import Callable, Optional, Tuple

from .models import SessionScriptState
from .retry import with_backoff
from .settings import DB_PATH, SESSION_WRITE_RETRIES

logger = logging.getLogger(__name__)


class ConcurrentUpdateError(Exception):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"session {session_id} was modified concurrently")


class SessionStore:
    """
    One JSON blob of SessionScriptState per session, replaced wholesale.
    `version` is bumped on every write so read-modify-write callers can detect
    a concurrent writer instead of silently losing its update.
    """

    def __init__(self, db_path: Path = DB_PATH, max_retries: int = SESSION_WRITE_RETRIES):
        self.db_path = Path(db_path)
        self.max_retries = max(1, max_retries)
        self._init()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=10)

    def _init(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        con = self._connect()
        try:
            con.execute(
                '''
                CREATE TABLE IF NOT EXISTS session_progress (
                  session_id TEXT PRIMARY KEY,
                  json TEXT NOT NULL,
                  version INTEGER NOT NULL,
                  updated_at INTEGER NOT NULL
                )
                '''
            )
            con.commit()
        finally:
            con.close()

    def _read(self, session_id: str) -> Tuple[Optional[SessionScriptState], int]:
        con = self._connect()
        try:
            cur = con.execute('SELECT json, version FROM session_progress WHERE session_id=?', (session_id,))
            row = cur.fetchone()
            if not row:
                return None, 0
            return SessionScriptState.model_validate_json(row[0]), int(row[1])
        finally:
            con.close()

    def get(self, session_id: str) -> Optional[SessionScriptState]:
        state, _ = self._read(session_id)
        return state

    def get_or_create(self, session_id: str) -> SessionScriptState:
        state = self.get(session_id)
        if state is not None:
            return state
        state = SessionScriptState()
        con = self._connect()
        try:
            # a concurrent creator may have won; keep whatever is there
            con.execute(
                "INSERT OR IGNORE INTO session_progress(session_id, json, version, updated_at) VALUES (?, ?, 1, ?)",
                (session_id, state.model_dump_json(), int(time.time()))
            )
            con.commit()
        finally:
            con.close()
        logger.info("created progress state for session %s", session_id)
        return self.get(session_id)

    def put(self, session_id: str, state: SessionScriptState) -> None:
        """Unconditional whole-object replace (last writer wins)."""
        js = json.dumps(state.model_dump(mode="json"), ensure_ascii=False)
        con = self._connect()
        try:
            con.execute(
                '''
                INSERT INTO session_progress(session_id, json, version, updated_at) VALUES (?, ?, 1, ?)
                ON CONFLICT(session_id) DO UPDATE SET
                  json=excluded.json,
                  version=session_progress.version + 1,
                  updated_at=excluded.updated_at
                ''',
                (session_id, js, int(time.time()))
            )
            con.commit()
        finally:
            con.close()

    def _compare_and_put(self, session_id: str, state: SessionScriptState, expected_version: int) -> None:
        js = json.dumps(state.model_dump(mode="json"), ensure_ascii=False)
        con = self._connect()
        try:
            if expected_version == 0:
                cur = con.execute(
                    "INSERT OR IGNORE INTO session_progress(session_id, json, version, updated_at) VALUES (?, ?, 1, ?)",
                    (session_id, js, int(time.time()))
                )
            else:
                cur = con.execute(
                    "UPDATE session_progress SET json=?, version=version + 1, updated_at=? WHERE session_id=? AND version=?",
                    (js, int(time.time()), session_id, expected_version)
                )
            con.commit()
            if cur.rowcount != 1:
                raise ConcurrentUpdateError(session_id)
        finally:
            con.close()

    def mutate(self, session_id: str, fn: Callable[[SessionScriptState], SessionScriptState]) -> SessionScriptState:
        """
        Atomically apply a pure transform to the stored state.
        Exceptions raised by `fn` propagate untouched; only version conflicts are retried.
        """
        def attempt() -> SessionScriptState:
            current, version = self._read(session_id)
            new_state = fn(current if current is not None else SessionScriptState())
            self._compare_and_put(session_id, new_state, version)
            return new_state

        return with_backoff(attempt, max_retries=self.max_retries, retry_on=(ConcurrentUpdateError,))

    def delete(self, session_id: str) -> None:
        con = self._connect()
        try:
            con.execute('DELETE FROM session_progress WHERE session_id=?', (session_id,))
            con.commit()
        finally:
            con.close()
