import json, sqlite3, uuid, logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from .models import (
    ExportedQuestion,
    ExportedSection,
    Question,
    Script,
    ScriptExport,
    Section,
    utcnow,
)
from .settings import DB_PATH
from data_processing.validators import (
    InvariantError,
    NotFoundError,
    validate_order_index,
    validate_permutation,
    validate_text,
)

logger = logging.getLogger(__name__)

DEFAULT_SECTION_TITLES = (
    "Įvadas ir kontekstas",
    "Procesai ir darbo eiga",
    "Technologijos ir įrankiai",
    "Skausmo taškai",
    "Apibendrinimas",
)
COPY_SUFFIX = " (kopija)"
IMPORT_SUFFIX = " (importuotas)"


def _new_id() -> str:
    return str(uuid.uuid4())


def _ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class ScriptCatalog:
    """
    Scripts -> sections -> questions, ordered by an explicit `position` column.
    Ties on position fall back to rowid, i.e. creation order.
    """

    def __init__(self, db_path: Path = DB_PATH):
        self.db_path = Path(db_path)
        self._init()

    def _connect(self) -> sqlite3.Connection:
        # autocommit; writes open their own transaction in _tx
        con = sqlite3.connect(self.db_path, timeout=10, isolation_level=None)
        con.row_factory = sqlite3.Row
        con.execute("PRAGMA foreign_keys = ON")
        return con

    @contextmanager
    def _tx(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            # the write lock is held from the first check, not just the first write
            con.execute("BEGIN IMMEDIATE")
            yield con
            con.execute("COMMIT")
        except Exception:
            if con.in_transaction:
                con.execute("ROLLBACK")
            raise
        finally:
            con.close()

    def _init(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        con = self._connect()
        try:
            con.executescript(
                '''
                CREATE TABLE IF NOT EXISTS scripts (
                  id TEXT PRIMARY KEY,
                  name TEXT NOT NULL,
                  description TEXT,
                  is_template INTEGER NOT NULL DEFAULT 0,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS script_sections (
                  id TEXT PRIMARY KEY,
                  script_id TEXT NOT NULL REFERENCES scripts(id) ON DELETE CASCADE,
                  title TEXT NOT NULL,
                  position INTEGER NOT NULL CHECK (position >= 0),
                  created_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS script_questions (
                  id TEXT PRIMARY KEY,
                  section_id TEXT NOT NULL REFERENCES script_sections(id) ON DELETE CASCADE,
                  text TEXT NOT NULL,
                  position INTEGER NOT NULL CHECK (position >= 0),
                  tags TEXT NOT NULL DEFAULT '[]',
                  created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS ix_sections_script ON script_sections(script_id, position);
                CREATE INDEX IF NOT EXISTS ix_questions_section ON script_questions(section_id, position);
                '''
            )
        finally:
            con.close()

    # ---------- row mapping ----------

    @staticmethod
    def _script_from_row(row: sqlite3.Row) -> Script:
        return Script(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            is_template=bool(row["is_template"]),
            created_at=_ts(row["created_at"]),
            updated_at=_ts(row["updated_at"]),
        )

    @staticmethod
    def _section_from_row(row: sqlite3.Row) -> Section:
        return Section(
            id=row["id"],
            script_id=row["script_id"],
            title=row["title"],
            order=row["position"],
            created_at=_ts(row["created_at"]),
        )

    @staticmethod
    def _question_from_row(row: sqlite3.Row) -> Question:
        return Question(
            id=row["id"],
            section_id=row["section_id"],
            text=row["text"],
            order=row["position"],
            tags=json.loads(row["tags"] or "[]"),
            created_at=_ts(row["created_at"]),
        )

    # ---------- lookups ----------

    def _require_script(self, con: sqlite3.Connection, script_id: str) -> sqlite3.Row:
        row = con.execute("SELECT * FROM scripts WHERE id=?", (script_id,)).fetchone()
        if not row:
            raise NotFoundError("SCRIPT_NOT_FOUND", f"script {script_id} does not exist")
        return row

    def _require_section(self, con: sqlite3.Connection, section_id: str) -> sqlite3.Row:
        row = con.execute("SELECT * FROM script_sections WHERE id=?", (section_id,)).fetchone()
        if not row:
            raise NotFoundError("SECTION_NOT_FOUND", f"section {section_id} does not exist")
        return row

    def _require_question(self, con: sqlite3.Connection, question_id: str) -> sqlite3.Row:
        row = con.execute("SELECT * FROM script_questions WHERE id=?", (question_id,)).fetchone()
        if not row:
            raise NotFoundError("QUESTION_NOT_FOUND", f"question {question_id} does not exist")
        return row

    def _ordered_section_ids(self, con: sqlite3.Connection, script_id: str) -> List[str]:
        rows = con.execute(
            "SELECT id FROM script_sections WHERE script_id=? ORDER BY position, rowid", (script_id,)
        ).fetchall()
        return [r["id"] for r in rows]

    def _ordered_question_ids(self, con: sqlite3.Connection, section_id: str) -> List[str]:
        rows = con.execute(
            "SELECT id FROM script_questions WHERE section_id=? ORDER BY position, rowid", (section_id,)
        ).fetchall()
        return [r["id"] for r in rows]

    def _check_section_order_free(self, con, script_id: str, order: int, exclude_id: Optional[str] = None):
        row = con.execute(
            "SELECT id FROM script_sections WHERE script_id=? AND position=? AND id IS NOT ?",
            (script_id, order, exclude_id),
        ).fetchone()
        if row:
            raise InvariantError("DUPLICATE_ORDER", f"section order {order} is already used in script {script_id}")

    def _touch_script(self, con, script_id: str):
        con.execute("UPDATE scripts SET updated_at=? WHERE id=?", (utcnow().isoformat(), script_id))

    def _touch_section_script(self, con, section_id: str):
        con.execute(
            "UPDATE scripts SET updated_at=? WHERE id=(SELECT script_id FROM script_sections WHERE id=?)",
            (utcnow().isoformat(), section_id),
        )

    # ---------- scripts ----------

    def _insert_script(self, con, name: str, description: Optional[str], is_template: bool) -> str:
        now = utcnow().isoformat()
        script_id = _new_id()
        con.execute(
            "INSERT INTO scripts(id, name, description, is_template, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
            (script_id, name, description, int(bool(is_template)), now, now),
        )
        return script_id

    def _insert_section(self, con, script_id: str, title: str, order: int) -> str:
        section_id = _new_id()
        con.execute(
            "INSERT INTO script_sections(id, script_id, title, position, created_at) VALUES (?, ?, ?, ?, ?)",
            (section_id, script_id, title, order, utcnow().isoformat()),
        )
        return section_id

    def _insert_tree(self, con, script_id: str, sections: Sequence[ExportedSection]) -> None:
        """Insert sections with their questions; section orders must be unique."""
        seen = set()
        for section in sections:
            title = validate_text(section.title, "section title")
            order = validate_order_index(section.order, "section order")
            if order in seen:
                raise InvariantError("DUPLICATE_ORDER", f"section order {order} appears more than once")
            seen.add(order)
            section_id = self._insert_section(con, script_id, title, order)
            for q in section.questions:
                self._insert_question(
                    con,
                    section_id,
                    validate_text(q.text, "question text"),
                    validate_order_index(q.order, "question order"),
                    q.tags,
                )

    def create_script(
        self,
        name: str,
        description: Optional[str] = None,
        is_template: bool = False,
        default_sections: bool = False,
    ) -> Script:
        """`default_sections=True` seeds DEFAULT_SECTION_TITLES in order 0..4."""
        name = validate_text(name, "script name")
        with self._tx() as con:
            script_id = self._insert_script(con, name, description, is_template)
            if default_sections:
                for i, title in enumerate(DEFAULT_SECTION_TITLES):
                    self._insert_section(con, script_id, title, i)
        logger.info("created script %s (%s)", script_id, name)
        return self.get_script(script_id)

    def duplicate_script(self, script_id: str) -> Script:
        """Deep copy under "<name> (kopija)", keeping orders and tags."""
        source = self.get_script(script_id)
        with self._tx() as con:
            new_id = self._insert_script(con, f"{source.name}{COPY_SUFFIX}", source.description, source.is_template)
            self._insert_tree(con, new_id, self._exported_sections(source))
        logger.info("duplicated script %s into %s", script_id, new_id)
        return self.get_script(new_id)

    @staticmethod
    def _exported_sections(script: Script) -> List[ExportedSection]:
        return [
            ExportedSection(
                title=s.title,
                order=s.order,
                questions=[ExportedQuestion(text=q.text, order=q.order, tags=list(q.tags)) for q in s.questions],
            )
            for s in script.sections
        ]

    def export_script(self, script_id: str) -> ScriptExport:
        script = self.get_script(script_id)
        return ScriptExport(
            name=script.name,
            description=script.description,
            sections=self._exported_sections(script),
            exported_at=utcnow(),
        )

    def import_script(self, data: ScriptExport, name_suffix: str = IMPORT_SUFFIX) -> Script:
        """Create a new script from an export; nothing is written if any part is invalid."""
        name = validate_text(data.name, "script name") + name_suffix
        with self._tx() as con:
            script_id = self._insert_script(con, name, data.description, True)
            self._insert_tree(con, script_id, data.sections)
        logger.info("imported script %s (%s) with %d section(s)", script_id, name, len(data.sections))
        return self.get_script(script_id)

    def list_scripts(self) -> List[Script]:
        con = self._connect()
        try:
            rows = con.execute("SELECT * FROM scripts ORDER BY name COLLATE NOCASE, rowid").fetchall()
            return [self._script_from_row(r) for r in rows]
        finally:
            con.close()

    def get_script(self, script_id: str) -> Script:
        con = self._connect()
        try:
            script = self._script_from_row(self._require_script(con, script_id))
            sections = [
                self._section_from_row(r)
                for r in con.execute(
                    "SELECT * FROM script_sections WHERE script_id=? ORDER BY position, rowid", (script_id,)
                ).fetchall()
            ]
            by_section: Dict[str, List[Question]] = {s.id: [] for s in sections}
            rows = con.execute(
                '''
                SELECT q.* FROM script_questions q
                JOIN script_sections s ON s.id = q.section_id
                WHERE s.script_id=?
                ORDER BY q.position, q.rowid
                ''',
                (script_id,),
            ).fetchall()
            for r in rows:
                by_section[r["section_id"]].append(self._question_from_row(r))
            for s in sections:
                s.questions = by_section[s.id]
            script.sections = sections
            return script
        finally:
            con.close()

    def update_script(
        self,
        script_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        is_template: Optional[bool] = None,
    ) -> Script:
        with self._tx() as con:
            self._require_script(con, script_id)
            if name is not None:
                con.execute("UPDATE scripts SET name=? WHERE id=?", (validate_text(name, "script name"), script_id))
            if description is not None:
                con.execute("UPDATE scripts SET description=? WHERE id=?", (description, script_id))
            if is_template is not None:
                con.execute("UPDATE scripts SET is_template=? WHERE id=?", (int(bool(is_template)), script_id))
            self._touch_script(con, script_id)
        return self.get_script(script_id)

    def delete_script(self, script_id: str) -> None:
        with self._tx() as con:
            self._require_script(con, script_id)
            con.execute("DELETE FROM scripts WHERE id=?", (script_id,))
        logger.info("deleted script %s", script_id)

    # ---------- sections ----------

    def get_section(self, section_id: str) -> Section:
        con = self._connect()
        try:
            section = self._section_from_row(self._require_section(con, section_id))
            rows = con.execute(
                "SELECT * FROM script_questions WHERE section_id=? ORDER BY position, rowid", (section_id,)
            ).fetchall()
            section.questions = [self._question_from_row(r) for r in rows]
            return section
        finally:
            con.close()

    def create_section(self, script_id: str, title: str, order: Optional[int] = None) -> Section:
        title = validate_text(title, "section title")
        order = validate_order_index(order, "section order")
        with self._tx() as con:
            self._require_script(con, script_id)
            if order is None:
                row = con.execute(
                    "SELECT COALESCE(MAX(position) + 1, 0) AS nxt FROM script_sections WHERE script_id=?", (script_id,)
                ).fetchone()
                order = int(row["nxt"])
            else:
                self._check_section_order_free(con, script_id, order)
            section_id = self._insert_section(con, script_id, title, order)
            self._touch_script(con, script_id)
        return self.get_section(section_id)

    def update_section(self, section_id: str, title: Optional[str] = None, order: Optional[int] = None) -> Section:
        order = validate_order_index(order, "section order")
        with self._tx() as con:
            row = self._require_section(con, section_id)
            if title is not None:
                con.execute("UPDATE script_sections SET title=? WHERE id=?", (validate_text(title, "section title"), section_id))
            if order is not None:
                self._check_section_order_free(con, row["script_id"], order, exclude_id=section_id)
                con.execute("UPDATE script_sections SET position=? WHERE id=?", (order, section_id))
            self._touch_script(con, row["script_id"])
        return self.get_section(section_id)

    def delete_section(self, section_id: str) -> None:
        with self._tx() as con:
            row = self._require_section(con, section_id)
            con.execute("DELETE FROM script_sections WHERE id=?", (section_id,))
            self._touch_script(con, row["script_id"])

    def reorder_sections(self, script_id: str, ordered_ids: Sequence[str]) -> Script:
        with self._tx() as con:
            self._require_script(con, script_id)
            ordered = validate_permutation(ordered_ids, self._ordered_section_ids(con, script_id), "section")
            con.executemany(
                "UPDATE script_sections SET position=? WHERE id=?",
                [(i, sid) for i, sid in enumerate(ordered)],
            )
            self._touch_script(con, script_id)
        return self.get_script(script_id)

    # ---------- questions ----------

    def get_question(self, question_id: str) -> Question:
        con = self._connect()
        try:
            return self._question_from_row(self._require_question(con, question_id))
        finally:
            con.close()

    def question_script_id(self, question_id: str) -> str:
        con = self._connect()
        try:
            question = self._require_question(con, question_id)
            return self._require_section(con, question["section_id"])["script_id"]
        finally:
            con.close()

    def count_questions(self, section_id: str) -> int:
        con = self._connect()
        try:
            self._require_section(con, section_id)
            row = con.execute("SELECT COUNT(*) AS n FROM script_questions WHERE section_id=?", (section_id,)).fetchone()
            return int(row["n"])
        finally:
            con.close()

    def _insert_question(self, con, section_id: str, text: str, order: int, tags: Optional[List[str]] = None) -> str:
        question_id = _new_id()
        con.execute(
            "INSERT INTO script_questions(id, section_id, text, position, tags, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (question_id, section_id, text, order, json.dumps(list(tags or []), ensure_ascii=False), utcnow().isoformat()),
        )
        return question_id

    def create_question(
        self,
        section_id: str,
        text: str,
        order: Optional[int] = None,
        tags: Optional[List[str]] = None,
    ) -> Question:
        text = validate_text(text, "question text")
        order = validate_order_index(order, "question order")
        with self._tx() as con:
            section = self._require_section(con, section_id)
            if order is None:
                row = con.execute("SELECT COUNT(*) AS n FROM script_questions WHERE section_id=?", (section_id,)).fetchone()
                order = int(row["n"])
            question_id = self._insert_question(con, section_id, text, order, tags)
            self._touch_script(con, section["script_id"])
        return self.get_question(question_id)

    def update_question(
        self,
        question_id: str,
        text: Optional[str] = None,
        order: Optional[int] = None,
        tags: Optional[List[str]] = None,
    ) -> Question:
        order = validate_order_index(order, "question order")
        with self._tx() as con:
            question = self._require_question(con, question_id)
            if text is not None:
                con.execute("UPDATE script_questions SET text=? WHERE id=?", (validate_text(text, "question text"), question_id))
            if order is not None:
                con.execute("UPDATE script_questions SET position=? WHERE id=?", (order, question_id))
            if tags is not None:
                con.execute(
                    "UPDATE script_questions SET tags=? WHERE id=?",
                    (json.dumps(list(tags), ensure_ascii=False), question_id),
                )
            self._touch_section_script(con, question["section_id"])
        return self.get_question(question_id)

    def delete_question(self, question_id: str) -> None:
        with self._tx() as con:
            question = self._require_question(con, question_id)
            con.execute("DELETE FROM script_questions WHERE id=?", (question_id,))
            self._touch_section_script(con, question["section_id"])

    def reorder_questions(self, section_id: str, ordered_ids: Sequence[str]) -> Section:
        with self._tx() as con:
            self._require_section(con, section_id)
            ordered = validate_permutation(ordered_ids, self._ordered_question_ids(con, section_id), "question")
            con.executemany(
                "UPDATE script_questions SET position=? WHERE id=?",
                [(i, qid) for i, qid in enumerate(ordered)],
            )
            self._touch_section_script(con, section_id)
        return self.get_section(section_id)

    def move_question(self, question_id: str, target_section_id: str, target_index: int) -> Question:
        """Move a question to `target_index` of another (or the same) section, renumbering both lists."""
        target_index = validate_order_index(target_index, "target index")
        with self._tx() as con:
            question = self._require_question(con, question_id)
            source = self._require_section(con, question["section_id"])
            target = self._require_section(con, target_section_id)
            if source["script_id"] != target["script_id"]:
                raise InvariantError("CROSS_SCRIPT_MOVE", "questions can only move between sections of the same script")

            source_ids = [qid for qid in self._ordered_question_ids(con, source["id"]) if qid != question_id]
            target_ids = source_ids if source["id"] == target["id"] else self._ordered_question_ids(con, target["id"])
            if target_index > len(target_ids):
                raise InvariantError(
                    "INDEX_OUT_OF_RANGE",
                    f"target index {target_index} exceeds section size {len(target_ids)}",
                )
            target_ids.insert(target_index, question_id)

            con.execute("UPDATE script_questions SET section_id=? WHERE id=?", (target["id"], question_id))
            updates = [(i, qid) for i, qid in enumerate(target_ids)]
            if source["id"] != target["id"]:
                updates += [(i, qid) for i, qid in enumerate(source_ids)]
            con.executemany("UPDATE script_questions SET position=? WHERE id=?", updates)
            self._touch_script(con, target["script_id"])
        return self.get_question(question_id)

    def replace_section_questions(self, section_id: str, texts: Sequence[str], replace: bool) -> int:
        """
        Insert `texts` in order into one section inside a single transaction.
        replace=True deletes the existing questions first and numbers from 0;
        otherwise numbering continues from the current question count.
        """
        cleaned = [validate_text(t, "question text") for t in texts]
        with self._tx() as con:
            section = self._require_section(con, section_id)
            if replace:
                con.execute("DELETE FROM script_questions WHERE section_id=?", (section_id,))
                start = 0
            else:
                row = con.execute("SELECT COUNT(*) AS n FROM script_questions WHERE section_id=?", (section_id,)).fetchone()
                start = int(row["n"])
            for i, text in enumerate(cleaned):
                self._insert_question(con, section_id, text, start + i)
            self._touch_script(con, section["script_id"])
        return len(cleaned)
