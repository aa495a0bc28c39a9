import logging
import sqlite3
from typing import List, Sequence

from common.catalog_store import ScriptCatalog
from common.models import (
    ImportPreview,
    ImportResult,
    MatchType,
    Section,
    SectionImportFailure,
    SectionMatch,
)
from data_processing.script_parser import parse_question_lines, parse_script_text
from data_processing.section_matcher import match_sections
from data_processing.validators import InvariantError

logger = logging.getLogger(__name__)


def preview_import(raw_text: str, existing_sections: Sequence[Section], **thresholds) -> ImportPreview:
    """Read-only: safe to call on every keystroke while the user edits the pasted text."""
    parsed = parse_script_text(raw_text)
    matches = match_sections(parsed, existing_sections, **thresholds)
    matched = sum(1 for m in matches if m.match_type != MatchType.NONE)
    return ImportPreview(
        matches=matches,
        total_questions=sum(len(p.questions) for p in parsed),
        matched_count=matched,
        unmatched_count=len(matches) - matched,
    )


def apply_import(catalog: ScriptCatalog, matches: Sequence[SectionMatch], replace_mode: bool) -> ImportResult:
    """
    Write confirmed matches into the catalog, one section at a time.

    Each section is its own transaction: a failure is recorded and the
    remaining sections still run, so the result carries exact counts rather
    than all-or-nothing. Entries without a target section are skipped; new
    sections are never created here.
    """
    result = ImportResult()
    for m in matches:
        if not m.matched_section_id:
            logger.info("import: skipping unmatched header %r", m.parsed.header)
            continue
        try:
            inserted = catalog.replace_section_questions(m.matched_section_id, m.parsed.questions, replace=replace_mode)
        except (InvariantError, sqlite3.Error) as e:
            logger.warning("import: section %s (%r) failed: %s", m.matched_section_id, m.parsed.header, e)
            result.failures.append(SectionImportFailure(
                section_id=m.matched_section_id,
                header=m.parsed.header,
                error=str(e),
            ))
            continue
        result.sections_updated += 1
        result.questions_imported += inserted
        logger.info(
            "import: %s %d question(s) into section %s",
            "replaced with" if replace_mode else "appended", inserted, m.matched_section_id,
        )
    return result


def bulk_add_questions(catalog: ScriptCatalog, section_id: str, raw_text: str) -> int:
    """Append newline-separated questions to one section; returns how many were added."""
    questions: List[str] = parse_question_lines(raw_text)
    if not questions:
        return 0
    return catalog.replace_section_questions(section_id, questions, replace=False)
