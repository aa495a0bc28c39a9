from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuestionStatus(str, Enum):
    PENDING = "pending"
    ASKED = "asked"
    DONE = "done"
    SKIPPED = "skipped"


# done/skipped are the only statuses that count as "answered"
ANSWERED_STATUSES = frozenset({QuestionStatus.DONE, QuestionStatus.SKIPPED})


class CoverageLevel(str, Enum):
    EMPTY = "empty"
    PARTIAL = "partial"
    COVERED = "covered"


class MatchType(str, Enum):
    EXACT = "exact"
    ALIAS = "alias"
    FUZZY = "fuzzy"
    NONE = "none"


class CandidateMethod(str, Enum):
    CONTAINS = "contains"
    FUZZY = "fuzzy"


# ===========================
# Catalog
# ===========================

class Question(BaseModel):
    id: str
    section_id: str
    text: str
    order: int = Field(ge=0)
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class Section(BaseModel):
    id: str
    script_id: str
    title: str
    order: int = Field(ge=0)
    questions: List[Question] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class Script(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    is_template: bool = False
    sections: List[Section] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Portable JSON form of a script: no ids, only content and order.

class ExportedQuestion(BaseModel):
    text: str
    order: int = Field(default=0, ge=0)
    tags: List[str] = Field(default_factory=list)


class ExportedSection(BaseModel):
    title: str
    order: int = Field(default=0, ge=0)
    questions: List[ExportedQuestion] = Field(default_factory=list)


class ScriptExport(BaseModel):
    name: str
    description: Optional[str] = None
    sections: List[ExportedSection] = Field(default_factory=list)
    exported_at: Optional[datetime] = None


# ===========================
# Session progress
# ===========================

class QuestionState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    question_id: str
    status: QuestionStatus = QuestionStatus.PENDING
    skip_reason: Optional[str] = None
    notes: Optional[str] = None
    asked_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class QuestionStateUpdate(BaseModel):
    """Partial update; only fields explicitly set by the caller are merged."""
    model_config = ConfigDict(extra="forbid")

    status: Optional[QuestionStatus] = None
    skip_reason: Optional[str] = None
    notes: Optional[str] = None
    asked_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class AdHocQuestion(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    text: str
    status: QuestionStatus = QuestionStatus.PENDING
    skip_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    asked_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class AdHocQuestionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: Optional[str] = None
    status: Optional[QuestionStatus] = None
    skip_reason: Optional[str] = None


class SessionScriptState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    active_script_id: Optional[str] = None
    question_states: Dict[str, QuestionState] = Field(default_factory=dict)
    ad_hoc_questions: List[AdHocQuestion] = Field(default_factory=list)
    section_overrides: Dict[str, bool] = Field(default_factory=dict)
    quick_notes: str = ""

    def status_of(self, question_id: str) -> QuestionStatus:
        state = self.question_states.get(question_id)
        return state.status if state else QuestionStatus.PENDING


# ===========================
# Selector output
# ===========================

class NextQuestion(BaseModel):
    question: Optional[Union[Question, AdHocQuestion]] = None
    section_id: Optional[str] = None
    is_ad_hoc: bool = False
    is_complete: bool = False


# ===========================
# Import pipeline
# ===========================

class ParsedSection(BaseModel):
    header: str
    normalized_header: str
    questions: List[str] = Field(default_factory=list)


class MatchCandidate(BaseModel):
    section_id: str
    section_title: str
    method: CandidateMethod
    score: float = Field(ge=0.0, le=1.0)


class SectionMatch(BaseModel):
    parsed: ParsedSection
    matched_section_id: Optional[str] = None
    matched_section_title: Optional[str] = None
    match_type: MatchType = MatchType.NONE
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    alternative_matches: List[MatchCandidate] = Field(default_factory=list)


class ImportPreview(BaseModel):
    matches: List[SectionMatch] = Field(default_factory=list)
    total_questions: int = 0
    matched_count: int = 0
    unmatched_count: int = 0


class SectionImportFailure(BaseModel):
    section_id: str
    header: str
    error: str


class ImportResult(BaseModel):
    questions_imported: int = 0
    sections_updated: int = 0
    failures: List[SectionImportFailure] = Field(default_factory=list)
