# script_parser.py
from __future__ import annotations
from typing import List, Optional
import re
import unicodedata

from common.models import ParsedSection

BULLET_RE = re.compile(r"^[•\-*]\s+")
PARENTHETICAL_RE = re.compile(r"\([^)]*\)")
# anything that is not a letter, digit or whitespace (underscore counts as punctuation here)
NON_WORD_RE = re.compile(r"[^\w\s]|_")
WHITESPACE_RE = re.compile(r"\s+")


def is_bullet_line(line: str) -> bool:
    return bool(BULLET_RE.match(line.strip()))


def _bullet_text(line: str) -> Optional[str]:
    s = line.strip()
    m = BULLET_RE.match(s)
    if not m:
        return None
    return s[m.end():].strip()


def normalize_header(text: str) -> str:
    """
    Matching key for a header; the raw header is kept for display.
      "Procesai (ir įrankiai)!!" -> "procesai"
    """
    # composed form first, so "i" + U+0328 keeps its mark like a precomposed "į"
    s = unicodedata.normalize("NFC", text or "").lower()
    s = PARENTHETICAL_RE.sub("", s)
    s = NON_WORD_RE.sub("", s)
    s = WHITESPACE_RE.sub(" ", s)
    return s.strip()


def _detect_headers(lines: List[str]) -> List[int]:
    """
    A non-empty, non-bullet line is a header candidate when the next
    non-blank line after it is a bullet. Blank lines are skipped, not
    treated as terminators.
    """
    headers: List[int] = []
    n = len(lines)
    for i, line in enumerate(lines):
        if not line.strip() or is_bullet_line(line):
            continue
        for j in range(i + 1, n):
            nxt = lines[j]
            if not nxt.strip():
                continue
            if is_bullet_line(nxt):
                headers.append(i)
            break
    return headers


def parse_script_text(text: str) -> List[ParsedSection]:
    """
    Turn pasted free-form text into (header, questions) pairs.
    Headers that end up capturing no bullet are dropped; "nothing found" is
    an empty list, never an exception.
    """
    if not text or not text.strip():
        return []
    lines = text.splitlines()
    headers = _detect_headers(lines)

    sections: List[ParsedSection] = []
    for k, start in enumerate(headers):
        stop = headers[k + 1] if k + 1 < len(headers) else len(lines)
        questions = []
        for line in lines[start + 1:stop]:
            q = _bullet_text(line)
            if q:
                questions.append(q)
        if not questions:
            continue
        header = lines[start].strip()
        sections.append(ParsedSection(
            header=header,
            normalized_header=normalize_header(header),
            questions=questions,
        ))
    return sections


def parse_question_lines(text: str) -> List[str]:
    """One question per non-blank line, for adding to a single known section."""
    out: List[str] = []
    for line in (text or "").splitlines():
        s = line.strip()
        if not s:
            continue
        out.append(_bullet_text(s) or s)
    return out
