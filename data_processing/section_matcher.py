"""
Reconcile parsed section headers with a script's existing sections.

Deliberately simple heuristics tuned for short section titles: exact
equality, substring containment and token-set (Jaccard) overlap on the
normalized strings. Every parsed section is matched on its own; there is no
global assignment across parsed sections.
"""
from __future__ import annotations
import logging
from typing import List, Optional, Sequence, Set

from common.models import (
    CandidateMethod,
    MatchCandidate,
    MatchType,
    ParsedSection,
    Section,
    SectionMatch,
)
from data_processing.script_parser import normalize_header

logger = logging.getLogger(__name__)

# Containment scores are scaled by this so they always stay below an exact match.
CONTAINMENT_SCALE = 0.95
# Token-overlap candidates need a Jaccard similarity strictly above this.
FUZZY_MIN_SIMILARITY = 0.3
# The best candidate is accepted as the match only at or above this score.
ACCEPT_THRESHOLD = 0.5
# Tokens shorter than this are ignored by the overlap measure.
MIN_TOKEN_LENGTH = 2


def containment_score(a: str, b: str, scale: float = CONTAINMENT_SCALE) -> Optional[float]:
    """shorter/longer * scale when one normalized string contains the other, else None."""
    if not a or not b:
        return None
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if shorter not in longer:
        return None
    return len(shorter) / len(longer) * scale


def _tokens(s: str, min_len: int = MIN_TOKEN_LENGTH) -> Set[str]:
    return {t for t in s.split() if len(t) >= min_len}


def token_similarity(a: str, b: str, min_token_len: int = MIN_TOKEN_LENGTH) -> float:
    ta, tb = _tokens(a, min_token_len), _tokens(b, min_token_len)
    union = ta | tb
    if not union:
        return 0.0
    return len(ta & tb) / len(union)


def match_section(
    parsed: ParsedSection,
    existing_sections: Sequence[Section],
    accept_threshold: float = ACCEPT_THRESHOLD,
    fuzzy_min_similarity: float = FUZZY_MIN_SIMILARITY,
    containment_scale: float = CONTAINMENT_SCALE,
    min_token_len: int = MIN_TOKEN_LENGTH,
) -> SectionMatch:
    key = parsed.normalized_header or normalize_header(parsed.header)
    candidates: List[MatchCandidate] = []

    for section in existing_sections:
        title_key = normalize_header(section.title)

        if key and key == title_key:
            return SectionMatch(
                parsed=parsed,
                matched_section_id=section.id,
                matched_section_title=section.title,
                match_type=MatchType.EXACT,
                confidence=1.0,
            )

        score = containment_score(key, title_key, scale=containment_scale)
        if score is not None:
            candidates.append(MatchCandidate(
                section_id=section.id,
                section_title=section.title,
                method=CandidateMethod.CONTAINS,
                score=score,
            ))

        # evaluated even when containment already produced a candidate
        similarity = token_similarity(key, title_key, min_token_len=min_token_len)
        if similarity > fuzzy_min_similarity:
            candidates.append(MatchCandidate(
                section_id=section.id,
                section_title=section.title,
                method=CandidateMethod.FUZZY,
                score=similarity,
            ))

    # stable: equal scores keep section order, containment before overlap
    candidates.sort(key=lambda c: c.score, reverse=True)

    if candidates and candidates[0].score >= accept_threshold:
        best = candidates[0]
        return SectionMatch(
            parsed=parsed,
            matched_section_id=best.section_id,
            matched_section_title=best.section_title,
            match_type=MatchType.ALIAS if best.method == CandidateMethod.CONTAINS else MatchType.FUZZY,
            confidence=best.score,
            alternative_matches=candidates[1:],
        )

    return SectionMatch(parsed=parsed, match_type=MatchType.NONE, confidence=0.0, alternative_matches=candidates)


def match_sections(
    parsed_sections: Sequence[ParsedSection],
    existing_sections: Sequence[Section],
    **thresholds,
) -> List[SectionMatch]:
    matches = [match_section(p, existing_sections, **thresholds) for p in parsed_sections]
    logger.debug(
        "matched %d/%d parsed sections",
        sum(1 for m in matches if m.match_type != MatchType.NONE),
        len(matches),
    )
    return matches
