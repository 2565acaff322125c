"""Score fusion and ordering of keyword and semantic candidates."""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from ..config.settings import RankingWeights
from .models import (
    IndexedDocument,
    KeywordHit,
    SearchMode,
    SearchResultItem,
    SortOrder,
)

EXCERPT_LENGTH = 200
ELLIPSIS = "..."


@dataclass
class Candidate:
    """A document with its fused score and per-source breakdown."""

    document: IndexedDocument
    score: float
    keyword_score: float = 0.0
    semantic_score: float = 0.0

    @property
    def key(self) -> Tuple[str, str]:
        return (self.document.entity_type, self.document.entity_id)

    def to_result(self) -> SearchResultItem:
        doc = self.document
        return SearchResultItem(
            entity_type=doc.entity_type,
            entity_id=doc.entity_id,
            title=doc.title,
            excerpt=make_excerpt(doc.content),
            score=self.score,
            metadata=doc.metadata,
            created_at=doc.created_at,
            updated_at=doc.updated_at,
        )


def make_excerpt(content: Optional[str], max_length: int = EXCERPT_LENGTH) -> str:
    """Truncate to ``max_length`` characters, ellipsis included."""
    if not content:
        return ""
    if len(content) <= max_length:
        return content
    return content[: max_length - len(ELLIPSIS)] + ELLIPSIS


def fuse(
    keyword_hits: Iterable[KeywordHit],
    semantic_matches: Iterable[Tuple[IndexedDocument, float]],
    weights: RankingWeights,
    mode: SearchMode,
) -> List[Candidate]:
    """Merge per-source results into one candidate per (entity_type, entity_id).

    Hybrid mode combines ``keyword_score * keyword_weight`` with
    ``semantic_score * semantic_weight``; single-source modes keep raw scores.
    """
    hybrid = mode == SearchMode.HYBRID
    merged: Dict[Tuple[str, str], Candidate] = {}

    for hit in keyword_hits:
        score = hit.score * weights.keyword if hybrid else hit.score
        merged[hit.key] = Candidate(hit.document, score, keyword_score=hit.score)

    for document, semantic_score in semantic_matches:
        key = (document.entity_type, document.entity_id)
        contribution = semantic_score * weights.semantic if hybrid else semantic_score
        existing = merged.get(key)
        if existing is not None:
            existing.score += contribution
            existing.semantic_score = semantic_score
        else:
            merged[key] = Candidate(
                document, contribution, semantic_score=semantic_score
            )

    return list(merged.values())


def _updated(candidate: Candidate) -> float:
    updated_at = candidate.document.updated_at
    return updated_at.timestamp() if updated_at else 0.0


def sort_candidates(candidates: List[Candidate], order: SortOrder) -> List[Candidate]:
    """Order candidates; ties fall back to updated_at desc then key asc."""
    # Stable sorts, least significant key first
    ordered = sorted(candidates, key=lambda c: c.key)
    ordered.sort(key=_updated, reverse=True)

    if order == SortOrder.RELEVANCE:
        ordered.sort(key=lambda c: c.score, reverse=True)
    elif order == SortOrder.DATE_ASC:
        ordered.sort(key=_updated)
    elif order == SortOrder.POPULARITY:
        ordered.sort(key=lambda c: c.document.rank, reverse=True)
    # DATE_DESC is already the tie-break order

    return ordered
