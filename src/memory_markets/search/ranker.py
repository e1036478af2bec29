"""
Ranking helpers for merging keyword and semantic marketplace results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, TypeAlias

from ..storage import PackageListing

MatchType: TypeAlias = Literal["keyword", "semantic", "combined"]

KEYWORD_WEIGHT = 0.4
SEMANTIC_WEIGHT = 0.6
KEYWORD_SCORE_STEP = 0.05


@dataclass(frozen=True)
class SearchResult:
    """A listing annotated with its ranking score and how it matched."""

    listing: PackageListing
    score: float
    match_type: MatchType


@dataclass(frozen=True)
class FusedListing:
    """Merged retrieval candidate for one listing."""

    listing: PackageListing
    keyword_score: float = 0.0
    semantic_score: float = 0.0

    @property
    def combined_score(self) -> float:
        return self.keyword_score * KEYWORD_WEIGHT + self.semantic_score * SEMANTIC_WEIGHT

    @property
    def match_type(self) -> MatchType:
        if self.keyword_score != 0 and self.semantic_score != 0:
            return "combined"
        if self.keyword_score != 0:
            return "keyword"
        return "semantic"


def keyword_position_score(rank: int) -> float:
    """Synthetic score for the zero-based ``rank`` of a keyword hit."""
    return 1.0 - rank * KEYWORD_SCORE_STEP


def fuse_results(
    keyword: list[SearchResult],
    semantic: list[SearchResult],
    *,
    limit: int,
) -> list[SearchResult]:
    """Merge both result lists by weighted score and apply limit."""
    merged: dict[str, FusedListing] = {}

    for result in keyword:
        merged[result.listing.id] = FusedListing(
            listing=result.listing, keyword_score=result.score
        )

    for result in semantic:
        existing = merged.get(result.listing.id)
        if existing is None:
            merged[result.listing.id] = FusedListing(
                listing=result.listing, semantic_score=result.score
            )
        else:
            merged[result.listing.id] = FusedListing(
                listing=existing.listing,
                keyword_score=existing.keyword_score,
                semantic_score=result.score,
            )

    return [
        SearchResult(
            listing=fused.listing,
            score=fused.combined_score,
            match_type=fused.match_type,
        )
        for fused in rank_fused(list(merged.values()), limit=limit)
    ]


def rank_fused(candidates: list[FusedListing], *, limit: int) -> list[FusedListing]:
    """Sort merged candidates by combined score and apply limit."""
    ordered = sorted(
        candidates,
        key=lambda fused: (
            -fused.combined_score,
            -fused.semantic_score,
            -fused.keyword_score,
            fused.listing.id,
        ),
    )
    return ordered[: max(limit, 0)]
