"""Search helpers for marketplace listings."""

from .marketplace import MarketplaceSearch, SemanticSearchUnavailableError
from .ranker import (
    KEYWORD_WEIGHT,
    SEMANTIC_WEIGHT,
    FusedListing,
    MatchType,
    SearchResult,
    fuse_results,
    keyword_position_score,
)
from .vector_index import (
    DimensionMismatchError,
    VectorEntry,
    VectorIndex,
    VectorIndexLoadError,
    VectorSearchResult,
    cosine_similarity,
)

__all__ = [
    "MarketplaceSearch",
    "SemanticSearchUnavailableError",
    "KEYWORD_WEIGHT",
    "SEMANTIC_WEIGHT",
    "FusedListing",
    "MatchType",
    "SearchResult",
    "fuse_results",
    "keyword_position_score",
    "DimensionMismatchError",
    "VectorEntry",
    "VectorIndex",
    "VectorIndexLoadError",
    "VectorSearchResult",
    "cosine_similarity",
]
