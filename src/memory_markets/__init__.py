"""
Memory Markets - a marketplace for portable knowledge packages.

This package lists exported knowledge packages in a DuckDB registry and
finds them again with hybrid search: keyword matching over listing text,
plus semantic similarity over package summaries embedded with Google
Gemini.

Example usage:
    >>> from memory_markets import DuckDBListingStore, MarketplaceSearch
    >>> store = DuckDBListingStore("registry.duckdb")
    >>> engine = MarketplaceSearch(store)
    >>> results = engine.search("solidity auditing", limit=5)
"""

__version__ = "0.1.0"

from .embeddings import EmbeddingProvider
from .search import (
    DimensionMismatchError,
    MarketplaceSearch,
    SearchResult,
    SemanticSearchUnavailableError,
    VectorIndex,
)
from .storage import DuckDBListingStore, ListingStore, PackageListing

__all__ = [
    "__version__",
    # Search
    "MarketplaceSearch",
    "SearchResult",
    "SemanticSearchUnavailableError",
    "VectorIndex",
    "DimensionMismatchError",
    # Storage
    "DuckDBListingStore",
    "ListingStore",
    "PackageListing",
    # Embeddings
    "EmbeddingProvider",
]
