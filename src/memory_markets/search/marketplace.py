"""
Hybrid keyword + semantic search over marketplace listings.

Keyword search always runs against the listing store. When an embedding
provider is configured and the summary index holds entries, the query is
also embedded and matched against package summaries; the two result sets
are then fused by weighted score.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..embeddings import EmbeddingProvider
from ..storage import ListingStore, PackageListing
from .ranker import SearchResult, fuse_results, keyword_position_score
from .vector_index import VectorIndex, VectorIndexLoadError

logger = logging.getLogger(__name__)


class SemanticSearchUnavailableError(RuntimeError):
    """Raised when summary indexing is requested without an embedding provider."""


class MarketplaceSearch:
    """Search engine combining listing-store keyword hits with summary embeddings."""

    def __init__(
        self,
        store: ListingStore,
        *,
        embedding_provider: EmbeddingProvider | None = None,
        index_path: str | Path | None = None,
        index: VectorIndex | None = None,
    ) -> None:
        self.store = store
        self.embedding_provider = embedding_provider
        self.index_path = Path(index_path) if index_path is not None else None
        self.index = index

        if self.index is None:
            try:
                loaded = self.load_summary_index()
            except VectorIndexLoadError as exc:
                logger.warning("Ignoring unreadable summary index, run reindex: %s", exc)
                loaded = False
            if not loaded and embedding_provider is not None:
                self.index = VectorIndex(embedding_provider.dim)

        if not self.index_matches_provider:
            logger.warning(
                "Summary index has %d dimensions but the embedding provider returns %d; "
                "semantic search is disabled until the index is rebuilt",
                self.index.dimensions,
                embedding_provider.dim,
            )

    @property
    def index_matches_provider(self) -> bool:
        """False when a loaded index was built for another embedding size."""
        if self.embedding_provider is None or self.index is None:
            return True
        return self.index.dimensions == self.embedding_provider.dim

    @property
    def semantic_available(self) -> bool:
        return (
            self.embedding_provider is not None
            and self.index is not None
            and self.index.size > 0
            and self.index_matches_provider
        )

    def search(self, query: str, limit: int = 10) -> list[SearchResult]:
        """Return listings ranked by keyword and, when available, semantic match.

        Embedding failures during the semantic leg propagate to the caller.
        """
        keyword_results = self.keyword_search(query)

        semantic_results: list[SearchResult] = []
        if self.semantic_available:
            semantic_results = self.semantic_search(query, limit)

        if not semantic_results:
            return keyword_results[: max(limit, 0)]

        return fuse_results(keyword_results, semantic_results, limit=limit)

    def keyword_search(self, query: str) -> list[SearchResult]:
        """Substring search; scores derive from the store's ranking position."""
        return [
            SearchResult(
                listing=listing,
                score=keyword_position_score(rank),
                match_type="keyword",
            )
            for rank, listing in enumerate(self.store.search_by_keyword(query))
        ]

    def semantic_search(self, query: str, limit: int = 10) -> list[SearchResult]:
        """Nearest package summaries to the query embedding."""
        if not self.semantic_available:
            return []

        query_embedding = self.embedding_provider.embed_query(query)
        neighbours = self.index.query(query_embedding, limit)

        results: list[SearchResult] = []
        for neighbour in neighbours:
            package_id = neighbour.metadata.get("packageId", neighbour.id)
            listing = self.store.get_package(str(package_id))
            if listing is None:
                continue
            results.append(
                SearchResult(listing=listing, score=neighbour.score, match_type="semantic")
            )

        dropped = len(neighbours) - len(results)
        if dropped:
            logger.debug("Dropped %d summary index entries with no listing", dropped)
        return results

    def index_package_summary(self, package_id: str, summary_text: str) -> None:
        """Embed a package summary and persist it to the summary index."""
        if self.embedding_provider is None:
            raise SemanticSearchUnavailableError(
                "No embedding provider configured; package summaries cannot be indexed."
            )
        if self.index is None:
            self.index = VectorIndex(self.embedding_provider.dim)
        elif not self.index_matches_provider:
            raise SemanticSearchUnavailableError(
                f"Summary index has {self.index.dimensions} dimensions, expected "
                f"{self.embedding_provider.dim}; run reindex to rebuild it."
            )

        embedding = self.embedding_provider.embed_one(summary_text)
        self.index.add(package_id, embedding, {"packageId": package_id})
        self._persist()

    def rebuild_summary_index(self, listings: list[PackageListing]) -> int:
        """Replace the summary index with fresh embeddings of ``listings``."""
        if self.embedding_provider is None:
            raise SemanticSearchUnavailableError(
                "No embedding provider configured; package summaries cannot be indexed."
            )
        embeddings = self.embedding_provider.embed_summaries(listings)
        index = VectorIndex(self.embedding_provider.dim)
        index.add_batch(
            {"id": listing.id, "embedding": embedding, "metadata": {"packageId": listing.id}}
            for listing, embedding in zip(listings, embeddings)
        )
        self.index = index
        self._persist()
        return index.size

    def remove_package_summary(self, package_id: str) -> bool:
        """Drop a package from the summary index; returns whether it was indexed."""
        if self.index is None or not self.index.delete(package_id):
            return False
        self._persist()
        return True

    def load_summary_index(self) -> bool:
        """Reload the summary index from ``index_path`` if the file exists."""
        if self.index_path is None or not self.index_path.exists():
            return False
        self.index = VectorIndex.load(self.index_path)
        return True

    def _persist(self) -> None:
        if self.index_path is not None and self.index is not None:
            self.index.save(self.index_path)
