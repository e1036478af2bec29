"""
FastAPI server for the knowledge marketplace.

Exposes package listing, lookup, and hybrid search over REST. Listing a
package also indexes its summary for semantic search when an embedding
provider is available; indexing failures never fail the listing itself.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import resolve_db_path, resolve_summary_index_path
from .embeddings import EmbeddingProvider
from .search import MarketplaceSearch, SearchResult
from .storage import DuckDBListingStore, PackageListing

logger = logging.getLogger(__name__)


class ListPackageRequest(BaseModel):
    """Request model for listing a package."""

    id: str
    name: str
    description: str = ""
    tags: str = ""
    price: float = 0.0
    package_path: str = ""
    creator_address: str | None = None
    token_address: str | None = None
    file_count: int = 0
    chunk_count: int = 0
    entity_count: int = 0


class SearchRequest(BaseModel):
    """Request model for search queries."""

    query: str
    limit: int = Field(default=10, ge=1, le=100)


class SaleRequest(BaseModel):
    buyer_address: str
    amount: float
    tx_hash: str


class RatingRequest(BaseModel):
    rater_address: str
    stars: int
    comment: str = ""


class MarketState:
    """Holds the store and search engine, opening them on first use."""

    def __init__(
        self,
        store: DuckDBListingStore | None = None,
        engine: MarketplaceSearch | None = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._owns_store = store is None
        self._owns_engine = engine is None

    @property
    def store(self) -> DuckDBListingStore:
        if self._store is None:
            self._store = DuckDBListingStore(resolve_db_path())
        return self._store

    @property
    def engine(self) -> MarketplaceSearch:
        if self._engine is None:
            try:
                provider: EmbeddingProvider | None = EmbeddingProvider()
            except ValueError:
                provider = None
            self._engine = MarketplaceSearch(
                self.store,
                embedding_provider=provider,
                index_path=resolve_summary_index_path(),
            )
        return self._engine

    def close(self) -> None:
        """Close the listing store if it was opened here rather than injected."""
        if self._owns_store and self._store is not None:
            self._store.close()
            self._store = None
            if self._owns_engine:
                self._engine = None


def _listing_payload(listing: PackageListing) -> dict[str, Any]:
    payload = asdict(listing)
    payload["tag_list"] = listing.tag_list
    return payload


def _result_payload(result: SearchResult) -> dict[str, Any]:
    payload = _listing_payload(result.listing)
    payload["score"] = result.score
    payload["match_type"] = result.match_type
    return payload


def create_app(
    store: DuckDBListingStore | None = None,
    engine: MarketplaceSearch | None = None,
) -> FastAPI:
    """Build the API. Omitted dependencies are resolved from configuration."""
    state = MarketState(store, engine)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        state.close()

    app = FastAPI(
        title="Memory Markets",
        description="Knowledge package marketplace",
        lifespan=lifespan,
    )
    app.state.market = state

    @app.post("/api/packages", status_code=201)
    async def list_package(request: ListPackageRequest):
        """List a package and index its summary for semantic search."""
        try:
            listing = PackageListing(**request.model_dump())
            state.store.list_package(listing)
        except Exception as exc:
            return JSONResponse({"error": str(exc)}, status_code=500)

        semantic_indexed = True
        try:
            state.engine.index_package_summary(listing.id, listing.summary_text())
        except Exception as exc:
            logger.warning("Summary indexing failed for %s: %s", listing.id, exc)
            semantic_indexed = False

        stored = state.store.get_package(listing.id) or listing
        return {"package": _listing_payload(stored), "semantic_indexed": semantic_indexed}

    @app.get("/api/packages")
    async def list_packages():
        """Return every listing, newest first."""
        return {
            "packages": [_listing_payload(listing) for listing in state.store.get_all_packages()]
        }

    @app.get("/api/packages/{package_id}")
    async def get_package(package_id: str):
        listing = state.store.get_package(package_id)
        if listing is None:
            return JSONResponse({"error": f"Package not found: {package_id}"}, status_code=404)
        rating = state.store.get_package_rating(package_id)
        return {
            "package": _listing_payload(listing),
            "rating": asdict(rating) if rating is not None else None,
            "sales_count": len(state.store.get_sales(package_id)),
        }

    @app.delete("/api/packages/{package_id}")
    async def delete_package(package_id: str):
        if not state.store.delete_package(package_id):
            return JSONResponse({"error": f"Package not found: {package_id}"}, status_code=404)
        unindexed = state.engine.remove_package_summary(package_id)
        return {"deleted": package_id, "unindexed": unindexed}

    @app.post("/api/search")
    async def search_packages(request: SearchRequest):
        """Search listings and return ranked results."""
        if not request.query.strip():
            return JSONResponse({"error": "Query must not be empty."}, status_code=400)

        degraded = False
        try:
            try:
                results = state.engine.search(request.query, limit=request.limit)
            except Exception as exc:
                logger.warning("Semantic search failed, using keyword results: %s", exc)
                degraded = True
                results = state.engine.keyword_search(request.query)[: request.limit]
        except Exception as exc:
            return JSONResponse({"error": str(exc)}, status_code=500)

        return {
            "query": request.query,
            "degraded": degraded,
            "results": [_result_payload(result) for result in results],
        }

    @app.post("/api/packages/{package_id}/sales", status_code=201)
    async def record_sale(package_id: str, request: SaleRequest):
        try:
            sale_id = state.store.record_sale(
                package_id, request.buyer_address, request.amount, request.tx_hash
            )
        except KeyError:
            return JSONResponse({"error": f"Package not found: {package_id}"}, status_code=404)
        return {"sale_id": sale_id, "package_id": package_id}

    @app.post("/api/packages/{package_id}/ratings", status_code=201)
    async def rate_package(package_id: str, request: RatingRequest):
        try:
            state.store.rate_package(
                package_id, request.rater_address, request.stars, request.comment
            )
        except KeyError:
            return JSONResponse({"error": f"Package not found: {package_id}"}, status_code=404)
        except ValueError as exc:
            return JSONResponse({"error": str(exc)}, status_code=400)
        rating = state.store.get_package_rating(package_id)
        return {"package_id": package_id, "rating": asdict(rating) if rating else None}

    return app


app = create_app()


def run_server(host: str = "127.0.0.1", port: int = 8000):
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
