"""Tests for the marketplace REST endpoints."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from memory_markets.search import MarketplaceSearch, VectorIndex
from memory_markets.server import create_app
from memory_markets.storage import DuckDBListingStore


@pytest.fixture()
def index_path(tmp_path: Path) -> Path:
    return tmp_path / "summary-index.json"


@pytest.fixture()
def client(store, embedding_provider, index_path: Path) -> TestClient:
    engine = MarketplaceSearch(
        store, embedding_provider=embedding_provider, index_path=index_path
    )
    return TestClient(create_app(store=store, engine=engine))


@pytest.fixture()
def keyword_client(store) -> TestClient:
    return TestClient(create_app(store=store, engine=MarketplaceSearch(store)))


def _list_samples(client: TestClient, sample_listings) -> None:
    for listing in sample_listings:
        response = client.post(
            "/api/packages",
            json={
                "id": listing.id,
                "name": listing.name,
                "description": listing.description,
                "tags": listing.tags,
                "price": listing.price,
            },
        )
        assert response.status_code == 201


def test_list_package_indexes_summary(client: TestClient, index_path: Path) -> None:
    response = client.post(
        "/api/packages",
        json={"id": "pkg-py", "name": "Python recipes", "tags": "python,ml", "price": 3},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["semantic_indexed"] is True
    assert data["package"]["id"] == "pkg-py"
    assert data["package"]["tag_list"] == ["python", "ml"]
    assert VectorIndex.load(index_path).has("pkg-py")


def test_list_package_without_provider_still_lists(keyword_client: TestClient) -> None:
    response = keyword_client.post(
        "/api/packages", json={"id": "pkg-py", "name": "Python recipes"}
    )

    assert response.status_code == 201
    assert response.json()["semantic_indexed"] is False
    assert keyword_client.get("/api/packages/pkg-py").status_code == 200


def test_list_package_survives_embedding_failure(client: TestClient, genai_client) -> None:
    genai_client.models.fail_with = RuntimeError("rate limited")

    response = client.post("/api/packages", json={"id": "pkg-py", "name": "Python recipes"})

    assert response.status_code == 201
    assert response.json()["semantic_indexed"] is False


def test_get_package(client: TestClient, sample_listings) -> None:
    _list_samples(client, sample_listings)

    response = client.get("/api/packages/pkg-sol")

    assert response.status_code == 200
    data = response.json()
    assert data["package"]["name"] == "Smart contract audits"
    assert data["rating"] is None
    assert data["sales_count"] == 0


def test_get_unknown_package_returns_404(client: TestClient) -> None:
    response = client.get("/api/packages/missing")

    assert response.status_code == 404
    assert "error" in response.json()


def test_list_all_packages(client: TestClient, sample_listings) -> None:
    _list_samples(client, sample_listings)

    response = client.get("/api/packages")

    assert response.status_code == 200
    assert {p["id"] for p in response.json()["packages"]} == {"pkg-ts", "pkg-sol", "pkg-py"}


def test_search_returns_fused_results(client: TestClient, sample_listings) -> None:
    _list_samples(client, sample_listings)

    response = client.post("/api/search", json={"query": "python", "limit": 2})

    assert response.status_code == 200
    data = response.json()
    assert data["degraded"] is False
    assert len(data["results"]) == 2
    top = data["results"][0]
    assert top["id"] == "pkg-py"
    assert top["match_type"] == "combined"
    assert top["score"] == pytest.approx(0.4 + 0.6 * (2 ** -0.5))


def test_search_keyword_only_engine(keyword_client: TestClient, sample_listings) -> None:
    _list_samples(keyword_client, sample_listings)

    response = keyword_client.post("/api/search", json={"query": "blockchain"})

    results = response.json()["results"]
    assert [r["id"] for r in results] == ["pkg-sol"]
    assert results[0]["match_type"] == "keyword"
    assert results[0]["score"] == pytest.approx(1.0)


def test_search_degrades_when_embedding_fails(
    client: TestClient, sample_listings, genai_client
) -> None:
    _list_samples(client, sample_listings)
    genai_client.models.fail_with = RuntimeError("service unavailable")

    response = client.post("/api/search", json={"query": "python"})

    assert response.status_code == 200
    data = response.json()
    assert data["degraded"] is True
    assert [r["id"] for r in data["results"]] == ["pkg-py"]


def test_search_rejects_blank_query(client: TestClient) -> None:
    response = client.post("/api/search", json={"query": "  "})

    assert response.status_code == 400


def test_search_without_matches_is_empty(keyword_client: TestClient) -> None:
    response = keyword_client.post("/api/search", json={"query": "cobol"})

    assert response.status_code == 200
    assert response.json()["results"] == []


def test_delete_package_removes_summary(
    client: TestClient, sample_listings, index_path: Path
) -> None:
    _list_samples(client, sample_listings)

    response = client.delete("/api/packages/pkg-py")

    assert response.status_code == 200
    assert response.json()["unindexed"] is True
    assert not VectorIndex.load(index_path).has("pkg-py")
    assert client.delete("/api/packages/pkg-py").status_code == 404


def test_sales_and_ratings(client: TestClient, sample_listings) -> None:
    _list_samples(client, sample_listings)

    sale = client.post(
        "/api/packages/pkg-ts/sales",
        json={"buyer_address": "0xabc", "amount": 2.0, "tx_hash": "0xdead"},
    )
    rating = client.post(
        "/api/packages/pkg-ts/ratings",
        json={"rater_address": "0xabc", "stars": 5, "comment": "clear"},
    )
    bad_rating = client.post(
        "/api/packages/pkg-ts/ratings", json={"rater_address": "0xabc", "stars": 7}
    )
    missing = client.post(
        "/api/packages/missing/sales",
        json={"buyer_address": "0xabc", "amount": 1.0, "tx_hash": "0x1"},
    )

    assert sale.status_code == 201
    assert rating.status_code == 201
    assert rating.json()["rating"] == {"average": 5.0, "count": 1}
    assert bad_rating.status_code == 400
    assert missing.status_code == 404

    details = client.get("/api/packages/pkg-ts").json()
    assert details["sales_count"] == 1
    assert details["package"]["times_sold"] == 1


def test_search_with_unreadable_index_uses_keywords(
    store, embedding_provider, sample_listings, index_path: Path
) -> None:
    for listing in sample_listings:
        store.list_package(listing)
    index_path.write_text('{"entries": [{"id": "pkg-py", "embe')
    engine = MarketplaceSearch(
        store, embedding_provider=embedding_provider, index_path=index_path
    )
    client = TestClient(create_app(store=store, engine=engine))

    response = client.post("/api/search", json={"query": "python"})

    assert response.status_code == 200
    results = response.json()["results"]
    assert [(r["id"], r["match_type"]) for r in results] == [("pkg-py", "keyword")]


def test_shutdown_closes_store_opened_by_app(tmp_path: Path, monkeypatch) -> None:
    db_path = tmp_path / "registry.duckdb"
    monkeypatch.setenv("MEMORY_MARKETS_DB_PATH", str(db_path))
    monkeypatch.setenv("MEMORY_MARKETS_SUMMARY_INDEX_PATH", str(tmp_path / "index.json"))
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    app = create_app()

    with TestClient(app) as client:
        created = client.post("/api/packages", json={"id": "pkg-py", "name": "Python recipes"})
        assert created.status_code == 201
        assert app.state.market._store is not None

    assert app.state.market._store is None
    reopened = DuckDBListingStore(str(db_path))
    try:
        assert reopened.get_package("pkg-py") is not None
    finally:
        reopened.close()


def test_shutdown_leaves_injected_store_open(store, sample_listings) -> None:
    with TestClient(create_app(store=store, engine=MarketplaceSearch(store))) as client:
        assert client.get("/api/packages").status_code == 200

    store.list_package(sample_listings[0])
    assert store.get_package(sample_listings[0].id) is not None
