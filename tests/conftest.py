from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from memory_markets.embeddings import EmbeddingProvider
from memory_markets.storage import DuckDBListingStore, PackageListing


# Each vocabulary word owns one axis, so texts sharing words point the same way.
VOCABULARY = ["python", "solidity", "typescript", "machine"]


@dataclass
class FakeEmbedding:
    values: list[float]


@dataclass
class FakeEmbedResult:
    embeddings: list[FakeEmbedding]


class FakeEmbedModels:
    """Records calls and embeds texts as vocabulary word counts."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.fail_with: Exception | None = None

    def embed_content(
        self, *, model: str, contents: list[str], config: dict
    ) -> FakeEmbedResult:
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.fail_with is not None:
            raise self.fail_with
        dim = config.get("output_dimensionality", len(VOCABULARY))
        return FakeEmbedResult(
            embeddings=[FakeEmbedding(values=embed_words(text, dim)) for text in contents]
        )


class FakeGenAIClient:
    def __init__(self) -> None:
        self.models = FakeEmbedModels()


def embed_words(text: str, dim: int = len(VOCABULARY)) -> list[float]:
    lowered = text.lower()
    vector = [float(lowered.count(word)) for word in VOCABULARY]
    return (vector + [0.0] * dim)[:dim]


@pytest.fixture()
def genai_client() -> FakeGenAIClient:
    return FakeGenAIClient()


@pytest.fixture()
def embedding_provider(genai_client: FakeGenAIClient) -> EmbeddingProvider:
    return EmbeddingProvider(client=genai_client, dim=len(VOCABULARY))


@pytest.fixture()
def store(tmp_path: Path):
    listing_store = DuckDBListingStore(str(tmp_path / "registry.duckdb"))
    yield listing_store
    listing_store.close()


@pytest.fixture()
def sample_listings() -> list[PackageListing]:
    return [
        PackageListing(
            id="pkg-ts",
            name="TypeScript handbook",
            description="Patterns for large typescript codebases",
            tags="typescript,guide",
            price=2.0,
        ),
        PackageListing(
            id="pkg-sol",
            name="Smart contract audits",
            description="Solidity security review notes",
            tags="solidity,blockchain",
            price=5.0,
        ),
        PackageListing(
            id="pkg-py",
            name="Applied machine learning",
            description="Model training recipes and evaluation",
            tags="python,ml",
            price=3.0,
        ),
    ]


@pytest.fixture()
def populated_store(store: DuckDBListingStore, sample_listings: list[PackageListing]):
    for listing in sample_listings:
        store.list_package(listing)
    return store
