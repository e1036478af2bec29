"""
Brute-force vector index over package summary embeddings.

Entries are kept in memory and ranked by cosine similarity on every query.
Marketplace sizes are small (hundreds of packages), so a linear scan is
enough. The index persists to a single JSON file of the form::

    {"entries": [{"id": ..., "embedding": [...], "metadata": {...}}], "dimensions": 768}
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)

DEFAULT_DIMENSIONS = 768


class DimensionMismatchError(ValueError):
    """Raised when a vector's length differs from the index dimensionality."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual


class VectorIndexLoadError(ValueError):
    """Raised when a file does not contain a valid serialized index."""


@dataclass(frozen=True)
class VectorEntry:
    """An embedding stored under a unique id."""

    id: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "embedding": list(self.embedding),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class VectorSearchResult:
    """One ranked neighbour returned by :meth:`VectorIndex.query`."""

    id: str
    score: float
    metadata: dict[str, Any]


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero norm.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    denominator = math.sqrt(norm_a) * math.sqrt(norm_b)
    if denominator == 0:
        return 0.0
    return dot / denominator


class VectorIndex:
    """In-memory id -> embedding index with cosine top-k queries."""

    def __init__(self, dimensions: int = DEFAULT_DIMENSIONS) -> None:
        if dimensions <= 0:
            raise ValueError(f"dimensions must be positive, got {dimensions}")
        self._dimensions = int(dimensions)
        self._entries: dict[str, VectorEntry] = {}

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries

    def _check_dimensions(self, embedding: list[float]) -> None:
        if len(embedding) != self._dimensions:
            raise DimensionMismatchError(self._dimensions, len(embedding))

    def _make_entry(
        self,
        entry_id: str,
        embedding: list[float],
        metadata: Mapping[str, Any] | None = None,
    ) -> VectorEntry:
        self._check_dimensions(embedding)
        return VectorEntry(
            id=entry_id,
            embedding=[float(value) for value in embedding],
            metadata=dict(metadata or {}),
        )

    def add(
        self,
        entry_id: str,
        embedding: list[float],
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        """Insert or overwrite the entry for ``entry_id``."""
        self._entries[entry_id] = self._make_entry(entry_id, embedding, metadata)

    def add_batch(self, items: Iterable[Mapping[str, Any]]) -> None:
        """Add ``{"id", "embedding", "metadata"?}`` items.

        Every entry is built before any is stored, so one bad item leaves the
        index unchanged.
        """
        entries = [
            self._make_entry(item["id"], item["embedding"], item.get("metadata"))
            for item in items
        ]
        for entry in entries:
            self._entries[entry.id] = entry

    def query(self, embedding: list[float], top_k: int = 5) -> list[VectorSearchResult]:
        """Return up to ``top_k`` entries ranked by descending cosine similarity."""
        self._check_dimensions(embedding)
        if top_k <= 0:
            return []

        scored = [
            VectorSearchResult(
                id=entry.id,
                score=cosine_similarity(embedding, entry.embedding),
                metadata=dict(entry.metadata),
            )
            for entry in self._entries.values()
        ]
        scored.sort(key=lambda result: result.score, reverse=True)
        return scored[:top_k]

    def has(self, entry_id: str) -> bool:
        return entry_id in self._entries

    def get(self, entry_id: str) -> VectorEntry | None:
        return self._entries.get(entry_id)

    def delete(self, entry_id: str) -> bool:
        """Remove an entry; returns whether it existed."""
        return self._entries.pop(entry_id, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [entry.to_dict() for entry in self._entries.values()],
            "dimensions": self._dimensions,
        }

    def save(self, file_path: str | Path) -> None:
        """Write the whole index to ``file_path``, replacing any existing file.

        There is no locking; concurrent writers race and the last one wins.
        """
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict()), encoding="utf-8")
        logger.info("Saved vector index with %d entries to %s", self.size, path)

    @classmethod
    def load(cls, file_path: str | Path) -> VectorIndex:
        """Read an index previously written by :meth:`save`."""
        path = Path(file_path)
        raw = path.read_text(encoding="utf-8")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise VectorIndexLoadError(f"Invalid vector index file {path}: {exc}") from exc

        if not isinstance(data, dict) or "entries" not in data or "dimensions" not in data:
            raise VectorIndexLoadError(
                f"Invalid vector index file {path}: expected 'entries' and 'dimensions'."
            )

        try:
            index = cls(int(data["dimensions"]))
            index.add_batch(
                {
                    "id": str(entry["id"]),
                    "embedding": entry["embedding"],
                    "metadata": entry.get("metadata") or {},
                }
                for entry in data["entries"]
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise VectorIndexLoadError(f"Invalid vector index file {path}: {exc}") from exc

        logger.info("Loaded vector index with %d entries from %s", index.size, path)
        return index
