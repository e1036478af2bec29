"""
Google GenAI embeddings for the marketplace summary index.

Listings are embedded once, when they are listed or reindexed, from their
``summary_text()``; buyers' search queries are embedded on every search.
The two sides use the asymmetric retrieval task types so that short
queries land near the longer package summaries they describe.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from typing import Any, Literal

from google.genai import Client as GenAIClient

from .storage import PackageListing

TaskType = Literal["RETRIEVAL_DOCUMENT", "RETRIEVAL_QUERY"]

DOCUMENT_TASK: TaskType = "RETRIEVAL_DOCUMENT"
QUERY_TASK: TaskType = "RETRIEVAL_QUERY"

ENV_MODEL = "MEMORY_MARKETS_EMBEDDING_MODEL"
ENV_DIM = "MEMORY_MARKETS_EMBEDDING_DIM"
ENV_BATCH_SIZE = "MEMORY_MARKETS_EMBEDDING_BATCH_SIZE"

_DEFAULT_MODEL = "gemini-embedding-001"
_DEFAULT_DIM = 768
_DEFAULT_BATCH_SIZE = 50


class EmbeddingProvider:
    """Embeds package summaries and buyer queries at a fixed ``dim``.

    ``dim`` must match the dimensions of the persisted summary index; the
    search engine disables its semantic leg when the two disagree.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        batch_size: int | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv(ENV_MODEL, _DEFAULT_MODEL)
        self.dim = dim or int(os.getenv(ENV_DIM, str(_DEFAULT_DIM)))
        self.batch_size = batch_size or int(os.getenv(ENV_BATCH_SIZE, str(_DEFAULT_BATCH_SIZE)))

        if client is None:
            key = api_key or os.getenv("GOOGLE_API_KEY")
            if not key:
                raise ValueError(
                    "GOOGLE_API_KEY is not set; semantic search over package "
                    "summaries needs a Google GenAI key."
                )
            client = GenAIClient(api_key=key)
        self._client = client

    def _request(self, contents: list[str], task_type: TaskType) -> list[list[float]]:
        response = self._client.models.embed_content(
            model=self.model,
            contents=contents,
            config={"task_type": task_type, "output_dimensionality": self.dim},
        )
        vectors = [list(embedding.values) for embedding in response.embeddings]
        if len(vectors) != len(contents):
            raise RuntimeError(
                f"Embedding API returned {len(vectors)} vectors for {len(contents)} inputs"
            )
        return vectors

    def embed_texts(
        self,
        texts: Sequence[str],
        *,
        task_type: TaskType = DOCUMENT_TASK,
    ) -> list[list[float]]:
        """Embed ``texts`` in API batches of ``batch_size``; output order matches input."""
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = list(texts[start : start + self.batch_size])
            vectors.extend(self._request(batch, task_type))
        return vectors

    def embed_summaries(self, listings: Sequence[PackageListing]) -> list[list[float]]:
        """Embed each listing's summary text, as used to rebuild the index."""
        return self.embed_texts([listing.summary_text() for listing in listings])

    def embed_one(self, text: str) -> list[float]:
        return self._request([text], DOCUMENT_TASK)[0]

    def embed_query(self, query: str) -> list[float]:
        return self._request([query], QUERY_TASK)[0]
