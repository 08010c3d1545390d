"""Shared fakes for the search service tests."""

from typing import Any, Dict, List, Optional

import pytest

from propsearch.embeddings import Embedder, EmbeddingClient
from propsearch.schemas import Match


class FakeEmbedder(Embedder):
    """Deterministic embedder: vector = [len(text), index of call, 1.0]."""

    name = "fake"

    def __init__(self, dimension: int = 3, failures: int = 0, exc: Exception = None):
        super().__init__("fake-model", dimension)
        self.calls: List[List[str]] = []
        self.failures = failures
        self.exc = exc

    def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.failures:
            self.failures -= 1
            raise self.exc
        return [[float(len(t)), float(len(self.calls)), 1.0][: self.dimension] for t in texts]


class FakeIndex:
    """Answers queries from a map of filter -> matches, recording every call."""

    collection = "fake"

    def __init__(self, responses: Optional[Dict[Any, List[Match]]] = None):
        self.responses = responses or {}
        self.queries: List[Optional[Dict[str, Any]]] = []
        self.upserts = []

    @staticmethod
    def key(filters):
        return repr(sorted(filters.items())) if filters else None

    def query(self, vector, top_k, filters=None):
        self.queries.append(filters)
        return list(self.responses.get(self.key(filters), []))

    def upsert(self, records):
        self.upserts.extend(records)
        return len(records)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def embedding_client(fake_embedder, sleeps):
    return EmbeddingClient(fake_embedder, batch_size=10, batch_delay=0.5, max_retries=4, sleep=sleeps.append)


def match(id: str, score: float, **meta) -> Match:
    return Match(id=id, score=score, metadata={"id": id, **meta})
