"""
Text -> vector conversion.

Two provider backends share the `Embedder` capability:
- HuggingFaceEmbedder: feature-extraction pipeline; may answer per token, pooled here.
- OpenAIEmbedder: document-level vectors.

EmbeddingClient adds batching, linear backoff retries and pacing between batches
on top of whichever backend is configured.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Sequence

import requests

from .backoff import call_with_backoff
from .config import Settings
from .errors import ConfigurationError, EmbeddingError

logger = logging.getLogger(__name__)

Vector = List[float]


def mean_pool(tokens: Sequence[Sequence[float]]) -> Vector:
    """Unweighted per-dimension mean over token vectors."""
    if not tokens:
        raise EmbeddingError("cannot pool an empty token matrix")
    dim = len(tokens[0])
    if any(len(row) != dim for row in tokens):
        raise EmbeddingError(f"ragged token matrix, expected rows of {dim} values")
    acc = [0.0] * dim
    for row in tokens:
        for i in range(dim):
            acc[i] += row[i]
    return [v / len(tokens) for v in acc]


def to_document_vector(raw: Any) -> Vector:
    # tokens x dim -> pooled; a flat vector passes through
    if raw and isinstance(raw[0], (list, tuple)):
        return mean_pool(raw)
    return [float(x) for x in raw]


class Embedder(ABC):
    """Converts a batch of texts into one fixed-dimension vector per text."""

    name: str = "embedder"

    def __init__(self, model: str, dimension: int):
        self.model = model
        self.dimension = dimension

    @abstractmethod
    def embed(self, texts: List[str]) -> List[Vector]:
        ...

    def _check_dimension(self, vectors: List[Vector]) -> List[Vector]:
        for v in vectors:
            if len(v) != self.dimension:
                raise ConfigurationError(
                    f"Embedding dim {len(v)} != configured dimension {self.dimension} ({self.name}:{self.model})"
                )
        return vectors


class HuggingFaceEmbedder(Embedder):
    name = "hf"

    def __init__(self, api_key: str, model: str, dimension: int = 384,
                 api_url: str = "https://router.huggingface.co/hf-inference/models", timeout: float = 60):
        super().__init__(model, dimension)
        self.api_key = api_key
        self.url = f"{api_url.rstrip('/')}/{model}/pipeline/feature-extraction"
        self.timeout = timeout

    def embed(self, texts: List[str]) -> List[Vector]:
        r = requests.post(
            self.url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"inputs": texts, "normalize": True},
            timeout=self.timeout,
        )
        if r.status_code != 200:
            raise EmbeddingError(f"HuggingFace {r.status_code}: {r.text}")
        out = r.json()
        if not isinstance(out, list) or len(out) != len(texts):
            raise EmbeddingError(f"HuggingFace returned {type(out).__name__} for {len(texts)} inputs")
        return self._check_dimension([to_document_vector(item) for item in out])


class OpenAIEmbedder(Embedder):
    name = "openai"

    def __init__(self, api_key: str, model: str = "text-embedding-3-small", dimension: int = 1536,
                 timeout: float = 60):
        super().__init__(model, dimension)
        self.api_key = api_key
        self.timeout = timeout

    def embed(self, texts: List[str]) -> List[Vector]:
        r = requests.post(
            "https://api.openai.com/v1/embeddings",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"model": self.model, "input": texts},
            timeout=self.timeout,
        )
        if r.status_code != 200:
            raise EmbeddingError(f"OpenAI {r.status_code}: {r.text}")
        try:
            data = sorted(r.json()["data"], key=lambda d: d["index"])
            vectors = [d["embedding"] for d in data]
        except (KeyError, TypeError) as e:
            raise EmbeddingError(f"unexpected OpenAI response: {e}") from e
        if len(vectors) != len(texts):
            raise EmbeddingError(f"OpenAI returned {len(vectors)} embeddings for {len(texts)} inputs")
        return self._check_dimension(vectors)


def build_embedder(settings: Settings) -> Embedder:
    settings.validate_startup()
    if settings.use_hf:
        return HuggingFaceEmbedder(
            api_key=settings.huggingface_api_key,
            model=settings.hf_model,
            dimension=settings.dimension,
            api_url=settings.hf_api_url,
            timeout=settings.embed_timeout,
        )
    return OpenAIEmbedder(
        api_key=settings.openai_api_key,
        model=settings.openai_embedding_model,
        dimension=settings.dimension,
        timeout=settings.embed_timeout,
    )


class EmbeddingClient:
    def __init__(
        self,
        embedder: Embedder,
        batch_size: int = 10,
        batch_delay: float = 0.8,
        max_retries: int = 4,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.embedder = embedder
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.max_retries = max_retries
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, embedder: Embedder = None) -> "EmbeddingClient":
        return cls(
            embedder or build_embedder(settings),
            batch_size=settings.embed_batch_size,
            batch_delay=settings.embed_batch_delay,
            max_retries=settings.embed_max_retries,
        )

    @property
    def dimension(self) -> int:
        return self.embedder.dimension

    def embed_batch(self, texts: Sequence[str]) -> List[Vector]:
        texts = list(texts)
        out: List[Vector] = []
        for start in range(0, len(texts), self.batch_size):
            if start:
                # pacing between batches, provider rate limits
                self._sleep(self.batch_delay)
            chunk = texts[start:start + self.batch_size]
            label = f"embed batch {start // self.batch_size + 1} ({len(chunk)} texts)"
            try:
                vectors = call_with_backoff(
                    lambda: self.embedder.embed(chunk),
                    max_retries=self.max_retries,
                    base_delay=self.batch_delay,
                    retry_on=(EmbeddingError, requests.RequestException),
                    sleep=self._sleep,
                    label=label,
                )
            except (EmbeddingError, requests.RequestException) as e:
                raise EmbeddingError(f"{label} failed after {self.max_retries} attempts: {e}") from e
            if len(vectors) != len(chunk):
                raise EmbeddingError(f"{label}: got {len(vectors)} vectors")
            out.extend(vectors)
        return out

    def embed_one(self, text: str) -> Vector:
        vectors = self.embed_batch([text])
        if not vectors:
            raise EmbeddingError("No embedding generated")
        return vectors[0]
