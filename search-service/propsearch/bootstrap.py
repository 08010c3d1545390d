from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .embeddings import EmbeddingClient
from .retrieval import RetrievalEngine
from .transcription import Transcriber, build_transcriber
from .vector_index import QdrantIndex


@dataclass
class Services:
    settings: Settings
    embeddings: EmbeddingClient
    index: QdrantIndex
    engine: RetrievalEngine
    transcriber: Optional[Transcriber] = None  # voice search is off without one


def build_services(settings: Settings, ensure_index: bool = True) -> Services:
    """Wire embedder, index and engine once per process. Raises ConfigurationError on bad settings."""
    embeddings = EmbeddingClient.from_settings(settings)
    index = QdrantIndex.from_settings(settings)
    if ensure_index:
        index.ensure()
    engine = RetrievalEngine(
        index,
        embeddings,
        top_k=settings.search_top_k,
        min_score=settings.search_min_score,
        max_results=settings.search_max_results,
    )
    return Services(
        settings=settings,
        embeddings=embeddings,
        index=index,
        engine=engine,
        transcriber=build_transcriber(settings),
    )
