"""Service configuration, read once from the environment (and .env)."""

import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from .errors import ConfigurationError

PROVIDERS = {"hf", "openai"}
PROVIDER_DIMENSIONS = {"hf": 384, "openai": 1536}
DISTANCES = {"COSINE", "EUCLID", "DOT"}


class Settings(BaseModel):
    # embeddings
    embed_provider: str = "hf"
    huggingface_api_key: Optional[str] = None
    hf_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    hf_api_url: str = "https://router.huggingface.co/hf-inference/models"
    openai_api_key: Optional[str] = None
    openai_embedding_model: str = "text-embedding-3-small"
    embed_batch_size: int = 10
    embed_batch_delay: float = 0.8  # seconds
    embed_max_retries: int = 4
    embed_timeout: float = 60.0

    # qdrant
    qdrant_url: str = "http://qdrant:6333"
    qdrant_api_key: Optional[str] = None
    qdrant_collection: str = "propiedades"
    qdrant_collection_hf: str = "propiedades_hf"
    vector_distance: str = "COSINE"
    index_ready_timeout: float = 120.0
    index_poll_interval: float = 2.5

    # search
    search_top_k: int = 12
    search_min_score: float = 0.56
    search_max_results: int = 10

    # etl source
    mongodb_uri: Optional[str] = None
    db_name: Optional[str] = None
    collection_name: Optional[str] = None

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        if env is None:
            load_dotenv()
            env = os.environ

        def get(name: str, default=None):
            v = env.get(name)
            return v if v is not None and v.strip() != "" else default

        provider = get("EMBED_PROVIDER", "hf").lower()
        distance = get("VECTOR_DISTANCE", "COSINE").upper()
        if distance not in DISTANCES:
            distance = "COSINE"

        try:
            return cls(
                embed_provider=provider,
                huggingface_api_key=get("HUGGINGFACE_API_KEY"),
                hf_model=get("HF_MODEL", "sentence-transformers/all-MiniLM-L6-v2"),
                hf_api_url=get("HF_API_URL", "https://router.huggingface.co/hf-inference/models"),
                openai_api_key=get("OPENAI_API_KEY"),
                openai_embedding_model=get("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"),
                embed_batch_size=int(get("EMBED_BATCH_SIZE", "10")),
                embed_batch_delay=float(get("EMBED_BATCH_DELAY_MS", "800")) / 1000.0,
                embed_max_retries=int(get("EMBED_MAX_RETRIES", "4")),
                embed_timeout=float(get("EMBED_TIMEOUT", "60")),
                qdrant_url=get("QDRANT_URL", "http://qdrant:6333"),
                qdrant_api_key=get("QDRANT_API_KEY"),
                qdrant_collection=get("QDRANT_COLLECTION", "propiedades"),
                qdrant_collection_hf=get("QDRANT_COLLECTION_HF", "propiedades_hf"),
                vector_distance=distance,
                index_ready_timeout=float(get("INDEX_READY_TIMEOUT", "120")),
                index_poll_interval=float(get("INDEX_POLL_INTERVAL", "2.5")),
                search_top_k=int(get("SEARCH_TOP_K", "12")),
                search_min_score=float(get("SEARCH_MIN_SCORE", "0.56")),
                search_max_results=int(get("SEARCH_MAX_RESULTS", "10")),
                mongodb_uri=get("MONGODB_URI"),
                db_name=get("DB_NAME"),
                collection_name=get("COLLECTION_NAME"),
                log_level=get("LOG_LEVEL", "INFO").upper(),
            )
        except ValueError as e:
            raise ConfigurationError(f"invalid configuration value: {e}") from e

    @property
    def use_hf(self) -> bool:
        return self.embed_provider == "hf"

    @property
    def dimension(self) -> int:
        return PROVIDER_DIMENSIONS[self.embed_provider]

    @property
    def collection(self) -> str:
        return self.qdrant_collection_hf if self.use_hf else self.qdrant_collection

    @property
    def embedding_model(self) -> str:
        return self.hf_model if self.use_hf else self.openai_embedding_model

    def validate_startup(self) -> None:
        """Raise ConfigurationError when the active provider cannot be used."""
        if self.embed_provider not in PROVIDERS:
            raise ConfigurationError(
                f"EMBED_PROVIDER must be one of {sorted(PROVIDERS)}, got {self.embed_provider!r}",
                setting="EMBED_PROVIDER",
            )
        if self.use_hf and not self.huggingface_api_key:
            raise ConfigurationError("Missing required env: HUGGINGFACE_API_KEY", setting="HUGGINGFACE_API_KEY")
        if not self.use_hf and not self.openai_api_key:
            raise ConfigurationError("Missing required env: OPENAI_API_KEY", setting="OPENAI_API_KEY")
        if self.embed_batch_size < 1:
            raise ConfigurationError("EMBED_BATCH_SIZE must be >= 1", setting="EMBED_BATCH_SIZE")
        if self.embed_max_retries < 1:
            raise ConfigurationError("EMBED_MAX_RETRIES must be >= 1", setting="EMBED_MAX_RETRIES")
