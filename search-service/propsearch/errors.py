from typing import Any, Dict, List, Optional


class SearchServiceError(Exception):
    """Base class for every error raised by the search service."""


class QueryValidationError(SearchServiceError):
    """The parsed query broke one or more constraints. Never retried."""

    def __init__(self, issues: List[Dict[str, Any]]):
        self.issues = issues
        msgs = "; ".join(f"{'.'.join(str(p) for p in i.get('loc', ())) or 'query'}: {i.get('msg')}" for i in issues)
        super().__init__(f"invalid query: {msgs}")


class RetrievalError(SearchServiceError):
    """An external call (embedding provider or vector index) failed after retries."""


class EmbeddingError(RetrievalError):
    pass


class VectorIndexError(RetrievalError):
    pass


class ConfigurationError(SearchServiceError):
    """Missing credentials, unknown provider or dimension mismatch. Fatal at startup."""

    def __init__(self, message: str, setting: Optional[str] = None):
        self.setting = setting
        super().__init__(message)


class TranscriptionError(SearchServiceError):
    """Speech-to-text failed or produced no text."""
