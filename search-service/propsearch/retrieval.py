"""
Cascading semantic search.

Tier A: structural filters + location, full threshold.
Tier B: location dropped, threshold relaxed (only when a location was given).
Tier C: no filter at all, threshold relaxed further.
The first tier returning anything wins.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

from .embeddings import EmbeddingClient
from .query_parser import parse_and_validate
from .schemas import Match, ValidParsedQuery

logger = logging.getLogger(__name__)

LOCATION_RELAX = 0.03
OPEN_RELAX = 0.06


class VectorIndex(Protocol):
    def query(self, vector: List[float], top_k: int, filters: Optional[Dict[str, Any]] = None) -> List[Match]:
        ...


def build_base_filter(q: ValidParsedQuery) -> Dict[str, Any]:
    f: Dict[str, Any] = {}
    if q.operation:
        f["operation"] = q.operation
    if q.bedrooms is not None:
        f["bedrooms"] = {"$gte": q.bedrooms}
    if q.priceMin is not None or q.priceMax is not None:
        f["price"] = {}
        if q.priceMin is not None:
            f["price"]["$gte"] = q.priceMin
        if q.priceMax is not None:
            f["price"]["$lte"] = q.priceMax
    return f


def build_strong_filter(q: ValidParsedQuery, base: Dict[str, Any]) -> Dict[str, Any]:
    f = dict(base)
    if q.city:
        f["city"] = q.city
    if q.barrio:
        f["barrio"] = q.barrio
    return f


class RetrievalEngine:
    def __init__(
        self,
        index: VectorIndex,
        embeddings: EmbeddingClient,
        top_k: int = 12,
        min_score: float = 0.56,
        max_results: int = 10,
    ):
        self.index = index
        self.embeddings = embeddings
        self.top_k = top_k
        self.min_score = min_score
        self.max_results = max_results

    def _query(self, vector, top_k: int, filters: Optional[Dict[str, Any]], threshold: float) -> List[Match]:
        matches = self.index.query(vector, top_k, filters or None)
        kept = [m for m in matches if m.score >= threshold]
        kept.sort(key=lambda m: m.score, reverse=True)
        return kept

    def search(self, raw_query: str, top_k: Optional[int] = None, min_score: Optional[float] = None) -> List[Match]:
        top_k = self.top_k if top_k is None else top_k
        min_score = self.min_score if min_score is None else min_score

        q = parse_and_validate(raw_query)
        vector = self.embeddings.embed_one(q.text)

        base = build_base_filter(q)
        strong = build_strong_filter(q, base)

        tier = "strong"
        matches = self._query(vector, top_k, strong, min_score)
        if not matches and (q.city or q.barrio):
            tier = "base"
            matches = self._query(vector, top_k, base, min_score - LOCATION_RELAX)
        if not matches:
            tier = "open"
            matches = self._query(vector, top_k, None, min_score - OPEN_RELAX)

        logger.info("search %r -> %d matches (tier=%s, filter=%s)", q.text, len(matches), tier, strong)
        return matches[: self.max_results]
