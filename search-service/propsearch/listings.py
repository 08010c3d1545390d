import logging
import uuid
from typing import Any, Dict, List, Sequence

from .embeddings import EmbeddingClient
from .location import infer_location
from .schemas import Property
from .vector_index import QdrantIndex

logger = logging.getLogger(__name__)


def _num(v: float) -> str:
    return str(int(v)) if float(v).is_integer() else str(v)


def property_to_chunk(p: Property) -> str:
    """Text that gets embedded for a listing."""
    parts = [
        f"title: {p.title}",
        f"operation: {p.operation}",
        f"price: {_num(p.price)}",
    ]
    if p.address:
        parts.append(f"address: {p.address}")
    if p.bedrooms:
        parts.append(f"bedrooms: {p.bedrooms}")
    if p.bathrooms:
        parts.append(f"bathrooms: {_num(p.bathrooms)}")
    if p.description:
        parts.append(f"description: {p.description}")
    return "\n".join(parts)


def build_payload(p: Property) -> Dict[str, Any]:
    """Stored metadata: the listing fields plus city/barrio inferred from address (or title)."""
    payload = p.model_dump(exclude_none=True)
    payload.update(infer_location(p.address or p.title))
    return payload


def upsert_properties(props: Sequence[Property], embeddings: EmbeddingClient, index: QdrantIndex) -> List[str]:
    if not props:
        return []
    ids = [p.id or str(uuid.uuid4()) for p in props]
    vectors = embeddings.embed_batch([property_to_chunk(p) for p in props])
    records = []
    for pid, p, vec in zip(ids, props, vectors):
        payload = build_payload(p)
        payload["id"] = pid
        records.append((pid, vec, payload))
    index.upsert(records)
    logger.info("Upserted %d properties into %s", len(records), index.collection)
    return ids
