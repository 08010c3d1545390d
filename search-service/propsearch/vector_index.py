import enum
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from qdrant_client import QdrantClient
from qdrant_client.http import models as qm
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from .backoff import call_with_backoff
from .config import Settings
from .errors import ConfigurationError, VectorIndexError
from .schemas import Match

logger = logging.getLogger(__name__)

# payload fields the search filters on
KEYWORD_FIELDS = ("operation", "city", "barrio")
NUMERIC_FIELDS = ("price", "bedrooms")

_TRANSIENT = (UnexpectedResponse, ResponseHandlingException)

SERVING_STATUSES = (qm.CollectionStatus.GREEN, qm.CollectionStatus.YELLOW, qm.CollectionStatus.GREY)


class IndexState(str, enum.Enum):
    MISSING = "missing"
    EXISTS = "exists"  # present but not serving (RED, or still initializing)
    READY = "ready"


def to_point_id(raw: Any) -> Union[int, str]:
    """Deterministic UUIDv5 from any listing id (kept as-is when it already is a UUID)."""
    if raw is None:
        return str(uuid.uuid4())
    s = str(raw)
    try:
        return str(uuid.UUID(s))
    except ValueError:
        return str(uuid.uuid5(uuid.NAMESPACE_OID, s))


def build_filter(filters: Optional[Dict[str, Any]]) -> Optional[qm.Filter]:
    """
    Translate a conjunction of predicates into a Qdrant filter.

    {"operation": "rent"}                 -> equality
    {"price": {"$gte": 1, "$lte": 2}}     -> range (either bound optional)
    """
    if not filters:
        return None

    must: list[qm.FieldCondition] = []
    for key, cond in filters.items():
        if cond is None:
            continue
        if isinstance(cond, dict):
            gte = cond.get("$gte")
            lte = cond.get("$lte")
            if gte is None and lte is None:
                continue
            must.append(qm.FieldCondition(key=key, range=qm.Range(gte=gte, lte=lte)))
        else:
            must.append(qm.FieldCondition(key=key, match=qm.MatchValue(value=cond)))

    return qm.Filter(must=must) if must else None


class QdrantIndex:
    def __init__(
        self,
        client: QdrantClient,
        collection: str,
        dimension: int,
        distance: str = "COSINE",
        max_retries: int = 4,
        retry_delay: float = 0.8,
        ready_timeout: float = 120.0,
        poll_interval: float = 2.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.collection = collection
        self.dimension = dimension
        self.distance = distance
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.ready_timeout = ready_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, client: QdrantClient = None) -> "QdrantIndex":
        if client is None:
            client = QdrantClient(url=settings.qdrant_url, api_key=settings.qdrant_api_key)
        return cls(
            client,
            collection=settings.collection,
            dimension=settings.dimension,
            distance=settings.vector_distance,
            max_retries=settings.embed_max_retries,
            retry_delay=settings.embed_batch_delay,
            ready_timeout=settings.index_ready_timeout,
            poll_interval=settings.index_poll_interval,
        )

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def state(self) -> IndexState:
        if not self.client.collection_exists(collection_name=self.collection):
            return IndexState.MISSING
        info = self.client.get_collection(collection_name=self.collection)
        # GREY (after a restart) and YELLOW (optimizing) still answer queries
        if info.status in SERVING_STATUSES:
            return IndexState.READY
        return IndexState.EXISTS

    def ensure(self) -> "QdrantIndex":
        """
        Check-or-create. Safe to call repeatedly and from racing processes.

        Readiness is only polled for a collection that was just created (here
        or by a racing process); an existing one must already be serving.
        """
        state = self.state()
        if state is IndexState.MISSING:
            logger.info("Creating collection %s (dim=%d, %s)", self.collection, self.dimension, self.distance)
            try:
                self.client.create_collection(
                    collection_name=self.collection,
                    vectors_config=qm.VectorParams(size=self.dimension, distance=qm.Distance[self.distance]),
                )
            except _TRANSIENT:
                # someone else may have created it in the meantime
                if self.state() is IndexState.MISSING:
                    raise
                logger.info("Collection %s already created elsewhere", self.collection)
            else:
                self._create_payload_indexes()
            self._check_dimension()
            self._wait_ready()
            return self

        self._check_dimension()
        if state is not IndexState.READY:
            raise VectorIndexError(f"Collection {self.collection} exists but is not serving")
        return self

    def _create_payload_indexes(self):
        for field in KEYWORD_FIELDS:
            self.client.create_payload_index(
                collection_name=self.collection, field_name=field, field_schema=qm.PayloadSchemaType.KEYWORD
            )
        for field in NUMERIC_FIELDS:
            self.client.create_payload_index(
                collection_name=self.collection, field_name=field, field_schema=qm.PayloadSchemaType.FLOAT
            )

    def _check_dimension(self):
        info = self.client.get_collection(collection_name=self.collection)
        vectors = info.config.params.vectors
        size = getattr(vectors, "size", None)
        if size is not None and size != self.dimension:
            raise ConfigurationError(
                f"Collection {self.collection} has dimension {size}, embedder produces {self.dimension}"
            )

    def _wait_ready(self):
        waited = 0.0
        while self.state() is not IndexState.READY:
            if waited >= self.ready_timeout:
                raise VectorIndexError(f"Collection {self.collection} not ready after {waited:.1f}s")
            self._sleep(self.poll_interval)
            waited += self.poll_interval

    # ------------------------------------------------------------------
    # data
    # ------------------------------------------------------------------

    def _call(self, fn, label: str):
        try:
            return call_with_backoff(
                fn,
                max_retries=self.max_retries,
                base_delay=self.retry_delay,
                retry_on=_TRANSIENT,
                sleep=self._sleep,
                label=label,
            )
        except _TRANSIENT as e:
            raise VectorIndexError(f"{label} failed: {e}") from e

    def upsert(self, records: Sequence[Tuple[str, List[float], Dict[str, Any]]]) -> int:
        """Replace-by-id. `records` are (listing id, vector, metadata)."""
        points = [
            qm.PointStruct(id=to_point_id(rid), vector=vec, payload={**meta, "id": rid})
            for rid, vec, meta in records
        ]
        if not points:
            return 0
        self._call(
            lambda: self.client.upsert(collection_name=self.collection, points=points, wait=True),
            f"qdrant upsert ({len(points)} points)",
        )
        return len(points)

    def upsert_one(self, id: str, vector: List[float], metadata: Dict[str, Any]) -> None:
        self.upsert([(id, vector, metadata)])

    def query(self, vector: List[float], top_k: int, filters: Optional[Dict[str, Any]] = None) -> List[Match]:
        qfilter = build_filter(filters)
        res = self._call(
            lambda: self.client.query_points(
                collection_name=self.collection,
                query=vector,
                query_filter=qfilter,
                limit=top_k,
                with_payload=True,
            ),
            "qdrant query",
        )
        return [
            Match(id=str((p.payload or {}).get("id", p.id)), score=float(p.score), metadata=p.payload or {})
            for p in res.points
        ]
