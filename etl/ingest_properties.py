# etl/ingest_properties.py
"""
Load listings (JSON file or MongoDB) → embeddings → Qdrant.

    python -m etl.ingest_properties --file data/properties.json
    python -m etl.ingest_properties --mongo        # uses MONGODB_URI / DB_NAME / COLLECTION_NAME
"""
import argparse
import json
import math
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List

from pydantic import ValidationError
from pymongo import MongoClient

from propsearch.bootstrap import build_services
from propsearch.config import Settings
from propsearch.errors import ConfigurationError, RetrievalError
from propsearch.listings import upsert_properties
from propsearch.schemas import Property

DEFAULT_FILE = Path(__file__).resolve().parent.parent / "data" / "properties.json"
CHUNK = 50  # properties per embed+upsert round

PROJECTION = {
    "_id": 1, "id": 1, "title": 1, "operation": 1, "price": 1,
    "address": 1, "bedrooms": 1, "bathrooms": 1, "description": 1,
}


# === Helpers ===
def _clean_value(v: Any):
    if isinstance(v, dict):
        return {k: _clean_value(vv) for k, vv in v.items()}
    if isinstance(v, list):
        return [_clean_value(x) for x in v]
    if isinstance(v, float):
        return v if math.isfinite(v) else None
    return v


def doc_to_property(doc: Dict[str, Any]) -> Property:
    """Mongo/JSON document → Property (Mongo's _id is the fallback id)."""
    d = _clean_value({k: v for k, v in doc.items() if k in PROJECTION})
    raw_id = d.pop("_id", None)
    if d.get("id") is None and raw_id is not None:
        d["id"] = str(raw_id)
    return Property(**d)


def load_from_file(path: Path) -> List[Dict[str, Any]]:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_from_mongo(settings: Settings) -> List[Dict[str, Any]]:
    if not all([settings.mongodb_uri, settings.db_name, settings.collection_name]):
        raise ConfigurationError("Missing env for Mongo source: MONGODB_URI, DB_NAME, COLLECTION_NAME")
    with MongoClient(settings.mongodb_uri) as client:
        coll = client[settings.db_name][settings.collection_name]
        return list(coll.find({}, projection=PROJECTION, batch_size=500))


def to_properties(docs: Iterable[Dict[str, Any]]) -> tuple[List[Property], int]:
    props: List[Property] = []
    skipped = 0
    for doc in docs:
        try:
            props.append(doc_to_property(doc))
        except ValidationError as e:
            skipped += 1
            print(f"[warn] invalid listing id={doc.get('id', doc.get('_id'))}: {e.error_count()} error(s)")
    return props, skipped


# === Main ===
def main(argv=None):
    parser = argparse.ArgumentParser(description="Ingest property listings into the vector index",
                                     prog="python -m etl.ingest_properties")
    parser.add_argument("--file", type=Path, default=DEFAULT_FILE, help="listings JSON file")
    parser.add_argument("--mongo", action="store_true", help="read listings from MongoDB instead of --file")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    try:
        services = build_services(settings)
    except ConfigurationError as e:
        raise SystemExit(f"[erro] {e}")

    docs = load_from_mongo(settings) if args.mongo else load_from_file(args.file)
    props, skipped = to_properties(docs)

    print(f"[start] ingest {len(props)} listings → Qdrant/{settings.collection}")
    t0 = time.time()
    processed = 0
    failed = 0

    for i in range(0, len(props), CHUNK):
        batch = props[i:i + CHUNK]
        try:
            upsert_properties(batch, services.embeddings, services.index)
            processed += len(batch)
        except RetrievalError as e:
            failed += len(batch)
            print(f"[error] chunk {i // CHUNK + 1} failed: {e}")
            continue
        print(f"[info] upsert parcial: {processed} | failed={failed} | {time.time() - t0:.1f}s")

    print(f"[done] ingested={processed} | skipped={skipped} | failed={failed} | tempo={time.time() - t0:.1f}s")
    return 0 if failed == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
