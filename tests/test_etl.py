"""Tests for the ingestion CLI helpers."""

import json
from unittest.mock import MagicMock, patch

import pytest

from etl.ingest_properties import DEFAULT_FILE, doc_to_property, load_from_file, load_from_mongo, to_properties
from propsearch.config import Settings
from propsearch.errors import ConfigurationError


def test_sample_data_loads():
    props, skipped = to_properties(load_from_file(DEFAULT_FILE))
    assert skipped == 0
    assert len(props) >= 5
    assert {p.operation for p in props} == {"rent", "sale", "temporary"}


def test_mongo_id_is_fallback_id():
    p = doc_to_property({"_id": "64f0c0ffee", "title": "Casa", "operation": "sale", "price": 10, "extra": 1})
    assert p.id == "64f0c0ffee"


def test_non_finite_numbers_are_dropped():
    p = doc_to_property({"id": "a", "title": "Casa", "operation": "sale", "price": 5, "bathrooms": float("nan")})
    assert p.bathrooms is None


def test_invalid_documents_are_skipped(tmp_path, capsys):
    path = tmp_path / "props.json"
    path.write_text(json.dumps([
        {"id": "ok", "title": "Casa", "operation": "rent", "price": 1},
        {"id": "bad", "title": "Casa", "operation": "rent"},
    ]))
    props, skipped = to_properties(load_from_file(path))
    assert [p.id for p in props] == ["ok"]
    assert skipped == 1
    assert "[warn] invalid listing id=bad" in capsys.readouterr().out


def test_mongo_client_is_closed_after_loading():
    docs = [{"_id": "1", "title": "Casa", "operation": "sale", "price": 10}]
    mongo = MagicMock()
    coll = mongo.__enter__.return_value["realestate"]["listings"]
    coll.find.return_value = iter(docs)
    settings = Settings(mongodb_uri="mongodb://db", db_name="realestate", collection_name="listings")
    with patch("etl.ingest_properties.MongoClient", return_value=mongo) as ctor:
        assert load_from_mongo(settings) == docs
    ctor.assert_called_once_with("mongodb://db")
    mongo.__exit__.assert_called_once()


def test_mongo_source_requires_settings():
    with pytest.raises(ConfigurationError):
        load_from_mongo(Settings())
