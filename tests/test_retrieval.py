"""Tests for the cascading retrieval engine."""

import pytest

from propsearch.embeddings import EmbeddingClient
from propsearch.errors import EmbeddingError, QueryValidationError
from propsearch.query_parser import parse_and_validate
from propsearch.retrieval import RetrievalEngine, build_base_filter, build_strong_filter

from conftest import FakeEmbedder, FakeIndex, match

BASE_BELGRANO = {"operation": "rent"}
STRONG_BELGRANO = {"operation": "rent", "city": "caba", "barrio": "belgrano"}


def engine_with(index, embedder=None, sleeps=None):
    client = EmbeddingClient(embedder or FakeEmbedder(), sleep=(sleeps if sleeps is not None else []).append)
    return RetrievalEngine(index, client, top_k=12, min_score=0.56)


# ── filters ─────────────────────────────────────────────────────────


class TestFilters:
    def test_base_filter(self):
        q = parse_and_validate("alquiler 2 ambientes en Palermo desde 100000 a 300000")
        assert build_base_filter(q) == {
            "operation": "rent",
            "bedrooms": {"$gte": 2},
            "price": {"$gte": 100000, "$lte": 300000},
        }

    def test_one_sided_price(self):
        q = parse_and_validate("casa hasta 300000")
        assert build_base_filter(q) == {"price": {"$lte": 300000}}

    def test_strong_filter_adds_location(self):
        q = parse_and_validate("alquiler en Palermo")
        base = build_base_filter(q)
        assert build_strong_filter(q, base) == {"operation": "rent", "city": "caba", "barrio": "palermo"}
        assert base == {"operation": "rent"}

    def test_no_structure_means_empty_filters(self):
        q = parse_and_validate("casa con pileta")
        assert build_base_filter(q) == {}
        assert build_strong_filter(q, {}) == {}


# ── cascade ─────────────────────────────────────────────────────────


class TestCascade:
    def test_strong_tier_hit_stops_cascade(self):
        index = FakeIndex({FakeIndex.key(STRONG_BELGRANO): [match("a", 0.8)]})
        results = engine_with(index).search("alquiler en Belgrano")
        assert [m.id for m in results] == ["a"]
        assert index.queries == [STRONG_BELGRANO]

    def test_falls_back_to_base_filter_without_location(self):
        # strong (caba/belgrano) empty; base returns 3 above min_score - 0.03
        index = FakeIndex({
            FakeIndex.key(BASE_BELGRANO): [match("m2", 0.54), match("m1", 0.60), match("m3", 0.535)],
            None: [match("open", 0.99)],
        })
        results = engine_with(index).search("alquiler en Belgrano")
        assert [m.id for m in results] == ["m1", "m2", "m3"]
        assert index.queries == [STRONG_BELGRANO, BASE_BELGRANO]

    def test_base_tier_threshold_is_relaxed_by_003(self):
        index = FakeIndex({FakeIndex.key(BASE_BELGRANO): [match("low", 0.52)], None: [match("open", 0.51)]})
        results = engine_with(index).search("alquiler en Belgrano")
        # 0.52 < 0.53 so base tier is empty; open tier accepts >= 0.50
        assert [m.id for m in results] == ["open"]
        assert index.queries == [STRONG_BELGRANO, BASE_BELGRANO, None]

    def test_strong_tier_uses_full_threshold(self):
        index = FakeIndex({FakeIndex.key(STRONG_BELGRANO): [match("weak", 0.555)],
                           FakeIndex.key(BASE_BELGRANO): [match("b", 0.57)]})
        results = engine_with(index).search("alquiler en Belgrano")
        assert [m.id for m in results] == ["b"]

    def test_no_location_skips_base_tier(self):
        sale = {"operation": "sale"}
        index = FakeIndex({None: [match("x", 0.505)]})
        results = engine_with(index).search("venta casa grande")
        assert [m.id for m in results] == ["x"]
        assert index.queries == [sale, None]

    def test_open_tier_threshold(self):
        index = FakeIndex({None: [match("x", 0.49)]})
        assert engine_with(index).search("venta casa grande") == []

    def test_everything_empty_is_not_an_error(self):
        index = FakeIndex()
        assert engine_with(index).search("alquiler en Belgrano") == []
        assert len(index.queries) == 3

    def test_results_capped_at_ten(self):
        many = [match(f"p{i}", 0.6 + i / 100) for i in range(12)]
        index = FakeIndex({FakeIndex.key(STRONG_BELGRANO): many})
        results = engine_with(index).search("alquiler en Belgrano")
        assert len(results) == 10
        scores = [m.score for m in results]
        assert scores == sorted(scores, reverse=True)
        assert results[0].id == "p11"

    def test_embeds_the_residual_text(self):
        embedder = FakeEmbedder()
        engine_with(FakeIndex(), embedder).search("alquiler en Belgrano")
        assert embedder.calls == [["alquiler belgrano"]]


# ── errors ──────────────────────────────────────────────────────────


class TestErrors:
    def test_validation_error_before_any_external_call(self):
        embedder = FakeEmbedder()
        index = FakeIndex()
        with pytest.raises(QueryValidationError):
            engine_with(index, embedder).search("venta 300000 a 100000")
        assert embedder.calls == []
        assert index.queries == []

    def test_embedding_failure_fails_the_search(self):
        embedder = FakeEmbedder(failures=10, exc=EmbeddingError("down"))
        index = FakeIndex({None: [match("x", 0.9)]})
        with pytest.raises(EmbeddingError):
            engine_with(index, embedder).search("venta casa grande")
        assert index.queries == []
