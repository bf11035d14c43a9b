"""병합/랭킹 테스트"""
from itertools import permutations

import pytest

from searchgate.engine.merger import ResultMerger, merge_suggestions
from searchgate.engine.query import Category
from searchgate.engine.result import ResultRecord


def _record(engine, url, score, title="t", snippet=""):
    return ResultRecord(
        title=title, url=url, snippet=snippet, engine=engine, category=Category.GENERAL, score=score
    )


class TestResultMerger:

    def test_same_result_from_two_engines_is_merged(self):
        """A(0.8) + B(0.6) 동일 결과 → 1건, 점수 1.4"""
        merger = ResultMerger()
        grouped = {
            "a": [_record("a", "https://x.example/page", 0.8)],
            "b": [_record("b", "http://www.x.example/page/", 0.6)],
        }
        merged = merger.merge(grouped, engine_order=["a", "b"])

        assert len(merged) == 1
        assert merged[0].score == pytest.approx(1.4)
        assert merged[0].engines == ("a", "b")
        assert merged[0].engine == "a"
        assert merged[0].url == "https://x.example/page"

    def test_agreement_outranks_higher_single_engine_score(self):
        merger = ResultMerger()
        grouped = {
            "a": [_record("a", "https://x.example", 0.8), _record("a", "https://solo.example", 0.9)],
            "b": [_record("b", "https://x.example", 0.6)],
        }
        merged = merger.merge(grouped, ["a", "b"])
        assert [(r.url, r.score) for r in merged] == [
            ("https://x.example", pytest.approx(1.4)),
            ("https://solo.example", 0.9),
        ]

    def test_agreement_bonus(self):
        merger = ResultMerger(agreement_bonus=0.5)
        grouped = {
            "a": [_record("a", "https://x.example", 0.8)],
            "b": [_record("b", "https://x.example", 0.6)],
        }
        assert merger.merge(grouped, ["a", "b"])[0].score == pytest.approx(2.1)

    def test_weights_apply_to_single_engine_results(self):
        merger = ResultMerger(weights={"a": 2.0})
        merged = merger.merge({"a": [_record("a", "https://x.example", 0.5)]}, ["a"])
        assert merged[0].score == pytest.approx(1.0)

    def test_ordering_score_then_engine_order_then_url(self):
        merger = ResultMerger()
        grouped = {
            "a": [_record("a", "https://b.example", 0.5), _record("a", "https://a.example", 0.5)],
            "b": [_record("b", "https://c.example", 0.5), _record("b", "https://top.example", 0.9)],
        }
        urls = [r.url for r in merger.merge(grouped, ["a", "b"])]
        assert urls == [
            "https://top.example",
            "https://a.example",
            "https://b.example",
            "https://c.example",
        ]

    def test_deterministic_regardless_of_arrival_order(self):
        merger = ResultMerger(weights={"a": 1.5, "b": 1.0, "c": 0.7}, agreement_bonus=0.1)
        per_engine = {
            "a": [_record("a", "https://x.example", 0.9), _record("a", "https://y.example", 0.5)],
            "b": [_record("b", "https://y.example", 1.0), _record("b", "https://z.example", 0.5)],
            "c": [_record("c", "https://z.example", 1.0), _record("c", "https://x.example/", 0.3)],
        }
        outputs = set()
        for arrival in permutations(per_engine):
            grouped = {engine: per_engine[engine] for engine in arrival}
            outputs.add(merger.merge(grouped, engine_order=["a", "b", "c"]))
        assert len(outputs) == 1

    def test_best_record_per_engine_is_used(self):
        merger = ResultMerger()
        grouped = {
            "a": [
                _record("a", "https://x.example", 1.0),
                _record("a", "https://x.example/?utm_source=feed", 0.5),
            ],
        }
        merged = merger.merge(grouped, ["a"])
        assert len(merged) == 1
        assert merged[0].score == 1.0

    def test_merged_fields(self):
        merger = ResultMerger()
        grouped = {
            "a": [_record("a", "https://x.example", 0.5, title="https://x.example", snippet="short")],
            "b": [_record("b", "https://x.example", 0.5, title="Real title", snippet="a much longer snippet")],
        }
        merged = merger.merge(grouped, ["a", "b"])[0]
        assert merged.title == "Real title"
        assert merged.snippet == "a much longer snippet"

    def test_input_records_not_mutated(self):
        merger = ResultMerger()
        original = _record("a", "https://x.example", 0.4)
        merger.merge({"a": [original], "b": [_record("b", "https://x.example", 0.4)]}, ["a", "b"])
        assert original.score == 0.4
        assert original.engines == ("a",)

    def test_unknown_engines_sorted_after_known(self):
        merger = ResultMerger()
        grouped = {
            "zeta": [_record("zeta", "https://z.example", 0.5)],
            "beta": [_record("beta", "https://b.example", 0.5)],
            "a": [_record("a", "https://a2.example", 0.5)],
        }
        urls = [r.url for r in merger.merge(grouped, ["a"])]
        assert urls == ["https://a2.example", "https://b.example", "https://z.example"]

    def test_negative_bonus_rejected(self):
        with pytest.raises(ValueError):
            ResultMerger(agreement_bonus=-0.1)


class TestMergeSuggestions:

    def test_frequency_then_first_seen(self):
        grouped = {
            "a": ["docker compose", "docker swarm"],
            "b": ["Docker Desktop", "DOCKER COMPOSE"],
        }
        assert merge_suggestions(grouped, ["a", "b"]) == ("docker compose", "docker swarm", "Docker Desktop")

    def test_duplicates_within_one_engine_count_once(self):
        grouped = {"a": ["x", "x", "y"], "b": ["y"]}
        assert merge_suggestions(grouped, ["a", "b"]) == ("y", "x")

    def test_blank_suggestions_dropped(self):
        assert merge_suggestions({"a": ["  ", "ok"]}, ["a"]) == ("ok",)
