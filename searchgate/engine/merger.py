"""Merger/Ranker - Cross-engine dedupe, scoring and ordering

Combined score for one identity group spanning N engines::

    combined = (sum of weight[e] * best_score[e], in engine order)
               * (1 + agreement_bonus * (N - 1))

Ordering: descending combined score, then earliest engine order index, then
lexicographic URL. Output depends only on the input values and the engine
order, never on arrival order.
"""

from collections import OrderedDict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from searchgate.utils.url_utils import identity_key

from .result import ResultRecord


class ResultMerger:
    """결과 병합기

    Usage:
        merger = ResultMerger(weights={"wikipedia": 1.5}, agreement_bonus=0.2)
        results = merger.merge(grouped, engine_order=["wikipedia", "mojeek"])
    """

    def __init__(
        self,
        weights: Optional[Mapping[str, float]] = None,
        agreement_bonus: float = 0.0,
        default_weight: float = 1.0,
    ):
        """
        Args:
            weights: 엔진별 신뢰 가중치
            agreement_bonus: 엔진 1개 추가 합의당 가산 비율 (0 이면 단순 가중합)
            default_weight: 가중치 미지정 엔진의 가중치
        """
        if agreement_bonus < 0:
            raise ValueError("agreement_bonus must be >= 0")
        self.weights = dict(weights or {})
        self.agreement_bonus = agreement_bonus
        self.default_weight = default_weight

    def weight_of(self, engine: str) -> float:
        return self.weights.get(engine, self.default_weight)

    def combined_score(self, contributions: Sequence[Tuple[str, float]]) -> float:
        """(엔진, 점수) 목록 → 병합 점수 (엔진 순서대로 합산)"""
        total = 0.0
        for engine, score in contributions:
            total += self.weight_of(engine) * score
        agreeing = len(contributions)
        if agreeing > 1 and self.agreement_bonus:
            total *= 1.0 + self.agreement_bonus * (agreeing - 1)
        return total

    @staticmethod
    def _engine_sequence(
        grouped: Mapping[str, Sequence[ResultRecord]], engine_order: Optional[Sequence[str]]
    ) -> List[str]:
        ordered = [e for e in (engine_order or ()) if e in grouped]
        known = set(ordered)
        rest = sorted(e for e in grouped if e not in known)
        return ordered + rest

    def merge(
        self,
        grouped: Mapping[str, Sequence[ResultRecord]],
        engine_order: Optional[Sequence[str]] = None,
    ) -> Tuple[ResultRecord, ...]:
        """엔진별 레코드 → 정렬된 병합 레코드

        Args:
            grouped: 엔진 이름 → 그 엔진의 레코드 (엔진 순위 순서)
            engine_order: 동점 처리용 엔진 순서 (없는 엔진은 이름순으로 뒤에 붙음)

        Returns:
            새로 만든 병합 레코드 (입력 레코드는 수정하지 않음)
        """
        engines = self._engine_sequence(grouped, engine_order)
        order_index = {engine: i for i, engine in enumerate(engines)}

        # identity key → (engine → 그 엔진의 최고 점수 레코드)
        groups: "OrderedDict[str, Dict[str, ResultRecord]]" = OrderedDict()
        for engine in engines:
            for record in grouped[engine]:
                key = identity_key(record.url)
                per_engine = groups.setdefault(key, {})
                best = per_engine.get(engine)
                if best is None or record.score > best.score:
                    per_engine[engine] = record

        merged = [self._merge_group(per_engine, order_index) for per_engine in groups.values()]
        merged.sort(key=lambda r: (-r.score, order_index.get(r.engine, len(engines)), r.url))
        return tuple(merged)

    def _merge_group(self, per_engine: Dict[str, ResultRecord], order_index: Mapping[str, int]) -> ResultRecord:
        contributors = sorted(per_engine, key=lambda e: order_index.get(e, len(order_index)))
        records = [per_engine[e] for e in contributors]
        primary = records[0]
        score = self.combined_score([(r.engine, r.score) for r in records])

        if len(records) == 1 and score == primary.score:
            return primary

        title = next((r.title for r in records if r.title and r.title != r.url), primary.title)
        snippet = primary.snippet
        for record in records[1:]:
            if len(record.snippet) > len(snippet):
                snippet = record.snippet
        published = next((r.published_date for r in records if r.published_date is not None), None)

        return ResultRecord(
            title=title,
            url=primary.url,
            snippet=snippet,
            engine=primary.engine,
            category=primary.category,
            score=score,
            published_date=published,
            engines=tuple(contributors),
        )


def merge_suggestions(
    grouped: Mapping[str, Iterable[str]],
    engine_order: Optional[Sequence[str]] = None,
) -> Tuple[str, ...]:
    """추천어 병합

    대소문자 무시 중복 제거, 빈도 내림차순 → 최초 등장 순서. 표기는 최초 등장한 형태.
    한 엔진이 같은 추천어를 여러 번 줘도 빈도는 1로 셉니다.
    """
    engines = ResultMerger._engine_sequence(grouped, engine_order)
    counts: Dict[str, int] = {}
    display: "OrderedDict[str, str]" = OrderedDict()

    for engine in engines:
        seen_here = set()
        for suggestion in grouped[engine]:
            text = " ".join(str(suggestion).split())
            if not text:
                continue
            key = text.casefold()
            if key in seen_here:
                continue
            seen_here.add(key)
            display.setdefault(key, text)
            counts[key] = counts.get(key, 0) + 1

    first_seen = {key: i for i, key in enumerate(display)}
    ordered = sorted(display, key=lambda k: (-counts[k], first_seen[k]))
    return tuple(display[k] for k in ordered)
