from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal
from numbers import Real
from typing import Any

from ..infrastructure.config import ScoringConfig, get_settings
from .models import (
    NINE_BOX_LABELS,
    POTENTIAL_INDICATORS,
    UNCLASSIFIED_LABEL,
    BandThresholds,
    Category,
    CategoryBreakdown,
    CategoryWeights,
    CompetencyScore,
    NineBoxPlacement,
)

GroupedScores = Mapping[Category | str, Any]


def _as_score(value: Any) -> float | None:
    """Return a usable score, or None for absent/unusable values."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Real):
        number = float(value)
        return number if math.isfinite(number) else None
    return None


class ScoringService:
    """
    Weighted scoring and nine-box classification.

    Weights, band thresholds and rounding are injected at construction, so
    callers never index weights by category name. All methods are pure and
    never raise for numeric input; empty aggregates yield ``0``.
    """

    def __init__(
        self,
        weights: CategoryWeights | None = None,
        thresholds: BandThresholds | None = None,
        decimal_places: int = 3,
        potential_indicators: tuple[str, ...] = POTENTIAL_INDICATORS,
        logger: logging.Logger | None = None,
    ):
        self.weights = weights or CategoryWeights()
        self.thresholds = thresholds or BandThresholds()
        self.decimal_places = decimal_places
        self.potential_indicators = potential_indicators
        self.logger = logger or logging.getLogger(__name__)
        self._quantum = Decimal(1).scaleb(-decimal_places)

    @classmethod
    def from_config(cls, config: ScoringConfig) -> ScoringService:
        return cls(
            weights=config.category_weights(),
            thresholds=config.band_thresholds(),
            decimal_places=config.decimal_places,
        )

    def round(self, value: float | Decimal) -> float:
        exact = value if isinstance(value, Decimal) else Decimal(str(value))
        return float(exact.quantize(self._quantum, rounding=ROUND_HALF_UP))

    def _mean(self, values: list[float]) -> float:
        if not values:
            return 0.0
        # Summed as Decimal so half-up rounding sees the exact mean
        return self.round(sum(Decimal(str(v)) for v in values) / len(values))

    # ---------- Aggregation ----------

    def aggregate_category(
        self, scores: Iterable[CompetencyScore], category: Category | str
    ) -> float:
        """Mean of the present scores in ``category``; 0 when there are none."""
        target = Category.parse(category)
        present = [
            s
            for s in (_as_score(c.score) for c in scores if c.category is target)
            if s is not None
        ]
        return self._mean(present)

    def _weighted(self, averages: Mapping[Category, float]) -> float:
        weighted_sum = Decimal(0)
        total_weight = Decimal(0)
        for category, average in averages.items():
            weight = Decimal(str(self.weights.weight_for(category)))
            weighted_sum += Decimal(str(average)) * weight
            total_weight += weight
        if total_weight == 0:
            return 0.0
        return self.round(weighted_sum / total_weight)

    def category_averages(self, scores: Iterable[CompetencyScore]) -> dict[Category, float]:
        """Averages for the categories that hold at least one present score."""
        items = list(scores)
        averages: dict[Category, float] = {}
        for category in Category:
            if any(c.category is category and _as_score(c.score) is not None for c in items):
                averages[category] = self.aggregate_category(items, category)
        return averages

    def compute_final_score(self, scores: Iterable[CompetencyScore]) -> float:
        """
        Weighted final score from a flat competency collection.

        Categories without any present score are left out of both the
        weighted sum and the total weight.
        """
        return self._weighted(self.category_averages(scores))

    def grouped_averages(self, grouped: GroupedScores) -> dict[Category, float]:
        averages: dict[Category, float] = {}
        for key, value in grouped.items():
            category = Category.parse(key)
            if category in averages:
                raise ValueError(f"Category {category.value!r} given more than once")
            average = self._group_average(value)
            if average is not None:
                averages[category] = average
        return averages

    def _group_average(self, value: Any) -> float | None:
        if value is None or isinstance(value, (str, bytes)):
            return None
        direct = _as_score(value)
        if direct is not None:
            return self.round(direct)
        if isinstance(value, Real):
            # NaN or infinite precomputed average
            return None
        if isinstance(value, Mapping):
            value = value.values()
        present = [s for s in (_as_score(v) for v in value) if s is not None]
        if not present:
            return None
        return self._mean(present)

    def compute_final_score_from_grouped(self, grouped: GroupedScores) -> float:
        """
        Weighted final score from ``{category: scores}``.

        Each value may be a ``{name: score}`` mapping, an iterable of scores,
        an already computed average, or None.

        Example:
            >>> ScoringService().compute_final_score_from_grouped(
            ...     {"technical": {"Python": 4}, "behavioral": {"Comunicação": None}}
            ... )
            4.0
        """
        return self._weighted(self.grouped_averages(grouped))

    def breakdown(self, scores: Iterable[CompetencyScore]) -> CategoryBreakdown:
        items = list(scores)
        return CategoryBreakdown(
            technical=self.aggregate_category(items, Category.TECHNICAL),
            behavioral=self.aggregate_category(items, Category.BEHAVIORAL),
            deliveries=self.aggregate_category(items, Category.DELIVERIES),
            final=self.compute_final_score(items),
        )

    def breakdown_from_grouped(self, grouped: GroupedScores) -> CategoryBreakdown:
        averages = self.grouped_averages(grouped)
        return CategoryBreakdown(
            technical=averages.get(Category.TECHNICAL, 0.0),
            behavioral=averages.get(Category.BEHAVIORAL, 0.0),
            deliveries=averages.get(Category.DELIVERIES, 0.0),
            final=self._weighted(averages),
        )

    def compute_potential_score(self, indicators: Mapping[str, Any]) -> float:
        """Unweighted mean of the present potential indicators; 0 when none."""
        ignored = set(indicators) - set(self.potential_indicators)
        if ignored:
            self.logger.debug("Ignoring unknown potential indicators: %s", sorted(ignored))
        present = [
            s
            for s in (_as_score(indicators.get(name)) for name in self.potential_indicators)
            if s is not None
        ]
        return self._mean(present)

    # ---------- Nine-box ----------

    def place_nine_box(self, performance: Any, potential: Any) -> NineBoxPlacement:
        perf = _as_score(performance)
        pot = _as_score(potential)
        if perf is None or pot is None:
            return NineBoxPlacement(None, None, UNCLASSIFIED_LABEL)

        perf_level = self.thresholds.level(perf)
        pot_level = self.thresholds.level(pot)
        label = NINE_BOX_LABELS.get((perf_level, pot_level))
        if label is None:
            return NineBoxPlacement(perf_level, pot_level, UNCLASSIFIED_LABEL)
        return NineBoxPlacement(
            perf_level, pot_level, label, cell=pot_level.rank * 3 + perf_level.rank + 1
        )

    def classify_nine_box(self, performance: Any, potential: Any) -> str:
        return self.place_nine_box(performance, potential).label


_default_service: tuple[ScoringConfig, ScoringService] | None = None


def default_scoring_service() -> ScoringService:
    """
    Scoring service for the current settings.

    Rebuilt whenever ``get_settings()`` hands out a new ``ScoringConfig``,
    so ``override_settings`` and ``reset_settings`` take effect here too.
    """
    global _default_service
    config = get_settings().scoring
    if _default_service is None or _default_service[0] is not config:
        _default_service = (config, ScoringService.from_config(config))
    return _default_service[1]


def aggregate_category(scores: Iterable[CompetencyScore], category: Category | str) -> float:
    return default_scoring_service().aggregate_category(scores, category)


def compute_final_score(scores: Iterable[CompetencyScore]) -> float:
    return default_scoring_service().compute_final_score(scores)


def compute_final_score_from_grouped(categorized: GroupedScores) -> float:
    return default_scoring_service().compute_final_score_from_grouped(categorized)


def compute_potential_score(indicators: Mapping[str, Any]) -> float:
    return default_scoring_service().compute_potential_score(indicators)


def classify_nine_box(performance: Any, potential: Any) -> str:
    return default_scoring_service().classify_nine_box(performance, potential)
