import math

import pytest

from talentgrid.domain.models import (
    BandThresholds,
    Category,
    CategoryWeights,
    CompetencyScore,
    Level,
)
from talentgrid.domain.services import (
    ScoringService,
    aggregate_category,
    classify_nine_box,
    compute_final_score,
    compute_final_score_from_grouped,
    compute_potential_score,
)
from talentgrid.infrastructure.config import override_settings


def cs(name, category, score):
    return CompetencyScore(name=name, category=category, score=score)


class TestAggregateCategory:
    def test_mean_of_present_scores(self):
        scores = [
            cs("Python", "technical", 4),
            cs("SQL", "technical", 3),
            cs("Comunicação", "behavioral", 1),
        ]
        assert aggregate_category(scores, Category.TECHNICAL) == 3.5

    def test_nulls_do_not_count_in_denominator(self):
        scores = [cs("Python", "technical", 4), cs("SQL", "technical", None)]
        assert aggregate_category(scores, "technical") == 4.0

    @pytest.mark.parametrize(
        "scores",
        [
            [],
            [cs("Comunicação", "behavioral", 3)],
            [cs("Python", "technical", None), cs("SQL", "technical", None)],
        ],
    )
    def test_zero_when_nothing_scored(self, scores):
        assert aggregate_category(scores, Category.TECHNICAL) == 0

    def test_rounds_half_up_to_three_places(self):
        scores = [cs("a", "deliveries", 1), cs("b", "deliveries", 1), cs("c", "deliveries", 2)]
        assert aggregate_category(scores, "deliveries") == 1.333
        scores = [cs("a", "deliveries", 1.0005), cs("b", "deliveries", 1.0005)]
        assert aggregate_category(scores, "deliveries") == 1.001

    def test_mean_stays_in_range(self):
        scores = [cs(f"c{i}", "technical", v) for i, v in enumerate([1, 5, 2.5, 4, 3.75])]
        assert 1 <= aggregate_category(scores, "technical") <= 5

    def test_unknown_category_rejected(self):
        with pytest.raises(ValueError):
            aggregate_category([], "leadership")


class TestFinalScore:
    def test_weighted_over_all_categories(self):
        scores = [
            cs("Python", "technical", 4),
            cs("Comunicação", "behavioral", 3),
            cs("Prazo", "deliveries", 2),
        ]
        # 4*.5 + 3*.3 + 2*.2 = 3.3
        assert compute_final_score(scores) == 3.3

    def test_single_category_equals_its_average(self):
        scores = [cs("Python", "technical", 4), cs("Comunicação", "behavioral", None)]
        assert compute_final_score(scores) == 4.0

    def test_absent_categories_leave_the_denominator(self):
        scores = [cs("Python", "technical", 4), cs("Comunicação", "behavioral", 2)]
        # (4*.5 + 2*.3) / .8
        assert compute_final_score(scores) == 3.25

    def test_empty_is_zero(self):
        assert compute_final_score([]) == 0

    def test_grouped_matches_flat(self):
        grouped = {
            "technical": {"Python": 4, "SQL": 3},
            "behavioral": {"Comunicação": 3, "Liderança": None},
            "deliveries": {"Prazo": 2},
        }
        flat = [
            cs(name, category, score)
            for category, items in grouped.items()
            for name, score in items.items()
        ]
        assert compute_final_score_from_grouped(grouped) == compute_final_score(flat)

    def test_grouped_is_key_order_independent(self):
        a = {"technical": [4, 3], "behavioral": [2], "deliveries": [5]}
        b = {"deliveries": [5], "technical": [4, 3], "behavioral": [2]}
        assert compute_final_score_from_grouped(a) == compute_final_score_from_grouped(b)

    def test_grouped_accepts_precomputed_averages(self):
        assert compute_final_score_from_grouped({Category.TECHNICAL: 4.0}) == 4.0
        assert compute_final_score_from_grouped({"technical": 4, "behavioral": None}) == 4.0

    def test_grouped_all_null_is_zero(self):
        assert compute_final_score_from_grouped({"technical": {"Python": None}}) == 0
        assert compute_final_score_from_grouped({}) == 0

    def test_grouped_unknown_category_rejected(self):
        with pytest.raises(ValueError):
            compute_final_score_from_grouped({"potential": 3})

    def test_custom_weights_are_injected(self):
        service = ScoringService(weights=CategoryWeights(technical=1, behavioral=0, deliveries=0))
        scores = [cs("Python", "technical", 2), cs("Comunicação", "behavioral", 4)]
        assert service.compute_final_score(scores) == 2.0

    def test_zero_total_weight_is_zero(self):
        service = ScoringService(weights=CategoryWeights(technical=0, behavioral=1, deliveries=1))
        assert service.compute_final_score([cs("Python", "technical", 4)]) == 0

    def test_breakdown_columns(self):
        breakdown = ScoringService().breakdown(
            [cs("Python", "technical", 4), cs("Prazo", "deliveries", 3)]
        )
        assert breakdown.as_columns() == {
            "technical_score": 4.0,
            "behavioral_score": 0.0,
            "deliveries_score": 3.0,
            "final_score": 3.714,
        }


class TestPotentialScore:
    def test_mean_of_present_indicators(self):
        indicators = {
            "funcaoSubsequente": 3,
            "aprendizadoContinuo": 4,
            "alinhamentoCultural": None,
            "visaoSistemica": 2,
        }
        assert compute_potential_score(indicators) == 3.0

    def test_unknown_keys_ignored(self):
        assert compute_potential_score({"visaoSistemica": 4, "carisma": 1}) == 4.0

    def test_none_present_is_zero(self):
        assert compute_potential_score({}) == 0
        assert compute_potential_score({"funcaoSubsequente": None}) == 0


class TestNineBox:
    @pytest.mark.parametrize(
        "performance,potential,label",
        [
            (2, 2, "Questionável"),
            (3, 3, "Mantenedor"),
            (4, 4, "Estrela"),
            (1, 5, "Enigma"),
            (5, 1, "Especialista"),
            (2, 3, "Novo/Desenvolvimento"),
            (3, 1, "Eficaz"),
            (3, 4, "Forte Desempenho"),
            (4, 3, "Alto Desempenho"),
        ],
    )
    def test_labels(self, performance, potential, label):
        assert classify_nine_box(performance, potential) == label

    def test_band_boundaries(self):
        thresholds = BandThresholds()
        assert thresholds.level(2.0) is Level.LOW
        assert thresholds.level(2.01) is Level.MEDIUM
        assert thresholds.level(3.0) is Level.MEDIUM
        assert thresholds.level(3.01) is Level.HIGH

    @pytest.mark.parametrize("value", [math.nan, None, "4"])
    def test_unusable_input_is_unclassified(self, value):
        assert classify_nine_box(value, 3) == "Não classificado"
        assert classify_nine_box(3, value) == "Não classificado"

    def test_never_raises_for_extreme_numbers(self):
        assert classify_nine_box(-10, 100) == "Enigma"
        assert classify_nine_box(math.inf, 3) == "Não classificado"

    def test_cell_numbers(self):
        service = ScoringService()
        assert service.place_nine_box(1, 1).cell == 1
        assert service.place_nine_box(4, 1).cell == 3
        assert service.place_nine_box(1, 4).cell == 7
        assert service.place_nine_box(4, 4).cell == 9
        assert service.place_nine_box(None, 4).cell is None




class TestConfiguredService:
    def test_overridden_weights_reach_module_functions(self, monkeypatch):
        grouped = {"technical": 4, "behavioral": 2}
        assert compute_final_score_from_grouped(grouped) == 3.25

        # Registered first so both variables are removed again afterwards
        monkeypatch.setenv("SCORING_TECHNICAL_WEIGHT", "0.5")
        monkeypatch.setenv("SCORING_BEHAVIORAL_WEIGHT", "0.3")
        override_settings(scoring_technical_weight=0.0, scoring_behavioral_weight=1.0)

        assert compute_final_score_from_grouped(grouped) == 2.0
