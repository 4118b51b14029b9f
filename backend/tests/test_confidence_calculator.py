"""
Tests for confidence aggregation.
"""

import pytest

from app.models.schemas import (
    AnalysisStatus,
    CombinedAnalysis,
    ConfidenceLevel,
    FactCheckResult,
    MethodStatus,
    SocraticResult,
    TrustChainResult,
)
from app.services.trust.confidence_calculator import (
    NO_ANALYSIS_EXPLANATION,
    ConfidenceCalculator,
    ConfidenceWeights,
    calculate_confidence,
    confidence_level,
    socratic_score,
    trust_chain_score,
    verdict_score,
)


def combined(fact_check=None, trust_chain=None, socratic=None) -> CombinedAnalysis:
    def status(data):
        return MethodStatus.FULFILLED if data is not None else MethodStatus.REJECTED

    return CombinedAnalysis(
        fact_check=fact_check,
        trust_chain=trust_chain,
        socratic=socratic,
        status=AnalysisStatus(
            fact_check=status(fact_check),
            trust_chain=status(trust_chain),
            socratic=status(socratic),
            timestamp="2024-05-01T12:00:00+00:00",
        ),
    )


# =============================================================================
# SUB-SCORES
# =============================================================================

@pytest.mark.parametrize("verdict,expected", [
    ("TRUE", 1.0),
    ("FALSE", 0.0),
    ("MISLEADING", 0.3),
    ("UNVERIFIABLE", 0.5),
    ("mostly true", 0.5),
])
def test_verdict_score(verdict, expected):
    assert verdict_score(verdict) == expected


def test_trust_chain_without_sources_is_neutral():
    assert trust_chain_score(TrustChainResult(has_trust_chain=False)) == 0.5


def test_trust_chain_not_found_is_neutral_despite_sources():
    result = TrustChainResult.model_validate({
        "hasTrustChain": False,
        "sources": [{"name": "Forum post", "reliability": 0.1}],
    })
    assert trust_chain_score(result) == 0.5


def test_trust_chain_is_mean_reliability(trust_chain_result):
    assert trust_chain_score(trust_chain_result) == pytest.approx(0.6)


def test_socratic_score_counts_structure(socratic_result):
    assert socratic_score(socratic_result) == pytest.approx(0.8)


def test_socratic_score_is_capped():
    result = SocraticResult.model_validate({
        "reasoningSteps": [{"question": f"Q{i}"} for i in range(8)],
        "conclusion": {"logicalValidity": "v", "keyFlaws": "f", "strengths": "s"},
    })
    assert socratic_score(result) == 1.0


# =============================================================================
# AGGREGATION
# =============================================================================

def test_weighted_mean_of_all_three(fact_check_result, trust_chain_result, socratic_result):
    report = ConfidenceCalculator().aggregate(
        combined(fact_check_result, trust_chain_result, socratic_result)
    )

    # 1.0×0.4 + 0.6×0.3 + 0.8×0.3
    assert report.score == pytest.approx(0.82)
    assert report.verified is True
    assert report.level == ConfidenceLevel.HIGH
    assert report.method_scores == pytest.approx({
        "fact_check": 1.0,
        "trust_chain": 0.6,
        "socratic": 0.8,
    })


def test_missing_methods_are_excluded_from_the_denominator():
    fact_check = FactCheckResult(verdict="TRUE", explanation="ok")
    weights = ConfidenceWeights.from_mapping({"fact_check": 0.4, "trust_chain": 0.3, "socratic": 0.3})

    report = ConfidenceCalculator(weights).aggregate(combined(fact_check=fact_check))

    assert report.score == pytest.approx(1.0)
    assert list(report.method_scores) == ["fact_check"]


def test_partial_analysis_normalizes_by_present_weights():
    trust_chain = TrustChainResult.model_validate({
        "hasTrustChain": True,
        "sources": [{"name": "A", "reliability": 0.9}],
    })

    report = calculate_confidence(combined(trust_chain=trust_chain))

    assert report.score == pytest.approx(0.9)
    assert report.verified is True


def test_nothing_present_scores_zero():
    report = calculate_confidence(combined())

    assert report.score == 0.0
    assert report.verified is False
    assert report.level == ConfidenceLevel.VERY_LOW
    assert report.explanation == NO_ANALYSIS_EXPLANATION


def test_unknown_verdict_scores_half():
    report = calculate_confidence(combined(
        fact_check=FactCheckResult(verdict="PARTLY TRUE", explanation="Some of it."),
    ))

    assert report.score == pytest.approx(0.5)
    assert report.verified is False


def test_unweighted_method_is_ignored(fact_check_result, socratic_result):
    weights = ConfidenceWeights.from_mapping({"socratic": 1.0})

    report = ConfidenceCalculator(weights).aggregate(
        combined(fact_check=fact_check_result, socratic=socratic_result)
    )

    assert report.score == pytest.approx(0.8)
    assert list(report.method_scores) == ["socratic"]


def test_zero_total_weight_scores_zero(fact_check_result):
    weights = ConfidenceWeights.from_mapping({"fact_check": 0.0})

    report = ConfidenceCalculator(weights).aggregate(combined(fact_check=fact_check_result))

    assert report.score == 0.0
    assert report.verified is False


def test_custom_threshold(fact_check_result, trust_chain_result, socratic_result):
    report = ConfidenceCalculator(verified_threshold=0.9).aggregate(
        combined(fact_check_result, trust_chain_result, socratic_result)
    )
    assert report.verified is False


def test_weights_outside_unit_interval_are_rejected():
    with pytest.raises(ValueError):
        ConfidenceWeights.from_mapping({"fact_check": 1.5})


def test_weights_from_settings(settings):
    weights = ConfidenceWeights.from_settings(settings)
    assert weights.weight_for("fact_check") == 0.4
    assert weights.weight_for("unknown") == 0.0


# =============================================================================
# EXPLANATION
# =============================================================================

def test_explanation_follows_method_order(fact_check_result, trust_chain_result, socratic_result):
    report = calculate_confidence(combined(fact_check_result, trust_chain_result, socratic_result))
    lines = report.explanation.split("\n")

    assert len(lines) == 3
    assert lines[0].startswith("Fact check (TRUE): Multiple agencies confirm it.")
    assert "CDC (https://cdc.gov)" in lines[0]
    assert lines[1].startswith("Trust chain: Traced to a peer-reviewed study.")
    assert "Gaps: Original dataset not public" in lines[1]
    assert lines[2].startswith("Socratic reasoning (1 steps):")
    assert "Key flaws: Correlation treated as causation." in lines[2]


def test_explanation_is_deterministic(fact_check_result, socratic_result):
    analysis = combined(fact_check=fact_check_result, socratic=socratic_result)
    calculator = ConfidenceCalculator()
    assert calculator.explain(analysis) == calculator.explain(analysis)


@pytest.mark.parametrize("score,level", [
    (0.95, ConfidenceLevel.VERY_HIGH),
    (0.7, ConfidenceLevel.HIGH),
    (0.55, ConfidenceLevel.MEDIUM),
    (0.3, ConfidenceLevel.LOW),
    (0.1, ConfidenceLevel.VERY_LOW),
])
def test_confidence_level(score, level):
    assert confidence_level(score) == level
