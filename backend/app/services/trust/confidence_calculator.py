"""
Confidence Calculator Service.

WHAT THIS DOES:
Reduces a CombinedAnalysis to one confidence score (0-1), a verified /
unverified verdict and a plain-text explanation.

WHY THIS MATTERS:
The three analysis methods answer different questions (is it true? where did
it come from? does the reasoning hold up?) and any of them may be missing.
The score has to stay meaningful with one, two or three methods present.

FORMULA:
score = Σ(subscore_i × weight_i) / Σ(weight_i)    over methods that succeeded

Sub-scores:
- Fact-check:  VERDICT_SCORES[verdict]  (unknown verdict → 0.5)
- Trust-chain: mean source reliability, clamped to [0, 1]  (no chain → 0.5)
- Socratic:    0.5 + 0.1 per reasoning step
                   + 0.1 each for logical validity / key flaws / strengths,
               capped at 1.0

Methods that failed contribute to neither the numerator nor the denominator.
Nothing present → score 0, not verified.

EXAMPLE:
    weights {fact_check: 0.4, trust_chain: 0.3, socratic: 0.3}
    sub-scores 1.0, 0.6, 0.8
    score = 1.0×0.4 + 0.6×0.3 + 0.8×0.3 = 0.82 → verified (threshold 0.7)

    Only fact-check present (0.9):
    score = 0.9×0.4 / 0.4 = 0.9

USAGE:
    calculator = ConfidenceCalculator(ConfidenceWeights.default())
    report = calculator.aggregate(combined_analysis)
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from app.config import Settings
from app.models.schemas import (
    AnalysisMethod,
    CombinedAnalysis,
    ConfidenceLevel,
    ConfidenceReport,
    FactCheckResult,
    SocraticResult,
    TrustChainResult,
    Verdict,
)

logger = logging.getLogger(__name__)

VERDICT_SCORES = {
    Verdict.TRUE.value: 1.0,
    Verdict.FALSE.value: 0.0,
    Verdict.MISLEADING.value: 0.3,
    Verdict.UNVERIFIABLE.value: 0.5,
}
DEFAULT_VERDICT_SCORE = 0.5

NEUTRAL_TRUST_CHAIN_SCORE = 0.5

SOCRATIC_BASE_SCORE = 0.5
SOCRATIC_STEP_INCREMENT = 0.1
SOCRATIC_VALIDITY_BONUS = 0.1
SOCRATIC_FLAWS_BONUS = 0.1
SOCRATIC_STRENGTHS_BONUS = 0.1

DEFAULT_WEIGHTS = {
    AnalysisMethod.FACT_CHECK.value: 0.4,
    AnalysisMethod.TRUST_CHAIN.value: 0.3,
    AnalysisMethod.SOCRATIC.value: 0.3,
}
DEFAULT_VERIFIED_THRESHOLD = 0.7

# Lower bounds of each confidence level, highest first
LEVEL_THRESHOLDS = [
    (0.9, ConfidenceLevel.VERY_HIGH),
    (0.7, ConfidenceLevel.HIGH),
    (0.5, ConfidenceLevel.MEDIUM),
    (0.3, ConfidenceLevel.LOW),
]


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class ConfidenceWeights:
    """
    Method name → weight in [0, 1].

    Any set of methods may be weighted; weights need not sum to 1. A method
    with no weight is left out of the score even if it succeeded.
    """
    weights: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))

    def __post_init__(self):
        for method, weight in self.weights.items():
            if not 0.0 <= weight <= 1.0:
                raise ValueError(f"Weight for {method} must be within [0, 1], got {weight}")

    def weight_for(self, method) -> float:
        key = method.value if isinstance(method, AnalysisMethod) else str(method)
        return self.weights.get(key, 0.0)

    @classmethod
    def default(cls) -> "ConfidenceWeights":
        return cls(dict(DEFAULT_WEIGHTS))

    @classmethod
    def from_mapping(cls, weights: Mapping) -> "ConfidenceWeights":
        """Accepts AnalysisMethod or plain string keys."""
        return cls({
            (k.value if isinstance(k, AnalysisMethod) else str(k)): float(v)
            for k, v in weights.items()
        })

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConfidenceWeights":
        return cls.from_mapping(settings.confidence_weights())


# =============================================================================
# SUB-SCORES
# =============================================================================

def verdict_score(verdict: str) -> float:
    """Total lookup: unknown verdicts score exactly DEFAULT_VERDICT_SCORE."""
    return VERDICT_SCORES.get(str(verdict).strip().upper(), DEFAULT_VERDICT_SCORE)


def fact_check_score(result: FactCheckResult) -> float:
    return verdict_score(result.verdict)


def trust_chain_score(result: TrustChainResult) -> float:
    """Neutral when no chain was found, even if the model listed sources anyway."""
    if not result.has_trust_chain or not result.sources:
        return NEUTRAL_TRUST_CHAIN_SCORE
    mean = sum(s.reliability for s in result.sources) / len(result.sources)
    return _clamp(mean)


def socratic_score(result: SocraticResult) -> float:
    """Structural completeness of the reasoning, not its direction."""
    score = SOCRATIC_BASE_SCORE
    score += SOCRATIC_STEP_INCREMENT * len(result.reasoning_steps)

    conclusion = result.conclusion
    if conclusion.logical_validity.strip():
        score += SOCRATIC_VALIDITY_BONUS
    if conclusion.key_flaws.strip():
        score += SOCRATIC_FLAWS_BONUS
    if conclusion.strengths.strip():
        score += SOCRATIC_STRENGTHS_BONUS

    return min(score, 1.0)


METHOD_SCORERS: dict[AnalysisMethod, Callable[[object], float]] = {
    AnalysisMethod.FACT_CHECK: fact_check_score,
    AnalysisMethod.TRUST_CHAIN: trust_chain_score,
    AnalysisMethod.SOCRATIC: socratic_score,
}


def confidence_level(score: float) -> ConfidenceLevel:
    for threshold, level in LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return ConfidenceLevel.VERY_LOW


# =============================================================================
# EXPLANATION
# =============================================================================

def _source_label(title: str, url: str) -> str:
    if title and url:
        return f"{title} ({url})"
    return title or url


def _explain_fact_check(result: FactCheckResult) -> str:
    parts = [f"Fact check ({result.verdict}): {result.explanation}".rstrip()]
    if result.notes:
        parts.append(f"Notes: {result.notes}")
    sources = [_source_label(s.title, s.url) for s in result.sources]
    sources = [s for s in sources if s]
    if sources:
        parts.append(f"Sources: {'; '.join(sources)}")
    return " ".join(parts)


def _explain_trust_chain(result: TrustChainResult) -> str:
    summary = result.explanation or (
        "Trust chain traced." if result.has_trust_chain else "No trust chain found."
    )
    parts = [f"Trust chain: {summary}"]
    sources = [_source_label(s.name, s.url) for s in result.sources]
    sources = [s for s in sources if s]
    if sources:
        parts.append(f"Sources: {'; '.join(sources)}")
    if result.gaps:
        parts.append(f"Gaps: {'; '.join(result.gaps)}")
    return " ".join(parts)


def _explain_socratic(result: SocraticResult) -> str:
    conclusion = result.conclusion
    parts = [f"Socratic reasoning ({len(result.reasoning_steps)} steps):"]
    if conclusion.logical_validity:
        parts.append(conclusion.logical_validity)
    if conclusion.key_flaws:
        parts.append(f"Key flaws: {conclusion.key_flaws}")
    if conclusion.strengths:
        parts.append(f"Strengths: {conclusion.strengths}")
    return " ".join(parts)


METHOD_EXPLAINERS: dict[AnalysisMethod, Callable[[object], str]] = {
    AnalysisMethod.FACT_CHECK: _explain_fact_check,
    AnalysisMethod.TRUST_CHAIN: _explain_trust_chain,
    AnalysisMethod.SOCRATIC: _explain_socratic,
}

NO_ANALYSIS_EXPLANATION = "No analysis method completed; confidence could not be established."


# =============================================================================
# CALCULATOR
# =============================================================================

class ConfidenceCalculator:
    """
    Pure aggregation over a CombinedAnalysis. No I/O and no shared state.

    Pipeline position:
    Claim → AnalysisOrchestrator → CombinedAnalysis → [ConfidenceCalculator] → ConfidenceReport
    """

    def __init__(
        self,
        weights: Optional[ConfidenceWeights] = None,
        verified_threshold: float = DEFAULT_VERIFIED_THRESHOLD,
    ):
        self.weights = weights or ConfidenceWeights.default()
        self.verified_threshold = verified_threshold

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConfidenceCalculator":
        return cls(
            ConfidenceWeights.from_settings(settings),
            verified_threshold=settings.verified_threshold,
        )

    def method_scores(self, analysis: CombinedAnalysis) -> dict[str, float]:
        """Sub-score of every present method that has a non-zero weight."""
        scores = {}
        for method in analysis.present_methods:
            if self.weights.weight_for(method) <= 0:
                logger.debug(f"Skipping {method.value}: no weight configured")
                continue
            scores[method.value] = METHOD_SCORERS[method](analysis.result_for(method))
        return scores

    def aggregate(self, analysis: CombinedAnalysis) -> ConfidenceReport:
        """
        Compute score, verdict and explanation.

        Handles zero to three present methods without raising.
        """
        scores = self.method_scores(analysis)

        total_weight = sum(self.weights.weight_for(m) for m in scores)
        if total_weight > 0:
            weighted = sum(s * self.weights.weight_for(m) for m, s in scores.items())
            score = round(_clamp(weighted / total_weight), 6)
        else:
            score = 0.0

        report = ConfidenceReport(
            score=score,
            verified=score >= self.verified_threshold,
            level=confidence_level(score),
            explanation=self.explain(analysis),
            method_scores=scores,
        )

        logger.info(
            f"Calculated confidence: score={report.score:.2f}, "
            f"verified={report.verified}, methods={list(scores)}"
        )
        return report

    def explain(self, analysis: CombinedAnalysis) -> str:
        """Per-method notes in fixed order: fact-check, trust-chain, socratic."""
        lines = [
            METHOD_EXPLAINERS[method](analysis.result_for(method))
            for method in analysis.present_methods
        ]
        return "\n".join(lines) if lines else NO_ANALYSIS_EXPLANATION


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def calculate_confidence(
    analysis: CombinedAnalysis,
    weights: Optional[ConfidenceWeights] = None,
    verified_threshold: float = DEFAULT_VERIFIED_THRESHOLD,
) -> ConfidenceReport:
    """
    Convenience function to aggregate a CombinedAnalysis.
    """
    calculator = ConfidenceCalculator(weights, verified_threshold)
    return calculator.aggregate(analysis)
