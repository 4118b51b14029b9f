# Trust Layer Services
#
# Runs AFTER the analysis orchestrator has produced a CombinedAnalysis and
# decides how far the claim can be trusted:
# - Sub-score per method (verdict, source reliability, reasoning completeness)
# - Weighted mean over the methods that actually succeeded
# - Verified flag and human-readable explanation (ConfidenceCalculator)
from app.services.trust.confidence_calculator import (
    ConfidenceCalculator,
    ConfidenceWeights,
    calculate_confidence,
    confidence_level,
    fact_check_score,
    socratic_score,
    trust_chain_score,
    verdict_score,
)

__all__ = [
    "ConfidenceCalculator",
    "ConfidenceWeights",
    "calculate_confidence",
    "confidence_level",
    "fact_check_score",
    "socratic_score",
    "trust_chain_score",
    "verdict_score",
]
