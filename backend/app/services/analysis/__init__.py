"""
Analysis Module — Multi-method claim analysis with partial-failure tolerance.

Every claim is analyzed three independent ways. Any of them may fail; the
orchestrator retries failed ones once and always returns a CombinedAnalysis.

COMPONENTS:
- AnalysisOrchestrator: fan-out, selective retry, assembly
- FactCheckAdapter / TrustChainAdapter / SocraticAdapter: one Sonar prompt each
- MethodOutcome: settled result-or-error of one method
- BaseAnalysisMethod: interface the orchestrator depends on

USAGE:
    from app.services.analysis import analyze_claim

    analysis = await analyze_claim("Drinking bleach cures COVID-19.")
    print(analysis.status)
"""

# Main entry points
from app.services.analysis.orchestrator import (
    AnalysisOrchestrator,
    analyze_claim,
)

# Data models
from app.services.analysis.models import MethodOutcome

# Adapters
from app.services.analysis.adapters import (
    FactCheckAdapter,
    SocraticAdapter,
    SonarAnalysisAdapter,
    TrustChainAdapter,
    build_default_adapters,
    fact_check_from_labelled_text,
)

# Abstract base
from app.services.analysis.protocols import BaseAnalysisMethod

__all__ = [
    # Main entry points
    "AnalysisOrchestrator",
    "analyze_claim",
    # Data models
    "MethodOutcome",
    # Adapters
    "SonarAnalysisAdapter",
    "FactCheckAdapter",
    "TrustChainAdapter",
    "SocraticAdapter",
    "build_default_adapters",
    "fact_check_from_labelled_text",
    # Abstract base
    "BaseAnalysisMethod",
]
