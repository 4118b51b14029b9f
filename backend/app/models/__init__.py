# Database models and API schemas
from app.models.analysis_record import AnalysisRecord
from app.models.schemas import (
    AnalysisMethod,
    AnalysisStatus,
    ClaimAnalysisView,
    CombinedAnalysis,
    ConfidenceReport,
    FactCheckResult,
    MethodStatus,
    SocraticResult,
    TrustChainResult,
)

__all__ = [
    "AnalysisRecord",
    "AnalysisMethod",
    "AnalysisStatus",
    "ClaimAnalysisView",
    "CombinedAnalysis",
    "ConfidenceReport",
    "FactCheckResult",
    "MethodStatus",
    "SocraticResult",
    "TrustChainResult",
]
