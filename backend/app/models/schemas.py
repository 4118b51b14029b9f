"""
Pydantic schemas for analysis results and API request/response validation.

The three analysis methods each return free text from the model. The sanitizer
turns that text into one of the typed results below, so nothing downstream
ever handles an untyped dict.

FLOW OVERVIEW:
==============
1. Caller sends AnalyzeClaimRequest to /api/claims/analyze
2. Three adapters produce FactCheckResult / TrustChainResult / SocraticResult
3. Orchestrator assembles them into a CombinedAnalysis (with per-method status)
4. Confidence calculator reduces the CombinedAnalysis to a ConfidenceReport
5. Both are persisted and returned as a ClaimAnalysisView
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import (
    AliasGenerator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


class AnalysisMethod(str, Enum):
    """The analysis methods run for every claim, in explanation order."""
    FACT_CHECK = "fact_check"
    TRUST_CHAIN = "trust_chain"
    SOCRATIC = "socratic"


class Verdict(str, Enum):
    TRUE = "TRUE"
    FALSE = "FALSE"
    MISLEADING = "MISLEADING"
    UNVERIFIABLE = "UNVERIFIABLE"


class MethodStatus(str, Enum):
    FULFILLED = "fulfilled"
    REJECTED = "rejected"


# Credibility labels the prompts sometimes return instead of a number
CREDIBILITY_LABELS = {
    "high": 1.0,
    "medium": 0.6,
    "low": 0.2,
}
DEFAULT_CREDIBILITY = 0.5


def _coerce_text(value):
    """Models occasionally answer a text field with a list of bullet points."""
    if value is None:
        return ""
    if isinstance(value, list):
        return "; ".join(str(v) for v in value if v)
    return value


def _coerce_list(value):
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return value


class LLMResult(BaseModel):
    """
    Base for shapes parsed out of model output.

    Accepts the camelCase keys the prompts ask for as well as snake_case,
    ignores keys we don't know, and is immutable once validated.
    """
    model_config = ConfigDict(
        alias_generator=AliasGenerator(validation_alias=to_camel),
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


# =============================================================================
# FACT-CHECK
# =============================================================================
#
# Expected model output:
#   {"verdict": "FALSE", "explanation": "...",
#    "sources": [{"title": "...", "url": "...", "reliability": "High"}]}
#

class FactCheckSource(LLMResult):
    title: str = ""
    url: str = ""
    reliability: Optional[str] = None


class FactCheckResult(LLMResult):
    """Categorical verdict with explanation and supporting sources."""
    verdict: str = Field(min_length=1, description="TRUE / FALSE / MISLEADING / UNVERIFIABLE")
    explanation: str
    sources: list[FactCheckSource] = Field(default_factory=list)
    confidence: Optional[float] = None
    notes: Optional[str] = None

    @field_validator("verdict", mode="before")
    @classmethod
    def normalize_verdict(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("sources", mode="before")
    @classmethod
    def sources_list(cls, value):
        return value or []


# =============================================================================
# TRUST-CHAIN
# =============================================================================
#
# Expected model output:
#   {"hasTrustChain": true, "confidence": 0.8,
#    "sources": [{"name": "...", "url": "...", "reliability": 0.9}],
#    "explanation": "...", "gaps": ["..."], "context": "..."}
#

class TrustChainSource(LLMResult):
    name: str = ""
    url: str = ""
    reliability: float = DEFAULT_CREDIBILITY

    @field_validator("reliability", mode="before")
    @classmethod
    def reliability_from_label(cls, value):
        if value is None:
            return DEFAULT_CREDIBILITY
        if isinstance(value, str):
            label = value.strip().lower()
            if label in CREDIBILITY_LABELS:
                return CREDIBILITY_LABELS[label]
            try:
                return float(label)
            except ValueError:
                return DEFAULT_CREDIBILITY
        return value


class TrustChainNode(LLMResult):
    """A point in the claim's origin/propagation path."""
    url: str = ""
    type: Optional[str] = None
    credibility: Optional[str] = None
    timestamp: Optional[str] = None
    context: Optional[str] = None
    modifications: Optional[str] = None
    reach: Optional[str] = None

    @field_validator("credibility", "timestamp", mode="before")
    @classmethod
    def stringify(cls, value):
        return None if value is None else str(value)


class TrustChainResult(LLMResult):
    """Origin of a claim and how it spread, with a credibility rating per source."""
    has_trust_chain: bool
    confidence: Optional[float] = None
    sources: list[TrustChainSource] = Field(default_factory=list)
    explanation: str = ""
    gaps: list[str] = Field(default_factory=list)
    context: str = ""
    original_source: Optional[TrustChainNode] = None
    propagation_path: list[TrustChainNode] = Field(default_factory=list)

    @field_validator("gaps", mode="before")
    @classmethod
    def gaps_list(cls, value):
        return _coerce_list(value)

    @field_validator("sources", "propagation_path", mode="before")
    @classmethod
    def empty_list(cls, value):
        return value or []

    @field_validator("explanation", "context", mode="before")
    @classmethod
    def text(cls, value):
        return _coerce_text(value)


# =============================================================================
# SOCRATIC REASONING
# =============================================================================
#
# Expected model output:
#   {"reasoningSteps": [{"question", "analysis", "evidence", "implications"}],
#    "conclusion": {"logicalValidity", "keyFlaws", "strengths", "recommendations"}}
#

class ReasoningStep(LLMResult):
    question: str = ""
    analysis: str = ""
    evidence: str = ""
    implications: str = ""

    @field_validator("question", "analysis", "evidence", "implications", mode="before")
    @classmethod
    def text(cls, value):
        return _coerce_text(value)


class SocraticConclusion(LLMResult):
    logical_validity: str = ""
    key_flaws: str = ""
    strengths: str = ""
    recommendations: str = ""

    @field_validator("logical_validity", "key_flaws", "strengths", "recommendations", mode="before")
    @classmethod
    def text(cls, value):
        return _coerce_text(value)


class SocraticResult(LLMResult):
    """Question / analysis / evidence steps and a structured conclusion."""
    reasoning_steps: list[ReasoningStep] = Field(default_factory=list)
    conclusion: SocraticConclusion
    confidence: Optional[float] = None
    questions: list[str] = Field(default_factory=list)
    assumptions: list[str] = Field(default_factory=list)
    fallacies: list[str] = Field(default_factory=list)
    insights: Optional[str] = None

    @field_validator("questions", "assumptions", "fallacies", mode="before")
    @classmethod
    def lists(cls, value):
        return _coerce_list(value)

    @field_validator("reasoning_steps", mode="before")
    @classmethod
    def steps_list(cls, value):
        return value or []

    @field_validator("conclusion", mode="before")
    @classmethod
    def conclusion_from_text(cls, value):
        # Some answers give the conclusion as one sentence
        if value is None:
            return {}
        if isinstance(value, str):
            return {"logicalValidity": value}
        return value


# =============================================================================
# COMBINED ANALYSIS (orchestrator output, the unit we persist)
# =============================================================================

class AnalysisStatus(BaseModel):
    """Per-method fulfillment tag plus the ISO timestamp of assembly."""
    model_config = ConfigDict(frozen=True)

    fact_check: MethodStatus
    trust_chain: MethodStatus
    socratic: MethodStatus
    timestamp: str


class CombinedAnalysis(BaseModel):
    """
    The three method results (or None) and their status.

    A rejected method never carries data, and a fulfilled one always does.
    Immutable after assembly.
    """
    model_config = ConfigDict(frozen=True)

    fact_check: Optional[FactCheckResult] = None
    trust_chain: Optional[TrustChainResult] = None
    socratic: Optional[SocraticResult] = None
    status: AnalysisStatus

    @model_validator(mode="after")
    def status_matches_data(self):
        for method in AnalysisMethod:
            data = getattr(self, method.value)
            status = getattr(self.status, method.value)
            if status == MethodStatus.REJECTED and data is not None:
                raise ValueError(f"{method.value} is rejected but carries data")
            if status == MethodStatus.FULFILLED and data is None:
                raise ValueError(f"{method.value} is fulfilled but has no data")
        return self

    def result_for(self, method: AnalysisMethod):
        return getattr(self, AnalysisMethod(method).value)

    @property
    def present_methods(self) -> list[AnalysisMethod]:
        """Methods with data, in fixed method order."""
        return [m for m in AnalysisMethod if self.result_for(m) is not None]


class ConfidenceLevel(str, Enum):
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class ConfidenceReport(BaseModel):
    """Read-only view of the aggregated confidence."""
    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=0, le=1)
    verified: bool
    level: ConfidenceLevel
    explanation: str
    method_scores: dict[str, float] = Field(
        default_factory=dict,
        description="Sub-score of every method that contributed",
    )


# =============================================================================
# API SCHEMAS
# =============================================================================

class AnalyzeClaimRequest(BaseModel):
    """
    Request body for POST /api/claims/analyze.

    Example:
        {"claim": "The Great Wall of China is visible from space."}
    """
    claim: str = Field(min_length=3, description="The claim text to analyze")


class ClaimAnalysisView(BaseModel):
    """A persisted analysis together with its confidence report."""
    id: str
    claim: str
    analysis: CombinedAnalysis
    confidence: ConfidenceReport
    created_at: datetime


class TokenUsageCounts(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class TokenUsageSummary(BaseModel):
    """Response of GET /api/usage."""
    calls: int
    total: TokenUsageCounts
    average: TokenUsageCounts
