"""
Shared fixtures: settings with a fake Sonar endpoint and ready-made results.
"""

import pytest

from app.config import Settings
from app.models.schemas import (
    FactCheckResult,
    SocraticResult,
    TrustChainResult,
)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        sonar_api_key="test-key",
        sonar_api_url="https://sonar.test",
        sonar_timeout_ms=30000,
        sonar_max_retries=3,
        sonar_retry_delay_ms=1000,
        analysis_retry_delay_ms=1000,
    )


@pytest.fixture
def fact_check_result() -> FactCheckResult:
    return FactCheckResult.model_validate({
        "verdict": "TRUE",
        "explanation": "Multiple agencies confirm it.",
        "sources": [{"title": "CDC", "url": "https://cdc.gov", "reliability": "High"}],
    })


@pytest.fixture
def trust_chain_result() -> TrustChainResult:
    return TrustChainResult.model_validate({
        "hasTrustChain": True,
        "sources": [
            {"name": "Journal", "url": "https://journal.example", "reliability": 0.8},
            {"name": "Blog", "url": "https://blog.example", "reliability": 0.4},
        ],
        "explanation": "Traced to a peer-reviewed study.",
        "gaps": ["Original dataset not public"],
    })


@pytest.fixture
def socratic_result() -> SocraticResult:
    # 0.5 + 1 step (0.1) + validity (0.1) + flaws (0.1) = 0.8
    return SocraticResult.model_validate({
        "reasoningSteps": [
            {"question": "What is claimed?", "analysis": "A causal link.", "evidence": "", "implications": ""},
        ],
        "conclusion": {
            "logicalValidity": "Mostly sound.",
            "keyFlaws": "Correlation treated as causation.",
            "strengths": "",
        },
    })
