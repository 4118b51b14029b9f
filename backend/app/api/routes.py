"""
API Routes — The endpoints that tie everything together.

ENDPOINTS:
- POST /api/claims/analyze          → Main endpoint: claim → analysis + confidence
- GET  /api/claims                  → History, filterable by date / verified / score
- GET  /api/claims/{id}             → One stored analysis
- GET  /api/claims/{id}/confidence  → Just its confidence report
- GET  /api/usage                   → Token usage of Sonar calls since startup

FLOW:
1. POST a claim to /api/claims/analyze
2. The three analysis methods run in parallel; failures are retried once
3. Confidence is aggregated over whatever succeeded and the result is stored
4. Read it back later by id or through the history listing
"""

import logging
from dataclasses import asdict
from datetime import datetime
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.database import get_db
from app.models.schemas import (
    AnalyzeClaimRequest,
    ClaimAnalysisView,
    ConfidenceReport,
    TokenUsageCounts,
    TokenUsageSummary,
)
from app.services.analysis.adapters import build_default_adapters
from app.services.analysis.orchestrator import AnalysisOrchestrator
from app.services.analysis_store import (
    DEFAULT_HISTORY_LIMIT,
    AnalysisFilters,
    AnalysisRepository,
    SqlAnalysisRepository,
)
from app.services.claim_service import ClaimAnalysisService, ClaimHistoryService
from app.services.sonar import ConfigurationError, SonarClient, TokenUsageRecorder
from app.services.trust.confidence_calculator import ConfidenceCalculator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


# =============================================================================
# DEPENDENCIES
# =============================================================================

@lru_cache
def get_usage_recorder() -> TokenUsageRecorder:
    """One recorder for the process, so /api/usage sees every call."""
    return TokenUsageRecorder(warn_ratio=get_settings().token_usage_warn_ratio)


async def get_sonar_client(settings: Settings = Depends(get_settings)):
    try:
        client = SonarClient(settings)
    except ConfigurationError as e:
        logger.error(f"Sonar client unavailable: {e} ({e.config_key})")
        raise HTTPException(status_code=503, detail=str(e))
    try:
        yield client
    finally:
        await client.close()


def get_repository(db: AsyncSession = Depends(get_db)) -> AnalysisRepository:
    return SqlAnalysisRepository(db)


def get_history_service(
    repository: AnalysisRepository = Depends(get_repository),
) -> ClaimHistoryService:
    return ClaimHistoryService(repository)


def get_claim_service(
    settings: Settings = Depends(get_settings),
    client: SonarClient = Depends(get_sonar_client),
    recorder: TokenUsageRecorder = Depends(get_usage_recorder),
    repository: AnalysisRepository = Depends(get_repository),
) -> ClaimAnalysisService:
    orchestrator = AnalysisOrchestrator(
        build_default_adapters(client, settings, usage_recorder=recorder),
        retry_delay_ms=settings.analysis_retry_delay_ms,
    )
    return ClaimAnalysisService(
        orchestrator,
        ConfidenceCalculator.from_settings(settings),
        repository,
    )


# =============================================================================
# CLAIM ANALYSIS
# =============================================================================

@router.post("/claims/analyze", response_model=ClaimAnalysisView)
async def analyze_claim(
    request: AnalyzeClaimRequest,
    service: ClaimAnalysisService = Depends(get_claim_service),
) -> ClaimAnalysisView:
    """
    Analyze a claim with fact-check, trust-chain and socratic reasoning.

    Methods that fail twice come back with status "rejected" and no data;
    the request itself still succeeds.

    Example:
        POST /api/claims/analyze
        {"claim": "Vitamin C prevents the common cold."}
    """
    logger.info(f"Analyzing claim: '{request.claim[:80]}'")
    return await service.analyze(request.claim)


# =============================================================================
# HISTORY / RETRIEVAL
# =============================================================================

@router.get("/claims", response_model=list[ClaimAnalysisView])
async def list_claims(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    verified: Optional[bool] = None,
    min_score: Optional[float] = Query(None, ge=0, le=1),
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1, le=500),
    service: ClaimHistoryService = Depends(get_history_service),
) -> list[ClaimAnalysisView]:
    """
    Stored analyses, newest first.

    Example:
        GET /api/claims?verified=true&min_score=0.8
    """
    filters = AnalysisFilters(
        start_date=start_date,
        end_date=end_date,
        verified=verified,
        min_score=min_score,
        limit=limit,
    )
    return await service.history(filters)


@router.get("/claims/{analysis_id}", response_model=ClaimAnalysisView)
async def get_claim(
    analysis_id: str,
    service: ClaimHistoryService = Depends(get_history_service),
) -> ClaimAnalysisView:
    view = await service.get(analysis_id)
    if not view:
        raise HTTPException(status_code=404, detail=f"Analysis {analysis_id} not found")
    return view


@router.get("/claims/{analysis_id}/confidence", response_model=ConfidenceReport)
async def get_claim_confidence(
    analysis_id: str,
    service: ClaimHistoryService = Depends(get_history_service),
) -> ConfidenceReport:
    confidence = await service.confidence(analysis_id)
    if confidence is None:
        raise HTTPException(status_code=404, detail=f"Analysis {analysis_id} not found")
    return confidence


# =============================================================================
# TOKEN USAGE
# =============================================================================

@router.get("/usage", response_model=TokenUsageSummary)
async def token_usage(
    recorder: TokenUsageRecorder = Depends(get_usage_recorder),
) -> TokenUsageSummary:
    """
    Example:
        GET /api/usage
        Returns {"calls": 3, "total": {...}, "average": {...}}
    """
    return TokenUsageSummary(
        calls=len(recorder.records()),
        total=TokenUsageCounts(**asdict(recorder.total_usage())),
        average=TokenUsageCounts(**asdict(recorder.average_usage())),
    )
