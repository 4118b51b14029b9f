"""
Claim Analysis Service — Orchestrate, score, persist.

WHAT THIS DOES:
The service layer the API calls. Runs the analysis orchestrator on a claim,
aggregates the confidence, stores the result unmodified and returns it.
Reads of stored analyses go through ClaimHistoryService, which needs only
the repository.

FLOW:
    claim → AnalysisOrchestrator.analyze → CombinedAnalysis
          → ConfidenceCalculator.aggregate → ConfidenceReport
          → AnalysisRepository.save → ClaimAnalysisView
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from app.models.schemas import ClaimAnalysisView, ConfidenceReport
from app.services.analysis.orchestrator import AnalysisOrchestrator
from app.services.analysis_store import AnalysisFilters, AnalysisRepository
from app.services.trust.confidence_calculator import ConfidenceCalculator

logger = logging.getLogger(__name__)


class ClaimHistoryService:
    """Read side: stored analyses by id or filter. Needs no Sonar client."""

    def __init__(self, repository: AnalysisRepository):
        self.repository = repository

    async def get(self, analysis_id: str) -> Optional[ClaimAnalysisView]:
        return await self.repository.find_by_id(analysis_id)

    async def confidence(self, analysis_id: str) -> Optional[ConfidenceReport]:
        view = await self.get(analysis_id)
        return view.confidence if view else None

    async def history(self, filters: Optional[AnalysisFilters] = None) -> list[ClaimAnalysisView]:
        views = await self.repository.find(filters)
        logger.debug(f"History query returned {len(views)} analyses")
        return views


class ClaimAnalysisService(ClaimHistoryService):

    def __init__(
        self,
        orchestrator: AnalysisOrchestrator,
        calculator: ConfidenceCalculator,
        repository: AnalysisRepository,
    ):
        super().__init__(repository)
        self.orchestrator = orchestrator
        self.calculator = calculator

    async def analyze(self, claim_text: str) -> ClaimAnalysisView:
        claim_text = claim_text.strip()
        analysis = await self.orchestrator.analyze(claim_text)
        confidence = self.calculator.aggregate(analysis)

        view = ClaimAnalysisView(
            id=str(uuid.uuid4()),
            claim=claim_text,
            analysis=analysis,
            confidence=confidence,
            created_at=datetime.now(timezone.utc),
        )
        await self.repository.save(view)
        logger.info(f"Stored analysis {view.id}: score={confidence.score:.2f}, verified={confidence.verified}")
        return view
