"""
Analysis Store — Persists analyzed claims and serves history queries.

WHAT THIS DOES:
Saves each finished analysis (claim, CombinedAnalysis, ConfidenceReport) and
reads them back by id or by filter (date range, verified flag, minimum score).

WHY THIS EXISTS:
- Routes and ClaimAnalysisService only see the AnalysisRepository interface
- SqlAnalysisRepository is the production store (PostgreSQL via SQLAlchemy)
- InMemoryAnalysisRepository backs tests and local runs without a database
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.analysis_record import AnalysisRecord
from app.models.schemas import ClaimAnalysisView, CombinedAnalysis, ConfidenceReport

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class AnalysisFilters:
    """History filter; unset fields don't restrict."""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    verified: Optional[bool] = None
    min_score: Optional[float] = None
    limit: int = DEFAULT_HISTORY_LIMIT

    def __post_init__(self):
        # Stored timestamps are UTC-aware; naive bounds are read as UTC
        for name in ("start_date", "end_date"):
            value = getattr(self, name)
            if value is not None and value.tzinfo is None:
                object.__setattr__(self, name, value.replace(tzinfo=timezone.utc))

    def matches(self, view: ClaimAnalysisView) -> bool:
        if self.start_date is not None and view.created_at < self.start_date:
            return False
        if self.end_date is not None and view.created_at > self.end_date:
            return False
        if self.verified is not None and view.confidence.verified != self.verified:
            return False
        if self.min_score is not None and view.confidence.score < self.min_score:
            return False
        return True


class AnalysisRepository(ABC):
    """Storage interface for analyzed claims."""

    @abstractmethod
    async def save(self, view: ClaimAnalysisView) -> ClaimAnalysisView:
        pass

    @abstractmethod
    async def find_by_id(self, analysis_id: str) -> Optional[ClaimAnalysisView]:
        pass

    @abstractmethod
    async def find(self, filters: Optional[AnalysisFilters] = None) -> list[ClaimAnalysisView]:
        """Matching analyses, newest first."""
        pass


class InMemoryAnalysisRepository(AnalysisRepository):

    def __init__(self):
        self._views: dict[str, ClaimAnalysisView] = {}
        self._lock = threading.Lock()

    async def save(self, view: ClaimAnalysisView) -> ClaimAnalysisView:
        with self._lock:
            self._views[view.id] = view
        return view

    async def find_by_id(self, analysis_id: str) -> Optional[ClaimAnalysisView]:
        with self._lock:
            return self._views.get(analysis_id)

    async def find(self, filters: Optional[AnalysisFilters] = None) -> list[ClaimAnalysisView]:
        filters = filters or AnalysisFilters()
        with self._lock:
            views = [v for v in self._views.values() if filters.matches(v)]
        views.sort(key=lambda v: v.created_at, reverse=True)
        return views[: filters.limit]


def _to_view(record: AnalysisRecord) -> ClaimAnalysisView:
    return ClaimAnalysisView(
        id=record.id,
        claim=record.claim,
        analysis=CombinedAnalysis.model_validate(record.analysis),
        confidence=ConfidenceReport.model_validate(record.confidence),
        created_at=record.created_at,
    )


class SqlAnalysisRepository(AnalysisRepository):
    """
    PostgreSQL-backed store.

    Uses one AsyncSession per request (from get_db).
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save(self, view: ClaimAnalysisView) -> ClaimAnalysisView:
        record = AnalysisRecord(
            id=view.id,
            claim=view.claim,
            analysis=view.analysis.model_dump(mode="json"),
            confidence=view.confidence.model_dump(mode="json"),
            score=view.confidence.score,
            verified=view.confidence.verified,
            created_at=view.created_at,
        )
        self.db.add(record)
        await self.db.commit()
        logger.info(f"Saved analysis {view.id} (score={view.confidence.score:.2f})")
        return view

    async def find_by_id(self, analysis_id: str) -> Optional[ClaimAnalysisView]:
        record = await self.db.get(AnalysisRecord, analysis_id)
        return _to_view(record) if record else None

    async def find(self, filters: Optional[AnalysisFilters] = None) -> list[ClaimAnalysisView]:
        filters = filters or AnalysisFilters()
        query = select(AnalysisRecord)

        if filters.start_date is not None:
            query = query.where(AnalysisRecord.created_at >= filters.start_date)
        if filters.end_date is not None:
            query = query.where(AnalysisRecord.created_at <= filters.end_date)
        if filters.verified is not None:
            query = query.where(AnalysisRecord.verified == filters.verified)
        if filters.min_score is not None:
            query = query.where(AnalysisRecord.score >= filters.min_score)

        query = query.order_by(AnalysisRecord.created_at.desc()).limit(filters.limit)
        result = await self.db.execute(query)
        return [_to_view(record) for record in result.scalars().all()]
