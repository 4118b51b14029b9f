"""
SQLAlchemy model for the claim_analyses table.

One row per analyzed claim. The CombinedAnalysis is stored whole as JSON;
score and verified are duplicated into columns for history filtering.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnalysisRecord(Base):
    """A claim with its combined analysis and confidence."""

    __tablename__ = "claim_analyses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    claim: Mapped[str] = mapped_column(Text)

    # CombinedAnalysis.model_dump(mode="json")
    analysis: Mapped[dict] = mapped_column(JSON)

    # ConfidenceReport.model_dump(mode="json")
    confidence: Mapped[dict] = mapped_column(JSON)

    score: Mapped[float] = mapped_column(Float, index=True)
    verified: Mapped[bool] = mapped_column(Boolean, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)

    def __repr__(self) -> str:
        return f"<AnalysisRecord id={self.id} score={self.score:.2f} claim={self.claim[:50]}...>"
