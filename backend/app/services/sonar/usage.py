"""
Token usage recorder.

Collects the usage counters reported by every completion call so we can see
how close each prompt runs to its token budget. The three analysis adapters
run concurrently and may report at the same moment, so appends go through a lock.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

from app.services.sonar.client import TokenUsage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenUsageRecord:
    endpoint: str
    model: str
    usage: TokenUsage
    max_tokens: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def usage_ratio(self) -> float:
        """Share of the completion budget actually used."""
        if self.max_tokens <= 0:
            return 0.0
        return self.usage.completion_tokens / self.max_tokens


class TokenUsageRecorder:
    """Thread-safe, append-only log of token usage."""

    def __init__(self, warn_ratio: float = 0.9):
        self.warn_ratio = warn_ratio
        self._records: list[TokenUsageRecord] = []
        self._lock = threading.Lock()

    def record(self, endpoint: str, model: str, usage: TokenUsage, max_tokens: int) -> TokenUsageRecord:
        entry = TokenUsageRecord(
            endpoint=endpoint,
            model=model,
            usage=usage,
            max_tokens=max_tokens,
        )
        with self._lock:
            self._records.append(entry)

        percentage = entry.usage_ratio * 100
        logger.debug(
            f"Token usage for {endpoint} ({model}): prompt={usage.prompt_tokens}, "
            f"completion={usage.completion_tokens}, total={usage.total_tokens}, "
            f"max={max_tokens} ({percentage:.2f}%)"
        )
        if entry.usage_ratio > self.warn_ratio:
            logger.warning(f"High token usage detected for {endpoint}: {percentage:.2f}%")

        return entry

    def records(self) -> list[TokenUsageRecord]:
        """Snapshot of everything recorded so far."""
        with self._lock:
            return list(self._records)

    def total_usage(self) -> TokenUsage:
        records = self.records()
        return TokenUsage(
            prompt_tokens=sum(r.usage.prompt_tokens for r in records),
            completion_tokens=sum(r.usage.completion_tokens for r in records),
            total_tokens=sum(r.usage.total_tokens for r in records),
        )

    def average_usage(self) -> TokenUsage:
        """Mean usage per call, rounded to whole tokens."""
        records = self.records()
        if not records:
            return TokenUsage()

        count = len(records)
        total = self.total_usage()
        return TokenUsage(
            prompt_tokens=round(total.prompt_tokens / count),
            completion_tokens=round(total.completion_tokens / count),
            total_tokens=round(total.total_tokens / count),
        )
