"""
Analysis Models — Per-method outcomes tracked by the orchestrator.

These dataclasses are internal to one orchestration. What leaves the
orchestrator is the immutable CombinedAnalysis built from them.
"""

from dataclasses import dataclass
from typing import Optional

from app.models.schemas import AnalysisMethod, MethodStatus


@dataclass(frozen=True)
class MethodOutcome:
    """
    Settled result of one analysis method.

    Either result is set (fulfilled) or error is set (rejected), never both.
    """

    method: AnalysisMethod
    """Which analysis produced this outcome"""

    result: Optional[object] = None
    """Typed result (FactCheckResult, TrustChainResult, SocraticResult)"""

    error: Optional[BaseException] = None
    """Why the method failed"""

    attempts: int = 1
    """1 for first-pass results, 2 after an orchestrator retry"""

    @property
    def status(self) -> MethodStatus:
        return MethodStatus.FULFILLED if self.result is not None else MethodStatus.REJECTED

    @property
    def fulfilled(self) -> bool:
        return self.status == MethodStatus.FULFILLED

    @classmethod
    def settle(cls, method: AnalysisMethod, value, attempts: int = 1) -> "MethodOutcome":
        """Outcome from a value returned by asyncio.gather(return_exceptions=True)."""
        if isinstance(value, BaseException):
            return cls(method=method, error=value, attempts=attempts)
        if value is None:
            return cls(
                method=method,
                error=ValueError(f"{method.value} returned no result"),
                attempts=attempts,
            )
        return cls(method=method, result=value, attempts=attempts)
