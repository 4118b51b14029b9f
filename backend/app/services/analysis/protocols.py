"""
Analysis Protocols — Abstract base class for analysis methods.

The orchestrator only knows this interface, so a method can be swapped for a
fake in tests or a new method added without touching the orchestration.
"""

from abc import ABC, abstractmethod

from app.models.schemas import AnalysisMethod


class BaseAnalysisMethod(ABC):
    """
    One independent way of analyzing a claim.

    Implementations must not share mutable state with each other: the
    orchestrator runs them concurrently and may re-run any one of them.
    """

    @property
    @abstractmethod
    def method(self) -> AnalysisMethod:
        """Which analysis this is."""
        pass

    @abstractmethod
    async def run(self, claim_text: str):
        """
        Analyze a claim.

        Returns:
            The method's typed result (FactCheckResult, TrustChainResult, ...)

        Raises:
            Any failure. The orchestrator records it as a rejected method.
        """
        pass
