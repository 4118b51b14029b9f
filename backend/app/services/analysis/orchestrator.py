"""
Analysis Orchestrator — Runs the three analysis methods and tolerates partial failure.

WHAT THIS DOES:
Main entry point for analyzing a claim. Launches every analysis method at
once, waits for all of them, re-runs the ones that failed, and assembles a
single CombinedAnalysis with a status for every method.

HOW IT WORKS:
1. Fan-out: run all adapters in parallel (asyncio.gather, return_exceptions=True)
   and wait until every method has settled (a barrier, not a race)
2. Evaluate: all fulfilled → assemble and return
3. Selective retry: re-run ONLY the failed methods, one after another,
   pausing a fixed delay before each. First-pass successes are reused as-is.
4. Assemble: fulfilled if the final outcome has data, rejected otherwise

A method that fails twice is recorded as rejected; that is not an error for
the request. analyze() always returns a CombinedAnalysis.

USAGE:
    orchestrator = AnalysisOrchestrator(build_default_adapters(client, settings))
    analysis = await orchestrator.analyze("5G towers spread viruses.")
    analysis.status.fact_check  # MethodStatus.FULFILLED / REJECTED
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Mapping, Optional

from app.config import Settings, get_settings
from app.models.schemas import AnalysisMethod, AnalysisStatus, CombinedAnalysis
from app.services.analysis.adapters import build_default_adapters
from app.services.analysis.models import MethodOutcome
from app.services.analysis.protocols import BaseAnalysisMethod
from app.services.sonar.client import SonarClient
from app.services.sonar.usage import TokenUsageRecorder

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY_MS = 1000


def _assemble(outcomes: Mapping[AnalysisMethod, MethodOutcome]) -> CombinedAnalysis:
    """Build the immutable CombinedAnalysis. Methods without an outcome are rejected."""
    results = {}
    statuses = {}
    for method in AnalysisMethod:
        outcome = outcomes.get(method) or MethodOutcome(
            method=method,
            error=LookupError(f"no adapter configured for {method.value}"),
        )
        results[method.value] = outcome.result
        statuses[method.value] = outcome.status

    return CombinedAnalysis(
        **results,
        status=AnalysisStatus(
            **statuses,
            timestamp=datetime.now(timezone.utc).isoformat(),
        ),
    )


class AnalysisOrchestrator:
    """
    Coordinates the analysis methods for one claim at a time.

    Holds no per-request state, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        adapters: Mapping[AnalysisMethod, BaseAnalysisMethod],
        retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            adapters: One adapter per analysis method
            retry_delay_ms: Fixed pause before each retry of a failed method
            sleep: Awaitable sleep (injectable for tests)
        """
        self.adapters = dict(adapters)
        self.retry_delay_ms = retry_delay_ms
        self._sleep = sleep

    async def analyze(self, claim_text: str) -> CombinedAnalysis:
        """
        Analyze a claim with every method.

        Never raises because a method failed; rejected methods appear in
        the returned status with no data.
        """
        start_time = time.time()
        methods = [m for m in AnalysisMethod if m in self.adapters]
        logger.info(f"Starting analysis: {len(methods)} methods, claim={claim_text[:80]!r}")

        # Step 1: fan-out and wait for every method to settle
        outcomes = await self._run_all(claim_text, methods)
        fanout_time = time.time() - start_time

        failed = [m for m in methods if not outcomes[m].fulfilled]
        logger.info(
            f"Fan-out settled in {fanout_time:.2f}s: "
            f"{len(methods) - len(failed)} fulfilled, {len(failed)} failed"
        )

        # Step 2: sequential retry of failed methods only
        for method in failed:
            outcomes[method] = await self._retry(method, claim_text)

        # Step 3: assemble
        analysis = _assemble(outcomes)
        total_time = time.time() - start_time
        logger.info(
            f"Analysis complete in {total_time:.2f}s: "
            f"fact_check={analysis.status.fact_check.value}, "
            f"trust_chain={analysis.status.trust_chain.value}, "
            f"socratic={analysis.status.socratic.value}"
        )
        return analysis

    async def _run_all(
        self,
        claim_text: str,
        methods: list[AnalysisMethod],
    ) -> dict[AnalysisMethod, MethodOutcome]:
        """Run the given methods in parallel and collect result-or-error for each."""
        tasks = [self.adapters[method].run(claim_text) for method in methods]
        settled = await asyncio.gather(*tasks, return_exceptions=True)

        outcomes = {}
        for method, value in zip(methods, settled):
            outcome = MethodOutcome.settle(method, value)
            if not outcome.fulfilled:
                logger.error(f"{method.value} failed on first pass: {outcome.error!r}")
            outcomes[method] = outcome
        return outcomes

    async def _retry(self, method: AnalysisMethod, claim_text: str) -> MethodOutcome:
        logger.warning(f"Retrying {method.value} after {self.retry_delay_ms}ms")
        await self._sleep(self.retry_delay_ms / 1000)

        try:
            value = await self.adapters[method].run(claim_text)
        except Exception as e:
            value = e

        outcome = MethodOutcome.settle(method, value, attempts=2)
        if outcome.fulfilled:
            logger.info(f"{method.value} succeeded on retry")
        else:
            logger.error(f"{method.value} failed on retry: {outcome.error!r}")
        return outcome


async def analyze_claim(
    claim_text: str,
    settings: Optional[Settings] = None,
    usage_recorder: Optional[TokenUsageRecorder] = None,
) -> CombinedAnalysis:
    """
    Convenience function: build a client and the default adapters, analyze, close.

    Example:
        analysis = await analyze_claim("The moon landing was staged.")
    """
    settings = settings or get_settings()
    client = SonarClient(settings)
    try:
        orchestrator = AnalysisOrchestrator(
            build_default_adapters(client, settings, usage_recorder),
            retry_delay_ms=settings.analysis_retry_delay_ms,
        )
        return await orchestrator.analyze(claim_text)
    finally:
        await client.close()
