"""
Analysis Method Adapters — One Sonar prompt each, producing one typed result.

WHAT THIS DOES:
Each adapter pairs a fixed prompt template with the shared SonarClient and
ResponseSanitizer:

    claim text → RequestConfig → SonarClient.execute() → raw text
               → ResponseSanitizer.sanitize(schema) → typed result

A sanitizer failure is raised as SanitizationFailure rather than returned as
an empty result, so the orchestrator sees it as a failed method and can retry.

ADAPTERS:
- FactCheckAdapter   → FactCheckResult   (quick model, 500 tokens)
- TrustChainAdapter  → TrustChainResult  (detailed model, 1000 tokens)
- SocraticAdapter    → SocraticResult    (detailed model, 1000 tokens)

USAGE:
    client = SonarClient(settings)
    adapter = FactCheckAdapter(client, settings)
    result = await adapter.run("The Great Wall of China is visible from space.")
    print(result.verdict)
"""

import logging
import re
from typing import Callable, Optional

from pydantic import BaseModel

from app.config import Settings
from app.models.schemas import (
    AnalysisMethod,
    FactCheckResult,
    SocraticResult,
    TrustChainResult,
)
from app.services.analysis.protocols import BaseAnalysisMethod
from app.services.sonar.client import SonarClient
from app.services.sonar.exceptions import SanitizationFailure
from app.services.sonar.sanitizer import ResponseSanitizer, parse_labelled_sections
from app.services.sonar.templates import (
    FACT_CHECK_TEMPLATE,
    QUICK,
    SOCRATIC_TEMPLATE,
    TRUST_CHAIN_TEMPLATE,
    PromptTemplate,
)
from app.services.sonar.usage import TokenUsageRecorder

logger = logging.getLogger(__name__)

URL_RE = re.compile(r"https?://\S+")
WORD_RE = re.compile(r"[A-Za-z_]+")


class SonarAnalysisAdapter(BaseAnalysisMethod):
    """
    Base adapter: template + client + sanitizer.

    Subclasses set analysis_method, template and result_schema, and may set
    text_fallback to accept labelled free text when JSON extraction fails.
    """

    analysis_method: AnalysisMethod
    template: PromptTemplate
    result_schema: type[BaseModel]
    text_fallback: Optional[Callable[[str], Optional[dict]]] = None

    def __init__(
        self,
        client: SonarClient,
        settings: Settings,
        sanitizer: Optional[ResponseSanitizer] = None,
        usage_recorder: Optional[TokenUsageRecorder] = None,
    ):
        self.client = client
        self.settings = settings
        self.sanitizer = sanitizer or ResponseSanitizer()
        self.usage_recorder = usage_recorder

    @property
    def method(self) -> AnalysisMethod:
        return self.analysis_method

    @property
    def model(self) -> str:
        if self.template.model_variant == QUICK:
            return self.settings.sonar_quick_model
        return self.settings.sonar_detailed_model

    async def run(self, claim_text: str):
        """
        Run this analysis for one claim.

        Raises:
            SonarError subclasses from the executor, or SanitizationFailure
            when the model's text can't be coerced into result_schema.
        """
        logger.info(f"Running {self.method.value} analysis ({self.model})")

        config = self.client.build_request(
            model=self.model,
            system_prompt=self.template.system,
            user_content=claim_text,
            max_tokens=self.template.max_tokens,
        )
        completion = await self.client.execute(config)

        if completion.usage is not None and self.usage_recorder is not None:
            self.usage_recorder.record(
                endpoint=self.method.value,
                model=completion.model,
                usage=completion.usage,
                max_tokens=config.max_tokens,
            )

        result = self.sanitizer.sanitize(
            completion.content,
            self.result_schema,
            self.text_fallback,
        )
        if not result.success:
            logger.error(
                f"{self.method.value} response could not be sanitized "
                f"(steps: {', '.join(result.steps_tried)})"
            )
            raise SanitizationFailure(
                f"{self.method.value} response could not be sanitized: {result.error}",
                steps_tried=result.steps_tried,
                original_response=result.original_response,
            )

        logger.debug(f"{self.method.value} sanitized via: {result.steps_tried[-1]}")
        return result.data


class FactCheckAdapter(SonarAnalysisAdapter):
    analysis_method = AnalysisMethod.FACT_CHECK
    template = FACT_CHECK_TEMPLATE
    result_schema = FactCheckResult

    def text_fallback(self, text: str) -> Optional[dict]:
        """Read a "VERDICT: / EXPLANATION: / SOURCES: / NOTES:" answer."""
        return fact_check_from_labelled_text(text)


class TrustChainAdapter(SonarAnalysisAdapter):
    analysis_method = AnalysisMethod.TRUST_CHAIN
    template = TRUST_CHAIN_TEMPLATE
    result_schema = TrustChainResult


class SocraticAdapter(SonarAnalysisAdapter):
    analysis_method = AnalysisMethod.SOCRATIC
    template = SOCRATIC_TEMPLATE
    result_schema = SocraticResult


def fact_check_from_labelled_text(text: str) -> Optional[dict]:
    """
    Build fact-check fields from labelled text, or None if there is no verdict.

    Source lines look like "Title - https://url" or just a URL.
    """
    sections = parse_labelled_sections(text)
    verdict_lines = sections.get("verdict") or []
    verdict_word = WORD_RE.search(verdict_lines[0]) if verdict_lines else None
    if verdict_word is None:
        return None

    sources = []
    for line in sections.get("sources", []):
        url_match = URL_RE.search(line)
        url = url_match.group(0).rstrip(").,]") if url_match else ""
        title = line.replace(url_match.group(0), "") if url_match else line
        title = title.strip(" -–:()[]")
        sources.append({"title": title or url, "url": url})

    notes = " ".join(sections.get("notes", []))
    return {
        "verdict": verdict_word.group(0),
        "explanation": " ".join(sections.get("explanation", [])),
        "sources": sources,
        "notes": notes or None,
    }


def build_default_adapters(
    client: SonarClient,
    settings: Settings,
    usage_recorder: Optional[TokenUsageRecorder] = None,
    sanitizer: Optional[ResponseSanitizer] = None,
) -> dict[AnalysisMethod, BaseAnalysisMethod]:
    """The three standard adapters, keyed by method."""
    sanitizer = sanitizer or ResponseSanitizer()
    return {
        adapter_cls.analysis_method: adapter_cls(
            client,
            settings,
            sanitizer=sanitizer,
            usage_recorder=usage_recorder,
        )
        for adapter_cls in (FactCheckAdapter, TrustChainAdapter, SocraticAdapter)
    }
