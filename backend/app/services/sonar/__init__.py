"""
Sonar Module — Outbound completion calls and response sanitization.

COMPONENTS:
- SonarClient: executes one completion request (timeout, retry, classification)
- ResponseSanitizer: coerces model text into a validated schema instance
- TokenUsageRecorder: thread-safe log of per-call token usage
- Prompt templates for the three analysis methods
"""

from app.services.sonar.client import (
    Message,
    RawCompletion,
    RequestConfig,
    SonarClient,
    TokenUsage,
    backoff_delay_ms,
)
from app.services.sonar.exceptions import (
    ConfigurationError,
    MalformedResponseError,
    PermanentClientError,
    SanitizationFailure,
    SonarError,
    SonarTimeoutError,
    TransientServerError,
)
from app.services.sonar.sanitizer import (
    ResponseSanitizer,
    SanitizationResult,
    parse_labelled_sections,
)
from app.services.sonar.templates import (
    FACT_CHECK_TEMPLATE,
    SOCRATIC_TEMPLATE,
    TRUST_CHAIN_TEMPLATE,
    PromptTemplate,
)
from app.services.sonar.usage import TokenUsageRecord, TokenUsageRecorder

__all__ = [
    # Executor
    "SonarClient",
    "RequestConfig",
    "Message",
    "RawCompletion",
    "TokenUsage",
    "backoff_delay_ms",
    # Errors
    "SonarError",
    "ConfigurationError",
    "SonarTimeoutError",
    "TransientServerError",
    "MalformedResponseError",
    "PermanentClientError",
    "SanitizationFailure",
    # Sanitizer
    "ResponseSanitizer",
    "SanitizationResult",
    "parse_labelled_sections",
    # Templates
    "PromptTemplate",
    "FACT_CHECK_TEMPLATE",
    "TRUST_CHAIN_TEMPLATE",
    "SOCRATIC_TEMPLATE",
    # Usage
    "TokenUsageRecorder",
    "TokenUsageRecord",
]
