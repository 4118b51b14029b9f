"""
Sonar completion client — the outbound request executor.

WHAT THIS DOES:
Sends one chat-completion request to the Sonar (Perplexity) API and applies
the timeout / retry / error-classification policy around it.

HOW IT WORKS:
1. Configuration is checked once when the client is built (API key + base URL)
2. Each call gets a wall-clock timeout (asyncio.wait_for around the SDK call)
3. Failures are classified:
   - timeout            → SonarTimeoutError      (not retried)
   - 5xx / no response  → TransientServerError   (retried)
   - 200 without content→ MalformedResponseError (retried, then surfaced with payload)
   - anything else      → PermanentClientError   (not retried)
4. Transient failures are retried by tenacity with exponential backoff
   (base * 2^attempt) plus 0-1000ms of jitter

The OpenAI SDK is used as the transport because Sonar speaks the same
/chat/completions protocol. SDK-level retries are disabled so that this
module is the only place retry policy lives.

USAGE:
    client = SonarClient(get_settings())
    completion = await client.execute(RequestConfig(
        model="sonar",
        messages=(Message("system", "..."), Message("user", claim)),
        max_tokens=500,
    ))
    print(completion.content)
    await client.close()
"""

import asyncio
import json
import logging
import random
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx
import openai
from openai import AsyncOpenAI
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from app.config import Settings
from app.services.sonar.exceptions import (
    ConfigurationError,
    MalformedResponseError,
    PermanentClientError,
    SonarTimeoutError,
    TransientServerError,
)

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_ENDPOINT = "/chat/completions"

# Upper bound of the random jitter added to every backoff delay
MAX_JITTER_MS = 1000


# =============================================================================
# REQUEST / RESPONSE RECORDS
# =============================================================================

@dataclass(frozen=True)
class Message:
    role: str
    content: str


@dataclass(frozen=True)
class RequestConfig:
    """Everything needed for one outbound call. Built per call, never reused."""
    model: str
    messages: tuple[Message, ...]
    max_tokens: int
    endpoint: str = CHAT_COMPLETIONS_ENDPOINT
    timeout_ms: int = 30000
    max_retries: int = 3
    retry_delay_ms: int = 1000

    def to_payload(self) -> dict:
        """Request body in the /chat/completions wire format."""
        return {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in self.messages],
            "max_tokens": self.max_tokens,
        }


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class RawCompletion:
    """Text body of a successful completion plus optional usage counters."""
    content: str
    model: str
    usage: Optional[TokenUsage] = None


# =============================================================================
# BACKOFF
# =============================================================================

def backoff_delay_ms(attempt: int, base_delay_ms: int) -> int:
    """
    Delay before the next try, without jitter.

    attempt is 0-based: with base 1000ms, attempts 0, 1, 2 give
    1000, 2000, 4000ms.
    """
    return base_delay_ms * (2 ** attempt)


class wait_backoff_with_jitter(wait_base):
    """tenacity wait: exponential backoff plus uniform 0..max_jitter_ms."""

    def __init__(self, base_delay_ms: int, max_jitter_ms: int = MAX_JITTER_MS):
        self.base_delay_ms = base_delay_ms
        self.max_jitter_ms = max_jitter_ms

    def __call__(self, retry_state: RetryCallState) -> float:
        # attempt_number is 1 after the first failure
        attempt = retry_state.attempt_number - 1
        delay_ms = backoff_delay_ms(attempt, self.base_delay_ms)
        delay_ms += random.uniform(0, self.max_jitter_ms)
        return delay_ms / 1000.0


# =============================================================================
# CLIENT
# =============================================================================

class SonarClient:
    """
    Async executor for Sonar chat completions.

    One instance is shared by all analysis adapters; it holds no per-call
    state, so concurrent execute() calls are safe.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not settings.sonar_api_key:
            raise ConfigurationError("Sonar API key is not configured", "sonar_api_key")
        if not settings.sonar_api_url:
            raise ConfigurationError("Sonar API base URL is not configured", "sonar_api_url")

        self.settings = settings
        self.base_url = settings.sonar_api_url.rstrip("/")
        self._sleep = sleep
        self._client = AsyncOpenAI(
            api_key=settings.sonar_api_key,
            base_url=self.base_url,
            max_retries=0,  # retry policy lives in execute()
            http_client=http_client,
        )

    def build_request(
        self,
        model: str,
        system_prompt: str,
        user_content: str,
        max_tokens: int,
    ) -> RequestConfig:
        """RequestConfig for a system + user exchange using the configured policy."""
        return RequestConfig(
            model=model,
            messages=(
                Message("system", system_prompt),
                Message("user", user_content),
            ),
            max_tokens=max_tokens,
            timeout_ms=self.settings.sonar_timeout_ms,
            max_retries=self.settings.sonar_max_retries,
            retry_delay_ms=self.settings.sonar_retry_delay_ms,
        )

    async def execute(self, config: RequestConfig) -> RawCompletion:
        """
        Run one completion request with retries.

        Raises:
            SonarTimeoutError: the call exceeded config.timeout_ms
            TransientServerError: still failing after config.max_retries attempts
                (MalformedResponseError when the last failure was a bad 200)
            PermanentClientError: a non-retryable HTTP error
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, config.max_retries)),
            wait=wait_backoff_with_jitter(config.retry_delay_ms),
            retry=retry_if_exception_type(TransientServerError),
            before_sleep=self._log_retry(config),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            return await retrying(self._attempt, config)
        except TransientServerError as e:
            logger.error(
                f"Sonar request failed after {config.max_retries} attempts: {e}"
            )
            raise

    def _log_retry(self, config: RequestConfig) -> Callable[[RetryCallState], None]:
        def before_sleep(retry_state: RetryCallState) -> None:
            delay_ms = retry_state.next_action.sleep * 1000 if retry_state.next_action else 0
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                f"Sonar request failed ({error}), retrying "
                f"({retry_state.attempt_number}/{config.max_retries}) after {delay_ms:.0f}ms"
            )
        return before_sleep

    async def _attempt(self, config: RequestConfig) -> RawCompletion:
        request_id = str(uuid.uuid4())
        timeout_s = config.timeout_ms / 1000
        logger.debug(f"[{request_id}] POST {self.base_url}{config.endpoint} model={config.model}")

        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    **config.to_payload(),
                    timeout=timeout_s,
                    extra_headers={"X-Request-ID": request_id},
                ),
                timeout=timeout_s,
            )
        except (asyncio.TimeoutError, openai.APITimeoutError) as e:
            raise SonarTimeoutError(
                f"Sonar request timed out after {config.timeout_ms}ms",
                config.timeout_ms,
            ) from e
        except openai.APIConnectionError as e:
            raise TransientServerError(f"No response received from Sonar API: {e}") from e
        except openai.APIStatusError as e:
            if 500 <= e.status_code < 600:
                raise TransientServerError(
                    f"Sonar API error: {e.status_code}", status_code=e.status_code
                ) from e
            raise PermanentClientError(
                f"Sonar API error: {e.status_code}", status_code=e.status_code
            ) from e
        except openai.APIResponseValidationError as e:
            raise MalformedResponseError(
                "Invalid response format from Sonar API", payload=e.response.text
            ) from e

        return self._to_completion(response, config)

    def _to_completion(self, response, config: RequestConfig) -> RawCompletion:
        choices = getattr(response, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        content = getattr(message, "content", None) if message is not None else None

        if not content:
            raise MalformedResponseError(
                "Invalid response format from Sonar API",
                payload=_dump_payload(response),
            )

        usage = None
        raw_usage = getattr(response, "usage", None)
        if raw_usage is not None:
            usage = TokenUsage(
                prompt_tokens=raw_usage.prompt_tokens or 0,
                completion_tokens=raw_usage.completion_tokens or 0,
                total_tokens=raw_usage.total_tokens or 0,
            )

        return RawCompletion(
            content=content,
            model=getattr(response, "model", None) or config.model,
            usage=usage,
        )

    async def close(self):
        """Close the underlying HTTP client (call when done)."""
        await self._client.close()


def _dump_payload(response) -> str:
    """Best-effort raw payload for diagnostics."""
    if hasattr(response, "model_dump"):
        return json.dumps(response.model_dump(exclude_unset=True), default=str)
    return str(response)
