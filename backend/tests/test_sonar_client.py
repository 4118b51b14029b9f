"""
Tests for the Sonar request executor.

No network: every test injects an httpx.MockTransport into the SDK client and
a fake sleep, so retries and backoff are checked without waiting.
Run with: pytest tests/test_sonar_client.py -v
"""

import asyncio
import json
from dataclasses import replace

import httpx
import pytest

from app.config import Settings
from app.services.sonar import (
    ConfigurationError,
    MalformedResponseError,
    PermanentClientError,
    SonarClient,
    SonarTimeoutError,
    TransientServerError,
    backoff_delay_ms,
)


def completion_body(content="{\"verdict\": \"TRUE\"}"):
    return {
        "id": "cmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "sonar",
        "choices": [{
            "index": 0,
            "finish_reason": "stop",
            "message": {"role": "assistant", "content": content},
        }],
        "usage": {"prompt_tokens": 12, "completion_tokens": 30, "total_tokens": 42},
    }


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def make_client(settings, handler, sleep=None):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SonarClient(settings, http_client=http_client, sleep=sleep or RecordingSleep())


def make_request(client, **overrides):
    config = client.build_request("sonar", "You are a fact checker.", "The sky is green.", 500)
    return replace(config, **overrides)


# =============================================================================
# CONFIGURATION
# =============================================================================

def test_missing_api_key_raises_configuration_error():
    with pytest.raises(ConfigurationError) as exc_info:
        SonarClient(Settings(sonar_api_key="", sonar_api_url="https://sonar.test"))
    assert exc_info.value.config_key == "sonar_api_key"


def test_missing_base_url_raises_configuration_error():
    with pytest.raises(ConfigurationError) as exc_info:
        SonarClient(Settings(sonar_api_key="key", sonar_api_url=""))
    assert exc_info.value.config_key == "sonar_api_url"


# =============================================================================
# REQUEST SHAPE
# =============================================================================

def test_build_request_uses_configured_policy(settings):
    client = make_client(settings, lambda request: httpx.Response(200, json=completion_body()))
    config = client.build_request("sonar-pro", "system text", "claim text", 1000)

    assert config.model == "sonar-pro"
    assert config.timeout_ms == 30000
    assert config.max_retries == 3
    assert config.retry_delay_ms == 1000
    assert config.to_payload() == {
        "model": "sonar-pro",
        "messages": [
            {"role": "system", "content": "system text"},
            {"role": "user", "content": "claim text"},
        ],
        "max_tokens": 1000,
    }


@pytest.mark.asyncio
async def test_success_sends_bearer_token_and_returns_content(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=completion_body("hello"))

    client = make_client(settings, handler)
    completion = await client.execute(make_request(client))

    assert completion.content == "hello"
    assert completion.usage.total_tokens == 42
    assert len(seen) == 1
    assert seen[0].url.path.endswith("/chat/completions")
    assert seen[0].headers["authorization"] == "Bearer test-key"
    assert "x-request-id" in seen[0].headers
    body = json.loads(seen[0].content)
    assert body["max_tokens"] == 500
    assert body["messages"][0]["role"] == "system"


# =============================================================================
# RETRY POLICY
# =============================================================================

@pytest.mark.asyncio
async def test_server_error_is_retried_until_success(settings):
    responses = [
        httpx.Response(503, json={"error": {"message": "overloaded"}}),
        httpx.Response(200, json=completion_body("ok")),
    ]
    calls = []

    def handler(request):
        calls.append(request)
        return responses[len(calls) - 1]

    sleep = RecordingSleep()
    client = make_client(settings, handler, sleep)
    completion = await client.execute(make_request(client))

    assert completion.content == "ok"
    assert len(calls) == 2
    # First backoff: 1000ms base plus up to 1000ms jitter
    assert len(sleep.delays) == 1
    assert 1.0 <= sleep.delays[0] <= 2.0


@pytest.mark.asyncio
async def test_server_error_exhausts_attempts(settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, json={"error": {"message": "boom"}})

    sleep = RecordingSleep()
    client = make_client(settings, handler, sleep)

    with pytest.raises(TransientServerError) as exc_info:
        await client.execute(make_request(client))

    assert exc_info.value.status_code == 500
    assert len(calls) == 3
    assert len(sleep.delays) == 2
    assert 1.0 <= sleep.delays[0] <= 2.0
    assert 2.0 <= sleep.delays[1] <= 3.0


@pytest.mark.asyncio
async def test_client_error_is_not_retried(settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, json={"error": {"message": "bad request"}})

    sleep = RecordingSleep()
    client = make_client(settings, handler, sleep)

    with pytest.raises(PermanentClientError) as exc_info:
        await client.execute(make_request(client))

    assert exc_info.value.status_code == 400
    assert len(calls) == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_timeout_makes_exactly_one_attempt(settings):
    calls = []

    async def handler(request):
        calls.append(request)
        await asyncio.sleep(1)
        return httpx.Response(200, json=completion_body())

    client = make_client(settings, handler)

    with pytest.raises(SonarTimeoutError) as exc_info:
        await client.execute(make_request(client, timeout_ms=20))

    assert exc_info.value.timeout_ms == 20
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_malformed_success_is_retried_then_surfaced_with_payload(settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"id": "cmpl-x", "choices": []})

    client = make_client(settings, handler)

    with pytest.raises(MalformedResponseError) as exc_info:
        await client.execute(make_request(client))

    assert len(calls) == 3
    assert exc_info.value.status_code == 200
    assert "cmpl-x" in exc_info.value.payload


# =============================================================================
# BACKOFF
# =============================================================================

def test_backoff_doubles_per_attempt():
    assert [backoff_delay_ms(a, 1000) for a in range(3)] == [1000, 2000, 4000]
    assert backoff_delay_ms(0, 250) == 250
