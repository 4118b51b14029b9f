"""
Tests for the three analysis adapters, run against a mocked Sonar endpoint.
"""

import json

import httpx
import pytest

from app.models.schemas import AnalysisMethod, FactCheckResult, SocraticResult, TrustChainResult
from app.services.analysis.adapters import (
    FactCheckAdapter,
    SocraticAdapter,
    TrustChainAdapter,
    build_default_adapters,
)
from app.services.sonar import SanitizationFailure, SonarClient, TokenUsageRecorder


def sonar_returning(settings, content, requests=None):
    def handler(request):
        if requests is not None:
            requests.append(json.loads(request.content))
        return httpx.Response(200, json={
            "id": "cmpl-1",
            "object": "chat.completion",
            "created": 0,
            "model": json.loads(request.content)["model"],
            "choices": [{
                "index": 0,
                "finish_reason": "stop",
                "message": {"role": "assistant", "content": content},
            }],
            "usage": {"prompt_tokens": 100, "completion_tokens": 480, "total_tokens": 580},
        })

    async def no_sleep(seconds):
        pass

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SonarClient(settings, http_client=http_client, sleep=no_sleep)


@pytest.mark.asyncio
async def test_fact_check_uses_quick_model_and_parses_fenced_json(settings):
    requests = []
    content = "```json\n" + json.dumps({
        "verdict": "false",
        "explanation": "Astronauts report it is not visible.",
        "sources": [{"title": "NASA", "url": "https://nasa.gov", "reliability": "High"}],
    }) + "\n```"
    client = sonar_returning(settings, content, requests)

    result = await FactCheckAdapter(client, settings).run("The Great Wall is visible from space.")

    assert isinstance(result, FactCheckResult)
    assert result.verdict == "FALSE"
    assert result.sources[0].title == "NASA"
    assert requests[0]["model"] == settings.sonar_quick_model
    assert requests[0]["max_tokens"] == 500
    assert requests[0]["messages"][1] == {
        "role": "user",
        "content": "The Great Wall is visible from space.",
    }


@pytest.mark.asyncio
async def test_fact_check_accepts_labelled_text(settings):
    client = sonar_returning(settings, "VERDICT: TRUE\nEXPLANATION: Confirmed by WHO.")

    result = await FactCheckAdapter(client, settings).run("Handwashing reduces infections.")

    assert result.verdict == "TRUE"
    assert result.explanation == "Confirmed by WHO."


@pytest.mark.asyncio
async def test_trust_chain_parses_camel_case_and_labels(settings):
    requests = []
    content = "<think>tracing origin</think>" + json.dumps({
        "hasTrustChain": True,
        "sources": [
            {"name": "Study", "url": "https://a.example", "reliability": "high"},
            {"name": "Tweet", "url": "https://b.example", "reliability": 0.2},
        ],
        "explanation": "Started in a preprint.",
        "gaps": "No peer review",
    })
    client = sonar_returning(settings, content, requests)

    result = await TrustChainAdapter(client, settings).run("A claim.")

    assert isinstance(result, TrustChainResult)
    assert result.has_trust_chain is True
    assert [s.reliability for s in result.sources] == [1.0, 0.2]
    assert result.gaps == ["No peer review"]
    assert requests[0]["model"] == settings.sonar_detailed_model
    assert requests[0]["max_tokens"] == 1000


@pytest.mark.asyncio
async def test_socratic_records_token_usage(settings):
    recorder = TokenUsageRecorder()
    content = json.dumps({
        "reasoningSteps": [{"question": "Q", "analysis": "A", "evidence": "E", "implications": "I"}],
        "conclusion": {"logicalValidity": "Valid", "keyFlaws": "", "strengths": "Sourced"},
    })
    client = sonar_returning(settings, content)

    result = await SocraticAdapter(client, settings, usage_recorder=recorder).run("A claim.")

    assert isinstance(result, SocraticResult)
    assert len(result.reasoning_steps) == 1
    records = recorder.records()
    assert len(records) == 1
    assert records[0].endpoint == "socratic"
    assert records[0].max_tokens == 1000
    assert records[0].usage.total_tokens == 580


@pytest.mark.asyncio
async def test_socratic_accepts_plain_text_conclusion(settings):
    content = json.dumps({
        "reasoningSteps": [{"question": "Q", "analysis": "A"}],
        "conclusion": "The argument relies on a single anecdote.",
    })
    client = sonar_returning(settings, content)

    result = await SocraticAdapter(client, settings).run("A claim.")

    assert result.conclusion.logical_validity == "The argument relies on a single anecdote."
    assert result.conclusion.key_flaws == ""


def test_null_conclusion_is_empty():
    result = SocraticResult.model_validate({"reasoningSteps": [], "conclusion": None})
    assert result.conclusion.logical_validity == ""

@pytest.mark.asyncio
async def test_unparseable_response_raises_sanitization_failure(settings):
    client = sonar_returning(settings, "I'm sorry, I can't help with that.")

    with pytest.raises(SanitizationFailure) as exc_info:
        await SocraticAdapter(client, settings).run("A claim.")

    assert exc_info.value.original_response == "I'm sorry, I can't help with that."
    assert "No code blocks found" in exc_info.value.steps_tried


def test_build_default_adapters_covers_every_method(settings):
    client = sonar_returning(settings, "{}")
    adapters = build_default_adapters(client, settings)

    assert set(adapters) == set(AnalysisMethod)
    for method, adapter in adapters.items():
        assert adapter.method == method
