"""Tests for GeminiClient — request shapes, auth header, error surfacing.

All tests run against httpx.MockTransport; no real HTTP connections are made.
"""

from __future__ import annotations

import json

import httpx
import pytest

from gemini_research.config import settings
from gemini_research.errors import ApiError, ConfigError, SubmissionError
from gemini_research.research import JobController
from gemini_research.tools.gemini_client import GeminiClient

BASE = "https://gemini.test/v1beta"


def make_client(handler, api_key: str = "secret-key") -> tuple[GeminiClient, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = GeminiClient(api_key=api_key, base_url=BASE, transport=httpx.MockTransport(recording))
    return client, seen


# ─────────────────────────────────────────────────────────────────────────────
# 1. Credential
# ─────────────────────────────────────────────────────────────────────────────

def test_missing_api_key_refuses_to_construct(monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", "")
    with pytest.raises(ConfigError):
        GeminiClient()


def test_blank_api_key_refuses_to_construct(monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", "   ")
    with pytest.raises(ConfigError):
        GeminiClient()


def test_api_key_from_settings(monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", "from-env")
    assert GeminiClient().api_key == "from-env"


# ─────────────────────────────────────────────────────────────────────────────
# 2. Interactions
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_job_request_shape():
    client, seen = make_client(
        lambda r: httpx.Response(200, json={"name": "interactions/abc", "status": "in_progress"})
    )
    interaction = await client.create_job("Execute the plan")
    await client.close()

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == f"{BASE}/interactions"
    assert request.headers["x-goog-api-key"] == "secret-key"
    assert json.loads(request.content) == {
        "input": "Execute the plan",
        "agent": settings.deep_research_agent,
        "background": True,
    }
    assert interaction.identifier == "interactions/abc"


@pytest.mark.asyncio
async def test_create_job_custom_agent():
    client, seen = make_client(lambda r: httpx.Response(200, json={"id": "x"}))
    await client.create_job("input", agent="other-agent", background=False)
    await client.close()

    body = json.loads(seen[0].content)
    assert body["agent"] == "other-agent"
    assert body["background"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize("identifier", ["abc123", "interactions/abc123"])
async def test_get_job_uses_last_segment(identifier):
    client, seen = make_client(
        lambda r: httpx.Response(200, json={"id": "abc123", "status": "COMPLETED", "outputs": [{"text": "r"}]})
    )
    interaction = await client.get_job(identifier)
    await client.close()

    assert seen[0].method == "GET"
    assert seen[0].url.path == "/v1beta/interactions/abc123"
    assert interaction.report_text == "r"


@pytest.mark.asyncio
async def test_http_error_carries_status_and_body():
    client, _ = make_client(lambda r: httpx.Response(404, text="no such interaction"))
    with pytest.raises(ApiError) as exc_info:
        await client.get_job("missing")
    await client.close()

    err = exc_info.value
    assert err.status_code == 404
    assert err.is_client_error
    assert "404" in str(err)
    assert "no such interaction" in str(err)


@pytest.mark.asyncio
async def test_transport_error_has_no_status():
    def boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = make_client(boom)
    with pytest.raises(ApiError) as exc_info:
        await client.get_job("abc")
    await client.close()

    assert exc_info.value.status_code is None
    assert not exc_info.value.is_client_error
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_non_json_body_is_api_error():
    client, _ = make_client(lambda r: httpx.Response(200, text="<html>"))
    with pytest.raises(ApiError):
        await client.get_job("abc")
    await client.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{"id": 123}, ["not", "an", "object"]])
async def test_malformed_interaction_is_api_error(body):
    client, _ = make_client(lambda r: httpx.Response(200, json=body))
    with pytest.raises(ApiError, match="unexpected response shape") as exc_info:
        await client.get_job("abc")
    await client.close()
    assert exc_info.value.status_code is None


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{"id": 123}, ["not", "an", "object"]])
async def test_malformed_create_response_is_submission_error(body):
    client, _ = make_client(lambda r: httpx.Response(200, json=body))
    with pytest.raises(SubmissionError, match="Failed to start research"):
        await JobController(client).submit("plan")
    await client.close()


# ─────────────────────────────────────────────────────────────────────────────
# 3. generateContent
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_generate_text_request_and_parse():
    payload = {"candidates": [{"content": {"parts": [{"text": "1. Scope\n2. Sources"}]}}]}
    client, seen = make_client(lambda r: httpx.Response(200, json=payload))
    text = await client.generate_text("make a plan", "gemini-3-flash-preview")
    await client.close()

    assert text == "1. Scope\n2. Sources"
    assert seen[0].url.path == "/v1beta/models/gemini-3-flash-preview:generateContent"
    assert json.loads(seen[0].content) == {"contents": [{"parts": [{"text": "make a plan"}]}]}


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"candidates": []}, {"candidates": [{"content": {}}]}])
async def test_generate_text_without_content_is_500(payload):
    client, _ = make_client(lambda r: httpx.Response(200, json=payload))
    with pytest.raises(ApiError) as exc_info:
        await client.generate_text("p", "m")
    await client.close()

    assert exc_info.value.status_code == 500
    assert exc_info.value.is_model_unavailable


@pytest.mark.asyncio
async def test_generate_text_503_is_model_unavailable():
    client, _ = make_client(lambda r: httpx.Response(503, text="overloaded"))
    with pytest.raises(ApiError) as exc_info:
        await client.generate_text("p", "m")
    await client.close()
    assert exc_info.value.is_model_unavailable


# ─────────────────────────────────────────────────────────────────────────────
# 4. Client lifecycle
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_client_is_reused_and_recreated_after_close():
    client, _ = make_client(lambda r: httpx.Response(200, json={"id": "x"}))
    first = await client._get_client()
    assert await client._get_client() is first

    await client.close()
    assert client._client is None
    second = await client._get_client()
    assert second is not first
    await client.close()


def test_api_error_flags():
    assert ApiError("x", 404).is_model_unavailable
    assert ApiError("x", 500).is_model_unavailable
    assert not ApiError("x", 400).is_model_unavailable
    assert not ApiError("x", None).is_model_unavailable
    assert ApiError("x", 499).is_client_error
    assert not ApiError("x", 500).is_client_error
