"""Async client for the Gemini REST API (v1beta).

Two surfaces:
    Interactions:  POST /interactions          — start a background research job
                   GET  /interactions/{id}     — read its current state
    Models:        POST /models/{m}:generateContent — single-shot text generation

Auth is a fixed ``x-goog-api-key`` header on every request. A missing key is
a ConfigError at construction time, so nothing is ever sent unauthenticated.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from gemini_research.config import require_api_key, settings
from gemini_research.errors import ApiError, ConfigError
from gemini_research.models.schemas import Interaction, last_segment

logger = structlog.get_logger().bind(component="gemini_client")


class GeminiClient:
    """Async client for the Gemini API. Implements RemoteService.

    Single httpx client, single base URL, API key header on every request.
    Call ``close()`` when done.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = (api_key or require_api_key()).strip()
        if not self.api_key:
            raise ConfigError("GEMINI_API_KEY is not set (export it or add it to .env)")
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.timeout = timeout or settings.request_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._auth_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        action: str,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one request and return the decoded JSON body.

        Raises:
            ApiError: non-2xx response (with status) or transport failure
                      (status None).
        """
        client = await self._get_client()
        try:
            response = await client.request(method, path, json=json)
        except httpx.RequestError as e:
            logger.debug("request_transport_error", action=action, error=str(e))
            raise ApiError(f"{action} failed: {type(e).__name__}: {e}") from e

        if response.is_error:
            raise ApiError(
                f"{action} failed: {response.status_code} {response.reason_phrase} - {response.text}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"{action} failed: response was not JSON",
                status_code=response.status_code,
            ) from e

    # ---- Interactions ----

    async def create_job(
        self,
        input: str,
        agent: str | None = None,
        background: bool = True,
    ) -> Interaction:
        """Start a research interaction.

        Args:
            input:      Full instruction text for the research agent.
            agent:      Agent name; defaults to ``settings.deep_research_agent``.
            background: Run asynchronously server-side (always True for research).

        Returns:
            The interaction as created; usually still in progress.
        """
        body = {
            "input": input,
            "agent": agent or settings.deep_research_agent,
            "background": background,
        }
        data = await self._request("Create interaction", "POST", "/interactions", json=body)
        interaction = self._parse_interaction("Create interaction", data)
        logger.debug("interaction_created", identifier=interaction.identifier, status=interaction.status)
        return interaction

    async def get_job(self, identifier: str) -> Interaction:
        """Fetch an interaction by bare ID or resource name ('interactions/abc')."""
        job_id = last_segment(identifier)
        data = await self._request("Get interaction", "GET", f"/interactions/{job_id}")
        return self._parse_interaction("Get interaction", data)

    @staticmethod
    def _parse_interaction(action: str, data: Any) -> Interaction:
        try:
            return Interaction.model_validate(data)
        except ValidationError as e:
            logger.debug("unexpected_response_shape", action=action, error=str(e))
            raise ApiError(f"{action} failed: unexpected response shape") from e

    # ---- Models ----

    async def generate_text(self, prompt: str, model: str) -> str:
        """Single-shot generateContent call, returning the first candidate's text.

        A 200 response with no candidate text is reported as a 500 so callers
        treat it like an unavailable model.
        """
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        data = await self._request(
            f"Generate content with {model}",
            "POST",
            f"/models/{model}:generateContent",
            json=body,
        )
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise ApiError(f"No content in response from {model}", status_code=500) from None
        logger.debug("content_generated", model=model, usage=data.get("usageMetadata"))
        return text
