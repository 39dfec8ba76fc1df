"""HTTP client for the external image-generation provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from config import settings
from services.errors import UpstreamInconsistencyError, UpstreamOutcomeUnknownError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FluxTaskRequest:
    model: str
    input_prompt: str
    aspect_ratio: str
    is_private: int
    user_id: str
    locale: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "input_prompt": self.input_prompt,
            "aspect_ratio": self.aspect_ratio,
            "is_private": self.is_private,
            "user_id": self.user_id,
            "locale": self.locale,
        }


class FluxApiClient:
    """Creates generation tasks. Task creation is not idempotent, so nothing here retries."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url or settings.FLUX_API_URL
        self.api_token = api_token if api_token is not None else settings.FLUX_API_TOKEN
        self.timeout_seconds = float(timeout_seconds or settings.FLUX_API_TIMEOUT_SECONDS)
        self._transport = transport

    async def create_task(self, request: FluxTaskRequest) -> str:
        """Submit a task and return the provider's replicate id."""
        headers = {"Content-Type": "application/json", "API-TOKEN": self.api_token}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(self.base_url, json=request.to_payload(), headers=headers)
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            # Nothing reached the provider.
            raise UpstreamInconsistencyError("Generation provider is unreachable") from exc
        except httpx.TimeoutException as exc:
            logger.error(
                "Flux task creation timed out after send user=%s model=%s; outcome unknown",
                request.user_id,
                request.model,
            )
            raise UpstreamOutcomeUnknownError() from exc
        except httpx.HTTPError as exc:
            raise UpstreamInconsistencyError(f"Generation provider request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.warning("Flux task creation rejected status=%s body=%s", response.status_code, response.text[:500])
            raise UpstreamInconsistencyError("Create Task Error")

        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamInconsistencyError("Generation provider returned malformed JSON") from exc

        replicate_id = str((body or {}).get("replicate_id") or "").strip() if isinstance(body, dict) else ""
        if not replicate_id:
            logger.error("Flux task response missing replicate_id user=%s body=%s", request.user_id, body)
            raise UpstreamInconsistencyError("Create Task Error")
        logger.info("Flux task created user=%s replicate_id=%s", request.user_id, replicate_id)
        return replicate_id


def get_flux_client() -> FluxApiClient:
    """FastAPI dependency; override in tests."""
    return FluxApiClient()
