# Overview: HTTP client for the external AI text-generation service.

"""
Thin client for the AI text-generation collaborator.

The service is prompt-in, JSON-out: we POST {"model", "prompt", "response_schema"}
and expect a JSON object back (either bare or under an "output" key).
Prompt wording lives with the callers; this module only moves bytes.
"""

from __future__ import annotations

from typing import Any

import httpx
from flask import current_app


class AIServiceError(Exception):
    """Raised when the AI service is unreachable or answers with garbage."""
    pass


class TextGenerationClient:
    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    def generate_json(self, prompt: str, schema: dict | None = None) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload: dict[str, Any] = {"prompt": prompt}
        if self.model:
            payload["model"] = self.model
        if schema:
            payload["response_schema"] = schema

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.base_url, json=payload, headers=headers)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as exc:
            raise AIServiceError(f"AI service request failed: {exc}") from exc
        except ValueError as exc:
            raise AIServiceError("AI service returned a non-JSON body") from exc

        if isinstance(body, dict) and isinstance(body.get("output"), dict):
            body = body["output"]
        if not isinstance(body, dict):
            raise AIServiceError("AI service returned an unexpected payload")
        return body


def get_client() -> TextGenerationClient | None:
    """Client built from app config, or None when no AI endpoint is configured."""
    cfg = current_app.config
    url = cfg.get("AI_API_URL")
    if not url:
        return None
    return TextGenerationClient(
        base_url=url,
        api_key=cfg.get("AI_API_KEY"),
        model=cfg.get("AI_MODEL"),
        timeout=cfg.get("AI_TIMEOUT_SECONDS", 10.0),
    )
