"""Generative Language API client — one JSON-mode generateContent call.

Learn: We call the REST endpoint with httpx instead of pulling in a
vendor SDK. The request carries responseMimeType=application/json and
a responseSchema, but models still occasionally wrap the answer in a
```json fence, so the text is unwrapped before it is returned.
"""

import re
from typing import Optional

import httpx
import structlog

logger = structlog.get_logger()

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class AIClientError(Exception):
    """The model call failed or returned no usable text."""


class GeminiClient:
    """Thin async wrapper around models/{model}:generateContent."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        api_base: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ValueError("A Google API key is required")
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def generate(self, prompt: str, response_schema: Optional[dict] = None) -> str:
        body: dict = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if response_schema is not None:
            body["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            }

        url = f"{self.api_base}/models/{self.model}:generateContent"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, json=body, headers={"x-goog-api-key": self.api_key})
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise AIClientError(f"generateContent failed: {e}") from e

        text = _first_text(data)
        if text is None:
            raise AIClientError("No valid response from API")

        match = _FENCE.search(text)
        return match.group(1).strip() if match else text


def _first_text(data: dict) -> Optional[str]:
    for candidate in data.get("candidates") or []:
        parts = (candidate.get("content") or {}).get("parts") or []
        for part in parts:
            if part.get("text"):
                return part["text"]
    return None
