"""
Remote inference client (OpenRouter chat completions).

A thin request/response wrapper: one prompt in, the model's text out.
Parsing and fallback decisions belong to the callers.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from config.ai_models import ModelSettings
from domain.errors import UpstreamUnavailable

APP_REFERER = "https://gold-investment-api.com"
APP_TITLE = "Gold Investment API"


class InferenceClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client or httpx.Client()

    def __enter__(self) -> "InferenceClient":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def close(self) -> None:
        self._http_client.close()

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def chat(
        self,
        model: ModelSettings,
        messages: List[Dict[str, str]],
        *,
        timeout: float,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Send a chat completion request and return the first choice's content.

        Raises:
            UpstreamUnavailable: no API key is configured
            httpx.HTTPError: transport failure or non-2xx status
            ValueError: the response body does not carry a message
        """
        if not self.configured:
            raise UpstreamUnavailable("OpenRouter API key is not configured")

        response = self._http_client.post(
            f"{self._base_url}/chat/completions",
            json={
                "model": model.model_id,
                "messages": messages,
                "temperature": model.temperature if temperature is None else temperature,
                "max_tokens": model.max_tokens if max_tokens is None else max_tokens,
            },
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
                "HTTP-Referer": APP_REFERER,
                "X-Title": APP_TITLE,
            },
            timeout=timeout,
        )
        response.raise_for_status()
        return _first_message(response.json())


def _first_message(payload: Any) -> str:
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ValueError("Inference response has no choices[0].message.content") from exc
    if not isinstance(content, str) or not content.strip():
        raise ValueError("Inference response content is empty")
    return content


__all__ = ["InferenceClient"]
