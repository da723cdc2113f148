"""Answer generation through an external chat completion API."""

from __future__ import annotations

from typing import Protocol

import requests

from assistant_kb.core.config import Settings
from assistant_kb.core.errors import ProviderError
from assistant_kb.core.logging import get_logger

logger = get_logger(__name__)


class CompletionClient(Protocol):
    def complete(self, system_prompt: str, message: str) -> str:
        ...


class OpenAIChatClient:
    """Calls an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str,
        api_base: str = "https://api.openai.com/v1",
        max_completion_tokens: int = 2000,
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self.model = model
        self.url = f"{api_base.rstrip('/')}/chat/completions"
        self.max_completion_tokens = max_completion_tokens
        self.timeout = timeout
        self._api_key = api_key
        self._session = session or requests.Session()

    def complete(self, system_prompt: str, message: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": message},
            ],
            "max_completion_tokens": self.max_completion_tokens,
        }
        try:
            resp = self._session.post(
                self.url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ProviderError(f"Completion API request failed: {exc.__class__.__name__}") from exc
        if not resp.ok:
            logger.error("Completion API error %s: %s", resp.status_code, resp.text)
            raise ProviderError(f"Completion API error: {resp.status_code}", status_code=resp.status_code)
        try:
            return resp.json()["choices"][0]["message"]["content"]
        except (KeyError, IndexError, ValueError) as exc:
            raise ProviderError("Completion API returned an unexpected payload") from exc


def build_completion_client(settings: Settings) -> OpenAIChatClient:
    if settings.openai_api_key is None:
        raise ProviderError("OpenAI API key not configured")
    return OpenAIChatClient(
        api_key=settings.openai_api_key.get_secret_value(),
        model=settings.completion_model,
        api_base=settings.api_base,
        max_completion_tokens=settings.max_completion_tokens,
        timeout=settings.request_timeout,
    )


__all__ = ["CompletionClient", "OpenAIChatClient", "build_completion_client"]
