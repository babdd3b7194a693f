"""
Chat-completion client for an OpenRouter-compatible API.

Endpoint::

    POST {base_url}/chat/completions
      Authorization: Bearer <api key>
      body: {"model", "messages": [system, user], "max_tokens", "temperature",
             "response_format": {"type": "json_object"}}

The client is constructed explicitly and passed to whoever needs it; there
is no module-level shared session.  Pass an ``httpx.Client`` to control
transport (tests use ``httpx.MockTransport``).

Failure mapping
---------------
    HTTP 429            → RateLimitedError(retry_after from Retry-After header)
    other non-2xx       → LLMResponseError(status_code, body)
    httpx timeout       → LLMTimeoutError
    transport error     → LLMError
    no message content  → MalformedResponseError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from gamme_advisor.config import LLMConfig
from gamme_advisor.errors import (
    LLMConfigurationError,
    LLMError,
    LLMResponseError,
    LLMTimeoutError,
    MalformedResponseError,
    RateLimitedError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LLMRequest:
    """One completion request: system prompt, user prompt and model slug."""

    system_prompt: str
    user_prompt: str
    model: str
    json_mode: bool = True
    max_tokens: Optional[int] = None


class CompletionClient:
    """Synchronous chat-completion client.

    Usage::

        config = load_config().llm
        with CompletionClient(config, api_key=config.resolve_api_key()) as client:
            text = client.complete(LLMRequest(system, user, config.model))

    Attributes:
        config:  LLM section of ``AppConfig``.
        api_key: Bearer token.  Required; a missing key is a configuration
                 error raised at construction.
    """

    def __init__(
        self,
        config: LLMConfig,
        api_key: Optional[str],
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        if not api_key:
            raise LLMConfigurationError(
                f"{config.api_key_env} is not set. Add it to .env or the environment."
            )
        self.config = config
        self.api_key = api_key
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=config.timeout_seconds)

    def __enter__(self) -> "CompletionClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def complete(self, request: LLMRequest) -> str:
        """Send one completion request and return the message content.

        Raises:
            RateLimitedError:       HTTP 429.
            LLMResponseError:       Any other non-success status.
            LLMTimeoutError:        No answer within ``timeout_seconds``.
            MalformedResponseError: Response body lacks a message content.
            LLMError:               Transport failure.
        """
        body: dict[str, Any] = {
            "model": request.model,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            "max_tokens": request.max_tokens or self.config.max_tokens,
            "temperature": self.config.temperature,
        }
        if request.json_mode:
            body["response_format"] = {"type": "json_object"}

        try:
            resp = self._http.post(
                f"{self.config.base_url.rstrip('/')}/chat/completions",
                json=body,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "HTTP-Referer": self.config.app_url,
                    "X-Title": self.config.app_title,
                },
                timeout=self.config.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise LLMTimeoutError(
                f"Completion API timed out after {self.config.timeout_seconds:g}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise LLMError(f"Completion API unreachable: {exc}") from exc

        if resp.status_code == 429:
            retry_after = _parse_retry_after(resp.headers.get("Retry-After"))
            logger.warning("Completion API rate limited (retry_after=%s)", retry_after)
            raise RateLimitedError(retry_after)

        if not resp.is_success:
            raise LLMResponseError(resp.status_code, resp.text)

        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise MalformedResponseError(
                f"Unexpected completion payload: {resp.text[:200]}"
            ) from exc

        if content is None:
            return ""
        if not isinstance(content, str):
            raise MalformedResponseError(
                f"Completion content is {type(content).__name__}, expected a string."
            )
        return content


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds.  HTTP-date values are ignored."""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return max(0.0, seconds)
