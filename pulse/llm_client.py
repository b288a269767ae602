from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Optional

import httpx
from aiolimiter import AsyncLimiter
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from pulse.config import Settings
from pulse.constants import (
    LLM_API_URL,
    LLM_BACKOFF_BASE,
    LLM_HTTP_USER_AGENT,
    LLM_MAX_ATTEMPTS,
    LLM_MAX_REQUESTS_PER_WINDOW,
    LLM_MODEL,
    LLM_RATE_WINDOW_SECONDS,
    LLM_REQUEST_TIMEOUT,
)
from pulse.errors import LLMClientError, LLMConfigError, LLMRetryableError
from pulse.llm_utils import build_payload, extract_message_content

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, base: float = LLM_BACKOFF_BASE) -> float:
    """Delay in seconds after failed attempt ``attempt`` (1-based): 1, 2, 4, ..."""
    return base * (2 ** max(0, attempt - 1))


def _backoff_wait(retry_state: RetryCallState) -> float:
    return backoff_delay(retry_state.attempt_number)


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    exc = outcome.exception() if outcome is not None else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "LLM attempt %d failed (%s), retrying in %.1fs",
        retry_state.attempt_number,
        exc,
        delay,
    )


def _extract_error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except Exception:
        return resp.text.strip()
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str):
                return msg.strip()
    return resp.text.strip()


class LLMClient:
    """
    Single prompt/response round trip against a chat-completions endpoint.

    Transient failures (network errors, non-2xx responses, envelopes without
    ``choices[0].message.content``) are retried with exponential backoff and
    surface as one ``LLMClientError`` once attempts run out.
    """

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = LLM_API_URL,
        model: str = LLM_MODEL,
        *,
        timeout: float = LLM_REQUEST_TIMEOUT,
        max_attempts: int = LLM_MAX_ATTEMPTS,
        http_client: Optional[httpx.AsyncClient] = None,
        limiter: Optional[AsyncLimiter] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.timeout = timeout
        self.max_attempts = max_attempts
        self._http = http_client
        self._limiter = limiter or AsyncLimiter(
            LLM_MAX_REQUESTS_PER_WINDOW, LLM_RATE_WINDOW_SECONDS
        )
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> LLMClient:
        return cls(
            settings.llm_api_key,
            settings.llm_api_url,
            settings.llm_model,
            **kwargs,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise LLMConfigError("LLM API key not configured")

        payload = build_payload(model=self.model, contents=prompt)
        if self._http is not None:
            return await self._generate_with_retry(self._http, payload)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._generate_with_retry(client, payload)

    async def _generate_with_retry(
        self, client: httpx.AsyncClient, payload: dict[str, object]
    ) -> str:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                retry=retry_if_exception_type(LLMRetryableError),
                wait=_backoff_wait,
                sleep=self._sleep,
                before_sleep=_log_retry,
                reraise=True,
            ):
                with attempt:
                    return await self._post(client, payload)
        except LLMRetryableError as e:
            logger.error(
                "LLM call failed after %d attempts: %s", self.max_attempts, e
            )
            raise LLMClientError(
                f"LLM request failed after {self.max_attempts} attempts: {e}",
                attempts=self.max_attempts,
            ) from e
        raise LLMClientError("LLM request produced no attempts", attempts=0)

    async def _post(self, client: httpx.AsyncClient, payload: dict[str, object]) -> str:
        try:
            async with self._limiter:
                resp = await client.post(
                    self.api_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                        "User-Agent": LLM_HTTP_USER_AGENT,
                    },
                    json=payload,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            raise LLMRetryableError(f"{type(e).__name__}: {e}") from e

        if not resp.is_success:
            raise LLMRetryableError(
                f"LLM API error ({resp.status_code}): {_extract_error_message(resp)}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMRetryableError("LLM API returned a non-JSON envelope") from e

        content = extract_message_content(data)
        if content is None:
            raise LLMRetryableError("Invalid LLM API response format")
        return content
