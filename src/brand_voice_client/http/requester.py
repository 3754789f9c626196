from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any

import httpx
from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from brand_voice_client.errors import (
    DATABASE_MESSAGE,
    HttpError,
    MalformedResponseError,
    NetworkError,
    RequestTimeoutError,
)

_DEFAULT_TIMEOUT_MS = 15_000

# Text fragments the API emits when its database pool is down.
_DATABASE_FRAGMENTS = ("ECONNREFUSED", "database connection", "Cannot use a pool")

_REDACTED_KEY_FRAGMENTS = ("password", "secret", "token", "apikey", "api_key")

# Auth endpoints are always logged, debug flag or not.
_ALWAYS_LOGGED_PATHS = ("/api/login", "/api/user")

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RequestOptions:
    timeout_ms: int = _DEFAULT_TIMEOUT_MS
    max_retries: int = 0
    debug: bool = False


def redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: "***" if _is_sensitive_key(k) else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [redact(v) for v in value]
    return value


def _is_sensitive_key(key: object) -> bool:
    lowered = str(key).lower()
    return any(fragment in lowered for fragment in _REDACTED_KEY_FRAGMENTS)


def extract_error(response: httpx.Response) -> HttpError:
    """Build an HttpError from a non-2xx response.

    Prefers a JSON ``message`` or ``error`` field, then the raw text, then the
    status line. Database outages collapse to one stable message so retry
    policies can recognise them.
    """
    payload = _error_payload(response)
    if isinstance(payload, dict):
        if payload.get("message"):
            return HttpError(response.status_code, str(payload["message"]), payload)
        error = payload.get("error")
        if error:
            message = error if isinstance(error, str) else "Server error occurred"
            return HttpError(response.status_code, message, payload)

    text = response.text
    if any(fragment in text for fragment in _DATABASE_FRAGMENTS):
        return HttpError(response.status_code, DATABASE_MESSAGE, payload)

    message = text or response.reason_phrase or f"Error {response.status_code}"
    return HttpError(response.status_code, message, payload)


def _error_payload(response: httpx.Response) -> Any:
    # Some routes send JSON error bodies without a JSON content-type.
    content_type = response.headers.get("content-type", "")
    if "application/json" not in content_type and not response.text.lstrip().startswith(("{", "[")):
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, ValueError):
        return None


def read_json(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, ValueError) as ex:
        raise MalformedResponseError(
            response.status_code,
            f"Expected JSON from {response.request.method} {response.request.url}",
        ) from ex


def _on_retry(retry_state) -> None:
    attempt = retry_state.attempt_number
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = type(exc).__name__ if exc else "Unknown"
    logger.warning(f"{reason}: {exc}. Retrying in {wait:.0f}s (attempt {attempt})...")


class ApiRequester:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        default_options: RequestOptions | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._client = client
        self._default_options = default_options or RequestOptions()
        self._sleep = sleep

    @property
    def default_options(self) -> RequestOptions:
        return self._default_options

    def single_attempt_options(self) -> RequestOptions:
        """Default options with requester-level retries off, for callers that retry themselves."""
        return replace(self._default_options, max_retries=0)

    async def request(
        self,
        method: str,
        resource: str,
        body: Any = None,
        options: RequestOptions | None = None,
    ) -> httpx.Response:
        opts = options or self._default_options
        method = method.upper()

        if opts.debug or any(path in resource for path in _ALWAYS_LOGGED_PATHS):
            logger.debug(f"API request: {method} {resource} body={redact(body) if body is not None else 'none'}")

        retrying = AsyncRetrying(
            retry=retry_if_exception_type((NetworkError, HttpError)),
            wait=wait_exponential(multiplier=1, exp_base=2),
            stop=stop_after_attempt(max(0, opts.max_retries) + 1),
            sleep=self._sleep,
            before_sleep=_on_retry,
            reraise=True,
        )
        return await retrying(self._send_once, method, resource, body, opts)

    async def request_json(
        self,
        method: str,
        resource: str,
        body: Any = None,
        options: RequestOptions | None = None,
    ) -> Any:
        response = await self.request(method, resource, body, options)
        return read_json(response)

    async def _send_once(
        self,
        method: str,
        resource: str,
        body: Any,
        opts: RequestOptions,
    ) -> httpx.Response:
        headers = {"Content-Type": "application/json"} if body is not None else {}
        content = json.dumps(body) if body is not None else None
        timeout_seconds = opts.timeout_ms / 1000

        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.request(method, resource, content=content, headers=headers),
                timeout=timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as ex:
            logger.warning(f"{method} {resource} timed out after {opts.timeout_ms} ms")
            raise RequestTimeoutError() from ex
        except httpx.TransportError as ex:
            logger.debug(f"{method} {resource} transport failure: {ex!r}")
            raise NetworkError() from ex

        if opts.debug:
            elapsed_ms = (time.monotonic() - started) * 1000
            logger.debug(f"API response: {method} {resource} status={response.status_code} ({elapsed_ms:.0f} ms)")

        if not response.is_success:
            raise extract_error(response)
        return response
