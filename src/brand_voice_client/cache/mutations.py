from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger
from tenacity import AsyncRetrying

from brand_voice_client.cache.query_cache import KeyLike, QueryCache
from brand_voice_client.cache.retry_policy import (
    RetryPolicy,
    cache_retry_wait,
    log_cache_retry,
    mutation_retry_policy,
    retry_if_policy,
)
from brand_voice_client.errors import ApiError, describe_error
from brand_voice_client.limits.interceptor import LimitInterceptor
from brand_voice_client.limits.models import LimitType, LimitViolation
from brand_voice_client.presenter import AttemptDialog, Notifier


class MutationState(Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    LIMIT_VIOLATION = "limit_violation"
    ERROR = "error"


@dataclass
class MutationResult:
    state: MutationState
    data: Any = None
    error: ApiError | None = None
    violation: LimitViolation | None = None

    @property
    def ok(self) -> bool:
        return self.state is MutationState.SUCCESS

    def raise_for_error(self) -> None:
        if self.state is MutationState.ERROR and self.error is not None:
            raise self.error


class MutationRunner:
    def __init__(
        self,
        cache: QueryCache,
        interceptor: LimitInterceptor,
        notifier: Notifier,
        *,
        retry_policy: RetryPolicy = mutation_retry_policy,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._cache = cache
        self._interceptor = interceptor
        self._notifier = notifier
        self._retry_policy = retry_policy
        self._sleep = sleep
        self._pending = 0

    @property
    def state(self) -> MutationState:
        """PENDING while any mutation is running, IDLE otherwise.

        Outcomes live on each call's ``MutationResult``; the runner is shared
        across resources, so it holds no terminal state of its own.
        """
        return MutationState.PENDING if self._pending else MutationState.IDLE

    async def mutate(
        self,
        fn: Callable[[], Awaitable[Any]],
        *,
        invalidates: Iterable[KeyLike] = (),
        limit_type: LimitType | None = None,
        current_plan: str | None = None,
        dialog: AttemptDialog | None = None,
        on_success: Callable[[Any], None] | None = None,
        on_error: Callable[[ApiError], None] | None = None,
        success_message: tuple[str, str] | None = None,
        error_title: str = "Request failed",
    ) -> MutationResult:
        """Run one write against the API.

        ``fn`` is any callable returning an awaitable, e.g. a lambda around
        ``requester.request_json``. Success invalidates every key in
        ``invalidates`` before any hook runs, so views reading the cache
        afterwards see fresh data. A plan-limit rejection goes to the upgrade
        prompt and never reaches ``on_error``.
        """
        self._pending += 1
        try:
            return await self._run(
                fn,
                invalidates=invalidates,
                limit_type=limit_type,
                current_plan=current_plan,
                dialog=dialog,
                on_success=on_success,
                on_error=on_error,
                success_message=success_message,
                error_title=error_title,
            )
        finally:
            self._pending -= 1

    async def _run(
        self,
        fn: Callable[[], Awaitable[Any]],
        *,
        invalidates: Iterable[KeyLike],
        limit_type: LimitType | None,
        current_plan: str | None,
        dialog: AttemptDialog | None,
        on_success: Callable[[Any], None] | None,
        on_error: Callable[[ApiError], None] | None,
        success_message: tuple[str, str] | None,
        error_title: str,
    ) -> MutationResult:
        retrying = AsyncRetrying(
            retry=retry_if_policy(self._retry_policy),
            wait=cache_retry_wait,
            sleep=self._sleep,
            before_sleep=log_cache_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    data = await fn()
        except ApiError as ex:
            return self._handle_error(
                ex,
                limit_type=limit_type,
                current_plan=current_plan,
                dialog=dialog,
                on_error=on_error,
                error_title=error_title,
            )

        for key in invalidates:
            self._cache.invalidate(key)
        if dialog is not None:
            dialog.close()
        if on_success is not None:
            on_success(data)
        if success_message is not None:
            self._notifier.notify_success(*success_message)

        return MutationResult(MutationState.SUCCESS, data=data)

    def _handle_error(
        self,
        error: ApiError,
        *,
        limit_type: LimitType | None,
        current_plan: str | None,
        dialog: AttemptDialog | None,
        on_error: Callable[[ApiError], None] | None,
        error_title: str,
    ) -> MutationResult:
        violation = self._interceptor.intercept(
            error,
            limit_type=limit_type,
            current_plan=current_plan,
            dialog=dialog,
        )
        if violation is not None:
            return MutationResult(MutationState.LIMIT_VIOLATION, error=error, violation=violation)

        logger.error(f"{error_title}: {error.message}")
        if on_error is not None:
            on_error(error)
        else:
            self._notifier.notify_error(error_title, describe_error(error))
        return MutationResult(MutationState.ERROR, error=error)
