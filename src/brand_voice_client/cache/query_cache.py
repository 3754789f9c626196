from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Literal

from loguru import logger
from tenacity import AsyncRetrying

from brand_voice_client.cache.retry_policy import (
    RetryPolicy,
    cache_retry_wait,
    log_cache_retry,
    query_retry_policy,
    retry_if_policy,
)
from brand_voice_client.errors import HttpError
from brand_voice_client.http.requester import ApiRequester

QueryKey = tuple[str | int, ...]
KeyLike = str | Iterable[str | int]
Fetcher = Callable[[], Awaitable[Any]]

# "return_null" for views that work without a session, "throw" for ones that need it.
UnauthorizedBehavior = Literal["return_null", "throw"]


def normalize_key(key: KeyLike) -> QueryKey:
    if isinstance(key, str):
        return (key,)
    normalized = tuple(key)
    if not normalized:
        raise ValueError("Query key must have at least one segment")
    return normalized


def key_to_url(key: KeyLike) -> str:
    """``("/api/campaigns", 5, "contents")`` -> ``/api/campaigns/5/contents``."""
    head, *rest = normalize_key(key)
    parts = [str(head).rstrip("/")]
    parts.extend(str(segment).strip("/") for segment in rest)
    return "/".join(parts)


def _matches(key: QueryKey, prefix: QueryKey, exact: bool) -> bool:
    if exact:
        return key == prefix
    return key[: len(prefix)] == prefix


@dataclass
class CacheEntry:
    data: Any
    updated_at: float
    stale: bool = False


class QueryCache:
    """Keyed store of server reads.

    Entries never expire on their own; they go stale only when a mutation
    invalidates them (or when a caller passes a finite ``stale_time``).
    Create one per application and ``clear()`` it on shutdown.
    """

    def __init__(
        self,
        requester: ApiRequester,
        *,
        retry_policy: RetryPolicy = query_retry_policy,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._requester = requester
        self._retry_policy = retry_policy
        self._sleep = sleep
        self._clock = clock
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._in_flight: dict[QueryKey, asyncio.Future] = {}
        self._generations: dict[QueryKey, int] = {}

    async def fetch_query(
        self,
        key: KeyLike,
        fetcher: Fetcher | None = None,
        *,
        on_401: UnauthorizedBehavior = "throw",
        stale_time: float | None = None,
        retry: RetryPolicy | None = None,
    ) -> Any:
        qkey = normalize_key(key)
        entry = self._entries.get(qkey)
        if entry is not None and not self._entry_is_stale(entry, stale_time):
            return entry.data

        task = self._in_flight.get(qkey)
        if task is None:
            generation = self._generations.get(qkey, 0)
            task = asyncio.ensure_future(self._fetch(qkey, generation, fetcher, on_401, retry or self._retry_policy))
            self._in_flight[qkey] = task
            task.add_done_callback(lambda t, k=qkey: self._forget(k, t))
        return await asyncio.shield(task)

    def get_query_data(self, key: KeyLike) -> Any:
        entry = self._entries.get(normalize_key(key))
        return entry.data if entry is not None else None

    def set_query_data(self, key: KeyLike, data: Any) -> None:
        self._entries[normalize_key(key)] = CacheEntry(data, self._clock())

    def is_stale(self, key: KeyLike) -> bool:
        entry = self._entries.get(normalize_key(key))
        return entry is None or entry.stale

    def invalidate(self, key: KeyLike, *, exact: bool = False) -> int:
        """Mark every entry under ``key`` stale so its next read refetches.

        Keys compare segment by segment: ``("/api/campaigns",)`` covers
        ``("/api/campaigns", 5)`` unless ``exact`` is set. Fetches already in
        flight for a matching key still resolve for their awaiters, but their
        result is not cached. Returns the number of cached entries marked.
        """
        prefix = normalize_key(key)
        count = 0
        for entry_key, entry in self._entries.items():
            if _matches(entry_key, prefix, exact):
                entry.stale = True
                self._bump_generation(entry_key)
                count += 1
        for flight_key in [k for k in self._in_flight if _matches(k, prefix, exact)]:
            self._bump_generation(flight_key)
            del self._in_flight[flight_key]

        logger.debug(f"Invalidated {count} cached quer{'y' if count == 1 else 'ies'} under {prefix!r}")
        return count

    def remove(self, key: KeyLike) -> None:
        qkey = normalize_key(key)
        self._entries.pop(qkey, None)
        self._bump_generation(qkey)

    def clear(self) -> None:
        for task in self._in_flight.values():
            task.cancel()
        self._in_flight.clear()
        self._entries.clear()
        self._generations.clear()

    def keys(self) -> list[QueryKey]:
        return list(self._entries)

    def _entry_is_stale(self, entry: CacheEntry, stale_time: float | None) -> bool:
        if entry.stale:
            return True
        if stale_time is None:
            return False
        return self._clock() - entry.updated_at >= stale_time

    def _bump_generation(self, key: QueryKey) -> None:
        self._generations[key] = self._generations.get(key, 0) + 1

    def _forget(self, key: QueryKey, task: asyncio.Future) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the exception retrieved; awaiters already received it.
            task.exception()

    async def _fetch(
        self,
        key: QueryKey,
        generation: int,
        fetcher: Fetcher | None,
        on_401: UnauthorizedBehavior,
        policy: RetryPolicy,
    ) -> Any:
        retrying = AsyncRetrying(
            retry=retry_if_policy(policy),
            wait=cache_retry_wait,
            sleep=self._sleep,
            before_sleep=log_cache_retry,
            reraise=True,
        )
        data = await retrying(self._run_fetcher, key, fetcher, on_401)

        if self._generations.get(key, 0) == generation:
            self._entries[key] = CacheEntry(data, self._clock())
        else:
            logger.debug(f"Discarding result for {key!r}: invalidated while in flight")
        return data

    async def _run_fetcher(self, key: QueryKey, fetcher: Fetcher | None, on_401: UnauthorizedBehavior) -> Any:
        try:
            if fetcher is not None:
                return await fetcher()
            return await self._requester.request_json(
                "GET", key_to_url(key), options=self._requester.single_attempt_options()
            )
        except HttpError as ex:
            if ex.status == 401 and on_401 == "return_null":
                return None
            raise
