import asyncio
import unittest

import httpx

from brand_voice_client.cache.query_cache import QueryCache, key_to_url, normalize_key
from brand_voice_client.errors import DATABASE_MESSAGE, HttpError
from tests.fakes import RecordingSleep, make_requester


class _Api:
    """Mock server that counts GETs per path and serves a version counter."""

    def __init__(self) -> None:
        self.calls: dict[str, int] = {}
        self.status = 200
        self.payload: object = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls[path] = self.calls.get(path, 0) + 1
        if self.status != 200:
            return httpx.Response(self.status, json=self.payload)
        return httpx.Response(200, json={"path": path, "version": self.calls[path]})


class _FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class KeyTests(unittest.TestCase):
    def test_string_key_normalizes_to_one_tuple(self) -> None:
        self.assertEqual(("/api/campaigns",), normalize_key("/api/campaigns"))

    def test_key_order_is_significant(self) -> None:
        self.assertNotEqual(normalize_key(("/api/campaigns", 5)), normalize_key((5, "/api/campaigns")))

    def test_key_to_url_joins_segments(self) -> None:
        self.assertEqual("/api/campaigns/5/contents", key_to_url(("/api/campaigns", 5, "contents")))
        self.assertEqual("/api/user", key_to_url("/api/user"))

    def test_empty_key_rejected(self) -> None:
        with self.assertRaises(ValueError):
            normalize_key(())


class QueryCacheTests(unittest.TestCase):
    def setUp(self) -> None:
        self.api = _Api()
        self.sleep = RecordingSleep()
        self.clock = _FakeClock()
        requester, _ = make_requester(self.api)
        self.cache = QueryCache(requester, sleep=self.sleep, clock=self.clock)

    def tearDown(self) -> None:
        self.cache.clear()

    def test_second_read_is_served_from_cache(self) -> None:
        async def scenario():
            first = await self.cache.fetch_query("/api/campaigns")
            second = await self.cache.fetch_query("/api/campaigns")
            return first, second

        first, second = asyncio.run(scenario())

        self.assertEqual(first, second)
        self.assertEqual(1, self.api.calls["/api/campaigns"])

    def test_cached_values_never_expire_on_their_own(self) -> None:
        async def scenario():
            await self.cache.fetch_query("/api/campaigns")
            self.clock.now += 10 ** 9
            return await self.cache.fetch_query("/api/campaigns")

        asyncio.run(scenario())
        self.assertEqual(1, self.api.calls["/api/campaigns"])

    def test_finite_stale_time_refetches(self) -> None:
        async def scenario():
            await self.cache.fetch_query("/api/user", stale_time=60)
            self.clock.now += 61
            return await self.cache.fetch_query("/api/user", stale_time=60)

        data = asyncio.run(scenario())
        self.assertEqual(2, data["version"])

    def test_invalidate_forces_refetch_on_next_read(self) -> None:
        async def scenario():
            await self.cache.fetch_query("/api/campaigns")
            marked = self.cache.invalidate("/api/campaigns")
            self.assertTrue(self.cache.is_stale("/api/campaigns"))
            data = await self.cache.fetch_query("/api/campaigns")
            return marked, data

        marked, data = asyncio.run(scenario())

        self.assertEqual(1, marked)
        self.assertEqual(2, data["version"])
        self.assertFalse(self.cache.is_stale("/api/campaigns"))

    def test_double_invalidation_refetches_once(self) -> None:
        async def scenario():
            await self.cache.fetch_query("/api/campaigns")
            self.cache.invalidate("/api/campaigns")
            self.cache.invalidate("/api/campaigns")
            await self.cache.fetch_query("/api/campaigns")
            await self.cache.fetch_query("/api/campaigns")

        asyncio.run(scenario())
        self.assertEqual(2, self.api.calls["/api/campaigns"])

    def test_prefix_invalidation_covers_detail_keys(self) -> None:
        async def scenario():
            await self.cache.fetch_query(("/api/campaigns",))
            await self.cache.fetch_query(("/api/campaigns", 5))
            await self.cache.fetch_query(("/api/personas",))
            return self.cache.invalidate("/api/campaigns")

        marked = asyncio.run(scenario())

        self.assertEqual(2, marked)
        self.assertTrue(self.cache.is_stale(("/api/campaigns", 5)))
        self.assertFalse(self.cache.is_stale("/api/personas"))

    def test_exact_invalidation_leaves_detail_keys(self) -> None:
        async def scenario():
            await self.cache.fetch_query(("/api/campaigns",))
            await self.cache.fetch_query(("/api/campaigns", 5))
            return self.cache.invalidate("/api/campaigns", exact=True)

        self.assertEqual(1, asyncio.run(scenario()))
        self.assertFalse(self.cache.is_stale(("/api/campaigns", 5)))

    def test_detail_key_fetches_joined_url(self) -> None:
        data = asyncio.run(self.cache.fetch_query(("/api/campaigns", 5)))
        self.assertEqual("/api/campaigns/5", data["path"])

    def test_unauthenticated_read_returns_none_when_optional(self) -> None:
        self.api.status = 401
        self.api.payload = {"message": "Not authenticated"}

        data = asyncio.run(self.cache.fetch_query("/api/user", on_401="return_null"))

        self.assertIsNone(data)
        self.assertEqual(1, self.api.calls["/api/user"])

    def test_unauthenticated_read_raises_when_required(self) -> None:
        self.api.status = 401
        self.api.payload = {"message": "Not authenticated"}

        with self.assertRaises(HttpError) as ctx:
            asyncio.run(self.cache.fetch_query("/api/user"))

        self.assertEqual(401, ctx.exception.status)

    def test_transient_errors_retried_three_times(self) -> None:
        self.api.status = 500
        self.api.payload = {"message": DATABASE_MESSAGE}

        with self.assertRaises(HttpError):
            asyncio.run(self.cache.fetch_query("/api/campaigns"))

        self.assertEqual(4, self.api.calls["/api/campaigns"])
        self.assertEqual([1, 2, 4], self.sleep.delays)

    def test_permanent_errors_not_retried(self) -> None:
        self.api.status = 404
        self.api.payload = {"message": "Campaign not found"}

        with self.assertRaises(HttpError):
            asyncio.run(self.cache.fetch_query(("/api/campaigns", 99)))

        self.assertEqual(1, self.api.calls["/api/campaigns/99"])
        self.assertEqual([], self.sleep.delays)

    def test_failed_fetch_leaves_no_entry(self) -> None:
        self.api.status = 404
        self.api.payload = {"message": "nope"}

        with self.assertRaises(HttpError):
            asyncio.run(self.cache.fetch_query("/api/campaigns"))

        self.assertIsNone(self.cache.get_query_data("/api/campaigns"))
        self.assertEqual([], self.cache.keys())

    def test_custom_fetcher(self) -> None:
        async def fetcher():
            return ["from", "fetcher"]

        data = asyncio.run(self.cache.fetch_query(("/api/tone-analyses", "recent"), fetcher))

        self.assertEqual(["from", "fetcher"], data)
        self.assertEqual({}, self.api.calls)
        self.assertEqual(["from", "fetcher"], self.cache.get_query_data(("/api/tone-analyses", "recent")))

    def test_set_query_data_is_last_write_wins(self) -> None:
        self.cache.set_query_data("/api/campaigns", [1])
        self.cache.set_query_data("/api/campaigns", [2])
        self.assertEqual([2], asyncio.run(self.cache.fetch_query("/api/campaigns")))
        self.assertEqual({}, self.api.calls)

    def test_remove_drops_entry(self) -> None:
        self.cache.set_query_data("/api/personas", [1])
        self.cache.remove("/api/personas")

        self.assertIsNone(self.cache.get_query_data("/api/personas"))
        self.assertEqual([], self.cache.keys())
        self.assertEqual(1, asyncio.run(self.cache.fetch_query("/api/personas"))["version"])


class InFlightTests(unittest.TestCase):
    def test_concurrent_reads_share_one_fetch(self) -> None:
        calls = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return httpx.Response(200, json=[{"id": 1}])

        requester, _ = make_requester(handler)
        cache = QueryCache(requester)

        async def scenario():
            return await asyncio.gather(
                cache.fetch_query("/api/personas"),
                cache.fetch_query("/api/personas"),
            )

        first, second = asyncio.run(scenario())

        self.assertEqual(first, second)
        self.assertEqual(1, calls)

    def test_invalidation_during_fetch_discards_result(self) -> None:
        release = None
        calls = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                await release.wait()
            return httpx.Response(200, json={"version": calls})

        requester, _ = make_requester(handler)
        cache = QueryCache(requester)

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            pending = asyncio.create_task(cache.fetch_query("/api/campaigns"))
            await asyncio.sleep(0)
            cache.invalidate("/api/campaigns")
            release.set()
            old = await pending
            fresh = await cache.fetch_query("/api/campaigns")
            return old, fresh

        old, fresh = asyncio.run(scenario())

        self.assertEqual({"version": 1}, old)
        self.assertEqual({"version": 2}, fresh)
        self.assertEqual(2, calls)


if __name__ == "__main__":
    unittest.main()
