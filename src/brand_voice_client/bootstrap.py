from __future__ import annotations

from dataclasses import dataclass

import httpx
from loguru import logger

from brand_voice_client.app_config import AppConfig, RuntimeEnv
from brand_voice_client.cache.mutations import MutationRunner
from brand_voice_client.cache.query_cache import QueryCache
from brand_voice_client.cache.retry_policy import make_retry_policy
from brand_voice_client.http.requester import ApiRequester, RequestOptions
from brand_voice_client.limits.interceptor import LimitInterceptor
from brand_voice_client.logging_config import setup_logging
from brand_voice_client.presenter import (
    ConsoleNotifier,
    ConsoleUpgradePresenter,
    Notifier,
    UpgradePresenter,
)
from brand_voice_client.resources import (
    CAMPAIGNS,
    CONTENT,
    PERSONAS,
    TONE_ANALYSES,
    CampaignContentsApi,
    ResourceApi,
    UserApi,
)


@dataclass
class AppRuntime:
    http_client: httpx.AsyncClient
    requester: ApiRequester
    cache: QueryCache
    runner: MutationRunner
    campaigns: ResourceApi
    personas: ResourceApi
    tone_analyses: ResourceApi
    content: ResourceApi
    campaign_contents: CampaignContentsApi
    user: UserApi
    stripe_publishable_key: str | None
    log_descriptions: list[str]

    async def close(self) -> None:
        self.cache.clear()
        await self.http_client.aclose()


def create_http_client(
    app: AppConfig,
    env: RuntimeEnv,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    cookies = httpx.Cookies()
    if env.session_cookie:
        cookies.set(app.session_cookie_name, env.session_cookie)
    return httpx.AsyncClient(
        base_url=env.api_base_url,
        cookies=cookies,
        headers={"Accept": "application/json"},
        # Deadlines are enforced per attempt by ApiRequester.
        timeout=None,
        transport=transport,
    )


def bootstrap_runtime(
    app: AppConfig,
    env: RuntimeEnv,
    *,
    presenter: UpgradePresenter | None = None,
    notifier: Notifier | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AppRuntime:
    log_descriptions = setup_logging(
        level=app.log_level,
        consumers=app.log_consumers,
        capture_http_logs=app.debug_requests,
    )

    http_client = create_http_client(app, env, transport)

    requester = ApiRequester(
        http_client,
        default_options=RequestOptions(
            timeout_ms=app.request_timeout_ms,
            max_retries=app.request_max_retries,
            debug=app.debug_requests,
        ),
    )
    cache = QueryCache(requester, retry_policy=make_retry_policy(app.query_max_retries))
    interceptor = LimitInterceptor(presenter or ConsoleUpgradePresenter(app.plans))
    runner = MutationRunner(
        cache,
        interceptor,
        notifier or ConsoleNotifier(),
        retry_policy=make_retry_policy(app.mutation_max_retries),
    )

    logger.debug(f"Client runtime ready for {env.api_base_url}")

    return AppRuntime(
        http_client=http_client,
        requester=requester,
        cache=cache,
        runner=runner,
        campaigns=ResourceApi(CAMPAIGNS, requester, cache, runner),
        personas=ResourceApi(PERSONAS, requester, cache, runner),
        tone_analyses=ResourceApi(TONE_ANALYSES, requester, cache, runner),
        content=ResourceApi(CONTENT, requester, cache, runner),
        campaign_contents=CampaignContentsApi(requester, cache, runner),
        user=UserApi(cache, app.plans),
        stripe_publishable_key=env.stripe_publishable_key,
        log_descriptions=log_descriptions,
    )
