from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from brand_voice_client.cache.mutations import MutationResult, MutationRunner
from brand_voice_client.cache.query_cache import QueryCache, QueryKey, key_to_url
from brand_voice_client.http.requester import ApiRequester
from brand_voice_client.limits.models import LimitType
from brand_voice_client.limits.plans import DEFAULT_PLANS, SubscriptionPlan, UsageLine, usage_report
from brand_voice_client.presenter import AttemptDialog

USER_KEY: QueryKey = ("/api/user",)


@dataclass(frozen=True)
class Resource:
    path: str
    label: str
    limit_type: LimitType | None = None
    create_path: str | None = None

    @property
    def list_key(self) -> QueryKey:
        return (self.path,)

    def detail_key(self, item_id: int | str) -> QueryKey:
        return (self.path, item_id)


CAMPAIGNS = Resource("/api/campaigns", "Campaign", LimitType.CAMPAIGNS)
PERSONAS = Resource("/api/personas", "Persona", LimitType.PERSONAS)
TONE_ANALYSES = Resource("/api/tone-analyses", "Tone analysis", LimitType.TONE_ANALYSES, create_path="/api/tone-analysis")
CONTENT = Resource("/api/content", "Content", LimitType.CONTENT_GENERATION)

KNOWN_RESOURCES = (CAMPAIGNS, PERSONAS, TONE_ANALYSES, CONTENT)


def resource_for_path(path: str) -> Resource | None:
    for resource in KNOWN_RESOURCES:
        if path in (resource.path, resource.create_path) or path.startswith(resource.path + "/"):
            return resource
    return None


def path_to_key(path: str) -> QueryKey:
    """Map a REST path onto the key its resource API caches it under.

    ``/api/campaigns/5/contents`` -> ``("/api/campaigns", 5, "contents")``;
    paths outside the known collections stay one segment.
    """
    path = path.split("?", 1)[0].rstrip("/") or "/"
    resource = resource_for_path(path)
    if resource is None or path == resource.create_path:
        return (path,)
    tail = [s for s in path[len(resource.path):].split("/") if s]
    return (resource.path, *(int(s) if s.isdigit() else s for s in tail))


class ResourceApi:
    """CRUD for one REST collection, routed through the shared cache and runner.

    Every write names the keys it invalidates: the collection (which covers
    cached detail keys) and, for writes that count against a plan quota, the
    current user whose usage counters change.
    """

    def __init__(
        self,
        resource: Resource,
        requester: ApiRequester,
        cache: QueryCache,
        runner: MutationRunner,
    ):
        self._resource = resource
        self._requester = requester
        self._cache = cache
        self._runner = runner

    @property
    def resource(self) -> Resource:
        return self._resource

    async def list(self) -> list[dict[str, Any]]:
        return await self._cache.fetch_query(self._resource.list_key) or []

    async def get(self, item_id: int | str) -> dict[str, Any] | None:
        return await self._cache.fetch_query(self._resource.detail_key(item_id))

    async def create(self, body: dict[str, Any], *, dialog: AttemptDialog | None = None) -> MutationResult:
        path = self._resource.create_path or self._resource.path
        return await self._mutate(
            "POST",
            path,
            body,
            invalidates=self._invalidation_keys(counts_usage=True),
            dialog=dialog,
            verb="created",
        )

    async def update(
        self,
        item_id: int | str,
        body: dict[str, Any],
        *,
        dialog: AttemptDialog | None = None,
    ) -> MutationResult:
        return await self._mutate(
            "PATCH",
            key_to_url(self._resource.detail_key(item_id)),
            body,
            invalidates=self._invalidation_keys(item_id),
            dialog=dialog,
            verb="updated",
        )

    async def delete(self, item_id: int | str, *, dialog: AttemptDialog | None = None) -> MutationResult:
        return await self._mutate(
            "DELETE",
            key_to_url(self._resource.detail_key(item_id)),
            None,
            invalidates=self._invalidation_keys(item_id, counts_usage=True),
            dialog=dialog,
            verb="deleted",
        )

    def current_plan(self) -> str | None:
        user = self._cache.get_query_data(USER_KEY)
        if isinstance(user, dict):
            return user.get("subscription_plan")
        return None

    def _invalidation_keys(self, item_id: int | str | None = None, *, counts_usage: bool = False) -> list[QueryKey]:
        keys = [self._resource.list_key]
        if item_id is not None:
            keys.append(self._resource.detail_key(item_id))
        if counts_usage and self._resource.limit_type is not None:
            keys.append(USER_KEY)
        return keys

    async def _mutate(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None,
        *,
        invalidates: list[QueryKey],
        dialog: AttemptDialog | None,
        verb: str,
    ) -> MutationResult:
        label = self._resource.label
        return await self._runner.mutate(
            lambda: self._requester.request_json(method, path, body, self._requester.single_attempt_options()),
            invalidates=invalidates,
            limit_type=self._resource.limit_type,
            current_plan=self.current_plan(),
            dialog=dialog,
            success_message=(f"{label} {verb}", f"Your {label.lower()} has been {verb} successfully"),
            error_title=f"Failed to {verb[:-1]} {label.lower()}",
        )


class CampaignContentsApi:
    """Content attached to a campaign, cached under ``/api/campaigns/<id>/contents``."""

    def __init__(self, requester: ApiRequester, cache: QueryCache, runner: MutationRunner):
        self._requester = requester
        self._cache = cache
        self._runner = runner

    @staticmethod
    def key(campaign_id: int | str) -> QueryKey:
        return (CAMPAIGNS.path, campaign_id, "contents")

    async def list(self, campaign_id: int | str) -> list[dict[str, Any]]:
        return await self._cache.fetch_query(self.key(campaign_id)) or []

    async def add(self, campaign_id: int | str, content_id: int | str) -> MutationResult:
        return await self._runner.mutate(
            lambda: self._requester.request_json(
                "POST",
                "/api/campaign-contents",
                {"campaignId": campaign_id, "contentId": content_id},
                self._requester.single_attempt_options(),
            ),
            invalidates=[self.key(campaign_id)],
            success_message=("Content added", "The content has been added to the campaign"),
            error_title="Failed to add content",
        )

    async def remove(self, campaign_id: int | str, content_id: int | str) -> MutationResult:
        return await self._runner.mutate(
            lambda: self._requester.request_json(
                "DELETE",
                f"/api/campaign-contents/{campaign_id}/{content_id}",
                options=self._requester.single_attempt_options(),
            ),
            invalidates=[self.key(campaign_id)],
            success_message=("Content removed", "The content has been removed from the campaign"),
            error_title="Failed to remove content",
        )


class UserApi:
    def __init__(self, cache: QueryCache, plans: dict[str, SubscriptionPlan] | None = None):
        self._cache = cache
        self._plans = plans or DEFAULT_PLANS

    async def me(self) -> dict[str, Any] | None:
        """The signed-in user, or None without a session."""
        return await self._cache.fetch_query(USER_KEY, on_401="return_null")

    async def usage(self) -> list[UsageLine] | None:
        user = await self.me()
        if user is None:
            return None
        return usage_report(user, self._plans)

    def refresh(self) -> None:
        self._cache.invalidate(USER_KEY, exact=True)
