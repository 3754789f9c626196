from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from brand_voice_client.limits.models import LimitType, LimitViolation, feature_label


@dataclass(frozen=True)
class SubscriptionPlan:
    key: str
    name: str
    price: float
    personas: int
    tone_analyses: int
    content_generation: int
    campaigns: int

    def quota(self, limit_type: LimitType) -> int:
        return getattr(self, _QUOTA_FIELDS[limit_type])


_QUOTA_FIELDS = {
    LimitType.PERSONAS: "personas",
    LimitType.TONE_ANALYSES: "tone_analyses",
    LimitType.CONTENT_GENERATION: "content_generation",
    LimitType.CAMPAIGNS: "campaigns",
}

# Counter field on the /api/user payload for each quota.
_USAGE_FIELDS = {
    LimitType.PERSONAS: "personas_used",
    LimitType.TONE_ANALYSES: "tone_analyses_used",
    LimitType.CONTENT_GENERATION: "content_generated",
    LimitType.CAMPAIGNS: "campaigns_used",
}

DEFAULT_PLANS: dict[str, SubscriptionPlan] = {
    "free": SubscriptionPlan("free", "Free", 0, personas=1, tone_analyses=1, content_generation=5, campaigns=1),
    "standard": SubscriptionPlan("standard", "Standard", 29, personas=5, tone_analyses=10, content_generation=50, campaigns=5),
    "premium": SubscriptionPlan("premium", "Premium", 99, personas=20, tone_analyses=50, content_generation=250, campaigns=25),
}


def parse_plans(raw: dict[str, dict[str, Any]] | None) -> dict[str, SubscriptionPlan]:
    """Read a ``Plans`` config block, keeping defaults for plans it doesn't mention."""
    plans = dict(DEFAULT_PLANS)
    for key, values in (raw or {}).items():
        base = plans.get(key)
        plans[key] = SubscriptionPlan(
            key=key,
            name=str(values.get("Name", base.name if base else key.title())),
            price=float(values.get("Price", base.price if base else 0)),
            personas=int(values.get("Personas", base.personas if base else 0)),
            tone_analyses=int(values.get("ToneAnalyses", base.tone_analyses if base else 0)),
            content_generation=int(values.get("ContentGeneration", base.content_generation if base else 0)),
            campaigns=int(values.get("Campaigns", base.campaigns if base else 0)),
        )
    return plans


def next_plan(current: str, plans: dict[str, SubscriptionPlan] = DEFAULT_PLANS) -> SubscriptionPlan | None:
    tiers = sorted(plans.values(), key=lambda p: p.price)
    keys = [p.key for p in tiers]
    if current not in keys:
        return tiers[0] if tiers else None
    index = keys.index(current)
    return tiers[index + 1] if index < len(tiers) - 1 else None


def usage_percent(used: int, quota: int) -> int:
    if quota <= 0:
        return 100
    return min(100, round(used / quota * 100))


def usage_level(used: int, quota: int) -> str:
    if used >= quota:
        return "at_limit"
    percent = usage_percent(used, quota)
    if percent >= 90:
        return "almost"
    if percent >= 70:
        return "high"
    return "good"


@dataclass(frozen=True)
class UsageLine:
    limit_type: LimitType
    used: int
    quota: int
    percent: int
    level: str

    @property
    def label(self) -> str:
        return feature_label(self.limit_type)


def usage_report(user: dict[str, Any], plans: dict[str, SubscriptionPlan] = DEFAULT_PLANS) -> list[UsageLine]:
    plan = plans.get(str(user.get("subscription_plan") or "free"), plans["free"])
    lines = []
    for limit_type, field in _USAGE_FIELDS.items():
        used = int(user.get(field) or 0)
        quota = plan.quota(limit_type)
        lines.append(UsageLine(limit_type, used, quota, usage_percent(used, quota), usage_level(used, quota)))
    return lines


def upgrade_hint(violation: LimitViolation, plans: dict[str, SubscriptionPlan] = DEFAULT_PLANS) -> str:
    label = violation.label
    upgrade = next_plan(violation.current_plan, plans)
    if upgrade is None:
        return (
            f"You've used {violation.current_usage} of {violation.limit} {label}. "
            "Your usage limits reset at the start of your next billing period."
        )
    quota = upgrade.quota(violation.limit_type)
    return (
        f"You've used {violation.current_usage} of {violation.limit} {label}. "
        f"Upgrade to {upgrade.name} to get {quota} {label} "
        f"({quota - violation.limit} more than your current plan)."
    )
