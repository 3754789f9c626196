from brand_voice_client.limits.models import LIMIT_STATUS, LimitType, LimitViolation, feature_label
from brand_voice_client.limits.plans import (
    DEFAULT_PLANS,
    SubscriptionPlan,
    next_plan,
    parse_plans,
    upgrade_hint,
    usage_report,
)

__all__ = [
    "DEFAULT_PLANS",
    "LIMIT_STATUS",
    "LimitType",
    "LimitViolation",
    "SubscriptionPlan",
    "feature_label",
    "next_plan",
    "parse_plans",
    "upgrade_hint",
    "usage_report",
]
