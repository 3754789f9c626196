from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from brand_voice_client.limits.plans import SubscriptionPlan, parse_plans


@dataclass
class RuntimeEnv:
    api_base_url: str
    session_cookie: str | None
    stripe_publishable_key: str | None


@dataclass
class AppConfig:
    api_base_url: str | None
    request_timeout_ms: int
    request_max_retries: int
    debug_requests: bool
    query_max_retries: int
    mutation_max_retries: int
    session_cookie_name: str
    plans: dict[str, SubscriptionPlan]
    log_level: str
    log_consumers: list | None


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def parse_app_config(config: dict) -> AppConfig:
    return AppConfig(
        api_base_url=str(config.get("ApiBaseUrl", "")).strip() or None,
        request_timeout_ms=int(config.get("RequestTimeoutMs", 15_000)),
        request_max_retries=int(config.get("RequestMaxRetries", 0)),
        debug_requests=_to_bool(config.get("DebugRequests", False), default=False),
        query_max_retries=int(config.get("QueryMaxRetries", 3)),
        mutation_max_retries=int(config.get("MutationMaxRetries", 1)),
        session_cookie_name=str(config.get("SessionCookieName", "connect.sid")),
        plans=parse_plans(config.get("Plans")),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env(app: AppConfig | None = None) -> RuntimeEnv:
    configured = app.api_base_url if app else None
    return RuntimeEnv(
        api_base_url=os.environ.get("API_BASE_URL") or configured or "http://localhost:5000",
        session_cookie=os.environ.get("SESSION_COOKIE") or None,
        # Passed through to checkout; never inspected here.
        stripe_publishable_key=os.environ.get("STRIPE_PUBLIC_KEY") or os.environ.get("VITE_STRIPE_PUBLIC_KEY"),
    )
