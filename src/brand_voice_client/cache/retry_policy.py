from __future__ import annotations

from collections.abc import Callable

from loguru import logger
from tenacity import RetryCallState, retry_base, wait_exponential

from brand_voice_client.errors import TRANSIENT_PATTERNS, is_transient

# (failure_count, error) -> retry?  failure_count is 0 on the first failure.
RetryPolicy = Callable[[int, BaseException], bool]

QUERY_MAX_RETRIES = 3
MUTATION_MAX_RETRIES = 1


def make_retry_policy(max_retries: int, patterns: tuple[str, ...] = TRANSIENT_PATTERNS) -> RetryPolicy:
    def policy(failure_count: int, error: BaseException) -> bool:
        return is_transient(error, patterns) and failure_count < max_retries

    return policy


# Reads may be retried freely; writes aren't guaranteed idempotent.
query_retry_policy = make_retry_policy(QUERY_MAX_RETRIES)
mutation_retry_policy = make_retry_policy(MUTATION_MAX_RETRIES)


class retry_if_policy(retry_base):
    """Adapt a (failure_count, error) policy to tenacity's retry predicate."""

    def __init__(self, policy: RetryPolicy):
        self._policy = policy

    def __call__(self, retry_state: RetryCallState) -> bool:
        outcome = retry_state.outcome
        if outcome is None or not outcome.failed:
            return False
        return self._policy(retry_state.attempt_number - 1, outcome.exception())


# 1s, 2s, 4s ... capped at 30s between cache-layer retries.
cache_retry_wait = wait_exponential(multiplier=1, exp_base=2, max=30)


def log_cache_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(f"Transient failure ({exc}). Retrying in {wait:.0f}s (failure {retry_state.attempt_number})...")
