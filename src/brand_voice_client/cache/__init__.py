from brand_voice_client.cache.mutations import MutationResult, MutationRunner, MutationState
from brand_voice_client.cache.query_cache import QueryCache, key_to_url, normalize_key
from brand_voice_client.cache.retry_policy import mutation_retry_policy, query_retry_policy

__all__ = [
    "MutationResult",
    "MutationRunner",
    "MutationState",
    "QueryCache",
    "key_to_url",
    "mutation_retry_policy",
    "normalize_key",
    "query_retry_policy",
]
