from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

LIMIT_STATUS = 402


class LimitType(str, Enum):
    PERSONAS = "personas"
    TONE_ANALYSES = "toneAnalyses"
    CAMPAIGNS = "campaigns"
    CONTENT_GENERATION = "contentGeneration"

    @classmethod
    def parse(cls, value: Any) -> LimitType | None:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


_FEATURE_LABELS = {
    LimitType.PERSONAS: "AI Personas",
    LimitType.TONE_ANALYSES: "Tone Analyses",
    LimitType.CONTENT_GENERATION: "Content Generations",
    LimitType.CAMPAIGNS: "Campaigns",
}


def feature_label(limit_type: LimitType) -> str:
    return _FEATURE_LABELS[limit_type]


@dataclass(frozen=True)
class LimitViolation:
    limit_type: LimitType
    current_usage: int
    limit: int
    current_plan: str

    @classmethod
    def from_response(
        cls,
        status: int,
        payload: Any,
        *,
        limit_type: LimitType | None = None,
        current_plan: str | None = None,
    ) -> LimitViolation:
        """Build a record from a 402 body. Raises ValueError for anything else."""
        if status != LIMIT_STATUS:
            raise ValueError(f"Limit violations come only from HTTP {LIMIT_STATUS}, got {status}")
        if not isinstance(payload, dict):
            raise ValueError("Limit response body is not a JSON object")

        resolved_type = LimitType.parse(payload.get("limitType")) or limit_type
        if resolved_type is None:
            raise ValueError(f"Unknown limit type: {payload.get('limitType')!r}")

        current = payload.get("current")
        if current is None:
            current = payload.get("currentUsage")
        limit = payload.get("limit")
        if not _is_count(current) or not _is_count(limit):
            raise ValueError(f"Limit response lacks integer usage: current={current!r}, limit={limit!r}")

        plan = current_plan or payload.get("currentPlan") or "free"
        return cls(
            limit_type=resolved_type,
            current_usage=int(current),
            limit=int(limit),
            current_plan=str(plan),
        )

    @property
    def label(self) -> str:
        return feature_label(self.limit_type)


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
