from typing import Protocol, runtime_checkable

from loguru import logger

from brand_voice_client.limits.models import LimitViolation
from brand_voice_client.limits.plans import DEFAULT_PLANS, SubscriptionPlan, upgrade_hint


@runtime_checkable
class AttemptDialog(Protocol):
    """The dialog the user opened to perform an action (create, edit, delete)."""

    def close(self) -> None: ...


@runtime_checkable
class UpgradePresenter(Protocol):
    def present(self, violation: LimitViolation) -> None: ...


@runtime_checkable
class Notifier(Protocol):
    def notify_success(self, title: str, message: str) -> None: ...

    def notify_error(self, title: str, message: str) -> None: ...


class ConsoleNotifier:
    def __init__(self, line_prefix: str = ""):
        self._line_prefix = line_prefix

    def notify_success(self, title: str, message: str) -> None:
        print(f"{self._line_prefix}{title}: {message}")

    def notify_error(self, title: str, message: str) -> None:
        logger.debug(f"Error notification: {title}: {message}")
        print(f"{self._line_prefix}[error] {title}: {message}")


class ConsoleUpgradePresenter:
    def __init__(self, plans: dict[str, SubscriptionPlan] | None = None, line_prefix: str = ""):
        self._plans = plans or DEFAULT_PLANS
        self._line_prefix = line_prefix

    def present(self, violation: LimitViolation) -> None:
        print(f"{self._line_prefix}Subscription limit reached ({violation.label})")
        print(f"{self._line_prefix}{upgrade_hint(violation, self._plans)}")
