from __future__ import annotations

from enum import Enum

from loguru import logger

from brand_voice_client.errors import ApiError, HttpError
from brand_voice_client.limits.models import LIMIT_STATUS, LimitType, LimitViolation
from brand_voice_client.presenter import AttemptDialog, UpgradePresenter


class UpgradeStep(Enum):
    IDLE = "idle"
    ATTEMPT_CLOSED = "attempt_closed"
    UPGRADE_OPEN = "upgrade_open"


class UpgradeFlow:
    """Moves the UI from the attempted action to the upgrade prompt.

    The attempt dialog always closes before the upgrade prompt opens, so the
    two are never on screen together.
    """

    def __init__(self, presenter: UpgradePresenter):
        self._presenter = presenter
        self.step = UpgradeStep.IDLE

    def run(self, violation: LimitViolation, dialog: AttemptDialog | None) -> None:
        if dialog is not None:
            dialog.close()
        self.step = UpgradeStep.ATTEMPT_CLOSED
        self._presenter.present(violation)
        self.step = UpgradeStep.UPGRADE_OPEN


class LimitInterceptor:
    def __init__(self, presenter: UpgradePresenter):
        self._presenter = presenter

    def intercept(
        self,
        error: ApiError,
        *,
        limit_type: LimitType | None = None,
        current_plan: str | None = None,
        dialog: AttemptDialog | None = None,
    ) -> LimitViolation | None:
        """Route a plan-limit rejection to the upgrade prompt.

        Returns the violation when the error was handled here, or None when the
        caller should fall through to its generic error handling. A 402 whose
        body doesn't parse is logged and left to the generic path.
        """
        if not isinstance(error, HttpError) or error.status != LIMIT_STATUS:
            return None

        try:
            violation = LimitViolation.from_response(
                error.status,
                error.payload,
                limit_type=limit_type,
                current_plan=current_plan,
            )
        except ValueError as ex:
            logger.warning(f"Malformed limit response ({ex}); falling back to generic error handling")
            return None

        logger.info(
            f"Plan limit reached: {violation.limit_type.value} "
            f"{violation.current_usage}/{violation.limit} on plan {violation.current_plan}"
        )
        UpgradeFlow(self._presenter).run(violation, dialog)
        return violation
