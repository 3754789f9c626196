from collections.abc import Callable

import httpx

from brand_voice_client.http.requester import ApiRequester, RequestOptions
from brand_voice_client.limits.models import LimitViolation

BASE_URL = "http://api.test"


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class UiEvents:
    """Shared log so tests can assert the order of UI transitions."""

    def __init__(self) -> None:
        self.events: list[tuple] = []


class RecordingDialog:
    def __init__(self, ui: UiEvents, name: str = "attempt") -> None:
        self._ui = ui
        self._name = name
        self.closed = False

    def close(self) -> None:
        self.closed = True
        self._ui.events.append(("close", self._name))


class RecordingPresenter:
    def __init__(self, ui: UiEvents) -> None:
        self._ui = ui
        self.violations: list[LimitViolation] = []

    def present(self, violation: LimitViolation) -> None:
        self.violations.append(violation)
        self._ui.events.append(("upgrade", violation.limit_type.value))


class RecordingNotifier:
    def __init__(self, ui: UiEvents) -> None:
        self._ui = ui
        self.errors: list[tuple[str, str]] = []
        self.successes: list[tuple[str, str]] = []

    def notify_success(self, title: str, message: str) -> None:
        self.successes.append((title, message))
        self._ui.events.append(("success", title))

    def notify_error(self, title: str, message: str) -> None:
        self.errors.append((title, message))
        self._ui.events.append(("error", title))


def make_requester(
    handler: Callable,
    *,
    sleep: RecordingSleep | None = None,
    options: RequestOptions | None = None,
) -> tuple[ApiRequester, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
    requester = ApiRequester(client, default_options=options, sleep=sleep or RecordingSleep())
    return requester, client
