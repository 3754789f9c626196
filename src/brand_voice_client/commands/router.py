from __future__ import annotations

from collections.abc import Awaitable, Callable

_WRITE_VERBS = ("/post", "/patch", "/delete")


class CommandRouter:
    def __init__(
        self,
        *,
        on_help: Callable[[], Awaitable[None]],
        on_get: Callable[[str], Awaitable[None]],
        on_write: Callable[[str, str], Awaitable[None]],
        on_invalidate: Callable[[str], Awaitable[None]],
        on_usage: Callable[[], Awaitable[None]],
        on_plans: Callable[[], Awaitable[None]],
        on_unknown: Callable[[str], None],
    ) -> None:
        self._on_help = on_help
        self._on_get = on_get
        self._on_write = on_write
        self._on_invalidate = on_invalidate
        self._on_usage = on_usage
        self._on_plans = on_plans
        self._on_unknown = on_unknown

    async def try_handle(self, user_message: str) -> bool:
        trimmed = user_message.strip()
        if not trimmed.startswith("/"):
            return False

        command, _, rest = trimmed.partition(" ")
        rest = rest.strip()

        if command == "/help":
            await self._on_help()
            return True
        if command == "/get":
            await self._on_get(rest)
            return True
        if command in _WRITE_VERBS:
            await self._on_write(command[1:].upper(), rest)
            return True
        if command == "/invalidate":
            await self._on_invalidate(rest)
            return True
        if command == "/usage":
            await self._on_usage()
            return True
        if command == "/plans":
            await self._on_plans()
            return True

        self._on_unknown(trimmed)
        return True
