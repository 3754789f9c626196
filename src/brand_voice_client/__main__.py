import asyncio
import json
import sys

from dotenv import load_dotenv
from loguru import logger

from brand_voice_client.app_config import AppConfig, load_json_config, parse_app_config, resolve_runtime_env
from brand_voice_client.bootstrap import AppRuntime, bootstrap_runtime
from brand_voice_client.commands.router import CommandRouter
from brand_voice_client.errors import ApiError, describe_error
from brand_voice_client.limits.models import LimitType, feature_label
from brand_voice_client.resources import USER_KEY, path_to_key, resource_for_path

_HELP = """\
Commands:
  /get <path>                 Read through the cache (e.g. /get /api/campaigns)
  /post <path> <json>         Create; plan limits open the upgrade prompt
  /patch <path> <json>        Update
  /delete <path>              Delete
  /invalidate <path>          Mark cached reads under <path> stale
  /usage                      Plan usage for the signed-in user
  /plans                      Available subscription plans
  exit                        Quit"""


class Console:
    def __init__(self, runtime: AppRuntime, app: AppConfig):
        self._runtime = runtime
        self._app = app
        self.router = CommandRouter(
            on_help=self._help,
            on_get=self._get,
            on_write=self._write,
            on_invalidate=self._invalidate,
            on_usage=self._usage,
            on_plans=self._plans,
            on_unknown=self._unknown,
        )

    async def _help(self) -> None:
        print(_HELP)

    async def _get(self, path: str) -> None:
        if not path:
            print("Usage: /get <path>")
            return
        on_401 = "return_null" if path_to_key(path) == USER_KEY else "throw"
        data = await self._runtime.cache.fetch_query(path_to_key(path), on_401=on_401)
        print(json.dumps(data, indent=2))

    async def _write(self, method: str, rest: str) -> None:
        path, _, raw_body = rest.partition(" ")
        if not path:
            print(f"Usage: /{method.lower()} <path> [json]")
            return
        body = json.loads(raw_body) if raw_body.strip() else None

        resource = resource_for_path(path)
        invalidates = [path_to_key(path)]
        limit_type = None
        if resource is not None:
            invalidates = [resource.list_key, USER_KEY]
            limit_type = resource.limit_type

        requester = self._runtime.requester
        user = self._runtime.cache.get_query_data(USER_KEY)
        current_plan = user.get("subscription_plan") if isinstance(user, dict) else None

        result = await self._runtime.runner.mutate(
            lambda: requester.request_json(method, path, body, requester.single_attempt_options()),
            invalidates=invalidates,
            limit_type=limit_type,
            current_plan=current_plan,
            success_message=(f"{method} {path}", "done"),
            error_title=f"{method} {path} failed",
        )
        if result.ok and result.data is not None:
            print(json.dumps(result.data, indent=2))

    async def _invalidate(self, path: str) -> None:
        if not path:
            print("Usage: /invalidate <path>")
            return
        count = self._runtime.cache.invalidate(path_to_key(path))
        print(f"Invalidated {count} cached entr{'y' if count == 1 else 'ies'}")

    async def _usage(self) -> None:
        lines = await self._runtime.user.usage()
        if lines is None:
            print("Not signed in.")
            return
        for line in lines:
            print(f"  {line.label:<20} {line.used:>4} / {line.quota:<4} {line.percent:>3}%  {line.level}")

    async def _plans(self) -> None:
        for plan in sorted(self._app.plans.values(), key=lambda p: p.price):
            quotas = ", ".join(f"{plan.quota(t)} {feature_label(t)}" for t in LimitType)
            print(f"  {plan.name} (${plan.price:g}/mo): {quotas}")

    def _unknown(self, command: str) -> None:
        print(f"Unknown command: {command}. Type /help for commands.")


async def main() -> None:
    load_dotenv()

    app = parse_app_config(load_json_config())
    env = resolve_runtime_env(app)
    runtime = bootstrap_runtime(app, env)

    print(f"brand-voice-client ({env.api_base_url}) - type 'exit' to quit, '/help' for commands")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    console = Console(runtime, app)
    try:
        while True:
            try:
                user_input = input("api> ")
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()
            if trimmed in ("exit", "quit"):
                break
            if not trimmed:
                continue

            try:
                if not await console.router.try_handle(trimmed):
                    print("Commands start with '/'. Type /help for commands.")
            except ApiError as ex:
                print(f"[error] {describe_error(ex)}")
            except json.JSONDecodeError as ex:
                print(f"[error] Invalid JSON body: {ex}")
            except Exception as ex:
                logger.error(f"Unhandled error: {ex}")
    finally:
        await runtime.close()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
