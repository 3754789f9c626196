import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from brand_voice_client.app_config import load_json_config, parse_app_config, resolve_runtime_env
from brand_voice_client.limits.plans import DEFAULT_PLANS


class ParseAppConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        app = parse_app_config({})

        self.assertIsNone(app.api_base_url)
        self.assertEqual(15_000, app.request_timeout_ms)
        self.assertEqual(0, app.request_max_retries)
        self.assertFalse(app.debug_requests)
        self.assertEqual(3, app.query_max_retries)
        self.assertEqual(1, app.mutation_max_retries)
        self.assertEqual("connect.sid", app.session_cookie_name)
        self.assertEqual(DEFAULT_PLANS, app.plans)
        self.assertEqual("INFO", app.log_level)
        self.assertIsNone(app.log_consumers)

    def test_overrides(self) -> None:
        app = parse_app_config({
            "ApiBaseUrl": " https://app.example.com ",
            "RequestTimeoutMs": "5000",
            "RequestMaxRetries": 2,
            "DebugRequests": "yes",
            "Plans": {"free": {"Campaigns": 2}},
            "LogConsumers": [],
        })

        self.assertEqual("https://app.example.com", app.api_base_url)
        self.assertEqual(5000, app.request_timeout_ms)
        self.assertEqual(2, app.request_max_retries)
        self.assertTrue(app.debug_requests)
        self.assertEqual(2, app.plans["free"].campaigns)
        self.assertEqual([], app.log_consumers)

    def test_debug_flag_strings(self) -> None:
        self.assertFalse(parse_app_config({"DebugRequests": "off"}).debug_requests)
        self.assertTrue(parse_app_config({"DebugRequests": "1"}).debug_requests)


class RuntimeEnvTests(unittest.TestCase):
    def test_environment_wins_over_config(self) -> None:
        app = parse_app_config({"ApiBaseUrl": "https://configured.example.com"})
        env = {
            "API_BASE_URL": "https://env.example.com",
            "SESSION_COOKIE": "s%3Aabc",
            "VITE_STRIPE_PUBLIC_KEY": "pk_test_123",
        }
        with patch.dict(os.environ, env, clear=True):
            runtime_env = resolve_runtime_env(app)

        self.assertEqual("https://env.example.com", runtime_env.api_base_url)
        self.assertEqual("s%3Aabc", runtime_env.session_cookie)
        self.assertEqual("pk_test_123", runtime_env.stripe_publishable_key)

    def test_falls_back_to_config_then_localhost(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            configured = resolve_runtime_env(parse_app_config({"ApiBaseUrl": "https://configured.example.com"}))
            bare = resolve_runtime_env()

        self.assertEqual("https://configured.example.com", configured.api_base_url)
        self.assertEqual("http://localhost:5000", bare.api_base_url)
        self.assertIsNone(bare.session_cookie)
        self.assertIsNone(bare.stripe_publishable_key)


class LoadJsonConfigTests(unittest.TestCase):
    def test_reads_config_json_from_working_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / "config.json").write_text(json.dumps({"LogLevel": "DEBUG"}))
            with patch("brand_voice_client.app_config.Path.cwd", return_value=Path(tmp)):
                self.assertEqual({"LogLevel": "DEBUG"}, load_json_config())

    def test_missing_file_is_empty(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with patch("brand_voice_client.app_config.Path.cwd", return_value=Path(tmp)):
                self.assertEqual({}, load_json_config())


if __name__ == "__main__":
    unittest.main()
