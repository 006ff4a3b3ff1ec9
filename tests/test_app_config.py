import json
import os
import shutil
import unittest
from pathlib import Path
from unittest.mock import patch
from uuid import uuid4

from mystic_relay.app_config import (
    RuntimeEnv,
    load_json_config,
    parse_app_config,
    require_api_key,
    resolve_runtime_env,
)
from mystic_relay.errors import MissingCredentialError

PROJECT_ROOT = Path(__file__).resolve().parents[1]


class ParseAppConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        config = parse_app_config({})
        self.assertEqual("openai", config.provider_name)
        self.assertEqual("gpt-4o-mini", config.model)
        self.assertEqual(200, config.max_tokens)
        self.assertEqual(0.8, config.temperature)
        self.assertEqual(3, config.upstream_retry_attempts)
        self.assertEqual("production", config.environment)
        self.assertFalse(config.development)
        self.assertEqual("/api/fortune", config.endpoint_path)
        self.assertEqual(5, config.lucky_number_count)
        self.assertEqual(1.0, config.side_payload_delay_seconds)
        self.assertEqual("INFO", config.log_level)
        self.assertIsNone(config.log_consumers)

    def test_values_from_config(self) -> None:
        config = parse_app_config({
            "Provider": " OpenAI ",
            "Model": "gpt-4o",
            "MaxTokens": "150",
            "Temperature": "0.3",
            "Environment": "Development",
            "Port": "8080",
            "EndpointPath": "oracle",
            "SidePayloadDelaySeconds": 0,
        })
        self.assertEqual("openai", config.provider_name)
        self.assertEqual(150, config.max_tokens)
        self.assertEqual(0.3, config.temperature)
        self.assertTrue(config.development)
        self.assertEqual(8080, config.port)
        self.assertEqual("/oracle", config.endpoint_path)
        self.assertEqual(0.0, config.side_payload_delay_seconds)

    def test_environment_variable_overrides_config(self) -> None:
        env = RuntimeEnv(provider_api_key="k", provider_env_var="OPENAI_API_KEY", environment="development")
        config = parse_app_config({"Environment": "production"}, env)
        self.assertTrue(config.development)


class RuntimeEnvTests(unittest.TestCase):
    def test_reads_openai_key_and_environment(self) -> None:
        with patch.dict(os.environ, {"OPENAI_API_KEY": " sk-test ", "MYSTIC_ENV": "Development"}, clear=True):
            env = resolve_runtime_env("openai")
        self.assertEqual("sk-test", env.provider_api_key)
        self.assertEqual("OPENAI_API_KEY", env.provider_env_var)
        self.assertEqual("development", env.environment)

    def test_missing_key_is_fatal(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            env = resolve_runtime_env()
        self.assertIsNone(env.environment)
        with self.assertRaises(MissingCredentialError):
            require_api_key(env)

    def test_present_key_is_returned(self) -> None:
        env = RuntimeEnv(provider_api_key="sk-test", provider_env_var="OPENAI_API_KEY", environment=None)
        self.assertEqual("sk-test", require_api_key(env))


class LoadJsonConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp_dir = PROJECT_ROOT / ".test-artifacts" / f"config-{uuid4().hex}"
        self._tmp_dir.mkdir(parents=True, exist_ok=True)

    def tearDown(self) -> None:
        shutil.rmtree(self._tmp_dir, ignore_errors=True)

    def test_reads_file(self) -> None:
        path = self._tmp_dir / "config.json"
        path.write_text(json.dumps({"Model": "gpt-4o"}))
        self.assertEqual({"Model": "gpt-4o"}, load_json_config(path))

    def test_missing_file_is_empty(self) -> None:
        self.assertEqual({}, load_json_config(self._tmp_dir / "absent.json"))


if __name__ == "__main__":
    unittest.main()
