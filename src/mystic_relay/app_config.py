from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from mystic_relay.errors import MissingCredentialError


@dataclass
class RuntimeEnv:
    provider_api_key: str
    provider_env_var: str
    environment: str | None


@dataclass
class AppConfig:
    provider_name: str
    model: str
    max_tokens: int
    temperature: float
    upstream_retry_attempts: int
    environment: str
    host: str
    port: int
    endpoint_path: str
    lucky_number_count: int
    side_payload_delay_seconds: float
    log_level: str
    log_consumers: list | None

    @property
    def development(self) -> bool:
        return self.environment == "development"


def load_json_config(path: Path | None = None) -> dict:
    config_path = path or Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def parse_app_config(config: dict, env: RuntimeEnv | None = None) -> AppConfig:
    environment = str(config.get("Environment", "production"))
    if env is not None and env.environment:
        environment = env.environment

    endpoint_path = str(config.get("EndpointPath", "/api/fortune")).strip() or "/api/fortune"
    if not endpoint_path.startswith("/"):
        endpoint_path = "/" + endpoint_path

    return AppConfig(
        provider_name=config.get("Provider", "openai").strip().lower(),
        model=config.get("Model", "gpt-4o-mini"),
        max_tokens=int(config.get("MaxTokens", 200)),
        temperature=float(config.get("Temperature", 0.8)),
        upstream_retry_attempts=int(config.get("UpstreamRetryAttempts", 3)),
        environment=environment.strip().lower(),
        host=str(config.get("Host", "127.0.0.1")),
        port=int(config.get("Port", 3000)),
        endpoint_path=endpoint_path,
        lucky_number_count=int(config.get("LuckyNumberCount", 5)),
        side_payload_delay_seconds=float(config.get("SidePayloadDelaySeconds", 1.0)),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env(provider_name: str = "openai") -> RuntimeEnv:
    # Only OpenAI is wired up today; the env var name follows the provider.
    provider_env_var = f"{provider_name.strip().upper()}_API_KEY"
    return RuntimeEnv(
        provider_api_key=os.environ.get(provider_env_var, "").strip(),
        provider_env_var=provider_env_var,
        environment=os.environ.get("MYSTIC_ENV", "").strip().lower() or None,
    )


def require_api_key(env: RuntimeEnv) -> str:
    if not env.provider_api_key:
        raise MissingCredentialError(env.provider_env_var)
    return env.provider_api_key
