from __future__ import annotations

from dataclasses import dataclass

from fastapi import FastAPI

from mystic_relay.app_config import AppConfig, RuntimeEnv, load_json_config, parse_app_config, require_api_key, resolve_runtime_env
from mystic_relay.logging_config import setup_logging
from mystic_relay.provider import UpstreamStreamConsumer, create_consumer
from mystic_relay.relay import RelayEndpoint
from mystic_relay.server import create_app
from mystic_relay.side_payload import LuckyNumberGenerator


@dataclass
class AppRuntime:
    app: FastAPI
    relay: RelayEndpoint
    config: AppConfig
    log_descriptions: list[str]


def bootstrap_runtime(
    config: AppConfig,
    env: RuntimeEnv,
    *,
    consumer: UpstreamStreamConsumer | None = None,
    configure_logging: bool = True,
) -> AppRuntime:
    """Wire the relay together. Raises MissingCredentialError before anything is served."""
    api_key = require_api_key(env)

    log_descriptions: list[str] = []
    if configure_logging:
        log_descriptions = setup_logging(level=config.log_level, consumers=config.log_consumers)

    if consumer is None:
        consumer = create_consumer(
            config.provider_name,
            api_key,
            model=config.model,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            retry_attempts=config.upstream_retry_attempts,
        )

    relay = RelayEndpoint(
        consumer,
        LuckyNumberGenerator(count=config.lucky_number_count),
        development=config.development,
    )

    return AppRuntime(
        app=create_app(relay, endpoint_path=config.endpoint_path),
        relay=relay,
        config=config,
        log_descriptions=log_descriptions,
    )


def create_asgi_app() -> FastAPI:
    """ASGI factory, for ``uvicorn --factory mystic_relay.bootstrap:create_asgi_app``."""
    raw = load_json_config()
    env = resolve_runtime_env(str(raw.get("Provider", "openai")))
    return bootstrap_runtime(parse_app_config(raw, env), env).app
