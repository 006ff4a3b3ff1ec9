import sys

import uvicorn
from dotenv import load_dotenv
from loguru import logger

from mystic_relay.app_config import load_json_config, parse_app_config, resolve_runtime_env
from mystic_relay.bootstrap import bootstrap_runtime
from mystic_relay.errors import MissingCredentialError


def main() -> None:
    load_dotenv()

    raw = load_json_config()
    env = resolve_runtime_env(str(raw.get("Provider", "openai")))
    config = parse_app_config(raw, env)

    try:
        runtime = bootstrap_runtime(config, env)
    except MissingCredentialError as ex:
        logger.error(str(ex))
        sys.exit(1)

    print(f"mystic-relay listening on http://{config.host}:{config.port}{config.endpoint_path}")
    print(f"Model: {config.model} ({config.provider_name}), environment: {config.environment}")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    uvicorn.run(runtime.app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
