"""loguru sinks for the relay server and the chat client.

Every record carries a ``request_id`` extra. The relay binds it per fortune
request (see ``new_request_id``); anything logged outside a request shows
``NO_REQUEST``. The server logs to the console by default, the chat client
to a file so log lines never interleave with the conversation.
"""

import sys
from pathlib import Path
from typing import Any
from uuid import uuid4

from loguru import logger

NO_REQUEST = "-"

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> <level>{level:<8}</level> "
    "<magenta>[{extra[request_id]}]</magenta> "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {extra[request_id]} | {name}:{function}:{line} - {message}"

PROFILE_DEFAULTS: dict[str, list[dict[str, Any]]] = {
    "server": [{"type": "console"}],
    "chat": [{"type": "file", "path": "mystic-chat.log"}],
}


def new_request_id() -> str:
    return uuid4().hex[:12]


class ConsoleLogConsumer:
    def __init__(self, stream: str = "stderr"):
        if stream not in ("stderr", "stdout"):
            raise ValueError(f"Console stream must be stderr or stdout, got {stream!r}")
        self._stream = stream

    def register(self, level: str) -> None:
        logger.add(getattr(sys, self._stream), level=level, format=_CONSOLE_FORMAT)

    def describe(self, level: str) -> str:
        return f"console ({self._stream}, {level})"


class FileLogConsumer:
    def __init__(self, path: str = "mystic-relay.log", rotation: str = "10 MB", retention: int = 3):
        self._path = path
        self._rotation = rotation
        self._retention = retention

    def register(self, level: str) -> None:
        Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            self._path,
            level=level,
            format=_FILE_FORMAT,
            rotation=self._rotation,
            retention=self._retention,
        )

    def describe(self, level: str) -> str:
        return f"file ({self._path}, {level})"


_CONSUMER_TYPES: dict[str, type] = {
    "console": ConsoleLogConsumer,
    "file": FileLogConsumer,
}


def setup_logging(
    level: str = "INFO",
    consumers: list[dict[str, Any]] | None = None,
    *,
    profile: str = "server",
) -> list[str]:
    """Replace all sinks. ``consumers`` overrides the profile's defaults.

    Returns a description of each registered consumer.
    """
    if profile not in PROFILE_DEFAULTS:
        raise ValueError(f"Unknown logging profile: {profile!r}")

    logger.remove()
    logger.configure(extra={"request_id": NO_REQUEST})

    descriptions: list[str] = []
    for config in PROFILE_DEFAULTS[profile] if consumers is None else consumers:
        sink_type = config.get("type", "")
        cls = _CONSUMER_TYPES.get(sink_type)
        if cls is None:
            logger.warning(f"Unknown log consumer type: {sink_type!r}")
            continue

        sink_level = config.get("level", level)
        consumer = cls(**{k: v for k, v in config.items() if k not in ("type", "level")})
        consumer.register(sink_level)
        descriptions.append(consumer.describe(sink_level))

    return descriptions
