"""Wire codec for the fortune event stream.

Each frame travels as one Server-Sent Events record::

    data: {"content":"Greetings,"}
    <blank line>

The JSON payload is compact and keeps non-ASCII text as is, so a record is
byte-for-byte what ``JSON.stringify`` would have produced.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterator

from mystic_relay.errors import MalformedFrame

_RESERVED_FIELDS = ("content", "done", "error")


@dataclass(frozen=True)
class ContentFrame:
    text: str


@dataclass(frozen=True)
class DoneFrame:
    final_text: str
    side_payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ErrorFrame:
    message: str


Frame = ContentFrame | DoneFrame | ErrorFrame


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def frame_payload(frame: Frame) -> dict[str, Any]:
    if isinstance(frame, ContentFrame):
        return {"content": frame.text}
    if isinstance(frame, DoneFrame):
        payload: dict[str, Any] = {"done": True, "content": frame.final_text}
        for key, value in frame.side_payload.items():
            if key in _RESERVED_FIELDS:
                raise ValueError(f"Side payload field collides with a frame field: {key!r}")
            payload[key] = value
        return payload
    if isinstance(frame, ErrorFrame):
        return {"error": frame.message}
    raise TypeError(f"Not a frame: {frame!r}")


def encode_frame(frame: Frame) -> str:
    return f"data: {_dumps(frame_payload(frame))}\n\n"


def decode_payload(data: str) -> Frame | None:
    """Decode the data of one event.

    ``error`` wins over ``done``, which wins over ``content``. A payload
    carrying none of them decodes to ``None`` and should be skipped.
    """
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as ex:
        raise MalformedFrame(f"Invalid JSON in event data: {ex}") from ex

    if not isinstance(payload, dict):
        raise MalformedFrame(f"Event data is not a JSON object: {data[:200]}")

    if payload.get("error"):
        return ErrorFrame(message=str(payload["error"]))

    if payload.get("done"):
        final_text = payload.get("content") or ""
        if not isinstance(final_text, str):
            raise MalformedFrame("Final content is not a string")
        side_payload = {k: v for k, v in payload.items() if k not in _RESERVED_FIELDS}
        return DoneFrame(final_text=final_text, side_payload=side_payload)

    content = payload.get("content")
    if isinstance(content, str) and content:
        return ContentFrame(text=content)

    return None


class SseDecoder:
    """Incremental Server-Sent Events parser.

    Feed it lines with the terminators already stripped; it returns the
    data of every event completed by that line.
    """

    def __init__(self) -> None:
        self._data_lines: list[str] = []

    def feed_line(self, line: str) -> list[str]:
        if line == "":
            if not self._data_lines:
                return []
            data = "\n".join(self._data_lines)
            self._data_lines = []
            return [data]

        if line.startswith(":"):
            return []

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        # event, id and retry are valid fields but carry nothing we use
        if name == "data":
            self._data_lines.append(value)
        return []

    @property
    def pending(self) -> bool:
        return bool(self._data_lines)

    def reset(self) -> None:
        # An unterminated event at end of stream is discarded, as EventSource does
        self._data_lines = []


def iter_events(text: str) -> Iterator[str]:
    decoder = SseDecoder()
    for line in text.splitlines():
        yield from decoder.feed_line(line)
    yield from decoder.feed_line("")


def decode_record(raw: str) -> Frame | None:
    """Decode one complete raw record such as ``'data: {...}\\n\\n'``."""
    events = list(iter_events(raw))
    if not events:
        return None
    if len(events) > 1:
        raise MalformedFrame(f"Expected one record, found {len(events)}")
    return decode_payload(events[0])
