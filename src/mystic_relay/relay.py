from __future__ import annotations

import asyncio
from contextlib import aclosing
from typing import Any, AsyncIterator, Callable

from loguru import logger

from mystic_relay.errors import RateLimited, UpstreamFailure, UpstreamUnavailable
from mystic_relay.frames import ContentFrame, DoneFrame, ErrorFrame, encode_frame
from mystic_relay.logging_config import new_request_id
from mystic_relay.provider import UpstreamStreamConsumer
from mystic_relay.system_prompt import build_prompt, get_system_prompt

SERVICE_UNAVAILABLE_MESSAGE = "OpenAI service is unavailable"
RATE_LIMIT_MESSAGE = "Rate limit exceeded"
GENERIC_ERROR_MESSAGE = "Unknown error"

SidePayloadGenerator = Callable[[], dict[str, Any]]


class RelayEndpoint:
    """Turns one fortune request into a stream of encoded SSE records.

    Holds no per-request state, so one instance serves every request.
    """

    def __init__(
        self,
        consumer: UpstreamStreamConsumer,
        side_payload: SidePayloadGenerator,
        *,
        development: bool = False,
        system_prompt: str | None = None,
    ):
        self._consumer = consumer
        self._side_payload = side_payload
        self._development = development
        self._system_prompt = system_prompt if system_prompt is not None else get_system_prompt()

    def error_message(self, ex: BaseException) -> str:
        if isinstance(ex, UpstreamUnavailable):
            return SERVICE_UNAVAILABLE_MESSAGE
        if isinstance(ex, RateLimited):
            return RATE_LIMIT_MESSAGE
        if self._development:
            return str(ex) or type(ex).__name__
        return GENERIC_ERROR_MESSAGE

    async def stream_events(self, question: str | None, request_id: str | None = None) -> AsyncIterator[str]:
        log = logger.bind(request_id=request_id or new_request_id())
        prompt = build_prompt(question)
        log.debug(f"Fortune request: question_len={len(question or '')}")

        full_text = ""
        try:
            async with aclosing(self._consumer.stream(prompt, self._system_prompt)) as chunks:
                async for chunk in chunks:
                    full_text = chunk.accumulated
                    yield encode_frame(ContentFrame(text=chunk.text))
        except (asyncio.CancelledError, GeneratorExit):
            log.info(f"Client disconnected mid-stream after {len(full_text)} chars")
            raise
        except UpstreamFailure as ex:
            log.error(f"Fortune upstream failure: {type(ex).__name__}: {ex}")
            yield encode_frame(ErrorFrame(message=self.error_message(ex)))
            return
        except Exception as ex:
            log.exception(f"Fortune relay error: {ex}")
            yield encode_frame(ErrorFrame(message=self.error_message(ex)))
            return

        log.info(f"Fortune streamed: {len(full_text)} chars")
        yield encode_frame(DoneFrame(final_text=full_text, side_payload=self._side_payload()))
