import asyncio
from types import SimpleNamespace

import httpx
import openai

from mystic_relay.errors import TransportLost
from mystic_relay.providers.openai_provider import OpenAIStreamConsumer

LUCKY_NUMBERS = [3, 14, 27, 8, 91]

_OPENAI_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def text_chunk(text: str | None, finish_reason: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(choices=[
        SimpleNamespace(
            finish_reason=finish_reason,
            delta=SimpleNamespace(content=text, tool_calls=None),
        )
    ])


def stop_chunk() -> SimpleNamespace:
    return text_chunk(None, finish_reason="stop")


def rate_limit_error() -> openai.RateLimitError:
    return openai.RateLimitError(
        "Rate limit reached for gpt-4o-mini",
        response=httpx.Response(429, request=_OPENAI_REQUEST),
        body=None,
    )


def connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=_OPENAI_REQUEST)


def server_error() -> openai.InternalServerError:
    return openai.InternalServerError(
        "The server had an error while processing your request",
        response=httpx.Response(500, request=_OPENAI_REQUEST),
        body=None,
    )


class FakeCompletionStream:
    def __init__(self, chunks: list, error: Exception | None = None):
        self._chunks = chunks
        self._error = error
        self.closed = False

    def __aiter__(self):
        self._iter = iter(self._chunks)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            if self._error is not None:
                raise self._error
            raise StopAsyncIteration

    async def close(self) -> None:
        self.closed = True


class _FakeCompletions:
    def __init__(self, outcomes: list):
        self._outcomes = list(outcomes)
        self.calls: list[dict] = []
        self.streams: list[FakeCompletionStream] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, list):
            outcome = FakeCompletionStream(outcome)
        self.streams.append(outcome)
        return outcome


class FakeOpenAIClient:
    """Each ``create`` call consumes the next outcome; the last one repeats.

    An outcome is a list of chunks, a FakeCompletionStream, or an exception to raise.
    """

    def __init__(self, *outcomes):
        self.completions = _FakeCompletions(list(outcomes))
        self.chat = SimpleNamespace(completions=self.completions)


def make_consumer(*outcomes, retry_attempts: int = 1) -> tuple[OpenAIStreamConsumer, FakeOpenAIClient]:
    client = FakeOpenAIClient(*outcomes)
    consumer = OpenAIStreamConsumer(
        "test-key",
        model="gpt-4o-mini",
        max_tokens=200,
        temperature=0.8,
        retry_attempts=retry_attempts,
        retry_min_wait=0,
        client=client,
    )
    return consumer, client


def fixed_lucky_numbers() -> dict:
    return {"luckyNumbers": list(LUCKY_NUMBERS)}


class FakeFrameStream:
    """Scripted FrameStream. Items are frames or exceptions raised in place.

    With ``hold=True`` the stream stays open after its items until closed.
    """

    def __init__(self, connector: "FakeConnector", question: str, items: list, *, open_error=None, hold=False):
        self._connector = connector
        self.question = question
        self._items = items
        self._open_error = open_error
        self._hold = hold
        self.opened = False
        self._closed = False
        self.yielded = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        await asyncio.sleep(0)
        if self._closed:
            raise TransportLost("closed before open")
        if self._open_error is not None:
            raise self._open_error
        self.opened = True
        self._connector.on_open(self)

    async def frames(self):
        for item in self._items:
            await asyncio.sleep(0)
            if isinstance(item, BaseException):
                raise item
            self.yielded += 1
            yield item
        if self._hold:
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        await asyncio.sleep(0)
        if not self._closed and self.opened:
            self._connector.on_close(self)
        self._closed = True


class FakeConnector:
    def __init__(
        self,
        *scripts,
        hold: bool = False,
        open_error: Exception | None = None,
        stream_cls: type[FakeFrameStream] = FakeFrameStream,
    ):
        self._scripts = list(scripts)
        self._stream_cls = stream_cls
        self._hold = hold
        self._open_error = open_error
        self.streams: list[FakeFrameStream] = []
        self.open_count = 0
        self.max_open = 0

    def connect(self, question: str) -> FakeFrameStream:
        items = self._scripts.pop(0) if len(self._scripts) > 1 else (self._scripts[0] if self._scripts else [])
        stream = self._stream_cls(self, question, list(items), open_error=self._open_error, hold=self._hold)
        self.streams.append(stream)
        return stream

    def on_open(self, stream: FakeFrameStream) -> None:
        self.open_count += 1
        self.max_open = max(self.max_open, self.open_count)

    def on_close(self, stream: FakeFrameStream) -> None:
        self.open_count -= 1
