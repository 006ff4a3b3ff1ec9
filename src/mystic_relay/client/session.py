from __future__ import annotations

import asyncio
from contextlib import aclosing
from enum import Enum

from loguru import logger

from mystic_relay.client.connection import ConnectionSlot, Connector, FrameStream
from mystic_relay.client.messages import MessageStore, Role
from mystic_relay.errors import MalformedFrame, TransportLost
from mystic_relay.frames import ContentFrame, DoneFrame, ErrorFrame, Frame
from mystic_relay.side_payload import describe_side_payload
from mystic_relay.system_prompt import GREETING_QUESTION

ERROR_FALLBACK_MESSAGE = "The spirits are disturbed... I cannot see clearly at this moment."
MALFORMED_FRAME_MESSAGE = "The spirits are confused..."
TRANSPORT_LOST_MESSAGE = "The connection to the spirit realm was lost..."


class SessionState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"


def _report_crash(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    ex = task.exception()
    if ex is not None:
        logger.opt(exception=ex).error(f"Task {task.get_name()} failed")


def _spawn(coro, name: str) -> asyncio.Task:
    task = asyncio.create_task(coro, name=name)
    task.add_done_callback(_report_crash)
    return task


class ClientSession:
    """Client side of the fortune stream.

    At most one stream is open at a time: every new request closes the
    previous connection before opening its own, and transitions are
    serialized so rapid resubmission cannot interleave two opens. The
    connect itself runs inside the reader task, so no transition ever
    waits on the network. Frames are read by that single reader task in
    arrival order.

    The lucky-numbers announcement that follows a finished answer is a
    separate delayed task. It is cancelled whenever the session moves on
    (new request, new conversation, teardown), so it never lands in a
    conversation it does not belong to.
    """

    def __init__(
        self,
        connector: Connector,
        store: MessageStore | None = None,
        *,
        side_payload_delay: float = 1.0,
        greeting_question: str = GREETING_QUESTION,
    ):
        self._connector = connector
        self._store = store if store is not None else MessageStore()
        self._side_payload_delay = side_payload_delay
        self._greeting_question = greeting_question
        self._slot = ConnectionSlot()
        self._transition = asyncio.Lock()
        self._reader: asyncio.Task | None = None
        self._announcement: asyncio.Task | None = None
        self._state = SessionState.IDLE
        self._buffer = ""
        self._closed = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def store(self) -> MessageStore:
        return self._store

    @property
    def is_loading(self) -> bool:
        return self._state is SessionState.STREAMING

    @property
    def connection_open(self) -> bool:
        return self._slot.is_open

    @property
    def buffer(self) -> str:
        return self._buffer

    async def start_conversation(self) -> None:
        """Clear the transcript and stream the greeting."""
        async with self._transition:
            self._ensure_usable()
            await self._halt()
            self._store.reset()
            await self._begin(self._greeting_question)

    async def submit(self, question: str) -> bool:
        if not question.strip():
            return False
        async with self._transition:
            self._ensure_usable()
            await self._halt()
            self._store.append(Role.USER, question)
            await self._begin(question)
        return True

    async def end_conversation(self) -> None:
        async with self._transition:
            await self._halt()
            self._store.reset()
            self._state = SessionState.IDLE

    async def aclose(self) -> None:
        """Tear the session down. No frame is processed after this returns."""
        async with self._transition:
            self._closed = True
            await self._halt()

    async def wait(self) -> None:
        """Wait for the current stream and any pending announcement to finish."""
        while True:
            # The reader schedules the announcement, so look again after each wait
            pending = [t for t in (self._reader, self._announcement) if t is not None and not t.done()]
            if not pending:
                return
            await asyncio.wait(pending)

    def _ensure_usable(self) -> None:
        if self._closed:
            raise RuntimeError("Session is closed")

    async def _halt(self) -> None:
        pending = [t for t in (self._reader, self._announcement) if t is not None and not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            # Only a cancellation of the caller itself escapes asyncio.wait
            await asyncio.wait(pending)
        self._reader = None
        self._announcement = None
        await self._slot.close()
        if self._state is SessionState.STREAMING:
            # The partial answer stays in the transcript as abandoned content
            self._store.seal()
            self._state = SessionState.IDLE

    async def _begin(self, question: str) -> None:
        self._store.open_responder()
        self._buffer = ""
        self._state = SessionState.STREAMING

        stream = await self._slot.replace(self._connector.connect(question))
        self._reader = _spawn(self._consume(stream), "fortune-reader")

    async def _consume(self, stream: FrameStream) -> None:
        try:
            # Opened by the reader so that halting cancels a pending connect too
            await stream.open()
            async with aclosing(stream.frames()) as frames:
                async for frame in frames:
                    await self._apply(frame)
                    if self._state is not SessionState.STREAMING:
                        break
            if self._state is SessionState.STREAMING:
                raise TransportLost("Stream ended before a terminal frame")
        except MalformedFrame as ex:
            await self._fail(MALFORMED_FRAME_MESSAGE, ex)
        except TransportLost as ex:
            await self._fail(TRANSPORT_LOST_MESSAGE, ex)
        except Exception as ex:
            logger.exception(f"Fortune reader crashed: {ex}")
            await self._fail(ERROR_FALLBACK_MESSAGE, ex)

    async def _apply(self, frame: Frame) -> None:
        if self._state is not SessionState.STREAMING:
            logger.warning(f"Ignoring {type(frame).__name__} received after the stream ended")
            return

        if isinstance(frame, ContentFrame):
            self._buffer += frame.text
            self._store.append_to_responder(frame.text)
        elif isinstance(frame, DoneFrame):
            await self._finish(frame)
        elif isinstance(frame, ErrorFrame):
            await self._fail(frame.message or ERROR_FALLBACK_MESSAGE, None)

    async def _finish(self, frame: DoneFrame) -> None:
        # The server's final text wins over whatever was assembled locally
        self._store.replace_responder(frame.final_text)
        self._store.seal()
        await self._slot.close()
        self._state = SessionState.DONE

        announcement = describe_side_payload(frame.side_payload)
        if announcement is not None:
            self._announcement = _spawn(self._announce(announcement), "lucky-numbers-announcement")

    async def _announce(self, text: str) -> None:
        await asyncio.sleep(self._side_payload_delay)
        self._store.append(Role.RESPONDER, text)

    async def _fail(self, message: str, ex: Exception | None) -> None:
        if ex is not None:
            logger.warning(f"Fortune stream failed: {type(ex).__name__}: {ex}")
        else:
            logger.warning(f"Fortune stream reported an error: {message}")
        await self._slot.close()
        self._state = SessionState.FAILED
        if self._store.has_open_responder:
            self._store.replace_responder(message)
            self._store.seal()
