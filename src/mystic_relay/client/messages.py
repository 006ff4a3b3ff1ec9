from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator


class Role(str, Enum):
    USER = "user"
    RESPONDER = "responder"


@dataclass
class Message:
    role: Role
    content: str


# (event, index, message); event is "append", "update" or "reset"
MessageListener = Callable[[str, int, Message | None], None]


class MessageStore:
    """Ordered conversation transcript.

    Messages are only ever appended. The one exception is the open responder
    message, which grows while its answer streams in and is sealed once the
    stream reaches a terminal frame.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._open_index: int | None = None
        self._listeners: list[MessageListener] = []

    def subscribe(self, listener: MessageListener) -> None:
        self._listeners.append(listener)

    def _notify(self, event: str, index: int, message: Message | None) -> None:
        for listener in self._listeners:
            listener(event, index, message)

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(Message(m.role, m.content) for m in self._messages)

    @property
    def last(self) -> Message | None:
        if not self._messages:
            return None
        m = self._messages[-1]
        return Message(m.role, m.content)

    @property
    def has_open_responder(self) -> bool:
        return self._open_index is not None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    def append(self, role: Role, content: str) -> int:
        self._messages.append(Message(role, content))
        index = len(self._messages) - 1
        self._notify("append", index, self._messages[index])
        return index

    def open_responder(self) -> int:
        self.seal()
        index = self.append(Role.RESPONDER, "")
        self._open_index = index
        return index

    def _open_message(self) -> tuple[int, Message]:
        if self._open_index is None:
            raise RuntimeError("No responder message is open")
        return self._open_index, self._messages[self._open_index]

    def append_to_responder(self, text: str) -> None:
        index, message = self._open_message()
        message.content += text
        self._notify("update", index, message)

    def replace_responder(self, text: str) -> None:
        index, message = self._open_message()
        message.content = text
        self._notify("update", index, message)

    def seal(self) -> None:
        self._open_index = None

    def reset(self) -> None:
        self._messages.clear()
        self._open_index = None
        self._notify("reset", -1, None)
