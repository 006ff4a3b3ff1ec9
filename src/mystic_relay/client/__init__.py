from mystic_relay.client.connection import ConnectionSlot, Connector, FrameStream, HttpConnector, HttpFrameStream
from mystic_relay.client.messages import Message, MessageStore, Role
from mystic_relay.client.session import ClientSession, SessionState

__all__ = [
    "ClientSession",
    "ConnectionSlot",
    "Connector",
    "FrameStream",
    "HttpConnector",
    "HttpFrameStream",
    "Message",
    "MessageStore",
    "Role",
    "SessionState",
]
