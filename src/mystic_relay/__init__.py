"""Relay a streamed fortune-teller completion to clients over Server-Sent Events."""

__version__ = "0.1.0"
