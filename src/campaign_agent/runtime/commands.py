"""Commands consumed by the runtime loop, exactly once, in submission order."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UserMessage:
    text: str


@dataclass(frozen=True)
class Stop:
    pass


@dataclass(frozen=True)
class Resume:
    pass


Command = UserMessage | Stop | Resume
