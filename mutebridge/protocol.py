"""Line codec for the peripheral's serial vocabulary.

Every message is a single ASCII token terminated by ``\\n``. Tokens are
written in canonical upper case and matched case-insensitively after
surrounding whitespace is trimmed. Anything outside the vocabulary decodes to
:class:`Unrecognized` instead of raising, so a garbled line can be answered
with ``UNKNOWN_COMMAND`` without disturbing the session.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Union


class Command(str, Enum):
    """Requests; ``IDENTIFY`` is the host's probe, the rest come from the peripheral."""

    MUTE = "MUTE"
    UNMUTE = "UNMUTE"
    GET_STATE = "GET_STATE"
    IDENTIFY = "IDENTIFY_ARDUINO"


class Response(str, Enum):
    """Results; ``IDENTIFY_ACK`` comes from the peripheral, the rest from the host."""

    MUTED = "MUTED"
    UNMUTED = "UNMUTED"
    ERROR = "ERROR"
    UNKNOWN_COMMAND = "UNKNOWN_COMMAND"
    IDENTIFY_ACK = "IDENTIFY_ACK"


@dataclass(frozen=True)
class Unrecognized:
    raw: str


Message = Union[Command, Response]
Decoded = Union[Command, Response, Unrecognized]

_VOCABULARY: Dict[str, Message] = {
    **{member.value: member for member in Command},
    **{member.value: member for member in Response},
}


def encode(message: Message) -> str:
    """Return the canonical wire token for *message*, without the newline."""

    if not isinstance(message, (Command, Response)):
        raise TypeError(f"cannot encode {message!r}")
    return message.value


def decode(text: str) -> Decoded:
    return _VOCABULARY.get(text.strip().upper(), Unrecognized(text))


def state_response(muted: bool) -> Response:
    """Map a backend mute flag onto the state report sent to the peripheral."""

    return Response.MUTED if muted else Response.UNMUTED
