"""Messages exchanged between the server actor and the user actors."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class MessageType(str, Enum):
    """Internal message types understood by the actors."""

    CONNECT = "connect"
    DISCONNECT = "disconnect"
    USER_CHAT = "chat"
    REGISTER_USER = "register_user"
    UNREGISTER_USER = "unregister_user"

    def __str__(self) -> str:
        return self.value


@dataclass
class UserMessage:
    """A message delivered to a user actor's inbox."""

    type: str
    sender_id: str = ""
    target_id: str = ""
    payload: bytes = b""
    resp: Optional[asyncio.Future] = None


@dataclass
class ServerMessage:
    """A message delivered to the server actor's inbox."""

    type: str
    user_id: str = ""
    user_ref: Optional[asyncio.Queue] = None
    payload: bytes = b""
    resp: Optional[asyncio.Future] = None


def get_string_from_raw_message(raw: Union[bytes, str], key: str) -> str:
    """Return the string stored under ``key`` in a JSON object, or "" if absent."""
    try:
        decoded = json.loads(raw)
    except (ValueError, TypeError):
        return ""
    if not isinstance(decoded, dict):
        return ""
    value = decoded.get(key)
    return value if isinstance(value, str) else ""