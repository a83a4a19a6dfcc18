"""The central actor that tracks connected users and routes chats."""

from __future__ import annotations

import asyncio
import logging

from .messages import MessageType, ServerMessage, UserMessage, get_string_from_raw_message

log = logging.getLogger(__name__)

_STOP = object()


class ServerActor:
    """Keeps the map of connected users and forwards chats between them."""

    def __init__(self) -> None:
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._connected_users: dict[str, asyncio.Queue] = {}
        self._stopping = False

    async def start(self) -> None:
        """Process inbox messages until stopped, then close every user inbox."""
        log.info("ServerActor started...")
        while True:
            msg = await self._inbox.get()
            if msg is _STOP:
                break
            self.handle_server_message(msg)
        log.info("ServerActor stopping...")
        for user_inbox in self._connected_users.values():
            user_inbox.put_nowait(None)
        self._connected_users.clear()

    def handle_server_message(self, msg: ServerMessage) -> None:
        """Apply one message to the actor's state."""
        if msg.type == MessageType.REGISTER_USER:
            log.info("ServerActor: Registering user %s", msg.user_id)
            self._connected_users[msg.user_id] = msg.user_ref
            _acknowledge(msg)
        elif msg.type == MessageType.UNREGISTER_USER:
            log.info("ServerActor: Unregistering user %s", msg.user_id)
            self._connected_users.pop(msg.user_id, None)
            _acknowledge(msg)
        elif msg.type == MessageType.USER_CHAT:
            target_inbox = self._connected_users.get(msg.user_id)
            if target_inbox is None:
                log.info("ServerActor: Target user %s not found. Message dropped.", msg.user_id)
                return
            log.info(
                "ServerActor: Forwarding chat from %s to %s",
                msg.payload.decode("utf-8", "replace"),
                msg.user_id,
            )
            target_inbox.put_nowait(
                UserMessage(
                    type=MessageType.USER_CHAT,
                    sender_id=get_string_from_raw_message(msg.payload, "sender"),
                    payload=msg.payload,
                )
            )
        else:
            log.info("ServerActor: Unknown message type: %s", msg.type)

    async def send_message(self, msg: ServerMessage) -> None:
        """Queue a message for the actor."""
        if self._stopping:
            raise RuntimeError("server actor is stopped")
        await self._inbox.put(msg)

    async def stop(self) -> None:
        """Ask the actor to stop after the messages already queued."""
        if self._stopping:
            raise RuntimeError("server actor is already stopped")
        self._stopping = True
        await self._inbox.put(_STOP)

    def connected_user_ids(self) -> list[str]:
        """Return the ids of the registered users, sorted."""
        return sorted(self._connected_users)


def _acknowledge(msg: ServerMessage) -> None:
    if msg.resp is not None and not msg.resp.done():
        msg.resp.set_result(None)