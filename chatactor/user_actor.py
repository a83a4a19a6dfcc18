"""The actor that owns one user's WebSocket connection."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Iterable, Union

from aiohttp import WSMsgType

from .messages import MessageType, ServerMessage, UserMessage

log = logging.getLogger(__name__)

READ_LIMIT = 512
READ_TIMEOUT = 60.0
PING_INTERVAL = 50.0
WRITE_BUFFER = 10

_HTML_ESCAPES = {
    ord("<"): "\\u003c",
    ord(">"): "\\u003e",
    ord("&"): "\\u0026",
    0x2028: "\\u2028",
    0x2029: "\\u2029",
}


def _decode_string_fields(data: Union[bytes, str], fields: Iterable[str]) -> dict[str, str]:
    """Decode a JSON object into the given string fields, matching keys case-insensitively."""
    decoded = json.loads(data)
    values = dict.fromkeys(fields, "")
    if decoded is None:
        return values
    if not isinstance(decoded, dict):
        raise ValueError(f"cannot decode JSON {type(decoded).__name__} into an object")
    by_folded = {name.lower(): name for name in values}
    for key, value in decoded.items():
        field = by_folded.get(key.lower())
        if field is None or value is None:
            continue
        if not isinstance(value, str):
            raise ValueError(f"field {key!r} must be a string")
        values[field] = value
    return values


@dataclass
class ClientMessage:
    """A message sent by a client over its WebSocket."""

    type: str = ""
    recipient: str = ""
    text: str = ""


def parse_client_message(data: Union[bytes, str]) -> ClientMessage:
    """Decode a client frame; raises ValueError when it is not a valid message."""
    return ClientMessage(**_decode_string_fields(data, ("type", "recipient", "text")))


@dataclass
class ServerOutgoingMessage:
    """A message sent to a client over its WebSocket."""

    type: str
    sender: str = ""
    text: str = ""
    status: str = ""

    def to_json(self) -> str:
        """Encode as a JSON line, leaving out empty optional fields."""
        fields = {"type": self.type}
        if self.sender:
            fields["sender"] = self.sender
        if self.text:
            fields["text"] = self.text
        if self.status:
            fields["status"] = self.status
        encoded = json.dumps(fields, ensure_ascii=False, separators=(",", ":"))
        return encoded.translate(_HTML_ESCAPES) + "\n"


class UserActor:
    """Reads a user's frames, writes messages to them and talks to the server actor."""

    def __init__(
        self,
        server_actor,
        conn,
        user_id: str,
        *,
        read_timeout: float = READ_TIMEOUT,
        ping_interval: float = PING_INTERVAL,
    ) -> None:
        self.server_actor = server_actor
        self.conn = conn
        self.user_id = user_id
        self.read_timeout = read_timeout
        self.ping_interval = ping_interval
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.write_queue: asyncio.Queue = asyncio.Queue(maxsize=WRITE_BUFFER)
        self.quit = asyncio.Event()

    async def start(self) -> None:
        """Register, run until the connection ends, then unregister and close."""
        log.info("UserActor for %s started...", self.user_id)
        loop = asyncio.get_running_loop()
        resp = loop.create_future()
        await self.server_actor.send_message(
            ServerMessage(
                type=MessageType.REGISTER_USER,
                user_id=self.user_id,
                user_ref=self.inbox,
                resp=resp,
            )
        )
        try:
            await resp
        except Exception as exc:
            log.warning("Failed to register user %s: %s", self.user_id, exc)
            await self.conn.close()
            return

        pumps = [
            asyncio.create_task(self.read_pump()),
            asyncio.create_task(self.write_pump()),
        ]
        try:
            await self._process_inbox()
        except asyncio.CancelledError:
            for pump in pumps:
                pump.cancel()
            raise
        await self._shutdown(pumps)

    async def _process_inbox(self) -> None:
        while True:
            got, msg = await self._next_or_quit(self.inbox.get())
            if got:
                if msg is None:
                    self.quit.set()
                else:
                    await self.handle_user_message(msg)
            if self.quit.is_set():
                return

    async def _shutdown(self, pumps: list[asyncio.Task]) -> None:
        log.info("UserActor for %s stopping...", self.user_id)
        self.quit.set()
        resp = asyncio.get_running_loop().create_future()
        try:
            await self.server_actor.send_message(
                ServerMessage(type=MessageType.UNREGISTER_USER, user_id=self.user_id, resp=resp)
            )
            await resp
        except RuntimeError as exc:
            log.warning("Failed to unregister user %s: %s", self.user_id, exc)
        await self.conn.close()
        await asyncio.gather(*pumps, return_exceptions=True)

    async def _next_or_quit(
        self, waiter: Awaitable[Any], timeout: float | None = None
    ) -> tuple[bool, Any]:
        """Wait for ``waiter``, the quit signal or the timeout; report whether ``waiter`` won."""
        wanted = asyncio.ensure_future(waiter)
        quitting = asyncio.ensure_future(self.quit.wait())
        try:
            await asyncio.wait(
                {wanted, quitting}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            quitting.cancel()
            if not wanted.done():
                wanted.cancel()
        if wanted.done() and not wanted.cancelled():
            return True, wanted.result()
        return False, None

    async def read_pump(self) -> None:
        """Read client frames and route chat messages through the server actor."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.read_timeout
        try:
            while True:
                try:
                    frame = await asyncio.wait_for(
                        self.conn.receive(), timeout=max(0.0, deadline - loop.time())
                    )
                except asyncio.TimeoutError:
                    log.info("UserActor %s: Read error: read deadline exceeded", self.user_id)
                    break
                if frame.type == WSMsgType.PING:
                    await self.conn.pong(frame.data)
                    continue
                if frame.type == WSMsgType.PONG:
                    deadline = loop.time() + self.read_timeout
                    continue
                if frame.type not in (WSMsgType.TEXT, WSMsgType.BINARY):
                    if frame.type == WSMsgType.ERROR:
                        log.info("UserActor %s: Read error: %s", self.user_id, frame.data)
                    break
                data = frame.data.encode() if isinstance(frame.data, str) else frame.data
                if len(data) > READ_LIMIT:
                    log.info("UserActor %s: Read error: read limit exceeded", self.user_id)
                    break
                await self._handle_client_frame(data)
        finally:
            self.quit.set()
            log.info("UserActor %s: Read pump stopped.", self.user_id)

    async def _handle_client_frame(self, data: bytes) -> None:
        try:
            client_msg = parse_client_message(data)
        except ValueError as exc:
            log.info("UserActor %s: Failed to unmarshal client message: %s", self.user_id, exc)
            return
        if client_msg.type != "chat_message":
            log.info(
                "UserActor %s: Unhandled client message type: %s", self.user_id, client_msg.type
            )
            return
        payload = json.dumps(
            {"sender": self.user_id, "text": client_msg.text}, separators=(",", ":")
        ).encode()
        try:
            await self.server_actor.send_message(
                ServerMessage(
                    type=MessageType.USER_CHAT, user_id=client_msg.recipient, payload=payload
                )
            )
        except RuntimeError as exc:
            log.info("UserActor %s: Cannot forward chat: %s", self.user_id, exc)

    async def write_pump(self) -> None:
        """Write queued messages to the client and ping it at a fixed interval."""
        loop = asyncio.get_running_loop()
        next_ping = loop.time() + self.ping_interval
        try:
            while True:
                got, message = await self._next_or_quit(
                    self.write_queue.get(), timeout=max(0.0, next_ping - loop.time())
                )
                if got:
                    try:
                        await self.conn.send_str(message.to_json())
                    except (ConnectionError, RuntimeError) as exc:
                        log.info("UserActor %s: Write error: %s", self.user_id, exc)
                        return
                elif self.quit.is_set():
                    return
                else:
                    try:
                        await self.conn.ping()
                    except (ConnectionError, RuntimeError) as exc:
                        log.info("UserActor %s: Ping write error: %s", self.user_id, exc)
                        return
                    next_ping += self.ping_interval
        finally:
            log.info("UserActor %s: Write pump stopped.", self.user_id)

    async def handle_user_message(self, msg: UserMessage) -> None:
        """Turn an internal message into an outgoing client message."""
        if msg.type == MessageType.USER_CHAT:
            log.info(
                "UserActor %s: Received chat from %s: %s",
                self.user_id,
                msg.sender_id,
                msg.payload.decode("utf-8", "replace"),
            )
            try:
                text = _decode_string_fields(msg.payload, ("text",))["text"]
            except ValueError as exc:
                log.info("UserActor %s: Failed to unmarshal chat payload: %s", self.user_id, exc)
                return
            await self._enqueue(
                ServerOutgoingMessage(type="incoming_message", sender=msg.sender_id, text=text)
            )
        elif msg.type == MessageType.CONNECT:
            await self._enqueue(ServerOutgoingMessage(type="status", status="connected"))
        else:
            log.info("UserActor %s: Unknown message type: %s", self.user_id, msg.type)

    async def _enqueue(self, message: ServerOutgoingMessage) -> None:
        await self._next_or_quit(self.write_queue.put(message))