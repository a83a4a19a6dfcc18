# chatactor

A small one-to-one chat server that speaks WebSocket, built on aiohttp and
asyncio. One `ServerActor` keeps track of which users are connected and routes
chat messages between them; every connection gets its own `UserActor`, which
reads the client's frames, writes messages back to it and pings it.

## Installing

```
pip install .
```

For running the tests:

```
pip install .[test]
pytest
```

## Running the server

```
chatactor
```

Options:

- `--host HOST` — address to listen on (default: all interfaces)
- `--port PORT` — port to listen on (default: 8080)

The same entry point is `chatactor.app.main`, which also runs with
`python -m chatactor.app`.

The server accepts WebSocket connections on `/ws`. A client sends its user id
in the `Phone-Number` request header; a request without it gets
`400 Bad Request` with the body `Phone-Number is required`.

## Talking to it

Send a chat message to another connected user:

```json
{"type": "chat_message", "recipient": "bob", "text": "Hello there!"}
```

The recipient receives:

```json
{"type": "incoming_message", "sender": "alice", "text": "Hello there!"}
```

Keys of client messages are matched case-insensitively, and `type`,
`recipient` and `text` must be strings when present. Outgoing messages leave
out empty fields and escape `<`, `>` and `&` as `\u003c`, `\u003e`, `\u0026`.

- A chat to a user who is not connected is dropped without notice.
- A client message of any other type is logged and ignored, as is a frame
  that is not a valid message.
- A frame longer than 512 bytes ends the connection.
- The server sends a ping every 50 seconds. The read deadline is 60 seconds
  from the connection and is pushed back 60 seconds by each pong; a
  connection whose deadline passes is closed.
- When a connection ends, its user is unregistered from the server actor.

## Using it from code

```python
from aiohttp import web

from chatactor.app import create_app
from chatactor.server_actor import ServerActor

server_actor = ServerActor()
web.run_app(create_app(server_actor), port=8080)
```

`create_app(server_actor)` returns an `aiohttp.web.Application` with the `/ws`
route. The server actor's loop is started with the application and stopped
when it shuts down.

### `chatactor.server_actor.ServerActor`

- `await start()` — processes the inbox until stopped; on stopping it sends
  `None` to every registered user inbox and forgets all users.
- `await send_message(msg)` — queues a `ServerMessage`; raises `RuntimeError`
  once the actor has been stopped.
- `await stop()` — stops after the messages already queued; raises
  `RuntimeError` if called twice.
- `handle_server_message(msg)` — applies one message: `register_user`,
  `unregister_user` (both resolve `msg.resp` if given) or `chat`, which
  forwards to the user whose id is `msg.user_id`.
- `connected_user_ids()` — the ids of the registered users, sorted.

### `chatactor.user_actor`

- `UserActor(server_actor, conn, user_id, *, read_timeout=60.0, ping_interval=50.0)`
  with `start()`, `read_pump()`, `write_pump()` and `handle_user_message(msg)`.
  `conn` is an aiohttp `WebSocketResponse` or anything with the same
  `receive`, `send_str`, `ping`, `pong` and `close` coroutines.
- `parse_client_message(data)` returns a `ClientMessage`
  (`type`, `recipient`, `text`) or raises `ValueError`.
- `ServerOutgoingMessage(type, sender, text, status).to_json()` gives the JSON
  line sent to a client.

### `chatactor.messages`

`MessageType` (`connect`, `disconnect`, `chat`, `register_user`,
`unregister_user`), the `UserMessage` and `ServerMessage` dataclasses, and
`get_string_from_raw_message(raw, key)`, which returns the string under `key`
in a JSON object or `""`.

## What it does not do

- There is no authentication: the `Phone-Number` header is taken as the user
  id as it stands, and a second connection with the same id replaces the first
  in the routing table.
- Messages are not stored: nothing is kept for users who are offline, and the
  sender gets no acknowledgement or error for a dropped message.
- There are no presence notifications, group chats or message history.