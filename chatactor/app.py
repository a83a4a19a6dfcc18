"""HTTP application that upgrades clients to WebSockets and starts user actors."""

from __future__ import annotations

import argparse
import asyncio
import logging

from aiohttp import web

from .server_actor import ServerActor
from .user_actor import READ_LIMIT, UserActor

log = logging.getLogger(__name__)

DEFAULT_PORT = 8080
USER_HEADER = "Phone-Number"


def create_app(server_actor: ServerActor) -> web.Application:
    """Build the application serving the chat WebSocket at /ws."""

    async def websocket_handler(request: web.Request) -> web.StreamResponse:
        user_id = request.headers.get(USER_HEADER, "")
        if not user_id:
            return web.Response(status=400, text=f"{USER_HEADER} is required\n")
        ws = web.WebSocketResponse(autoping=False, max_msg_size=READ_LIMIT)
        try:
            await ws.prepare(request)
        except web.HTTPException as exc:
            log.warning("WebSocket upgrade failed: %s", exc)
            raise
        log.info("New WebSocket connection for user: %s", user_id)
        await UserActor(server_actor, ws, user_id).start()
        return ws

    async def run_server_actor(app: web.Application):
        task = asyncio.create_task(server_actor.start())
        yield
        await server_actor.stop()
        await task

    app = web.Application()
    app.router.add_route("*", "/ws", websocket_handler)
    app.cleanup_ctx.append(run_server_actor)
    return app


def main(argv: list[str] | None = None) -> None:
    """Run the chat server."""
    parser = argparse.ArgumentParser(prog="chatactor", description="One-to-one WebSocket chat server.")
    parser.add_argument("--host", default=None, help="address to listen on (default: all)")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    log.info("Chat server starting on %s:%d", args.host or "", args.port)
    web.run_app(create_app(ServerActor()), host=args.host, port=args.port, print=None)


if __name__ == "__main__":
    main()