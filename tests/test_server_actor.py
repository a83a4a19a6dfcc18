import asyncio

import pytest

from chatactor.messages import MessageType, ServerMessage
from chatactor.server_actor import ServerActor


@pytest.mark.asyncio
async def test_register_acknowledges_and_records_user():
    server = ServerActor()
    resp = asyncio.get_running_loop().create_future()
    inbox = asyncio.Queue()
    server.handle_server_message(
        ServerMessage(MessageType.REGISTER_USER, user_id="alice", user_ref=inbox, resp=resp)
    )
    assert resp.done() and resp.result() is None
    assert server.connected_user_ids() == ["alice"]


@pytest.mark.asyncio
async def test_unregister_removes_user():
    server = ServerActor()
    server.handle_server_message(
        ServerMessage(MessageType.REGISTER_USER, user_id="alice", user_ref=asyncio.Queue())
    )
    server.handle_server_message(
        ServerMessage(MessageType.REGISTER_USER, user_id="bob", user_ref=asyncio.Queue())
    )
    resp = asyncio.get_running_loop().create_future()
    server.handle_server_message(
        ServerMessage(MessageType.UNREGISTER_USER, user_id="alice", resp=resp)
    )
    assert resp.done()
    assert server.connected_user_ids() == ["bob"]


@pytest.mark.asyncio
async def test_chat_is_forwarded_to_target_inbox():
    server = ServerActor()
    bob_inbox = asyncio.Queue()
    server.handle_server_message(
        ServerMessage(MessageType.REGISTER_USER, user_id="bob", user_ref=bob_inbox)
    )
    payload = b'{"sender":"alice","text":"hi"}'
    server.handle_server_message(
        ServerMessage(MessageType.USER_CHAT, user_id="bob", payload=payload)
    )
    delivered = bob_inbox.get_nowait()
    assert delivered.type == MessageType.USER_CHAT
    assert delivered.sender_id == "alice"
    assert delivered.payload == payload


@pytest.mark.asyncio
async def test_chat_to_unknown_user_is_dropped():
    server = ServerActor()
    bob_inbox = asyncio.Queue()
    server.handle_server_message(
        ServerMessage(MessageType.REGISTER_USER, user_id="bob", user_ref=bob_inbox)
    )
    server.handle_server_message(
        ServerMessage(MessageType.USER_CHAT, user_id="nobody", payload=b'{"sender":"alice"}')
    )
    assert bob_inbox.empty()
    assert server.connected_user_ids() == ["bob"]


@pytest.mark.asyncio
async def test_unknown_type_changes_nothing():
    server = ServerActor()
    server.handle_server_message(ServerMessage("bogus", user_id="alice"))
    assert server.connected_user_ids() == []


@pytest.mark.asyncio
async def test_running_actor_processes_messages_and_stops():
    server = ServerActor()
    task = asyncio.create_task(server.start())
    inbox = asyncio.Queue()
    resp = asyncio.get_running_loop().create_future()
    await server.send_message(
        ServerMessage(MessageType.REGISTER_USER, user_id="alice", user_ref=inbox, resp=resp)
    )
    assert await asyncio.wait_for(resp, 2) is None
    assert server.connected_user_ids() == ["alice"]

    await server.stop()
    await asyncio.wait_for(task, 2)
    assert inbox.get_nowait() is None
    assert server.connected_user_ids() == []


@pytest.mark.asyncio
async def test_send_and_stop_after_stop_raise():
    server = ServerActor()
    task = asyncio.create_task(server.start())
    await server.stop()
    await asyncio.wait_for(task, 2)
    with pytest.raises(RuntimeError):
        await server.send_message(ServerMessage(MessageType.REGISTER_USER, user_id="alice"))
    with pytest.raises(RuntimeError):
        await server.stop()