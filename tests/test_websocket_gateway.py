"""End-to-end realtime chat over the WebSocket gateway."""

import uuid

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from chatdesk.core.deps import get_db, get_presence_store
from chatdesk.core.websocket import ConnectionManager
from chatdesk.main import app
from chatdesk.services.chat_gateway import WS_CLOSE_UNAUTHORIZED


@pytest.fixture
def ws_client(db, presence):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_presence_store] = lambda: presence
    with TestClient(app) as tc:
        yield tc
    app.dependency_overrides.clear()


def _open_chat(tc: TestClient, tenant, visitor_id: str) -> dict:
    resp = tc.post(
        "/chats",
        json={"visitorId": visitor_id, "visitorName": "Wes"},
        headers={"X-Widget-Key": tenant.company.widget_key},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _send(ws, event: str, data: dict | None = None, frame_id: str = "c1") -> dict:
    ws.send_json({"event": event, "data": data or {}, "id": frame_id})
    return ws.receive_json()


def test_unauthenticated_socket_rejected(ws_client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with ws_client.websocket_connect("/ws/chat") as ws:
            ws.receive_text()
    assert exc.value.code == WS_CLOSE_UNAUTHORIZED

    with pytest.raises(WebSocketDisconnect) as exc:
        with ws_client.websocket_connect("/ws/chat?token=not-a-jwt") as ws:
            ws.receive_text()
    assert exc.value.code == WS_CLOSE_UNAUTHORIZED

    with pytest.raises(WebSocketDisconnect) as exc:
        with ws_client.websocket_connect("/ws/chat?widget_key=widget_unknown") as ws:
            ws.receive_text()
    assert exc.value.code == WS_CLOSE_UNAUTHORIZED


def test_visitor_and_agent_exchange_messages(ws_client, db, tenant, make_user):
    agent, agent_headers = make_user(tenant.company.id, "agent", first_name="Alex")
    token = agent_headers["Authorization"].split(" ", 1)[1]
    chat = _open_chat(ws_client, tenant, "visitor-e2e")
    assert chat["visitor_name"] == "Wes"
    key = tenant.company.widget_key

    with ws_client.websocket_connect(f"/ws/chat?token={token}") as agent_ws:
        # Connected agents show up for the widget
        resp = ws_client.get("/widget/online-agents", params={"widget_key": key})
        assert [a["id"] for a in resp.json()] == [str(agent.id)]

        ack = _send(agent_ws, "join_chat", {"chatId": chat["id"]}, "a1")
        assert ack == {"event": "ack", "id": "a1", "data": {"success": True, "chat_id": chat["id"]}}

        with ws_client.websocket_connect(
            f"/ws/chat?widget_key={key}&visitor_id=visitor-e2e"
        ) as visitor_ws:
            ack = _send(visitor_ws, "join_chat", {"chatId": chat["id"]}, "v1")
            assert ack["data"]["success"] is True

            # Every room member gets new_message, the sender included, before the ack
            echo = _send(visitor_ws, "send_message", {"chatId": chat["id"], "content": "Hello?"}, "v2")
            assert echo["event"] == "new_message"
            assert echo["data"]["content"] == "Hello?"
            ack = visitor_ws.receive_json()
            assert ack["id"] == "v2"
            assert ack["data"]["success"] is True
            assert ack["data"]["message"]["sender_type"] == "visitor"
            assert ack["data"]["message"]["id"] == echo["data"]["id"]

            event = agent_ws.receive_json()
            assert event["event"] == "new_message"
            assert event["data"]["content"] == "Hello?"
            assert event["data"]["chat_id"] == chat["id"]

            # First visitor message activates the chat and leaves the queue
            db.expire_all()
            resp = ws_client.get(f"/chats/{chat['id']}", headers=agent_headers)
            assert resp.json()["status"] == "active"
            resp = ws_client.get("/chats/queue", headers=agent_headers)
            assert resp.json() == []

            echo = _send(
                agent_ws,
                "send_message",
                {"chatId": chat["id"], "content": "Hi, Alex here", "messageType": "text"},
                "a2",
            )
            assert echo["event"] == "new_message"
            ack = agent_ws.receive_json()
            assert ack["id"] == "a2"
            assert ack["data"]["message"]["sender_id"] == str(agent.id)
            assert ack["data"]["message"]["message_type"] == "text"

            event = visitor_ws.receive_json()
            assert event["event"] == "new_message"
            assert event["data"]["sender_type"] == "agent"

            # Typing skips the sender
            ack = _send(agent_ws, "typing", {"chatId": chat["id"], "isTyping": True}, "a3")
            assert ack == {"event": "ack", "id": "a3", "data": {"success": True}}
            event = visitor_ws.receive_json()
            assert event["event"] == "typing"
            assert event["data"]["sender_type"] == "agent"
            assert event["data"]["is_typing"] is True

        resp = ws_client.post(
            f"/chats/{chat['id']}/assign",
            json={"agentId": str(agent.id)},
            headers=tenant.headers,
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "assigned"

    db.expire_all()
    resp = ws_client.get(f"/messages/chat/{chat['id']}", headers=agent_headers)
    assert [m["content"] for m in resp.json()["items"]] == ["Hello?", "Hi, Alex here"]


def test_snake_case_event_payloads_still_accepted(ws_client, tenant):
    chat = _open_chat(ws_client, tenant, "visitor-snake")

    with ws_client.websocket_connect(f"/ws/chat?token={tenant.token}") as ws:
        ack = _send(ws, "join_chat", {"chat_id": chat["id"]}, "s1")
        assert ack["data"] == {"success": True, "chat_id": chat["id"]}

        echo = _send(ws, "send_message", {"chat_id": chat["id"], "content": "snake"}, "s2")
        assert echo["event"] == "new_message"
        ack = ws.receive_json()
        assert ack["id"] == "s2"
        assert ack["data"]["message"]["content"] == "snake"

        ack = _send(ws, "leave_chat", {"chatId": chat["id"]}, "s3")
        assert ack["data"] == {"success": True, "chat_id": chat["id"]}

        # Out of the room: only the ack comes back
        ack = _send(ws, "send_message", {"chatId": chat["id"], "content": "alone"}, "s4")
        assert ack["event"] == "ack"
        assert ack["id"] == "s4"


def test_visitor_cannot_join_someone_elses_chat(ws_client, tenant):
    chat = _open_chat(ws_client, tenant, "visitor-owner")
    key = tenant.company.widget_key

    with ws_client.websocket_connect(f"/ws/chat?widget_key={key}&visitor_id=visitor-other") as ws:
        ack = _send(ws, "join_chat", {"chat_id": chat["id"]})
        assert ack["data"] == {"error": "Not a participant of this chat"}

        ack = _send(ws, "send_message", {"chat_id": chat["id"], "content": "Let me in"})
        assert ack["data"] == {"error": "Not a participant of this chat"}


def test_cross_tenant_chat_rejected(ws_client, tenant, other_tenant):
    chat = _open_chat(ws_client, tenant, "visitor-acme")

    with ws_client.websocket_connect(f"/ws/chat?token={other_tenant.token}") as ws:
        ack = _send(ws, "join_chat", {"chat_id": chat["id"]})
        assert ack["data"] == {"error": "Access denied to this chat"}

        ack = _send(ws, "join_chat", {"chat_id": str(uuid.uuid4())})
        assert ack["data"] == {"error": "Chat not found"}


def test_bad_frames_get_error_acks(ws_client, tenant):
    with ws_client.websocket_connect(f"/ws/chat?token={tenant.token}") as ws:
        ws.send_text("ping")
        assert ws.receive_text() == "pong"

        ack = _send(ws, "ping", frame_id="p1")
        assert ack == {"event": "ack", "id": "p1", "data": {"pong": True}}

        ws.send_text("{not json")
        assert ws.receive_json()["data"] == {"error": "Invalid JSON"}

        ws.send_json(["not", "an", "object"])
        assert ws.receive_json()["data"] == {"error": "Invalid frame"}

        ack = _send(ws, "teleport")
        assert ack["data"] == {"error": "Unknown event: teleport"}

        ack = _send(ws, "join_chat", {"chat_id": "not-a-uuid"})
        assert ack["data"] == {"error": "Invalid payload"}

        ack = _send(ws, "send_message", {"chat_id": str(uuid.uuid4()), "content": "   "})
        assert ack["data"] == {"error": "Message content is required"}


@pytest.mark.asyncio
async def test_connection_manager_tracks_agent_connections():
    connections = ConnectionManager()

    class FakeSocket:
        def __init__(self):
            self.sent = []

        async def send_text(self, text):
            self.sent.append(text)

    from chatdesk.core.websocket import AGENT, ChatConnection, chat_room

    company_id, user_id = uuid.uuid4(), uuid.uuid4()
    first = ChatConnection(websocket=FakeSocket(), kind=AGENT, company_id=company_id, user_id=user_id)
    second = ChatConnection(websocket=FakeSocket(), kind=AGENT, company_id=company_id, user_id=user_id)

    await connections.register(first)
    await connections.register(second)
    assert connections.get_agent_connection_count(user_id) == 2

    room = chat_room(uuid.uuid4())
    await connections.join(first, room)
    await connections.join(second, room)
    await connections.broadcast(room, {"event": "typing"}, exclude=first)
    assert first.websocket.sent == []
    assert len(second.websocket.sent) == 1

    assert await connections.disconnect(first) == 1
    assert await connections.disconnect(second) == 0
    assert connections.get_total_connections() == 0
