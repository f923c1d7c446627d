# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Integration tests for socket channels."""

from fastapi.testclient import TestClient

from livecompanion.main import create_app

CHANNEL_EXTENSION = """
from livecompanion.extensions import BaseExtension


class ChannelExtension(BaseExtension):
    def init(self):
        self.api.register_channel("echo", self.echo)
        self.api.register_channel("boom", self.boom)
        self.api.register_route("POST", "/announce", self.announce)

    async def echo(self, connection, data):
        await connection.send("echo", data)

    def boom(self, connection, data):
        raise ValueError("channel handler failed")

    async def announce(self, request):
        delivered = await self.api.broadcast("announce", {"text": "hello"})
        return {"delivered": delivered}
"""


class TestChannels:
    """Tests for the /ws endpoint with extension handlers."""

    def test_error_isolated_to_sender(self, app_settings, write_extension):
        write_extension(
            "chat-ext",
            code=CHANNEL_EXTENSION,
            permissions=["channels", "broadcast", "routes"],
        )
        with TestClient(create_app(app_settings)) as client:
            with client.websocket_connect("/ws") as ws_a, client.websocket_connect("/ws") as ws_b:
                ws_a.send_json({"event": "echo", "data": "a"})
                assert ws_a.receive_json() == {"event": "echo", "data": "a"}
                ws_b.send_json({"event": "echo", "data": "b"})
                assert ws_b.receive_json() == {"event": "echo", "data": "b"}
                assert client.get("/health").json()["channel_connections"] == 2

                ws_a.send_json({"event": "boom", "data": {}})
                assert ws_a.receive_json() == {
                    "event": "plugin:error",
                    "data": {
                        "plugin": "chat-ext",
                        "event": "boom",
                        "error": "channel handler failed",
                    },
                }

                client.post(
                    "/api/v1/automation/events",
                    json={"event_type": "chat", "data": {"username": "bob", "message": "hi"}},
                )

                # B never saw the error; its next message is the live event
                message_b = ws_b.receive_json()
                assert message_b["event"] == "live:chat"
                assert message_b["data"]["message"] == "hi"
                assert ws_a.receive_json()["event"] == "live:chat"

    def test_extension_broadcast_is_prefixed(self, app_settings, write_extension):
        write_extension(
            "chat-ext",
            code=CHANNEL_EXTENSION,
            permissions=["channels", "broadcast", "routes"],
        )
        with TestClient(create_app(app_settings)) as client:
            with client.websocket_connect("/ws") as ws:
                ws.send_json({"event": "echo", "data": None})
                ws.receive_json()

                response = client.post("/ext/chat-ext/announce")

                assert response.json() == {"delivered": 1}
                assert ws.receive_json() == {
                    "event": "chat-ext:announce",
                    "data": {"text": "hello"},
                }

    def test_malformed_messages_ignored(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("not json")
            ws.send_json({"data": "no event name"})
            ws.send_json({"event": "nobody-listens"})

            client.post("/api/v1/automation/events", json={"event_type": "follow", "data": {}})

            assert ws.receive_json()["event"] == "live:follow"

    def test_broadcast_action_reaches_clients(self, client):
        flow_id = client.post("/api/v1/flows", json={
            "name": "Alert",
            "trigger_type": "follow",
            "actions": [{
                "type": "channel:broadcast",
                "params": {"event": "alert", "data": {"text": "{username} followed"}},
            }],
        }).json()["id"]

        with client.websocket_connect("/ws") as ws:
            client.post(f"/api/v1/flows/{flow_id}/test", json={"data": {"username": "amy"}})

            assert ws.receive_json() == {"event": "alert", "data": {"text": "amy followed"}}
