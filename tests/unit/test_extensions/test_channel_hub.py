# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Tests for socket channels."""

import pytest

from livecompanion.extensions.channels import ERROR_EVENT, ChannelConnection, ChannelHub


class Recorder:
    """Collects messages sent to a fake connection."""

    def __init__(self) -> None:
        self.messages: list[dict] = []

    async def __call__(self, message: dict) -> None:
        self.messages.append(message)


async def failing_sender(message: dict) -> None:
    raise ConnectionError("socket closed")


class TestChannelHub:
    """Tests for ChannelHub."""

    @pytest.mark.asyncio
    async def test_handler_error_goes_to_origin_only(self):
        hub = ChannelHub()
        a, b = Recorder(), Recorder()
        conn_a, conn_b = ChannelConnection(a), ChannelConnection(b)
        hub.connect(conn_a)
        hub.connect(conn_b)

        def boom(connection, data):
            raise ValueError("bad input")

        hub.register_handler("ext-a", "boom", boom)
        await hub.dispatch(conn_a, "boom", {})

        assert a.messages == [{
            "event": ERROR_EVENT,
            "data": {"plugin": "ext-a", "event": "boom", "error": "bad input"},
        }]
        assert b.messages == []

    @pytest.mark.asyncio
    async def test_later_handlers_bind_to_live_connections(self):
        hub = ChannelHub()
        recorder = Recorder()
        connection = ChannelConnection(recorder)
        hub.connect(connection)

        async def echo(conn, data):
            await conn.send("echo", data)

        hub.register_handler("ext-a", "echo", echo)

        assert await hub.dispatch(connection, "echo", {"n": 1}) == 1
        assert recorder.messages == [{"event": "echo", "data": {"n": 1}}]

    @pytest.mark.asyncio
    async def test_connect_binds_existing_handlers(self):
        hub = ChannelHub()
        seen = []
        hub.register_handler("ext-a", "ping", lambda conn, data: seen.append(data))

        connection = ChannelConnection(Recorder())
        hub.connect(connection)
        await hub.dispatch(connection, "ping", "x")

        assert seen == ["x"]

    @pytest.mark.asyncio
    async def test_unregister_extension(self):
        hub = ChannelHub()
        connection = ChannelConnection(Recorder())
        hub.connect(connection)
        hub.register_handler("ext-a", "ping", lambda conn, data: None)
        hub.register_handler("ext-b", "ping", lambda conn, data: None)

        assert hub.unregister_extension("ext-a") == 1
        assert hub.get_extension_channels("ext-a") == []
        assert await hub.dispatch(connection, "ping", None) == 1

    @pytest.mark.asyncio
    async def test_unknown_event_is_ignored(self):
        hub = ChannelHub()
        connection = ChannelConnection(Recorder())
        hub.connect(connection)
        assert await hub.dispatch(connection, "nothing", None) == 0

    @pytest.mark.asyncio
    async def test_broadcast_drops_failing_connections(self):
        hub = ChannelHub()
        recorder = Recorder()
        hub.connect(ChannelConnection(recorder))
        hub.connect(ChannelConnection(failing_sender))

        assert await hub.broadcast("alert", {"x": 1}) == 1
        assert hub.connection_count == 1
        assert recorder.messages == [{"event": "alert", "data": {"x": 1}}]

    def test_disconnect_clears_bindings(self):
        hub = ChannelHub()
        connection = ChannelConnection(Recorder())
        hub.register_handler("ext-a", "ping", lambda conn, data: None)
        hub.connect(connection)

        hub.disconnect(connection)

        assert connection.bindings == {}
        assert hub.connection_count == 0
