"""
Integration tests for the aiohttp server.

The app runs on an in-process test server; page visits and websocket
traffic go through a real aiohttp client.
"""

import asyncio
import re

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from procedure_app import __version__
from procedure_app.core.exceptions import ProcedureAppError
from procedure_app.web.server import SESSIONS_KEY, ServerThread, create_app

SESSION_RE = re.compile(r'data-session="([^"]+)"')


@pytest_asyncio.fixture
async def client(temp_config):
    async with TestClient(TestServer(create_app(temp_config))) as client:
        yield client


async def open_session(client):
    response = await client.get("/")
    assert response.status == 200
    html = await response.text()
    return SESSION_RE.search(html).group(1), html


async def next_frame(ws, frame_type="render", timeout=2.0):
    while True:
        frame = await asyncio.wait_for(ws.receive_json(), timeout)
        if frame["type"] == frame_type:
            return frame


class TestHttp:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status == 200
        assert await response.json() == {"status": "ok", "version": __version__, "sessions": 0}

    @pytest.mark.asyncio
    async def test_index_starts_a_session(self, client):
        session_id, html = await open_session(client)

        assert "You have not yet pressed X, Y, or Z" in html
        assert session_id in client.app[SESSIONS_KEY]

    @pytest.mark.asyncio
    async def test_every_visit_gets_its_own_session(self, client):
        first, _ = await open_session(client)
        second, _ = await open_session(client)

        assert first != second
        assert len(client.app[SESSIONS_KEY]) == 2

    @pytest.mark.asyncio
    async def test_head_does_not_start_a_session(self, client):
        response = await client.head("/")

        assert response.status == 405
        assert len(client.app[SESSIONS_KEY]) == 0

    @pytest.mark.asyncio
    async def test_websocket_unknown_session(self, client):
        response = await client.get("/ws?session=missing")

        assert response.status == 404


class TestWebsocket:
    @pytest.mark.asyncio
    async def test_key_press_renders_region(self, client):
        session_id, _ = await open_session(client)

        async with client.ws_connect(f"/ws?session={session_id}") as ws:
            await ws.send_json({"type": "key", "key": "b"})
            await ws.send_json({"type": "key", "key": "Y"})
            frame = await next_frame(ws)

        assert frame["regions"] == {"on-type": "You pressed Y!!!"}

    @pytest.mark.asyncio
    async def test_sync_port_round_trip(self, client):
        session_id, _ = await open_session(client)

        async with client.ws_connect(f"/ws?session={session_id}") as ws:
            await ws.send_json({"type": "input", "value": "Hello <there>"})
            await ws.send_json({"type": "click", "target": "port-sync-submit"})
            frame = await next_frame(ws)

        assert frame["regions"] == {
            "port-message": "Thanks for the message: Hello &lt;there&gt;"
        }

    @pytest.mark.asyncio
    async def test_shared_save_ports(self, client):
        session_id, _ = await open_session(client)

        async with client.ws_connect(f"/ws?session={session_id}") as ws:
            await ws.send_json({"type": "input", "value": "42"})
            await ws.send_json({"type": "click", "target": "number-save"})
            await ws.send_json({"type": "input", "value": "Bananas"})
            await ws.send_json({"type": "click", "target": "word-save"})
            await next_frame(ws)
            frame = await next_frame(ws)

        items = frame["regions"]["save-messages"]
        assert "<li>You saved a number: 42</li>" in items
        assert "<li>You saved a word: Bananas</li>" in items

    @pytest.mark.asyncio
    async def test_malformed_event_gets_error_frame(self, client):
        session_id, _ = await open_session(client)

        async with client.ws_connect(f"/ws?session={session_id}") as ws:
            await ws.send_str("not json")
            malformed = await next_frame(ws, "error")
            await ws.send_json({"type": "key"})
            missing_key = await next_frame(ws, "error")

        assert malformed["message"].startswith("Malformed event")
        assert "Key events require 'key'" in missing_key["message"]

    @pytest.mark.asyncio
    async def test_unhandled_event_gets_error_frame(self, client):
        session_id, _ = await open_session(client)

        async with client.ws_connect(f"/ws?session={session_id}") as ws:
            await ws.send_json({"type": "click", "target": "nowhere"})
            frame = await next_frame(ws, "error")

        assert frame == {
            "type": "error",
            "message": "Unhandled click event",
            "error_code": "VALIDATION_FAILED",
        }

    @pytest.mark.asyncio
    async def test_closing_websocket_ends_session(self, client):
        session_id, _ = await open_session(client)
        sessions = client.app[SESSIONS_KEY]

        async with client.ws_connect(f"/ws?session={session_id}") as ws:
            await ws.send_json({"type": "key", "key": "X"})
            await next_frame(ws)

        for _ in range(100):
            if session_id not in sessions:
                break
            await asyncio.sleep(0.01)
        assert session_id not in sessions


class TestServerThread:
    def test_start_and_stop(self, temp_config, unused_tcp_port):
        temp_config.host = "127.0.0.1"
        temp_config.port = unused_tcp_port
        server = ServerThread(temp_config).start_and_wait()
        try:
            assert server.is_alive()
        finally:
            server.stop()

        assert not server.is_alive()

    def test_port_in_use_is_reported(self, temp_config, unused_tcp_port):
        temp_config.host = "127.0.0.1"
        temp_config.port = unused_tcp_port
        first = ServerThread(temp_config).start_and_wait()
        try:
            with pytest.raises(ProcedureAppError) as exc_info:
                ServerThread(temp_config).start_and_wait()
            assert exc_info.value.error_code == "SERVER_START_FAILED"
        finally:
            first.stop()
