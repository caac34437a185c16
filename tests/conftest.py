"""
Shared pytest fixtures for the websocket benchmark tests.

Servers listen on an ephemeral localhost port; policies are shrunk so a
burst that never completes resolves in a fraction of a second.
"""

import json
import socket

import pytest
import pytest_asyncio
import websockets
from websockets.exceptions import ConnectionClosed

from wsbench.connection import ClientConnection
from wsbench.models import now_ms
from wsbench.policy import CompletionPolicy, ReconnectPolicy
from wsbench.progress import ProgressCounter
from wsbench.server import EchoServer

FAST_COMPLETION = CompletionPolicy(stall_window=3, success_threshold=0.9, max_polls=10, poll_interval=0.01)
FAST_RECONNECT = ReconnectPolicy(initial_delay=0.01, max_delay=0.05, multiplier=2.0, jitter=0.0, max_attempts=5)


class ScriptedServer:
    """Websocket server driven by a test-supplied handler."""

    def __init__(self, handler):
        self._handler = handler
        self._server = None
        self.port = None
        self.connections = 0
        self.received = []

    @property
    def url(self) -> str:
        return f"ws://127.0.0.1:{self.port}"

    async def handler(self, websocket):
        self.connections += 1
        try:
            await self._handler(self, websocket)
        except ConnectionClosed:
            pass

    async def start(self):
        self._server = await websockets.serve(self.handler, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self):
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None


def reply(sequence: int) -> str:
    return json.dumps({"c": sequence, "ts": now_ms()})


async def silent(server, websocket):
    async for message in websocket:
        server.received.append(json.loads(message))


async def duplicating(server, websocket):
    async for message in websocket:
        sequence = json.loads(message)["c"]
        server.received.append(sequence)
        await websocket.send(reply(sequence))
        await websocket.send(json.dumps({"c": sequence, "ts": 0}))


async def close_first_connection(server, websocket):
    if server.connections == 1:
        await websocket.close()
        return
    async for message in websocket:
        await websocket.send(reply(json.loads(message)["c"]))


async def abort_first_connection(server, websocket):
    # Drops the TCP connection without a closing handshake
    if server.connections == 1:
        websocket.transport.abort()
        return
    async for message in websocket:
        await websocket.send(reply(json.loads(message)["c"]))


@pytest_asyncio.fixture
async def echo_server():
    server = EchoServer(port=0, greet=False)
    await server.start()
    yield server
    await server.stop()


@pytest_asyncio.fixture
async def scripted_server():
    """Factory fixture: ``await scripted_server(handler)`` returns a running server."""
    servers = []

    async def start(handler):
        server = ScriptedServer(handler)
        await server.start()
        servers.append(server)
        return server

    yield start
    for server in servers:
        await server.stop()


@pytest.fixture
def counters():
    return ProgressCounter(message="Connecting..."), ProgressCounter(message="Benchmarking...")


@pytest.fixture
def unused_url():
    """A websocket URL on a port nothing listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"ws://127.0.0.1:{port}"


@pytest.fixture
def policies():
    return {"completion": FAST_COMPLETION, "reconnect": FAST_RECONNECT}


@pytest_asyncio.fixture
async def make_client(counters, policies):
    """Factory fixture building ClientConnections with fast policies; closes them afterwards."""
    clients = []

    def make(url, slot=0, **kwargs):
        for name, value in policies.items():
            kwargs.setdefault(name, value)
        client = ClientConnection(slot, url, *counters, **kwargs)
        clients.append(client)
        return client

    yield make
    for client in clients:
        await client.close()


@pytest_asyncio.fixture
async def silent_server(scripted_server):
    return await scripted_server(silent)


@pytest_asyncio.fixture
async def duplicating_server(scripted_server):
    return await scripted_server(duplicating)


@pytest_asyncio.fixture
async def closing_server(scripted_server):
    return await scripted_server(close_first_connection)


@pytest_asyncio.fixture
async def aborting_server(scripted_server):
    return await scripted_server(abort_first_connection)


@pytest_asyncio.fixture
async def skewed_server(scripted_server):
    """Replies to every request with a server timestamp of 0."""

    async def handler(server, websocket):
        async for message in websocket:
            await websocket.send(json.dumps({"c": json.loads(message)["c"], "ts": 0}))

    return await scripted_server(handler)
