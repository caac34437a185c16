# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
Reference echo server for the benchmark.

Replies to every ``{"c": n}`` with ``{"c": n, "ts": <server ms>}`` so the
benchmark can be run and tested without a real target.
"""

import argparse
import asyncio
import json
import logging
from typing import Optional

import websockets
from websockets.exceptions import ConnectionClosed

from ..models import now_ms
from ..protocol import HEARTBEAT_SEQUENCE

logger = logging.getLogger(__name__)


class EchoServer:
    """
    A websocket server that timestamps and echoes request sequences.

    Example:
        >>> server = EchoServer(port=0)
        >>> await server.start()
        >>> print(server.url)  # ws://127.0.0.1:<port>
        >>> await server.stop()
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 8080, greet: bool = True):
        self.host = host
        self.port = port

        # Send a sequence-0 response as soon as a client connects
        self.greet = greet

        self.connections = 0
        self.messages = 0
        self._server = None

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    async def handler(self, websocket) -> None:
        self.connections += 1
        try:
            if self.greet:
                await websocket.send(json.dumps({"c": HEARTBEAT_SEQUENCE, "ts": now_ms()}))
            async for message in websocket:
                self.messages += 1
                try:
                    sequence = json.loads(message)["c"]
                except (ValueError, KeyError, TypeError):
                    logger.debug("ignoring malformed message: %r", message)
                    continue
                await websocket.send(json.dumps({"c": sequence, "ts": now_ms()}))
        except ConnectionClosed:
            pass

    async def start(self) -> None:
        self._server = await websockets.serve(self.handler, self.host, self.port)
        if self.port == 0:
            self.port = self._server.sockets[0].getsockname()[1]
        logger.info("echo server listening on %s", self.url)

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def serve_forever(self) -> None:
        await self.start()
        try:
            await asyncio.Future()
        finally:
            await self.stop()


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Echo server for the websocket benchmark")
    parser.add_argument("--host", default="127.0.0.1", help="Address to bind")
    parser.add_argument("--port", "-p", type=int, default=8080, help="Port to bind")
    parser.add_argument("--no-greet", action="store_true", help="Do not send a sequence 0 response on connect")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    server = EchoServer(args.host, args.port, greet=not args.no_greet)
    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
