# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
A single simulated benchmark client.

Each ClientConnection owns one websocket, keeps it alive across rounds,
sends a heartbeat, and times the requests of each round's burst.
"""

import asyncio
import enum
import logging
import random
from typing import List, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, InvalidHandshake

from .exceptions import ConnectionGaveUp, ProtocolError
from .history import RingBuffer
from .models import RequestRecord, monotonic_ms
from .policy import CompletionPolicy, ReconnectPolicy
from .progress import ProgressCounter
from .protocol import HEARTBEAT_SEQUENCE, decode_response, encode_request

logger = logging.getLogger(__name__)

# Failures while opening a websocket that are worth another attempt
CONNECT_ERRORS = (OSError, asyncio.TimeoutError, InvalidHandshake)


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
    CLOSED = "closed"
    GAVE_UP = "gave_up"


class ClientConnection:
    """
    One client slot of the benchmark population.

    Example:
        >>> client = ClientConnection(0, "ws://127.0.0.1:8080", connections, requests)
        >>> await client.connect()
        >>> timeline = await client.send_burst(100)
        >>> await client.close()
    """

    def __init__(
        self,
        slot: int,
        url: str,
        connection_progress: ProgressCounter,
        benchmark_progress: ProgressCounter,
        completion: Optional[CompletionPolicy] = None,
        reconnect: Optional[ReconnectPolicy] = None,
        heartbeat_interval: float = 5.0,
        open_timeout: float = 10.0,
        rng: Optional[random.Random] = None,
    ):
        self.slot = slot
        self.url = url
        self.connection_progress = connection_progress
        self.benchmark_progress = benchmark_progress
        self.completion = completion or CompletionPolicy()
        self.reconnect = reconnect or ReconnectPolicy()
        self.heartbeat_interval = heartbeat_interval
        self.open_timeout = open_timeout
        self._rng = rng or random.Random()

        # Reconnect whenever the socket drops; cleared by close()
        self.keep_alive = True
        self.state = ConnectionState.DISCONNECTED

        # Current round's requests, indexed by sequence number
        self.records: List[RequestRecord] = []

        self.connection_fails = 0
        self.connection_errors = 0

        # Successful requests in the current round
        self.count = 0
        self.history: RingBuffer[int] = RingBuffer(self.completion.stall_window)

        self._websocket = None
        self._reader_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    async def connect(self) -> None:
        """
        Open the websocket, retrying per the reconnect policy.

        Raises:
            ConnectionGaveUp: if the retry budget runs out first.
        """
        self.state = ConnectionState.CONNECTING
        attempts = 0

        while True:
            if not self.keep_alive:
                self.state = ConnectionState.DISCONNECTED
                return
            try:
                websocket = await websockets.connect(self.url, open_timeout=self.open_timeout)
                break
            except CONNECT_ERRORS as e:
                self.connection_fails += 1
                attempts += 1
                delay = self.reconnect.delay(attempts, self._rng)
                if delay is None:
                    self.state = ConnectionState.GAVE_UP
                    raise ConnectionGaveUp(self.slot, attempts) from e
                logger.debug("client %d connect failed (%s: %s), retrying in %.3fs", self.slot, type(e).__name__, e, delay)
                await asyncio.sleep(delay)

        if not self.keep_alive:
            # close() ran while the handshake was in flight
            await websocket.close()
            self.state = ConnectionState.DISCONNECTED
            return

        self._websocket = websocket
        self.state = ConnectionState.CONNECTED
        self.connection_progress.increment()
        logger.info("client %d connected after %d failed attempts", self.slot, attempts)

        self._heartbeat_task = asyncio.create_task(self._heartbeat(websocket))
        self._reader_task = asyncio.create_task(self._read(websocket))

    async def send_burst(self, num_requests: int) -> List[RequestRecord]:
        """
        Send ``num_requests`` sequential requests and wait for the round to finish.

        Returns the round's timeline once the completion policy fires. A client
        that is not connected returns an empty timeline immediately.
        """
        self.count = 0
        self.records = []
        self.history.clear()

        websocket = self._websocket
        if websocket is None or not self.connected:
            logger.warning("client %d is %s, skipping burst", self.slot, self.state.value)
            return self.records

        for sequence in range(num_requests):
            self.records.append(RequestRecord(sequence=sequence, start=monotonic_ms()))
            try:
                await websocket.send(encode_request(sequence))
            except ConnectionClosed as e:
                logger.warning("client %d lost its connection mid-burst at request %d: %s", self.slot, sequence, e)
                break

        return await self._wait_for_completion(num_requests)

    async def _wait_for_completion(self, expected: int) -> List[RequestRecord]:
        polls = 0
        while True:
            await asyncio.sleep(self.completion.poll_interval)
            polls += 1
            if self.completion.should_resolve(self.records, self.count, expected, self.history, polls):
                return self.records
            self.history.push(self.count)

    def _on_message(self, message) -> None:
        try:
            sequence, server_ts = decode_response(message)
        except ProtocolError as e:
            logger.debug("client %d discarded message: %s", self.slot, e)
            return

        if not 0 <= sequence < len(self.records):
            logger.debug("client %d discarded response for unknown request %d", self.slot, sequence)
            return

        if self.records[sequence].complete(server_ts, monotonic_ms()):
            self.count += 1
            self.benchmark_progress.increment()
        else:
            logger.debug("client %d discarded duplicate response for request %d", self.slot, sequence)

    async def _read(self, websocket) -> None:
        try:
            async for message in websocket:
                self._on_message(message)
        except ConnectionClosedError as e:
            self._on_error(e)
        else:
            self._on_close()

    async def _heartbeat(self, websocket) -> None:
        message = encode_request(HEARTBEAT_SEQUENCE)
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await websocket.send(message)
            except ConnectionClosed:
                return

    def _on_error(self, error: Exception) -> None:
        self.connection_errors += 1
        self.connection_progress.decrement()
        self._drop_transport(ConnectionState.ERROR)
        logger.warning("client %d connection error: %s", self.slot, error)
        if self.keep_alive:
            self._schedule_reconnect()

    def _on_close(self) -> None:
        self.connection_progress.decrement()
        self._drop_transport(ConnectionState.CLOSED)
        if self.keep_alive:
            logger.info("client %d closed by server, reconnecting", self.slot)
            self._schedule_reconnect()

    def _drop_transport(self, state: ConnectionState) -> None:
        self.state = state
        self._websocket = None
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

    def _schedule_reconnect(self) -> None:
        self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        try:
            await self.connect()
        except ConnectionGaveUp as e:
            logger.error("%s", e)

    async def close(self) -> None:
        """Stop reconnecting, stop the heartbeat and close the websocket."""
        self.keep_alive = False

        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
            self._reconnect_task = None

        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

        if self._websocket is not None:
            await self._websocket.close()

        if self._reader_task is not None:
            await self._reader_task
            self._reader_task = None

        if self.state is not ConnectionState.GAVE_UP:
            self.state = ConnectionState.DISCONNECTED
