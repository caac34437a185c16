# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""Creates, drives and closes the whole client population."""

import asyncio
import logging
import time
from typing import Callable, List, Optional

from .connection import ClientConnection, ConnectionState
from .models import RequestRecord
from .policy import CompletionPolicy, ReconnectPolicy
from .progress import ProgressCounter

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[..., ClientConnection]


class ConnectionPool:
    """
    Grows the client population by ``connection_interval`` each round.

    Clients are created once per slot and reused by every later round.
    """

    def __init__(
        self,
        url: str,
        connection_interval: int,
        request_interval: int,
        connection_progress: ProgressCounter,
        benchmark_progress: ProgressCounter,
        completion: Optional[CompletionPolicy] = None,
        reconnect: Optional[ReconnectPolicy] = None,
        heartbeat_interval: float = 5.0,
        open_timeout: float = 10.0,
        connection_factory: ConnectionFactory = ClientConnection,
    ):
        self.url = url
        self.connection_interval = connection_interval
        self.request_interval = request_interval
        self.connection_progress = connection_progress
        self.benchmark_progress = benchmark_progress
        self.completion = completion
        self.reconnect = reconnect
        self.heartbeat_interval = heartbeat_interval
        self.open_timeout = open_timeout
        self.connection_factory = connection_factory

        self.clients: List[Optional[ClientConnection]] = []

        # One flag per slot up to the cumulative expected population
        self.present: List[bool] = []

        # Milliseconds taken by the last create_connections() call
        self.connection_time = 0.0

        self._populated = asyncio.Event()

    def expected_population(self, round_index: int) -> int:
        return self.connection_interval * (round_index + 1)

    def mark_present(self, slot: int) -> None:
        """Record that ``slot`` is connected and wake the ramp-up when none are missing."""
        self.present[slot] = True
        if all(self.present):
            self._populated.set()

    async def create_connections(self, round_index: int) -> None:
        """
        Add this round's clients and wait until every slot so far is present.

        A missing slot anywhere below the cumulative population blocks, not
        only the slots created by this call.

        Raises:
            ConnectionGaveUp: if a new client exhausts its reconnect budget.
        """
        existing = self.connection_interval * round_index
        cumulative = self.expected_population(round_index)

        if len(self.present) < cumulative:
            self.present.extend([False] * (cumulative - len(self.present)))
            self.clients.extend([None] * (cumulative - len(self.clients)))

        self._populated = asyncio.Event()
        start = time.perf_counter()

        async def open_slot(slot: int) -> None:
            client = self.connection_factory(
                slot,
                self.url,
                self.connection_progress,
                self.benchmark_progress,
                completion=self.completion,
                reconnect=self.reconnect,
                heartbeat_interval=self.heartbeat_interval,
                open_timeout=self.open_timeout,
            )
            self.clients[slot] = client
            await client.connect()
            self.mark_present(slot)

        tasks = [asyncio.create_task(open_slot(slot)) for slot in range(existing, cumulative)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        if all(self.present):
            self._populated.set()
        await self._populated.wait()

        self.connection_time = (time.perf_counter() - start) * 1000.0
        logger.info("round %d: %d clients present after %.0fms", round_index, cumulative, self.connection_time)

    async def send_requests(self, round_index: int) -> List[List[RequestRecord]]:
        """
        Run a burst on every client created so far.

        Returns one timeline per client, in slot order.
        """
        timelines: List[Optional[List[RequestRecord]]] = [None] * len(self.clients)

        async def burst(slot: int, client: ClientConnection) -> None:
            timelines[slot] = await client.send_burst(self.request_interval)

        await asyncio.gather(*(burst(slot, client) for slot, client in enumerate(self.clients) if client is not None))

        logger.info(
            "round %d: bursts finished (fails=%d errors=%d gave_up=%d)",
            round_index,
            self.connection_fails,
            self.connection_errors,
            self.gave_up,
        )
        return [timeline or [] for timeline in timelines]

    @property
    def connection_fails(self) -> int:
        return sum(client.connection_fails for client in self.clients if client is not None)

    @property
    def connection_errors(self) -> int:
        return sum(client.connection_errors for client in self.clients if client is not None)

    @property
    def gave_up(self) -> int:
        return sum(1 for client in self.clients if client is not None and client.state is ConnectionState.GAVE_UP)

    async def close(self, timeout: Optional[float] = None) -> bool:
        """
        Close every client and wait for the closing handshakes.

        Returns False if ``timeout`` expired before all clients closed.
        """
        clients = [client for client in self.clients if client is not None]
        closing = asyncio.gather(*(client.close() for client in clients), return_exceptions=True)
        try:
            results = await asyncio.wait_for(closing, timeout)
        except asyncio.TimeoutError:
            logger.warning("timed out after %.1fs closing %d clients", timeout, len(clients))
            return False

        for client, result in zip(clients, results):
            if isinstance(result, Exception):
                logger.warning("client %d failed to close cleanly: %s", client.slot, result)
        return True
