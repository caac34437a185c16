# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
Round-by-round benchmark driver.

Each round adds ``connection_interval`` clients, has every client send a
burst of ``request_interval`` requests, and records the round's metrics.
"""

import contextlib
import logging
from typing import List

import websockets
from websockets.exceptions import InvalidURI

from .config import BenchmarkConfig
from .connection import CONNECT_ERRORS
from .exceptions import ServerUnreachableError
from .models import AggregateMetrics, RoundResult
from .pool import ConnectionPool
from .progress import ProgressCounter, ProgressReporter
from .results import PersistenceSink, StatisticsAggregator

logger = logging.getLogger(__name__)


async def probe_server(url: str, timeout: float = 10.0) -> None:
    """
    Open and close one connection to check the server is up.

    Raises:
        ServerUnreachableError: if the connection cannot be made.
    """
    try:
        websocket = await websockets.connect(url, open_timeout=timeout)
    except (InvalidURI, *CONNECT_ERRORS) as e:
        raise ServerUnreachableError(url) from e
    await websocket.close()


class Benchmarker:
    """
    Runs the configured number of rounds against one server.

    Example:
        >>> benchmarker = Benchmarker(config, CsvSink("benchmarks/go/1_1.csv"))
        >>> metrics = await benchmarker.run()
    """

    def __init__(self, config: BenchmarkConfig, sink: PersistenceSink, show_progress: bool = True):
        self.config = config
        self.show_progress = show_progress

        self.connection_progress = ProgressCounter(message="Connecting...")
        self.benchmark_progress = ProgressCounter(message="Benchmarking...")

        self.pool = ConnectionPool(
            config.url,
            config.connection_interval,
            config.request_interval,
            self.connection_progress,
            self.benchmark_progress,
            completion=config.completion,
            reconnect=config.reconnect,
            heartbeat_interval=config.heartbeat_interval,
            open_timeout=config.open_timeout,
        )
        self.aggregator = StatisticsAggregator(sink, config.request_interval)

    def _reporter(self, counter: ProgressCounter):
        if self.show_progress:
            return ProgressReporter(counter)
        return contextlib.nullcontext()

    async def run(self) -> List[AggregateMetrics]:
        """Run every round, then close all clients."""
        results = []
        try:
            for round_index in range(self.config.rounds):
                print(f"\nTest: {round_index + 1}/{self.config.rounds}")
                results.append(await self.benchmark(round_index))
        finally:
            await self.pool.close(self.config.shutdown_timeout)
        return results

    async def benchmark(self, round_index: int) -> AggregateMetrics:
        """Ramp up, send the round's bursts, and compute the round's metrics."""
        logger.info("round %d: expecting %d clients", round_index, self.pool.expected_population(round_index))
        self.connection_progress.total = self.pool.expected_population(round_index)
        async with self._reporter(self.connection_progress):
            await self.pool.create_connections(round_index)
        print(f"Connection Time: {self.pool.connection_time:.0f}")

        clients = len(self.pool.clients)
        self.benchmark_progress.reset(total=self.config.request_interval * clients)
        async with self._reporter(self.benchmark_progress):
            timelines = await self.pool.send_requests(round_index)

        result = RoundResult(
            round_index=round_index,
            clients=clients,
            timelines=timelines,
            connection_time=self.pool.connection_time,
        )
        return self.aggregator.calculate(result)

