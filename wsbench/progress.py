# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""Shared progress counters and their console rendering."""

import asyncio
from dataclasses import dataclass
from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn


@dataclass
class ProgressCounter:
    """
    A {counter, total} pair shared by the pool and every client.

    Only mutated from event loop callbacks, so no locking is needed.
    """

    message: str
    total: int = 0
    counter: int = 0

    def increment(self, amount: int = 1) -> None:
        self.counter += amount

    def decrement(self, amount: int = 1) -> None:
        self.counter -= amount

    def reset(self, total: int) -> None:
        """Clear the counter and set a new expected total."""
        self.total = total
        self.counter = 0


class ProgressReporter:
    """
    Renders a ProgressCounter as a progress bar while a phase runs.

    The bar polls the counter every ``refresh`` seconds; the benchmark never
    waits on it.

    Example:
        >>> async with ProgressReporter(counter):
        ...     await pool.create_connections(round_index)
    """

    def __init__(self, counter: ProgressCounter, console: Optional[Console] = None, refresh: float = 0.05):
        self.counter = counter
        self.refresh = refresh
        self._progress = Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._task_id = None
        self._poller: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "ProgressReporter":
        self._progress.start()
        self._task_id = self._progress.add_task(self.counter.message, total=self.counter.total)
        self._poller = asyncio.create_task(self._poll())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._poller.cancel()
        try:
            await self._poller
        except asyncio.CancelledError:
            pass
        self._update()
        self._progress.stop()

    def _update(self) -> None:
        self._progress.update(self._task_id, completed=self.counter.counter, total=self.counter.total)

    async def _poll(self) -> None:
        while True:
            self._update()
            if self.counter.counter >= self.counter.total:
                return
            await asyncio.sleep(self.refresh)
