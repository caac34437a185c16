# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
Data models for the websocket benchmark.

Timestamps are milliseconds. Start and finish are taken from the local
monotonic clock, the received value is whatever the server reported.
"""

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


def now_ms() -> float:
    """Return the local wall clock in milliseconds."""
    return time.time() * 1000.0


def monotonic_ms() -> float:
    """Return a monotonic clock reading in milliseconds, for measuring round trips."""
    return time.perf_counter() * 1000.0


@dataclass
class RequestRecord:
    """Timestamps for one request of a burst."""

    sequence: int
    start: float
    received: Optional[float] = None
    finish: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return self.received is not None and self.finish is not None

    def complete(self, received: float, finish: float) -> bool:
        """
        Stamp the server and local receive times.

        The first matching response wins; returns False and leaves the
        record untouched if it was already completed.
        """
        if self.received is not None or self.finish is not None:
            return False
        self.received = received
        self.finish = finish
        return True


@dataclass
class RoundResult:
    """Everything the aggregator needs about one finished round."""

    round_index: int
    clients: int
    timelines: List[List[RequestRecord]] = field(default_factory=list)

    # Milliseconds from the first connect attempt until every slot was present
    connection_time: float = 0.0


@dataclass
class AggregateMetrics:
    """Latency and success statistics for a round (times in milliseconds)."""

    clients: int
    count: int
    total: int
    percentage: float = 0.0
    elapsed: float = 0.0
    longest: float = 0.0
    shortest: float = 0.0
    average: float = 0.0
    connection_time: float = 0.0

    def as_row(self) -> Dict[str, Any]:
        """Return the metrics as an ordered field mapping for persistence."""
        return asdict(self)
