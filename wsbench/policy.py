# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
Timing policies for burst completion and reconnection.

Both are plain frozen dataclasses so a configuration file or a test can
swap in small values without touching the connection code.
"""

import random
from dataclasses import dataclass
from typing import Optional, Sequence

from .history import RingBuffer
from .models import RequestRecord


@dataclass(frozen=True)
class CompletionPolicy:
    """
    Decides when a client's burst is finished.

    The burst is polled every ``poll_interval`` seconds and resolves when:

    1. every record has a finish timestamp, or
    2. every expected request succeeded, or
    3. the success count equals its value ``stall_window`` polls ago and
       either more than ``success_threshold`` of the requests succeeded or
       ``max_polls`` polls have elapsed.
    """

    stall_window: int = 20
    success_threshold: float = 0.9
    max_polls: int = 100
    poll_interval: float = 1.0

    def should_resolve(
        self,
        records: Sequence[RequestRecord],
        count: int,
        expected: int,
        history: RingBuffer,
        polls: int,
    ) -> bool:
        if all(record.finish is not None for record in records):
            return True

        ratio = count / expected if expected else 1.0
        if ratio == 1:
            return True

        stalled = history.full and history.peek() == count
        return stalled and (ratio > self.success_threshold or polls >= self.max_polls)


@dataclass(frozen=True)
class ReconnectPolicy:
    """
    Exponential backoff with jitter and a retry budget.

    ``max_attempts=None`` retries forever.
    """

    initial_delay: float = 0.1
    max_delay: float = 5.0
    multiplier: float = 2.0
    jitter: float = 0.3
    max_attempts: Optional[int] = 50

    def delay(self, attempt: int, rng: Optional[random.Random] = None) -> Optional[float]:
        """
        Return the sleep before the next attempt, given ``attempt`` failures so far.

        Returns None once the budget is exhausted.
        """
        if self.max_attempts is not None and attempt >= self.max_attempts:
            return None

        try:
            base = self.initial_delay * (self.multiplier ** max(0, attempt - 1))
        except OverflowError:
            base = self.max_delay
        delay = min(self.max_delay, max(0.0, base))
        if self.jitter:
            rng = rng or random
            delay *= (1.0 - self.jitter) + 2.0 * self.jitter * rng.random()
        return delay
