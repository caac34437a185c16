# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""Per-round statistics."""

import csv
import logging
from typing import Optional, Protocol

from .models import AggregateMetrics, RoundResult

logger = logging.getLogger(__name__)


class PersistenceSink(Protocol):
    def save(self, fields: dict) -> None: ...


def compute_metrics(result: RoundResult, request_interval: int) -> AggregateMetrics:
    """Compute success and round-trip statistics over every client's timeline."""
    earliest_start: Optional[float] = None
    latest_finish: Optional[float] = None
    longest = 0.0
    shortest: Optional[float] = None
    total_rt = 0.0
    count = 0

    # Completed records arrive in no particular order across clients
    for timeline in result.timelines:
        for record in timeline:
            if not record.succeeded:
                continue

            if earliest_start is None or record.start < earliest_start:
                earliest_start = record.start
            if latest_finish is None or record.finish > latest_finish:
                latest_finish = record.finish

            trip = record.finish - record.start
            longest = max(longest, trip)
            shortest = trip if shortest is None else min(shortest, trip)
            total_rt += trip
            count += 1

    expected = request_interval * result.clients
    metrics = AggregateMetrics(
        clients=result.clients,
        count=count,
        total=expected,
        percentage=count / expected * 100 if expected else 0.0,
        connection_time=result.connection_time,
    )
    if count:
        metrics.elapsed = latest_finish - earliest_start
        metrics.longest = longest
        metrics.shortest = shortest
        metrics.average = total_rt / count
    return metrics


def print_metrics(metrics: AggregateMetrics) -> None:
    """Print the round summary to the console."""
    print(
        f"Count: {metrics.count}/{metrics.total} ({metrics.percentage:.2f}%) "
        f"| Time Elapse: {metrics.elapsed:.0f}"
    )
    print(
        f"Longest Trip: {metrics.longest:.0f} | Shortest Trip: {metrics.shortest:.0f} "
        f"| Average Trip: {metrics.average:.2f}"
    )


class StatisticsAggregator:
    """
    Turns a finished round into AggregateMetrics, prints them and saves them.

    A failing save is logged and never interrupts the benchmark.
    """

    def __init__(self, sink: PersistenceSink, request_interval: int, verbose: bool = True):
        self.sink = sink
        self.request_interval = request_interval
        self.verbose = verbose

    def calculate(self, result: RoundResult) -> AggregateMetrics:
        metrics = compute_metrics(result, self.request_interval)

        if self.verbose:
            print_metrics(metrics)

        try:
            self.sink.save(metrics.as_row())
        except (OSError, csv.Error):
            logger.exception("failed to save results for round %d", result.round_index)

        return metrics
