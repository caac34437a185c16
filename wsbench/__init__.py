# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""Websocket Benchmark - round-based ramp-up load test for websocket servers."""

from .config import BenchmarkConfig, load_config
from .connection import ClientConnection, ConnectionState
from .models import AggregateMetrics, RequestRecord, RoundResult
from .policy import CompletionPolicy, ReconnectPolicy
from .pool import ConnectionPool
from .results import StatisticsAggregator
from .runner import Benchmarker, probe_server
from .storage import CsvSink, next_results_path

__all__ = [
    "AggregateMetrics",
    "BenchmarkConfig",
    "Benchmarker",
    "ClientConnection",
    "CompletionPolicy",
    "ConnectionPool",
    "ConnectionState",
    "CsvSink",
    "ReconnectPolicy",
    "RequestRecord",
    "RoundResult",
    "StatisticsAggregator",
    "load_config",
    "next_results_path",
    "probe_server",
]
