# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
Websocket server benchmark.

Adds clients round by round, has every client send a burst of requests,
and saves per-round latency statistics to a CSV file.

Usage:
    # Defaults: 50 rounds, 100 new clients and 100 requests per client each round
    wsbench --address 127.0.0.1 --port 8080 --language go

    # Small smoke run against a local echo server
    wsbench-echo --port 8080 &
    wsbench --port 8080 -c 5 -r 10 --rounds 3 --language echo
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .config import BenchmarkConfig, load_config
from .exceptions import ConfigError, ConnectionGaveUp, ServerUnreachableError
from .runner import Benchmarker, probe_server
from .storage import CsvSink, next_results_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Websocket server ramp-up benchmark",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment variables (overridden by flags):
  WEBSOCKET_ADDRESS, WEBSOCKET_PORT, ADD_CONNECTIONS, REQUESTS, ROUNDS,
  BENCHMARK_FOLDER, BENCHMARK_LANGUAGE
        """,
    )

    # Connection
    parser.add_argument("--address", "-a", help="Server address (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, help="Server port (default: 8080)")

    # Test config
    parser.add_argument("--connections", "-c", type=int, dest="connection_interval", help="Clients added per round")
    parser.add_argument("--requests", "-r", type=int, dest="request_interval", help="Requests per client per round")
    parser.add_argument("--rounds", "-n", type=int, help="Number of rounds")
    parser.add_argument("--config", type=str, help="YAML file with benchmark settings")

    # Output
    parser.add_argument("--output-dir", "-o", dest="results_dir", help="Base directory for results")
    parser.add_argument("--language", "-l", help="Name of the server implementation under test")
    parser.add_argument("--no-progress", action="store_true", help="Disable progress bars")
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--verbose", "-v", action="store_true", help="Shortcut for --log-level DEBUG")
    return parser


def resolve_language(config: BenchmarkConfig) -> str:
    """Ask for the language under test when it was not configured."""
    if config.language:
        return config.language
    if sys.stdin.isatty():
        answer = input("Language: ").strip()
        if answer:
            return answer
    return "default"


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(
            args.config,
            address=args.address,
            port=args.port,
            connection_interval=args.connection_interval,
            request_interval=args.request_interval,
            rounds=args.rounds,
            results_dir=args.results_dir,
            language=args.language,
        )
    except ConfigError as e:
        parser.error(str(e))

    try:
        asyncio.run(probe_server(config.url, config.open_timeout))
    except ServerUnreachableError as e:
        print(e)
        sys.exit(1)

    language = resolve_language(config)
    results_path = next_results_path(Path(config.results_dir) / language)
    print(f"Saving results to {results_path}")

    benchmarker = Benchmarker(config, CsvSink(results_path), show_progress=not args.no_progress)
    try:
        asyncio.run(benchmarker.run())
    except ConnectionGaveUp as e:
        print(f"Benchmark aborted: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nBenchmark interrupted")
        sys.exit(130)

    print(f"\nResults saved to: {results_path}")


if __name__ == "__main__":
    main()
