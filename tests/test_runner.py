"""End-to-end rounds against the reference echo server."""

import csv
import io

import pytest
from rich.console import Console

from wsbench.config import BenchmarkConfig
from wsbench.connection import ConnectionState
from wsbench.exceptions import ServerUnreachableError
from wsbench.progress import ProgressCounter, ProgressReporter
from wsbench.runner import Benchmarker, probe_server
from wsbench.storage import CsvSink


@pytest.mark.asyncio
async def test_rounds_grow_population_and_save_rows(echo_server, policies, tmp_path, capsys):
    config = BenchmarkConfig(
        port=echo_server.port,
        connection_interval=2,
        request_interval=3,
        rounds=2,
        **policies,
    )
    results_path = tmp_path / "echo" / "1_1.csv"
    benchmarker = Benchmarker(config, CsvSink(results_path), show_progress=False)

    metrics = await benchmarker.run()

    assert [(m.clients, m.count, m.total, m.percentage) for m in metrics] == [(2, 6, 6, 100), (4, 12, 12, 100)]
    assert all(client.state is ConnectionState.DISCONNECTED for client in benchmarker.pool.clients)

    with open(results_path, newline="") as f:
        rows = list(csv.DictReader(f))
    assert [row["clients"] for row in rows] == ["2", "4"]
    assert [row["count"] for row in rows] == ["6", "12"]

    out = capsys.readouterr().out
    assert "Test: 1/2" in out
    assert "Test: 2/2" in out
    assert "Connection Time:" in out


@pytest.mark.asyncio
async def test_probe_reachable_server(echo_server):
    await probe_server(echo_server.url, timeout=2.0)


@pytest.mark.asyncio
async def test_probe_unreachable_server(unused_url):
    with pytest.raises(ServerUnreachableError, match="Server Not Found"):
        await probe_server(unused_url, timeout=2.0)


@pytest.mark.asyncio
async def test_progress_reporter_tracks_counter():
    counter = ProgressCounter(message="Benchmarking...")
    counter.reset(total=4)
    console = Console(file=io.StringIO(), force_terminal=False)

    async with ProgressReporter(counter, console=console, refresh=0.01):
        counter.increment(3)
        counter.decrement()
        counter.increment(2)

    assert counter.counter == 4


@pytest.mark.asyncio
async def test_probe_rejects_non_websocket_url():
    with pytest.raises(ServerUnreachableError, match="Server Not Found"):
        await probe_server("http://127.0.0.1:8080", timeout=2.0)
