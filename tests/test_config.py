"""Tests for layered configuration loading."""

import pytest

from wsbench.config import BenchmarkConfig, load_config
from wsbench.exceptions import ConfigError
from wsbench.policy import CompletionPolicy, ReconnectPolicy


def test_defaults():
    config = load_config(environ={})

    assert config == BenchmarkConfig()
    assert config.url == "ws://127.0.0.1:8080"
    assert config.completion == CompletionPolicy(stall_window=20, success_threshold=0.9, max_polls=100, poll_interval=1.0)


def test_environment_overrides_defaults():
    environ = {
        "WEBSOCKET_ADDRESS": "10.0.0.5",
        "WEBSOCKET_PORT": "9001",
        "ADD_CONNECTIONS": "25",
        "REQUESTS": "10",
        "BENCHMARK_FOLDER": "/tmp/results",
        "BENCHMARK_LANGUAGE": "rust",
    }

    config = load_config(environ=environ)

    assert config.url == "ws://10.0.0.5:9001"
    assert config.connection_interval == 25
    assert config.request_interval == 10
    assert config.results_dir == "/tmp/results"
    assert config.language == "rust"


def test_yaml_file_and_precedence(tmp_path):
    path = tmp_path / "bench.yaml"
    path.write_text(
        "port: 7000\n"
        "rounds: 3\n"
        "connection_interval: 5\n"
        "completion:\n"
        "  poll_interval: 0.5\n"
        "reconnect:\n"
        "  max_attempts: null\n"
    )

    config = load_config(path, environ={"ADD_CONNECTIONS": "8"}, rounds=4, port=None)

    assert config.port == 7000
    assert config.connection_interval == 8
    assert config.rounds == 4
    assert config.completion.poll_interval == 0.5
    assert config.completion.stall_window == 20
    assert config.reconnect == ReconnectPolicy(max_attempts=None)


def test_config_is_immutable():
    config = BenchmarkConfig()

    with pytest.raises(AttributeError):
        config.port = 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"port": 0},
        {"port": "eighty"},
        {"request_interval": 0},
        {"rounds": 0},
        {"connection_interval": -1},
        {"completion": {"poll_interval": 0}},
        {"completion": {"window": 3}},
        {"reconnect": {"max_attempts": 0}},
    ],
)
def test_invalid_settings(overrides):
    with pytest.raises(ConfigError):
        load_config(environ={}, **overrides)


def test_unknown_yaml_key(tmp_path):
    path = tmp_path / "bench.yaml"
    path.write_text("prot: 8080\n")

    with pytest.raises(ConfigError, match="unknown settings: prot"):
        load_config(path, environ={})


def test_yaml_must_be_mapping(tmp_path):
    path = tmp_path / "bench.yaml"
    path.write_text("- 1\n- 2\n")

    with pytest.raises(ConfigError):
        load_config(path, environ={})


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "missing.yaml", environ={})
