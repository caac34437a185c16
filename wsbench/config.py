# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
Benchmark configuration.

Values are layered: dataclass defaults, then an optional YAML file, then
environment variables, then command-line overrides.
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .exceptions import ConfigError
from .policy import CompletionPolicy, ReconnectPolicy

# Environment variable -> config field
ENV_VARS = {
    "WEBSOCKET_ADDRESS": "address",
    "WEBSOCKET_PORT": "port",
    "ADD_CONNECTIONS": "connection_interval",
    "REQUESTS": "request_interval",
    "ROUNDS": "rounds",
    "BENCHMARK_FOLDER": "results_dir",
    "BENCHMARK_LANGUAGE": "language",
}

INT_FIELDS = ("port", "connection_interval", "request_interval", "rounds")
FLOAT_FIELDS = ("heartbeat_interval", "open_timeout", "shutdown_timeout")


@dataclass(frozen=True)
class BenchmarkConfig:
    """Immutable settings for one benchmark run."""

    address: str = "127.0.0.1"
    port: int = 8080

    # Clients added per round
    connection_interval: int = 100

    # Requests per client per round
    request_interval: int = 100

    rounds: int = 50
    results_dir: str = "./benchmarks"
    language: Optional[str] = None

    heartbeat_interval: float = 5.0
    open_timeout: float = 10.0
    shutdown_timeout: float = 10.0

    completion: CompletionPolicy = field(default_factory=CompletionPolicy)
    reconnect: ReconnectPolicy = field(default_factory=ReconnectPolicy)

    @property
    def url(self) -> str:
        return f"ws://{self.address}:{self.port}"

    def validate(self) -> "BenchmarkConfig":
        if not 0 < self.port < 65536:
            raise ConfigError(f"port out of range: {self.port}")
        if self.connection_interval < 0:
            raise ConfigError("connection_interval must not be negative")
        if self.request_interval < 1:
            raise ConfigError("request_interval must be at least 1")
        if self.rounds < 1:
            raise ConfigError("rounds must be at least 1")
        if self.completion.stall_window < 1 or self.completion.max_polls < 1:
            raise ConfigError("completion stall_window and max_polls must be at least 1")
        if self.completion.poll_interval <= 0:
            raise ConfigError("completion poll_interval must be positive")
        if self.reconnect.max_attempts is not None and self.reconnect.max_attempts < 1:
            raise ConfigError("reconnect max_attempts must be at least 1")
        return self


def _coerce(name: str, value: Any) -> Any:
    try:
        if name in INT_FIELDS:
            return int(value)
        if name in FLOAT_FIELDS:
            return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value for {name}: {value!r}") from e
    return value


def _build_policy(cls, name: str, values: Any):
    if not isinstance(values, Mapping):
        raise ConfigError(f"{name} must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ConfigError(f"unknown {name} settings: {', '.join(sorted(unknown))}")
    try:
        return cls(**values)
    except TypeError as e:
        raise ConfigError(f"invalid {name} settings: {e}") from e


def load_yaml(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load a YAML configuration file into config field overrides."""
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")

    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return data


def load_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Read config overrides from environment variables."""
    environ = os.environ if environ is None else environ
    return {name: environ[var] for var, name in ENV_VARS.items() if environ.get(var)}


def apply_overrides(config: BenchmarkConfig, overrides: Mapping[str, Any]) -> BenchmarkConfig:
    """Return a copy of ``config`` with ``overrides`` applied."""
    known = {f.name for f in fields(BenchmarkConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise ConfigError(f"unknown settings: {', '.join(sorted(unknown))}")

    changes = {}
    for name, value in overrides.items():
        if value is None:
            continue
        if name == "completion":
            changes[name] = value if isinstance(value, CompletionPolicy) else _build_policy(CompletionPolicy, name, value)
        elif name == "reconnect":
            changes[name] = value if isinstance(value, ReconnectPolicy) else _build_policy(ReconnectPolicy, name, value)
        else:
            changes[name] = _coerce(name, value)
    return replace(config, **changes)


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> BenchmarkConfig:
    """
    Build the run configuration.

    Args:
        config_path: Optional YAML file.
        environ: Environment to read (defaults to os.environ).
        **overrides: Command-line values; None means "not given".

    Raises:
        ConfigError: if any layer holds an invalid or unknown setting.
    """
    config = BenchmarkConfig()
    if config_path:
        config = apply_overrides(config, load_yaml(config_path))
    config = apply_overrides(config, load_env(environ))
    config = apply_overrides(config, overrides)
    return config.validate()
