# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""Exceptions raised by the websocket benchmark."""


class WsBenchError(Exception):
    """Base class for benchmark errors."""


class ConfigError(WsBenchError, ValueError):
    """Raised when the benchmark configuration is invalid."""


class ProtocolError(WsBenchError, ValueError):
    """Raised when an inbound message does not match the JSON envelope."""


class ConnectionGaveUp(WsBenchError):
    """Raised when a client exhausts its reconnect budget."""

    def __init__(self, slot: int, attempts: int):
        super().__init__(f"client {slot} gave up after {attempts} failed connection attempts")
        self.slot = slot
        self.attempts = attempts


class ServerUnreachableError(WsBenchError):
    """Raised when the startup probe cannot reach the benchmark server."""

    def __init__(self, url: str):
        super().__init__(f"Server Not Found: {url}")
        self.url = url
