# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""JSON envelope spoken with the benchmarked server."""

import json
from typing import Tuple, Union

from .exceptions import ProtocolError

# Sequence used for heartbeats and the server's greeting
HEARTBEAT_SEQUENCE = 0


def encode_request(sequence: int) -> str:
    """Build the outbound message for a request sequence."""
    return json.dumps({"c": sequence})


def decode_response(message: Union[str, bytes]) -> Tuple[int, float]:
    """
    Parse an inbound message into (sequence, server timestamp).

    Raises:
        ProtocolError: if the message is not a JSON object with an integer
            "c" and a numeric "ts".
    """
    if isinstance(message, bytes):
        try:
            message = message.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolError(f"message is not UTF-8: {e}") from e

    try:
        data = json.loads(message)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"message is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolError(f"expected a JSON object, got {type(data).__name__}")

    sequence = data.get("c")
    timestamp = data.get("ts")
    # bool is an int subclass but never a valid sequence
    if not isinstance(sequence, int) or isinstance(sequence, bool):
        raise ProtocolError(f"invalid sequence: {sequence!r}")
    if not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
        raise ProtocolError(f"invalid server timestamp: {timestamp!r}")

    return sequence, timestamp
