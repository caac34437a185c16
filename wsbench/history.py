# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""Fixed-capacity history of recent values."""

from collections import deque
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """
    Keeps the last capacity pushed values, dropping the oldest on overflow.

    Example:
        >>> history = RingBuffer(3)
        >>> for value in (1, 2, 3, 4):
        ...     history.push(value)
        >>> history.peek()
        2
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items = deque(maxlen=capacity)

    def push(self, value: T) -> None:
        self._items.append(value)

    def peek(self) -> Optional[T]:
        """Return the oldest retained value, or None when empty."""
        return self._items[0] if self._items else None

    @property
    def full(self) -> bool:
        return len(self._items) == self.capacity

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
