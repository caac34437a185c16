"""Tests for the completion heuristic, reconnect backoff and stall history."""

import random

import pytest

from wsbench.history import RingBuffer
from wsbench.models import RequestRecord
from wsbench.policy import CompletionPolicy, ReconnectPolicy


def pending(n):
    return [RequestRecord(sequence=i, start=0.0) for i in range(n)]


def history_of(values, capacity=20):
    history = RingBuffer(capacity)
    for value in values:
        history.push(value)
    return history


class TestCompletionPolicy:
    policy = CompletionPolicy()

    def test_all_records_finished(self):
        records = [RequestRecord(sequence=0, start=0.0, received=1.0, finish=2.0)]
        assert self.policy.should_resolve(records, 1, 100, RingBuffer(20), polls=1)

    def test_empty_timeline_resolves(self):
        assert self.policy.should_resolve([], 0, 100, RingBuffer(20), polls=1)

    def test_all_expected_succeeded(self):
        assert self.policy.should_resolve(pending(10), 10, 10, RingBuffer(20), polls=1)

    def test_stalled_above_threshold(self):
        history = history_of([95] * 20)
        assert self.policy.should_resolve(pending(100), 95, 100, history, polls=21)

    def test_stalled_at_threshold_waits_for_poll_cap(self):
        history = history_of([90] * 20)
        assert not self.policy.should_resolve(pending(100), 90, 100, history, polls=99)
        assert self.policy.should_resolve(pending(100), 90, 100, history, polls=100)

    def test_not_stalled_keeps_waiting(self):
        history = history_of(range(20))
        assert not self.policy.should_resolve(pending(100), 95, 100, history, polls=500)

    def test_history_must_cover_window(self):
        history = history_of([0] * 19)
        assert not self.policy.should_resolve(pending(10), 0, 10, history, polls=100)

    def test_stall_compares_value_from_window_ago(self):
        # Oldest retained value is 50, current count is 50, recent values differ
        history = history_of([40] + [50] + [60] * 19)
        assert history.peek() == 50
        assert self.policy.should_resolve(pending(100), 50, 100, history, polls=100)


class TestReconnectPolicy:
    def test_exponential_growth_capped(self):
        policy = ReconnectPolicy(initial_delay=0.1, max_delay=1.0, multiplier=2.0, jitter=0.0, max_attempts=None)

        delays = [policy.delay(attempt) for attempt in range(1, 7)]

        assert delays == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.0, 1.0])

    def test_budget_exhausted(self):
        policy = ReconnectPolicy(jitter=0.0, max_attempts=3)

        assert policy.delay(2) is not None
        assert policy.delay(3) is None

    def test_unbounded_budget(self):
        policy = ReconnectPolicy(max_attempts=None)
        assert policy.delay(10_000) == pytest.approx(policy.max_delay, rel=policy.jitter)

    def test_jitter_bounds(self):
        policy = ReconnectPolicy(initial_delay=1.0, max_delay=10.0, jitter=0.3)
        rng = random.Random(7)

        delays = [policy.delay(1, rng) for _ in range(200)]

        assert all(0.7 <= delay <= 1.3 for delay in delays)
        assert len(set(delays)) > 1


class TestRingBuffer:
    def test_drops_oldest(self):
        history = history_of([1, 2, 3, 4], capacity=3)

        assert history.full
        assert len(history) == 3
        assert history.peek() == 2

    def test_empty_peek(self):
        history = RingBuffer(2)
        assert history.peek() is None
        assert not history.full

    def test_clear(self):
        history = history_of([1, 2], capacity=2)
        history.clear()
        assert len(history) == 0

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            RingBuffer(0)
