"""Tests for the retry policy and the request serializer."""

from __future__ import annotations

import asyncio

import pytest

from custom_components.sp108e.api import RequestSerializer, RetryPolicy
from custom_components.sp108e.exceptions import (
    DeviceIOError,
    RetriesExhausted,
    Sp108eError,
)

from .conftest import SleepRecorder


class FakeConnection:
    """Connection stand-in that only counts disconnects."""

    host = "192.0.2.1"
    port = 8189

    def __init__(self) -> None:
        """Initialise the counter."""
        self.disconnects = 0

    def force_disconnect(self) -> None:
        """Count a disconnect."""
        self.disconnects += 1


class FlakyAttempt:
    """Fail a fixed number of times, then answer."""

    def __init__(self, failures: int) -> None:
        """Initialise with the number of failures before success."""
        self.failures = failures
        self.calls = 0

    async def __call__(self) -> bytes:
        """Run one attempt."""
        self.calls += 1
        if self.calls <= self.failures:
            raise DeviceIOError(f"failure {self.calls}")
        return b"ok"


def test_backoff_doubles() -> None:
    """Each retry waits twice as long as the previous one."""
    policy = RetryPolicy(FakeConnection())  # type: ignore[arg-type]
    assert [policy.backoff(i) for i in range(3)] == [0.2, 0.4, 0.8]


@pytest.mark.asyncio
async def test_retry_succeeds_after_failures(sleep: SleepRecorder) -> None:
    """A send that recovers returns its result after backing off."""
    connection = FakeConnection()
    policy = RetryPolicy(connection, sleep=sleep)  # type: ignore[arg-type]
    attempt = FlakyAttempt(failures=2)

    assert await policy.run(attempt) == b"ok"
    assert attempt.calls == 3
    assert sleep.delays == [0.2, 0.4]
    assert connection.disconnects == 2


@pytest.mark.asyncio
async def test_retry_gives_up(sleep: SleepRecorder) -> None:
    """After three retries the last error is reported."""
    connection = FakeConnection()
    policy = RetryPolicy(connection, sleep=sleep)  # type: ignore[arg-type]
    attempt = FlakyAttempt(failures=10)

    with pytest.raises(RetriesExhausted) as excinfo:
        await policy.run(attempt)

    assert attempt.calls == 4
    assert sleep.delays == [0.2, 0.4, 0.8]
    assert connection.disconnects == 4
    assert excinfo.value.attempts == 4
    assert isinstance(excinfo.value.last_error, DeviceIOError)
    assert str(excinfo.value.last_error) == "failure 4"
    assert excinfo.value.__cause__ is excinfo.value.last_error


@pytest.mark.asyncio
async def test_retry_without_retries(sleep: SleepRecorder) -> None:
    """With no retries allowed a single failure is final."""
    policy = RetryPolicy(FakeConnection(), max_retries=0, sleep=sleep)  # type: ignore[arg-type]

    with pytest.raises(RetriesExhausted):
        await policy.run(FlakyAttempt(failures=1))

    assert sleep.delays == []


@pytest.mark.asyncio
async def test_serializer_runs_in_order_one_at_a_time() -> None:
    """Units complete in submission order with no overlap."""
    serializer = RequestSerializer()
    events: list[str] = []
    running = 0

    def make_work(index: int):
        async def work() -> bytes:
            nonlocal running
            running += 1
            assert running == 1
            events.append(f"start {index}")
            # Later units sleep less, so overlap would reorder them
            await asyncio.sleep(0.001 * (5 - index))
            events.append(f"end {index}")
            running -= 1
            return bytes([index])

        return work

    results = await asyncio.gather(
        *(serializer.submit(make_work(index)) for index in range(5))
    )

    assert results == [bytes([index]) for index in range(5)]
    assert events == [
        event for index in range(5) for event in (f"start {index}", f"end {index}")
    ]
    await serializer.close()


@pytest.mark.asyncio
async def test_serializer_survives_failed_unit() -> None:
    """A failing unit fails only its own caller."""
    serializer = RequestSerializer()

    async def fail() -> bytes:
        raise DeviceIOError("boom")

    async def succeed() -> bytes:
        return b"fine"

    first, second = await asyncio.gather(
        serializer.submit(fail), serializer.submit(succeed), return_exceptions=True
    )

    assert isinstance(first, DeviceIOError)
    assert second == b"fine"
    assert await serializer.submit(succeed) == b"fine"
    await serializer.close()


@pytest.mark.asyncio
async def test_serializer_close_fails_pending_work() -> None:
    """Closing fails the running unit and everything queued behind it."""
    serializer = RequestSerializer()
    started = asyncio.Event()

    async def block() -> bytes:
        started.set()
        await asyncio.Event().wait()
        return b""

    async def never() -> bytes:
        return b"unreachable"

    running = asyncio.create_task(serializer.submit(block))
    queued = asyncio.create_task(serializer.submit(never))
    await started.wait()
    assert serializer.pending == 1

    await serializer.close()

    with pytest.raises(Sp108eError):
        await running
    with pytest.raises(Sp108eError):
        await queued
    assert serializer.pending == 0
