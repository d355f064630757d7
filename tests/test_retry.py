"""Tests for the async retry helper."""

from __future__ import annotations

import pytest

from npmx.utils.retry import retry_async


class RecordingLogger:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    def warning(self, event: str, **kwargs) -> None:
        self.events.append((event, kwargs))


@pytest.mark.asyncio
async def test_retry_returns_after_transient_failures():
    calls = []
    log = RecordingLogger()

    async def operation():
        calls.append(1)
        if len(calls) < 3:
            raise ConnectionError("flaky")
        return "ok"

    result = await retry_async(operation, base_delay=0, jitter=0, logger=log, operation_name="op")
    assert result == "ok"
    assert len(calls) == 3
    assert [event for event, _ in log.events] == ["retrying_operation", "retrying_operation"]
    assert log.events[0][1]["attempt"] == 1


@pytest.mark.asyncio
async def test_retry_reraises_after_last_attempt():
    async def operation():
        raise ConnectionError("down")

    with pytest.raises(ConnectionError):
        await retry_async(operation, max_attempts=2, base_delay=0, jitter=0)


@pytest.mark.asyncio
async def test_retry_skips_rejected_errors():
    calls = []

    async def operation():
        calls.append(1)
        raise KeyError("fatal")

    with pytest.raises(KeyError):
        await retry_async(
            operation,
            base_delay=0,
            jitter=0,
            retry_on=lambda exc: isinstance(exc, ConnectionError),
        )
    assert len(calls) == 1
