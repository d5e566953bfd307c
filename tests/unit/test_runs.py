"""Unit tests for run replacement in RunSlot."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Optional

from core.errors import DashboardError, SchemaError
from core.ingestion import IngestionCoordinator
from core.runs import ERROR, IDLE, LOADING, READY, RunSlot
from core.sources import ByteSource
from tests.sample_data import HEADER, make_rows


class SlowByteSource(ByteSource):
    """Yields one CSV line per chunk and gives the loop a turn between chunks."""

    def __init__(self, text: str, name: str = "slow"):
        self._lines = [line.encode("utf-8") for line in text.splitlines(keepends=True)]
        self.name = name
        self.closed = False

    async def open(self) -> Optional[int]:
        return None

    async def chunks(self) -> AsyncIterator[bytes]:
        for line in self._lines:
            await asyncio.sleep(0)
            yield line

    async def close(self) -> None:
        self.closed = True


def _slot() -> RunSlot:
    return RunSlot(IngestionCoordinator(progress_every_rows=2))


def test_successful_run_reaches_ready() -> None:
    """A completed run should leave a ready state holding the snapshot."""

    async def scenario():
        slot = _slot()
        slot.start(SlowByteSource(HEADER + "\n" + make_rows(5)))
        assert slot.state.status == LOADING
        return await slot.wait()

    state = asyncio.run(scenario())

    assert state.status == READY
    assert state.snapshot is not None
    assert state.snapshot.rows_read == 5
    assert state.progress.rows_read == 5


def test_new_run_replaces_in_flight_run() -> None:
    """Starting a second run should cancel the first and only report the second."""

    async def scenario():
        slot = _slot()
        first = SlowByteSource(HEADER + "\n" + make_rows(50, supplier="Old"), name="first")
        second = SlowByteSource(HEADER + "\n" + make_rows(3, supplier="New"), name="second")
        first_task = slot.start(first)
        for _ in range(10):
            await asyncio.sleep(0)
        progress_before = slot.state.progress.rows_read
        slot.start(second)
        state = await slot.wait()
        await asyncio.wait({first_task})
        return state, progress_before, first

    state, progress_before, first = asyncio.run(scenario())

    assert progress_before > 0
    assert state.status == READY
    assert state.snapshot.suppliers == ("New",)
    assert state.progress.rows_read == 3
    assert first.closed


def test_failed_run_reports_error() -> None:
    """A fatal error should move the slot into the error state."""

    async def scenario():
        slot = _slot()
        slot.start(SlowByteSource("YEAR,MONTH\n2020,1\n"))
        return await slot.wait()

    state = asyncio.run(scenario())

    assert state.status == ERROR
    assert isinstance(state.error, SchemaError)
    assert state.snapshot is None


def test_cancel_resets_to_idle_silently() -> None:
    """Cancelling an in-flight run should reset to idle without an error."""

    async def scenario():
        slot = _slot()
        task = slot.start(SlowByteSource(HEADER + "\n" + make_rows(50)))
        await asyncio.sleep(0)
        slot.cancel()
        await asyncio.wait({task})
        return slot

    slot = asyncio.run(scenario())

    assert slot.state.status == IDLE
    assert slot.state.error is None
    assert not slot.active


def test_cancel_after_completion_keeps_result() -> None:
    """Cancelling once the run has finished should keep the ready state."""

    async def scenario():
        slot = _slot()
        slot.start(SlowByteSource(HEADER + "\n" + make_rows(2)))
        await slot.wait()
        slot.cancel()
        return slot.state

    assert asyncio.run(scenario()).status == READY


def test_superseded_progress_is_ignored() -> None:
    """Progress reported by a replaced run should never reach the slot state."""
    seen: List[int] = []

    async def scenario():
        slot = _slot()
        slot.start(SlowByteSource(HEADER + "\n" + make_rows(40, supplier="Old")))
        for _ in range(12):
            await asyncio.sleep(0)
        slot.start(SlowByteSource(HEADER + "\n" + make_rows(4, supplier="New")))
        while slot.active:
            seen.append(slot.state.progress.rows_read)
            await asyncio.sleep(0)
        return slot.state

    state = asyncio.run(scenario())

    assert all(rows <= 4 for rows in seen)
    assert state.snapshot.suppliers == ("New",)


def test_unexpected_failure_moves_slot_to_error() -> None:
    """A crash outside the dashboard error kinds should not leave the slot loading."""

    async def scenario():
        slot = RunSlot(IngestionCoordinator(encoding="no-such-codec"))
        slot.start(SlowByteSource(HEADER + "\n" + make_rows(3)))
        return await slot.wait()

    state = asyncio.run(scenario())

    assert state.status == ERROR
    assert isinstance(state.error, DashboardError)
    assert "LookupError" in str(state.error)
    assert state.snapshot is None
