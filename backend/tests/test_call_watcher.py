"""Tests for CallStatusWatcher polling.

Sleep is replaced with an AsyncMock so no test waits on a real clock.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from loadvoice.services.call_watcher import CallStatusWatcher


def _statuses(*names):
    return [{"call_id": "c1", "status": n} for n in names]


class TestCallStatusWatcher:
    @pytest.mark.asyncio
    async def test_polls_until_completed_then_fetches_detail_once(self):
        fetch_status = AsyncMock(side_effect=_statuses("processing", "transcribing", "extracting", "completed"))
        fetch_detail = AsyncMock(return_value={"call": {"id": "c1"}, "transcript": {"id": "t1"}})
        on_complete = MagicMock()
        sleep = AsyncMock()

        watcher = CallStatusWatcher("c1", fetch_status, fetch_detail, on_complete=on_complete, interval=5, sleep=sleep)
        watcher.start()
        detail = await watcher.wait()

        assert fetch_status.await_count == 4
        assert sleep.await_count == 3
        sleep.assert_awaited_with(5)
        fetch_detail.assert_awaited_once_with("c1")
        on_complete.assert_called_once_with({"call_id": "c1", "status": "completed"}, detail)
        assert detail["transcript"]["id"] == "t1"

    @pytest.mark.asyncio
    async def test_stops_on_failed(self):
        fetch_status = AsyncMock(side_effect=_statuses("processing", "failed"))
        fetch_detail = AsyncMock(return_value={})
        watcher = CallStatusWatcher("c1", fetch_status, fetch_detail, sleep=AsyncMock())
        watcher.start()
        await watcher.wait()

        assert watcher.polls == 2
        assert watcher.last_status["status"] == "failed"
        fetch_detail.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_call_count_stabilizes_after_terminal(self):
        fetch_status = AsyncMock(side_effect=_statuses("uploading", "completed"))
        watcher = CallStatusWatcher("c1", fetch_status, AsyncMock(return_value={}), sleep=AsyncMock())
        watcher.start()
        await watcher.wait()
        await asyncio.sleep(0)

        assert fetch_status.await_count == 2
        assert not watcher.running

    @pytest.mark.asyncio
    async def test_poll_error_continues(self):
        fetch_status = AsyncMock(side_effect=[RuntimeError("network down"), *_statuses("processing", "completed")])
        fetch_detail = AsyncMock(return_value={"ok": True})
        sleep = AsyncMock()
        watcher = CallStatusWatcher("c1", fetch_status, fetch_detail, sleep=sleep)
        watcher.start()

        assert await watcher.wait() == {"ok": True}
        assert fetch_status.await_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_uploaded_call_is_not_polled(self):
        fetch_status = AsyncMock(return_value={"call_id": "c1", "status": "uploaded"})
        fetch_detail = AsyncMock()
        on_complete = MagicMock()
        sleep = AsyncMock()
        watcher = CallStatusWatcher("c1", fetch_status, fetch_detail, on_complete=on_complete, sleep=sleep)
        watcher.start()

        assert await watcher.wait() is None
        assert fetch_status.await_count == 1
        sleep.assert_not_awaited()
        fetch_detail.assert_not_awaited()
        on_complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_status_stops_polling(self):
        fetch_status = AsyncMock(side_effect=_statuses("processing", "archived"))
        fetch_detail = AsyncMock()
        watcher = CallStatusWatcher("c1", fetch_status, fetch_detail, sleep=AsyncMock())
        watcher.start()
        await watcher.wait()

        assert fetch_status.await_count == 2
        fetch_detail.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_handler_error_keeps_polling(self):
        fetch_status = AsyncMock(side_effect=_statuses("processing", "extracting", "completed"))
        fetch_detail = AsyncMock(return_value={"ok": True})
        on_update = MagicMock(side_effect=ValueError("render failed"))
        watcher = CallStatusWatcher("c1", fetch_status, fetch_detail, on_update=on_update, sleep=AsyncMock())
        watcher.start()

        assert await watcher.wait() == {"ok": True}
        assert on_update.call_count == 3
        assert fetch_status.await_count == 3
        fetch_detail.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_on_update_sees_every_status(self):
        seen = []
        fetch_status = AsyncMock(side_effect=_statuses("processing", "completed"))
        watcher = CallStatusWatcher(
            "c1", fetch_status, AsyncMock(return_value={}), on_update=lambda s: seen.append(s["status"]), sleep=AsyncMock()
        )
        watcher.start()
        await watcher.wait()
        assert seen == ["processing", "completed"]

    @pytest.mark.asyncio
    async def test_stop_cancels_polling(self):
        gate = asyncio.Event()

        async def slow_sleep(_):
            await gate.wait()

        fetch_status = AsyncMock(return_value={"call_id": "c1", "status": "processing"})
        fetch_detail = AsyncMock()
        watcher = CallStatusWatcher("c1", fetch_status, fetch_detail, sleep=slow_sleep)
        watcher.start()
        await asyncio.sleep(0)
        assert watcher.running

        await watcher.stop()

        assert not watcher.running
        assert fetch_status.await_count == 1
        fetch_detail.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        fetch_status = AsyncMock(side_effect=_statuses("completed"))
        fetch_detail = AsyncMock(return_value={"done": True})
        async with CallStatusWatcher("c1", fetch_status, fetch_detail, sleep=AsyncMock()) as watcher:
            detail = await watcher.wait()
        assert detail == {"done": True}
        assert not watcher.running
