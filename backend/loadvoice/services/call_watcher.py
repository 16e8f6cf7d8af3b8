"""Poll a call's processing status until it settles.

The watcher is the consumer side of the processing pipeline: it asks for the
call status on a fixed interval while the call is uploading or being
processed. Once the status is ``completed`` or ``failed`` it stops and
fetches the call detail (transcript, insights, fields) one final time.

While the status is neither pollable nor terminal (for example a call that
is only ``uploaded``) the watcher returns after a single poll without
fetching detail.

There is no backoff and no retry beyond the next tick: a failed poll is
logged and the loop carries on. ``stop()`` cancels the task, which is how
a session that goes away stops polling.
"""
import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Dict, Optional

from .call_status import is_pollable, is_terminal

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = float(os.getenv("CALL_POLL_INTERVAL_SECONDS", "5"))

StatusFetcher = Callable[[str], Awaitable[Dict[str, Any]]]
DetailFetcher = Callable[[str], Awaitable[Dict[str, Any]]]
CompletionHandler = Callable[[Dict[str, Any], Dict[str, Any]], Any]


class CallStatusWatcher:
    def __init__(
        self,
        call_id: str,
        fetch_status: StatusFetcher,
        fetch_detail: DetailFetcher,
        on_complete: Optional[CompletionHandler] = None,
        on_update: Optional[Callable[[Dict[str, Any]], Any]] = None,
        interval: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.call_id = call_id
        self.fetch_status = fetch_status
        self.fetch_detail = fetch_detail
        self.on_complete = on_complete
        self.on_update = on_update
        self.interval = DEFAULT_POLL_INTERVAL if interval is None else interval
        self.sleep = sleep
        self.last_status: Optional[Dict[str, Any]] = None
        self.detail: Optional[Dict[str, Any]] = None
        self.polls = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        logger.info(f"Watching call {self.call_id} every {self.interval}s")
        self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"Stopped watching call {self.call_id}")

    async def wait(self) -> Optional[Dict[str, Any]]:
        """Wait for the watcher to finish and return the final call detail."""
        if self._task is not None:
            await self._task
        return self.detail

    async def __aenter__(self) -> "CallStatusWatcher":
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def _poll_once(self) -> Optional[Dict[str, Any]]:
        self.polls += 1
        try:
            status = await self.fetch_status(self.call_id)
        except Exception as e:
            logger.error(f"Status poll {self.polls} for call {self.call_id} failed: {str(e)}")
            return None
        self.last_status = status
        if self.on_update:
            try:
                self.on_update(status)
            except Exception as e:
                logger.error(f"Update handler for call {self.call_id} failed: {str(e)}")
        return status

    async def _run(self) -> None:
        while True:
            status = await self._poll_once()
            if status is not None and not is_pollable(status.get("status")):
                break
            await self.sleep(self.interval)

        final = self.last_status.get("status")
        if not is_terminal(final):
            logger.info(f"Call {self.call_id} is {final}, nothing to wait for")
            return

        logger.info(f"Call {self.call_id} reached {final}, refreshing detail")
        try:
            self.detail = await self.fetch_detail(self.call_id)
        except Exception as e:
            logger.error(f"Final detail fetch for call {self.call_id} failed: {str(e)}")
            return
        if self.on_complete:
            self.on_complete(self.last_status, self.detail)
