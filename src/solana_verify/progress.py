"""Liveness feedback while a remote verification job is being polled."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import timedelta

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

logger = logging.getLogger(__name__)

DONE = "✅"
WAITING = "⏳"
ERROR = "❌"


class ProgressReporter:
    """Animates a spinner until the poller hands over a single terminal signal.

    The reporter runs as its own asyncio task and shares exactly one object
    with the poller: a one-shot ``Future[bool]`` set through :meth:`signal`.
    It never queries the service and carries no job state.

    If the poller fails before signalling, :meth:`close` cancels the task
    instead of waiting on a signal that will never arrive.
    """

    def __init__(
        self,
        console: Console,
        tick_seconds: float = 0.1,
        message: str = f"Request sent. Awaiting server response. This may take a moment... {WAITING}",
    ) -> None:
        self._console = console
        self._tick_seconds = tick_seconds
        self._message = message
        self._signal: asyncio.Future[bool] | None = None
        self._task: asyncio.Task[None] | None = None
        self.ticks = 0

    @property
    def signalled(self) -> bool:
        return self._signal is not None and self._signal.done()

    def start(self) -> None:
        """Spawn the reporter task on the running event loop."""
        if self._task is not None:
            raise RuntimeError("ProgressReporter already started")
        self._signal = asyncio.get_running_loop().create_future()
        self._task = asyncio.create_task(self._run(), name="progress-reporter")

    def signal(self, success: bool) -> None:
        """Deliver the terminal outcome.  May be called at most once."""
        if self._signal is None:
            raise RuntimeError("ProgressReporter has not been started")
        if self._signal.done():
            raise RuntimeError("Terminal signal already sent")
        self._signal.set_result(success)

    async def close(self) -> None:
        """Wait for the summary line, or abort if no signal was ever sent."""
        if self._task is None:
            return
        if not self.signalled:
            logger.debug("Progress reporter aborted before a terminal signal")
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        assert self._signal is not None
        started = time.monotonic()

        progress = Progress(
            SpinnerColumn(spinner_name="dots"),
            TextColumn("{task.description}"),
            TimeElapsedColumn(),
            console=self._console,
            transient=True,
            auto_refresh=False,
        )
        with progress:
            progress.add_task(self._message, total=None)
            while True:
                done, _ = await asyncio.wait({self._signal}, timeout=self._tick_seconds)
                if done:
                    break
                self.ticks += 1
                progress.refresh()

        elapsed = timedelta(seconds=round(time.monotonic() - started))
        if self._signal.result():
            self._console.print(f"{DONE} Process completed. (Done in {elapsed})")
        else:
            self._console.print(f"{ERROR} Request processing failed.")
            self._console.print(f"{ERROR} Time elapsed: {elapsed}")
