import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Optional


class RefreshTimer:
    """Fixed-cadence driver for a periodic callback on the running asyncio loop.

    The callback's own run time is subtracted from the sleep so ticks stay on
    cadence. Errors raised by the callback are logged and the timer keeps going.
    """

    logger = logging.getLogger("Refresh Timer")

    def __init__(self, interval: float, callback: Callable[[], Any]):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = float(interval)
        self.callback = callback
        self.tick_count = 0
        self._task: Optional[asyncio.Task] = None

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.is_running():
            return self._task
        self._task = asyncio.get_running_loop().create_task(self._run())
        self.logger.debug("Refresh timer started with interval %s", self.interval)
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        task = self._task
        self._task = None
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.logger.debug("Refresh timer stopped after %d ticks", self.tick_count)

    async def _run(self) -> None:
        try:
            while True:
                start_tick = time.monotonic()
                try:
                    result = self.callback()
                    if inspect.isawaitable(result):
                        await result
                except asyncio.CancelledError:
                    raise
                except Exception:
                    self.logger.exception("Error in refresh timer tick")
                self.tick_count += 1
                elapsed = time.monotonic() - start_tick
                await asyncio.sleep(max(0.0, self.interval - elapsed))
        except asyncio.CancelledError:
            return
