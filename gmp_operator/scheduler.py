"""Self re-arming poll loop driving the target status workflow."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional


class PollScheduler:
    """
    Runs a cycle on every activation and re-arms itself afterwards.

    Activations arrive through a single-slot trigger queue, so any burst of
    `trigger()` calls collapses into one pending activation. After each
    activation the loop waits until `min_interval` has passed since the
    activation began, then posts its own trigger. Stopping cancels an
    in-flight cycle or interval wait and no further trigger is posted.
    """

    def __init__(
        self,
        run_cycle: Callable[[], Awaitable[object]],
        min_interval: float,
        logger: logging.Logger
    ):
        """
        Initialize the scheduler.

        Args:
            run_cycle: Coroutine function executed on every activation
            min_interval: Minimum seconds between the start of two activations
            logger: Logger instance
        """
        self.run_cycle = run_cycle
        self.min_interval = min_interval
        self.logger = logger.getChild(self.__class__.__name__)

        self._triggers: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._stop = asyncio.Event()
        self.activations = 0

    def trigger(self) -> bool:
        """
        Request an activation.

        Returns:
            bool: False if an activation was already pending
        """
        try:
            self._triggers.put_nowait(None)
            return True
        except asyncio.QueueFull:
            return False

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    async def _wait_or_stop(self, awaitable: Awaitable, timeout: Optional[float] = None) -> bool:
        """Wait for `awaitable`; returns False if stop was requested first."""
        stop_task = asyncio.ensure_future(self._stop.wait())
        wait_task = asyncio.ensure_future(awaitable)
        try:
            await asyncio.wait(
                {stop_task, wait_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            stop_task.cancel()
            wait_task.cancel()
            await asyncio.gather(stop_task, wait_task, return_exceptions=True)
        return not self._stop.is_set()

    async def run(self) -> None:
        """Loop until `stop()` is called."""
        loop = asyncio.get_running_loop()
        self.trigger()
        self.logger.info(f"Poll scheduler started, minimum interval {self.min_interval}s")

        while True:
            if not await self._wait_or_stop(self._triggers.get()):
                break

            started = loop.time()
            self.activations += 1
            cycle = asyncio.ensure_future(self.run_cycle())
            if not await self._wait_or_stop(cycle):
                break
            error = cycle.exception()
            if error is not None:
                self.logger.error(f"Poll cycle failed: {error}", exc_info=error)

            remaining = max(0.0, self.min_interval - (loop.time() - started))
            if not await self._wait_or_stop(asyncio.sleep(remaining)):
                break
            self.trigger()

        self.logger.info("Poll scheduler stopped")
