"""Per-key reconcile loops driven by kopf daemons.

Every resource gets one daemon coroutine, so invocations for a key never
overlap. Watch events only wake the loop; the blocking reconcile runs in a
bounded thread pool shared by all keys.
"""

import asyncio
import contextvars
import logging
import os
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)

REQUEUE_IMMEDIATELY = 1.0


def get_worker_limit():
    return int(os.getenv("WORKER_LIMIT", "5"))


def next_delay(outcome):
    """Seconds to sleep before the next invocation, None to wait for an event."""
    if outcome is None or not outcome.requeue:
        return None
    if outcome.requeue_after > 0:
        return outcome.requeue_after
    return REQUEUE_IMMEDIATELY


class WorkQueue:
    """Single-flight scheduling of reconcile callables per resource key."""

    def __init__(self, worker_limit=None):
        self.worker_limit = worker_limit or get_worker_limit()
        self._executor = None
        self._wakeups = {}

    @property
    def executor(self):
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.worker_limit, thread_name_prefix="reconcile"
            )
        return self._executor

    def _wakeup(self, key):
        if key not in self._wakeups:
            self._wakeups[key] = asyncio.Event()
        return self._wakeups[key]

    def notify(self, key):
        """Wake the loop of `key` early, e.g. after a watch event.

        Must be called from the event loop thread, handlers calling it are
        therefore coroutines.
        """
        event = self._wakeups.get(key)
        if event is not None:
            event.set()

    async def run_once(self, reconcile, key):
        loop = asyncio.get_running_loop()
        context = contextvars.copy_context()
        return await loop.run_in_executor(self.executor, context.run, reconcile, key)

    async def _sleep(self, key, stopped, delay):
        wakeup = self._wakeup(key)
        waiters = [
            asyncio.ensure_future(wakeup.wait()),
            asyncio.ensure_future(stopped.wait()),
        ]
        try:
            await asyncio.wait(
                waiters, timeout=delay, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for waiter in waiters:
                waiter.cancel()
        wakeup.clear()

    async def run(self, reconcile, key, stopped):
        """Reconcile `key` until `stopped` is set.

        Exceptions from `reconcile` propagate so kopf restarts the daemon
        with its own backoff.
        """
        self._wakeup(key)
        try:
            while not stopped.is_set():
                outcome = await self.run_once(reconcile, key)
                if stopped.is_set():
                    break
                delay = next_delay(outcome)
                if delay is None:
                    logger.debug(f"{key} converged, waiting for changes")
                else:
                    logger.debug(f"Requeue {key} in {delay}s")
                await self._sleep(key, stopped, delay)
        finally:
            self._wakeups.pop(key, None)

    def shutdown(self):
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None


_work_queue = None


def get_work_queue():
    """Return the work queue shared by every plugin of this process."""
    global _work_queue
    if _work_queue is None:
        _work_queue = WorkQueue()
    return _work_queue
