"""Polling driver for long-running provider jobs.

Processing flow:
    1. Run the adapter's submit call, which returns a `JobHandle`.
    2. Sleep for the poll interval, then run the status probe.
    3. Repeat until the handle reports completion.
    4. Return the completed handle carrying an artifact locator.

Blocking calls:
    Submit and probe are blocking HTTP calls; both run through
    `asyncio.to_thread` so the event loop keeps serving session reads while a
    job is in flight.

Budget and cancellation:
    - `timeout=None` keeps polling until the job completes, however long
      that takes. A numeric timeout raises `GenerationTimeoutError` once the
      elapsed time exceeds it.
    - A `CancellationToken` lets another thread or task abandon the wait;
      the poller raises `JobCancelledError` at the next check. The remote job
      itself is not cancelled.

Failure handling:
    - Completed job with a provider error -> `ProviderError(<error>)`.
    - Completed job without a locator -> `ProviderError("no artifact produced")`.
"""

import asyncio
import logging
import threading
import time
from typing import Awaitable, Callable

from omni.core.errors import GenerationTimeoutError, JobCancelledError, ProviderError
from omni.core.types import JobHandle


logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0


class CancellationToken:
    """Thread-safe flag used to abandon an in-flight poll loop."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class JobPoller:
    """Drive a submitted job to completion by fixed-interval polling."""

    def __init__(
        self,
        interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval <= 0:
            raise ValueError("Poll interval must be positive")
        self.interval = interval
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock

    async def run(
        self,
        submit: Callable[[], JobHandle],
        probe: Callable[[JobHandle], JobHandle],
        cancel_token: CancellationToken | None = None,
    ) -> JobHandle:
        """Submit a job and poll it until done.

        Args:
            submit: Blocking call that starts the job.
            probe: Blocking call that refreshes a handle's status.
            cancel_token: Optional token checked around every wait.

        Returns:
            The completed handle; `artifact_uri` is guaranteed non-empty.
        """
        handle = await asyncio.to_thread(submit)
        started = self._clock()
        attempts = 0
        logger.info("Job %s submitted", handle.name)

        while not handle.done:
            self._check_budget(handle, started, cancel_token)
            await self._sleep(self.interval)
            self._check_budget(handle, started, cancel_token)
            handle = await asyncio.to_thread(probe, handle)
            attempts += 1
            logger.debug("Job %s poll #%d done=%s", handle.name, attempts, handle.done)

        if handle.error:
            raise ProviderError(handle.error)
        if not handle.artifact_uri:
            raise ProviderError("no artifact produced")

        logger.info("Job %s completed after %d polls", handle.name, attempts)
        return handle

    def _check_budget(
        self,
        handle: JobHandle,
        started: float,
        cancel_token: CancellationToken | None,
    ) -> None:
        if cancel_token is not None and cancel_token.cancelled:
            raise JobCancelledError(f"Job {handle.name} cancelled")
        if self.timeout is not None and self._clock() - started > self.timeout:
            raise GenerationTimeoutError(
                f"Job {handle.name} did not finish within {self.timeout:g}s"
            )
