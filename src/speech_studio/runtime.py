"""Single-context event runtime for speech platform callbacks."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from speech_studio.errors import SpeechStudioError


class RuntimeNotStartedError(SpeechStudioError, RuntimeError):
    """Raised when callbacks are posted before the runtime loop exists."""


class SpeechRuntime:
    """Serialises backend callbacks onto one asyncio worker and runs periodic tasks.

    Backend threads never touch session state directly: they ``post`` callables which
    the worker executes one at a time on the event loop.
    """

    def __init__(self, *, max_queue_size: int = 1_000, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("speech_studio.runtime")
        self._max_queue_size = max_queue_size
        self._queue: asyncio.Queue[tuple[Callable[..., Any], tuple[Any, ...]]] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._worker_task: asyncio.Task[None] | None = None
        self._periodic_tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    async def start(self) -> None:
        """Start the worker loop once for this runtime."""
        if self.running:
            return

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._worker_task = asyncio.create_task(self._worker_loop(), name="speech-runtime-worker")
        self._logger.info("speech_runtime_started", extra={"queue_maxsize": self._max_queue_size})

    async def stop(self) -> None:
        """Cancel periodic tasks and the worker, waiting for graceful cancellation."""
        tasks = [*self._periodic_tasks, *([self._worker_task] if self._worker_task else [])]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._periodic_tasks = []
        self._worker_task = None
        self._logger.info("speech_runtime_stopped")

    def post(self, callback: Callable[..., Any], *args: Any) -> None:
        """Queue ``callback(*args)`` for the worker; safe to call from any thread."""
        if self._loop is None or self._queue is None:
            raise RuntimeNotStartedError("SpeechRuntime.start() must be awaited before posting callbacks")
        self._loop.call_soon_threadsafe(self._queue.put_nowait, (callback, args))

    def schedule_every(self, interval_seconds: float, callback: Callable[[], Any], *, name: str) -> None:
        """Run ``callback`` every ``interval_seconds`` through the worker queue."""
        if self._loop is None:
            raise RuntimeNotStartedError("SpeechRuntime.start() must be awaited before scheduling tasks")
        task = self._loop.create_task(self._periodic(interval_seconds, callback), name=name)
        self._periodic_tasks.append(task)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait until every posted callback has run."""
        if self._queue is None:
            return
        await asyncio.wait_for(self._queue.join(), timeout=timeout)

    async def wait_until(
        self,
        predicate: Callable[[], bool],
        *,
        poll_interval_seconds: float = 0.05,
        timeout: float | None = None,
    ) -> bool:
        """Poll ``predicate`` on the loop; returns ``False`` if ``timeout`` elapses first."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while not predicate():
            if deadline is not None and loop.time() >= deadline:
                return False
            await asyncio.sleep(poll_interval_seconds)
        return True

    async def _periodic(self, interval_seconds: float, callback: Callable[[], Any]) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.post(callback)

    async def _worker_loop(self) -> None:
        assert self._queue is not None
        while True:
            callback, args = await self._queue.get()
            try:
                callback(*args)
            except Exception:  # noqa: BLE001 - one faulty callback must not stop the runtime.
                self._logger.exception("speech_runtime_callback_failed", extra={"callback": repr(callback)})
            finally:
                self._queue.task_done()
