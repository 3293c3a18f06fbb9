"""
Async utility functions for the Logos client.

This module provides helper classes for working with asyncio, including task
tracking, cancellable one-shot timers, fixed-cadence periodic tasks and
timeouts. Every timer the client creates goes through these helpers so that
its handle can be recorded and cancelled idempotently.
"""

import asyncio
import inspect
from typing import Any, Callable, Coroutine, Optional, Set, TypeVar

from logos_client.config.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class TaskManager:
    """
    Keeps a set of background tasks so they can be cancelled together.

    Finished tasks drop out of the set on their own; an exception raised by
    a task is logged rather than left for the garbage collector to report.
    """

    def __init__(self, name: str = "default"):
        self.name = name
        self.tasks: Set[asyncio.Task] = set()
        logger.debug(f"TaskManager '{name}' initialized")

    def create_task(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        """Schedule ``coro`` on the running loop and track it."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self.tasks.add(task)
        task.add_done_callback(self._forget)
        logger.debug(f"[{self.name}] started task {task.get_name()}")
        return task

    def _forget(self, task: asyncio.Task) -> None:
        self.tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"[{self.name}] task {task.get_name()} failed: {error}")

    async def cancel_all(self, wait: bool = True, timeout: Optional[float] = 5.0) -> None:
        """
        Cancel every tracked task except the caller's own.

        Args:
            wait: Wait for the cancelled tasks to finish unwinding
            timeout: Upper bound in seconds for that wait, None for no bound
        """
        me = asyncio.current_task()
        victims = [t for t in self.tasks if t is not me and not t.done()]
        if not victims:
            return

        for task in victims:
            task.cancel()
        logger.debug(f"[{self.name}] cancelled {len(victims)} task(s)")

        if wait:
            _, stuck = await asyncio.wait(victims, timeout=timeout)
            if stuck:
                logger.warning(f"[{self.name}] tasks still running after cancel: {[t.get_name() for t in stuck]}")


async def _invoke(callback: Callable[[], Any]) -> None:
    result = callback()
    if inspect.isawaitable(result):
        await result


class Timer:
    """
    One-shot cancellable timer.

    The callback may be a plain function or a coroutine function. The timer
    counts as inactive from the moment the callback starts, so a callback may
    safely cancel or replace the timer that fired it.
    """

    def __init__(
        self,
        task_manager: TaskManager,
        delay: float,
        callback: Callable[[], Any],
        name: str = "timer"
    ):
        self.delay = delay
        self.name = name
        self._callback = callback
        self._fired = False
        self._cancelled = False
        self._task = task_manager.create_task(self._run(), name)

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        if self._cancelled:
            return
        self._fired = True
        await _invoke(self._callback)

    @property
    def active(self) -> bool:
        """Whether the timer is still waiting to fire."""
        return not (self._fired or self._cancelled)

    def cancel(self) -> bool:
        """
        Cancel the timer.

        Returns:
            bool: True if the timer was pending and is now cancelled
        """
        if not self.active:
            return False
        self._cancelled = True
        self._task.cancel()
        return True


class PeriodicTask:
    """
    Fixed-cadence repeating callback.

    Ticks are awaited one after another, so two ticks never overlap. The first
    tick happens one interval after creation.
    """

    def __init__(
        self,
        task_manager: TaskManager,
        interval: float,
        callback: Callable[[], Any],
        name: str = "periodic"
    ):
        self.interval = interval
        self.name = name
        self._callback = callback
        self._cancelled = False
        self._task = task_manager.create_task(self._run(), name)

    async def _run(self) -> None:
        while not self._cancelled:
            await asyncio.sleep(self.interval)
            if self._cancelled:
                break
            try:
                await _invoke(self._callback)
            except Exception as e:
                logger.error(f"Error in periodic task {self.name}: {e}", exc_info=True)

    @property
    def active(self) -> bool:
        """Whether the schedule is still running."""
        return not self._cancelled

    def cancel(self) -> bool:
        """
        Stop the schedule.

        Returns:
            bool: True if the schedule was running and is now stopped
        """
        if self._cancelled:
            return False
        self._cancelled = True
        if self._task is not asyncio.current_task():
            self._task.cancel()
        return True


async def run_with_timeout(
    coro: Coroutine[Any, Any, T],
    timeout: float,
    timeout_message: str = "Operation timed out"
) -> T:
    """
    Await ``coro`` for at most ``timeout`` seconds.

    Raises:
        asyncio.TimeoutError: The deadline passed; ``timeout_message`` is logged first
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"{timeout_message} (after {timeout}s)")
        raise


async def wait_for_event(event: asyncio.Event, timeout: Optional[float] = None) -> bool:
    """Wait until ``event`` is set; False if ``timeout`` seconds pass first."""
    try:
        await asyncio.wait_for(event.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        return False
    return True
