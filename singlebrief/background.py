"""Owner notifications that run after the request that triggered them.

A recipient finishing a brief should not wait on the owner's alert email, so
those sends are queued here. Each job carries a label that shows up in the log
if it fails; shutdown and tests call ``drain`` to let queued alerts finish.
"""
import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class NotificationQueue:
    def __init__(self) -> None:
        self._jobs: dict[asyncio.Task, str] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def submit(self, job: Coroutine[Any, Any, Any], label: str) -> asyncio.Task:
        task = asyncio.create_task(job, name=label)
        self._jobs[task] = label
        task.add_done_callback(self._settle)
        return task

    def _settle(self, task: asyncio.Task) -> None:
        label = self._jobs.pop(task, task.get_name())
        if task.cancelled():
            logger.info("Notification %s cancelled before it was sent", label)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Notification %s failed", label, exc_info=exc)

    async def drain(self, timeout: float | None = None) -> int:
        """Wait for queued notifications; returns how many are still running."""
        jobs = list(self._jobs)
        if not jobs:
            return 0
        _, still_running = await asyncio.wait(jobs, timeout=timeout)
        if still_running:
            logger.warning("%d notification(s) still pending after %ss", len(still_running), timeout)
        return len(still_running)


notifications = NotificationQueue()


def notify(job: Coroutine[Any, Any, Any], label: str) -> asyncio.Task:
    return notifications.submit(job, label)


async def drain(timeout: float | None = None) -> int:
    return await notifications.drain(timeout)


__all__ = ["NotificationQueue", "notifications", "notify", "drain"]
