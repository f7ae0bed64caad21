import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from celery import Task


logger = logging.getLogger(__name__)

T = TypeVar("T")

_worker_loop: Optional[asyncio.AbstractEventLoop] = None


class BaseTaskWithLogging(Task):
    """Base task class that adds logging and error handling."""

    def on_success(self, retval, task_id, args, kwargs):
        logger.info(f"Task {task_id} completed successfully")
        return super().on_success(retval, task_id, args, kwargs)

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(f"Task {task_id} failed: {exc}")
        return super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        logger.warning(f"Task {task_id} is being retried: {exc}")
        return super().on_retry(exc, task_id, args, kwargs, einfo)


def run_in_worker_loop(coro: Awaitable[T]) -> T:
    """
    Runs a coroutine on the worker's long-lived event loop.

    Pooled database connections are bound to the loop that opened them, so
    every task in a worker process shares one loop.
    """
    global _worker_loop
    if _worker_loop is None or _worker_loop.is_closed():
        _worker_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_worker_loop)
    return _worker_loop.run_until_complete(coro)
