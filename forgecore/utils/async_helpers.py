# forgecore/utils/async_helpers.py
"""
Async utilities for safe task management.
"""

import asyncio
import logging
from typing import Coroutine, Any, Optional

logger = logging.getLogger(__name__)


def create_safe_task(
    coro: Coroutine[Any, Any, Any],
    name: Optional[str] = None,
    log_errors: bool = True
) -> asyncio.Task:
    """
    Create an asyncio task whose failure is logged instead of lost.

    Args:
        coro: The coroutine to run as a task
        name: Optional name for the task (for logging)
        log_errors: Whether to log errors (default True)

    Returns:
        The created asyncio.Task
    """
    task = asyncio.create_task(coro, name=name)

    def _handle_exception(t: asyncio.Task):
        if t.cancelled():
            return
        exc = t.exception()
        if exc and log_errors:
            task_name = name or t.get_name()
            logger.error(f"[AsyncTask:{task_name}] Unhandled exception: {exc}", exc_info=exc)

    task.add_done_callback(_handle_exception)
    return task


async def cancel_and_wait(task: Optional[asyncio.Task]) -> None:
    """
    Cancel `task` and wait until it has actually stopped.

    Returns once the task is done; its CancelledError is absorbed, anything
    else it raised was already logged by create_safe_task.
    """
    if task is None or task.done():
        return
    task.cancel()
    await asyncio.wait({task})
