import asyncio
import logging
from typing import Awaitable, Set, TypeVar

from .errors import OperationTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Shielded operations that outlived their caller's budget
_background_tasks: Set["asyncio.Future"] = set()


def _finish_in_background(task: "asyncio.Future", label: str) -> None:
    _background_tasks.add(task)

    def _done(finished: "asyncio.Future") -> None:
        _background_tasks.discard(finished)
        if finished.cancelled():
            logger.warning(f"{label} was cancelled after its budget expired")
        elif finished.exception() is not None:
            logger.error(f"{label} failed after its budget expired: {finished.exception()!r}")
        else:
            logger.info(f"{label} completed after its budget expired")

    task.add_done_callback(_done)


async def with_timeout(operation: Awaitable[T], timeout_seconds: float, label: str, shield: bool = False) -> T:
    """
    Race an operation against the invoker's wall-clock budget.

    A timeout is retryable: every booking update is atomic on its own, so
    whatever finished before the deadline is consistent. With ``shield`` the
    operation keeps running to completion after the caller gets its timeout,
    for work whose side effects must follow its writes.
    """
    task = asyncio.ensure_future(operation)
    try:
        if shield:
            return await asyncio.wait_for(asyncio.shield(task), timeout=timeout_seconds)
        return await asyncio.wait_for(task, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning(f"{label} exceeded {timeout_seconds}s budget")
        if shield:
            _finish_in_background(task, label)
        raise OperationTimeoutError(f"{label} timed out, retry later")
