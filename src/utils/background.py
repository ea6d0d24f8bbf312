"""Shared thread pool for fire-and-forget side channels.

Audit logging and notification delivery run here so they never delay the
request that triggered them.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from config import BACKGROUND_WORKERS

logger = logging.getLogger(__name__)

_executor: Optional[ThreadPoolExecutor] = None


def get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(
            max_workers=BACKGROUND_WORKERS, thread_name_prefix="side-channel"
        )
    return _executor


def submit(func: Callable[..., Any], *args: Any) -> Optional[Future]:
    """Schedule ``func`` without waiting for it.

    Returns None when the pool has already been shut down.
    """
    try:
        return get_executor().submit(func, *args)
    except RuntimeError:
        logger.warning("Background executor unavailable, dropping %s", getattr(func, "__name__", func))
        return None


def shutdown(wait: bool = True) -> None:
    global _executor
    if _executor is not None:
        _executor.shutdown(wait=wait)
        _executor = None
