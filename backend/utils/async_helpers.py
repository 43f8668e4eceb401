"""
Bridges blocking collaborators into the workflow event loop.

Database stores, the IDS validator and the bSDD client are synchronous. The
executor awaits each call through a shared worker pool, one call at a time,
so a run stays strictly sequential.
"""

import asyncio
import functools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Any, Optional

from config import DB_POOL_SIZE

logger = logging.getLogger(__name__)

_worker_pool: Optional[ThreadPoolExecutor] = None
_pool_lock = threading.Lock()


def get_worker_pool() -> ThreadPoolExecutor:
    """Return the process-wide worker pool, creating it on first use."""
    global _worker_pool
    with _pool_lock:
        if _worker_pool is None:
            _worker_pool = ThreadPoolExecutor(
                max_workers=DB_POOL_SIZE,
                thread_name_prefix="workflow_io"
            )
            logger.info("Started worker pool with %d threads", DB_POOL_SIZE)
        return _worker_pool


async def run_in_thread(func: Callable, *args, **kwargs) -> Any:
    """
    Await ``func(*args, **kwargs)`` executed on the worker pool.

    Exceptions raised by ``func`` propagate to the awaiting coroutine.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(get_worker_pool(), functools.partial(func, *args, **kwargs))


def shutdown_thread_pools() -> None:
    """Stop the worker pool; registered with ``atexit`` by the server."""
    global _worker_pool
    with _pool_lock:
        if _worker_pool is not None:
            logger.info("Shutting down worker pool")
            _worker_pool.shutdown(wait=True)
            _worker_pool = None
