from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from magderep.exceptions import WorkerPoolError

_lock = threading.Lock()
_pool: ThreadPoolExecutor | None = None


def initialise_worker_pool(threads: int) -> ThreadPoolExecutor:
    """Create the process-wide worker pool; a second call is a programming error."""

    global _pool

    if threads < 1:
        raise WorkerPoolError(f"Worker pool needs at least one thread, got {threads}")

    with _lock:
        if _pool is not None:
            raise WorkerPoolError("Programming error: worker pool initialised multiple times")
        _pool = ThreadPoolExecutor(max_workers=threads, thread_name_prefix="magderep")
        return _pool


def worker_pool() -> ThreadPoolExecutor:
    with _lock:
        if _pool is None:
            raise WorkerPoolError("Programming error: worker pool used before initialisation")
        return _pool


def shutdown_worker_pool() -> None:
    global _pool

    with _lock:
        pool = _pool
        _pool = None

    if pool is not None:
        pool.shutdown(wait=True)
