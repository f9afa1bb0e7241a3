# price_tracker/tracking/fetch_pool.py

"""Fixed pool of daemon threads for blocking price fetches.

``concurrent.futures.ThreadPoolExecutor`` joins its threads at
interpreter exit, so one stuck fetch would hold the process open long
after shutdown gave up on it. These threads are daemons: a fetch that
is still running when the process ends is simply dropped.
"""

import functools
import logging
import queue
import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any

logger = logging.getLogger("price_tracker.fetch_pool")

_Job = tuple[Future[Any], Callable[[], Any]]


class DaemonFetchPool:
    """Run callables on ``size`` daemon threads fed by one queue.

    Threads start on the first :meth:`submit`. Futures cancelled before
    a thread picks them up are skipped.
    """

    def __init__(self, size: int, name: str = "price-worker") -> None:
        if size < 1:
            msg = f"pool size must be >= 1, got {size}"
            raise ValueError(msg)
        self.size = size
        self._name = name
        self._jobs: queue.SimpleQueue[_Job | None] = queue.SimpleQueue()
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def threads(self) -> list[threading.Thread]:
        """The pool's threads (empty until the first submit)."""
        return list(self._threads)

    def _start_threads(self) -> None:
        # Caller holds self._lock
        for i in range(self.size):
            thread = threading.Thread(
                target=self._run,
                name=f"{self._name}_{i}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        logger.debug("Started %d %s threads", self.size, self._name)

    def _run(self) -> None:
        while True:
            job = self._jobs.get()
            if job is None:
                return
            future, call = job
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result = call()
            except Exception as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future[Any]:
        """Queue ``fn(*args)`` and return a future for its result."""
        with self._lock:
            if self._closed:
                msg = "fetch pool is shut down"
                raise RuntimeError(msg)
            if not self._threads:
                self._start_threads()
            future: Future[Any] = Future()
            self._jobs.put((future, functools.partial(fn, *args)))
        return future

    def shutdown(self) -> None:
        """Stop accepting work and let idle threads exit.

        Queued jobs nobody has started are cancelled. Running jobs are
        not waited for.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending: list[_Job] = []
            while True:
                try:
                    job = self._jobs.get_nowait()
                except queue.Empty:
                    break
                if job is not None:
                    pending.append(job)
            for future, _ in pending:
                future.cancel()
            for _ in self._threads:
                self._jobs.put(None)
        logger.debug(
            "%s pool shut down, %d queued jobs cancelled",
            self._name,
            len(pending),
        )
