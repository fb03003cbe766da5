from __future__ import annotations

import logging
import threading
import time
from queue import Queue
from typing import Callable, Dict, List, Optional


class BaseQueue:
    def enqueue(self, name: str) -> None: ...  # pragma: no cover

    def active(self) -> List[str]: ...  # pragma: no cover


class LocalQueue(BaseQueue):
    """Runs jobs on background threads.

    With ``max_workers`` unset every enqueued job gets its own thread and starts
    immediately. With ``max_workers`` set, a fixed pool drains an admission queue.
    """

    def __init__(
        self,
        processor: Callable[[str], None],
        max_workers: int | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._processor = processor
        self._max_workers = max_workers
        self.log = logger or logging.getLogger(__name__)
        self._active: Dict[str, int] = {}
        self._pending = 0
        self._cond = threading.Condition()
        self._queue: Queue[str] | None = None
        if max_workers is not None:
            self._queue = Queue()
            for index in range(max_workers):
                thread = threading.Thread(target=self._run, name=f"transcode-worker-{index}", daemon=True)
                thread.start()

    def enqueue(self, name: str) -> None:
        with self._cond:
            self._pending += 1
        if self._queue is not None:
            self._queue.put(name)
            return
        thread = threading.Thread(target=self._execute, args=(name,), name=f"transcode-{name}", daemon=True)
        thread.start()

    def active(self) -> List[str]:
        with self._cond:
            return sorted(self._active)

    def join(self, timeout: float | None = None) -> bool:
        """Wait until every enqueued job has finished. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._pending:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._cond.wait(remaining)
        return True

    def _run(self) -> None:
        assert self._queue is not None
        while True:
            name = self._queue.get()
            try:
                self._execute(name)
            finally:
                self._queue.task_done()

    def _execute(self, name: str) -> None:
        with self._cond:
            self._active[name] = self._active.get(name, 0) + 1
        try:
            self._processor(name)
        except Exception:
            self.log.exception("transcode task crashed", extra={"video": name})
        finally:
            with self._cond:
                self._active[name] -= 1
                if not self._active[name]:
                    del self._active[name]
                self._pending -= 1
                self._cond.notify_all()
