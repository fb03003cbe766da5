from __future__ import annotations

from contextlib import contextmanager
from threading import Condition, Lock
from typing import Dict, Iterator, List, Mapping, Tuple

from hls_service.models.domain import TranscodeJob


class ReadWriteLock:
    """Many concurrent readers or one writer. Waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = Condition(Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class RegistryView:
    """Unlocked access to the job mapping, valid only inside the lock scope that produced it."""

    def __init__(self, jobs: Dict[str, TranscodeJob], writable: bool) -> None:
        self._jobs = jobs
        self._writable = writable

    def get(self, name: str) -> TranscodeJob | None:
        job = self._jobs.get(name)
        return job.model_copy(deep=True) if job else None

    def put(self, name: str, job: TranscodeJob) -> None:
        if not self._writable:
            raise RuntimeError("registry view is read-only")
        self._jobs[name] = job.model_copy(deep=True)

    def snapshot(self) -> Dict[str, TranscodeJob]:
        return {name: job.model_copy(deep=True) for name, job in self._jobs.items()}


class TranscodeJobRepository:
    def __init__(self, jobs: Mapping[str, TranscodeJob] | None = None) -> None:
        self._jobs: Dict[str, TranscodeJob] = {}
        self._lock = ReadWriteLock()
        if jobs:
            self.replace_all(jobs)

    def get(self, name: str) -> TranscodeJob | None:
        with self.shared() as view:
            return view.get(name)

    def put(self, name: str, job: TranscodeJob) -> None:
        with self.exclusive() as view:
            view.put(name, job)

    def list(self) -> List[Tuple[str, TranscodeJob]]:
        with self.shared() as view:
            return list(view.snapshot().items())

    def replace_all(self, jobs: Mapping[str, TranscodeJob]) -> None:
        with self._lock.write():
            self._jobs = {name: job.model_copy(deep=True) for name, job in jobs.items()}

    @contextmanager
    def shared(self) -> Iterator[RegistryView]:
        with self._lock.read():
            yield RegistryView(self._jobs, writable=False)

    @contextmanager
    def exclusive(self) -> Iterator[RegistryView]:
        with self._lock.write():
            yield RegistryView(self._jobs, writable=True)
