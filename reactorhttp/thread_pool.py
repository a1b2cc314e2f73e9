"""Worker threads, each running its own reactor loop."""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import Optional

from reactorhttp.event_loop import EventLoop

logger = logging.getLogger(__name__)

JOIN_TIMEOUT = 10


class WorkThread:
    """A thread that owns and runs one event loop."""

    def __init__(self, index: int) -> None:
        self.index = index
        self.name = f"subthread{index}"
        self.loop: Optional[EventLoop] = None
        self.thread_id: Optional[int] = None
        self._thread: Optional[threading.Thread] = None
        self._error: Optional[BaseException] = None
        self._ready = threading.Condition()

    def __repr__(self) -> str:
        return f"WorkThread(name={self.name!r}, alive={self.is_alive})"

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _main(self) -> None:
        try:
            loop = EventLoop(self.name)
        except BaseException as exc:
            with self._ready:
                self._error = exc
                self._ready.notify_all()
            raise
        with loop:
            with self._ready:
                self.loop = loop
                self.thread_id = threading.get_ident()
                self._ready.notify_all()
            loop.run()
        logger.debug("%s finished", self.name)

    def run(self) -> None:
        """Start the thread and wait until its event loop exists."""
        if self._thread is not None:
            raise RuntimeError(f"{self.name} has already been started")
        self._thread = threading.Thread(target=self._main, name=self.name, daemon=True)
        self._thread.start()
        with self._ready:
            self._ready.wait_for(lambda: self.loop is not None or self._error is not None)
        if self._error is not None:
            raise RuntimeError(f"{self.name} failed to start") from self._error

    def stop(self) -> None:
        """Stop the event loop and wait for the thread to end."""
        if self.loop is not None:
            with contextlib.suppress(OSError):
                self.loop.stop()
        if self._thread is not None:
            self._thread.join(JOIN_TIMEOUT)


class ThreadPool:
    """Worker loops handed out in turn; the main loop serves when there are none."""

    def __init__(self, main_loop: EventLoop, count: int) -> None:
        if count < 0:
            raise ValueError("thread count must not be negative")
        self.main_loop = main_loop
        self.thread_count = count
        self.workers: list[WorkThread] = []
        self.running = False
        self._index = 0

    def __repr__(self) -> str:
        return f"ThreadPool(thread_count={self.thread_count}, running={self.running})"

    def _check_owner(self) -> None:
        if threading.get_ident() != self.main_loop.thread_id:
            raise RuntimeError("the thread pool must be used from the main loop's thread")

    def run(self) -> None:
        """Start every worker thread."""
        if self.running:
            raise RuntimeError("the thread pool is already running")
        self._check_owner()
        self.running = True
        for index in range(self.thread_count):
            worker = WorkThread(index)
            worker.run()
            self.workers.append(worker)

    def take_worker_loop(self) -> EventLoop:
        """The next worker's loop in round-robin order, or the main loop."""
        if not self.running:
            raise RuntimeError("the thread pool is not running")
        self._check_owner()
        if not self.workers:
            return self.main_loop
        loop = self.workers[self._index].loop
        assert loop is not None
        self._index = (self._index + 1) % len(self.workers)
        return loop

    def stop(self) -> None:
        """Stop every worker thread."""
        for worker in self.workers:
            worker.stop()
        self.workers.clear()
        self._index = 0
        self.running = False