"""Reactor loop: watches channels and applies queued channel changes."""

from __future__ import annotations

import contextlib
import enum
import logging
import select
import socket
import threading
from collections import deque
from typing import Optional

from reactorhttp.dispatcher import (
    Channel,
    Dispatcher,
    EpollDispatcher,
    Event,
    PollDispatcher,
    SelectDispatcher,
)

logger = logging.getLogger(__name__)

MAIN_THREAD_NAME = "mainthread"
DISPATCH_TIMEOUT = 2
_WAKE_MESSAGE = b"1234"


class TaskType(enum.Enum):
    """Kinds of change that can be queued for a loop."""

    ADD = enum.auto()
    DEL = enum.auto()
    MOD = enum.auto()


def _default_dispatcher(loop: "EventLoop") -> Dispatcher:
    if hasattr(select, "epoll"):
        return EpollDispatcher(loop)
    if hasattr(select, "poll"):
        return PollDispatcher(loop)
    return SelectDispatcher(loop)


class EventLoop:
    """A reactor owned by one thread.

    Other threads hand it channel changes through :meth:`add_task`; the
    owning thread applies them between dispatch rounds.
    """

    def __init__(self, thread_name: Optional[str] = None) -> None:
        self.thread_name = MAIN_THREAD_NAME if thread_name is None else thread_name
        self.thread_id = threading.get_ident()
        self.channels: dict[int, Channel] = {}
        self._quit = False
        self._lock = threading.Lock()
        self._tasks: deque[tuple[Channel, TaskType]] = deque()
        self.dispatcher = _default_dispatcher(self)
        self._wake_send, self._wake_recv = socket.socketpair()
        wake_channel = Channel(
            self._wake_recv.fileno(),
            Event.READ,
            read_callback=self._read_wake_message,
        )
        self.add_task(wake_channel, TaskType.ADD)

    def __repr__(self) -> str:
        return f"EventLoop(thread_name={self.thread_name!r})"

    def __enter__(self) -> "EventLoop":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._close()

    def _close(self) -> None:
        self.dispatcher.clear()
        self._wake_send.close()
        self._wake_recv.close()

    def _read_wake_message(self) -> None:
        with contextlib.suppress(OSError):
            self._wake_recv.recv(1024)

    @property
    def quit_requested(self) -> bool:
        return self._quit

    def run(self) -> None:
        """Dispatch events and apply queued tasks until stopped."""
        if threading.get_ident() != self.thread_id:
            raise RuntimeError(
                f"event loop {self.thread_name!r} must run in the thread "
                "that created it"
            )
        logger.debug("event loop %s running", self.thread_name)
        while not self._quit:
            self.dispatcher.dispatch(DISPATCH_TIMEOUT)
            self.process_tasks()

    def stop(self) -> None:
        """Ask the loop to finish after its current round."""
        self._quit = True
        self.wake_up()

    def wake_up(self) -> None:
        """Interrupt a blocked dispatch so queued tasks get applied."""
        logger.debug("waking up %s", self.thread_name)
        self._wake_send.send(_WAKE_MESSAGE)

    def event_active(self, fd: int, event: Event) -> None:
        """Run the handlers of the channel on ``fd`` for ``event``."""
        if fd < 0:
            raise ValueError(f"invalid descriptor {fd}")
        channel = self.channels.get(fd)
        if channel is None:
            logger.debug("event on unregistered fd %d ignored", fd)
            return
        assert channel.fd == fd
        if event & Event.READ and channel.read_callback is not None:
            channel.read_callback()
        if event & Event.WRITE and channel.write_callback is not None:
            channel.write_callback()

    def add_task(self, channel: Channel, task_type: TaskType) -> None:
        """Queue a channel change; apply it now if called on the loop thread."""
        logger.debug(
            "%s queues %s for fd %d", self.thread_name, task_type.name, channel.fd
        )
        with self._lock:
            self._tasks.append((channel, task_type))
        if threading.get_ident() == self.thread_id:
            self.process_tasks()
        else:
            self.wake_up()

    def process_tasks(self) -> None:
        """Apply every queued channel change in order."""
        while True:
            with self._lock:
                if not self._tasks:
                    return
                channel, task_type = self._tasks.popleft()
            try:
                if task_type is TaskType.ADD:
                    self.add(channel)
                elif task_type is TaskType.DEL:
                    self.remove(channel)
                else:
                    self.modify(channel)
            except KeyError:
                logger.debug(
                    "%s task for unregistered fd %d skipped",
                    task_type.name,
                    channel.fd,
                )

    def add(self, channel: Channel) -> None:
        """Register ``channel`` unless its descriptor is already watched."""
        if channel.fd not in self.channels:
            self.channels[channel.fd] = channel
            self.dispatcher.add(channel)

    def remove(self, channel: Channel) -> None:
        """Unregister ``channel``; raises KeyError if it is not registered."""
        if channel.fd not in self.channels:
            raise KeyError(channel.fd)
        del self.channels[channel.fd]
        self.dispatcher.remove(channel)

    def modify(self, channel: Channel) -> None:
        """Update watched events; raises KeyError if not registered."""
        if channel.fd not in self.channels:
            raise KeyError(channel.fd)
        self.dispatcher.modify(channel)