"""Channels and the I/O multiplexing back ends that watch them."""

from __future__ import annotations

import abc
import contextlib
import enum
import logging
import select
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], object]


class Event(enum.IntFlag):
    """Events a channel can be watched for."""

    READ = 0x02
    WRITE = 0x04


@dataclass(eq=False)
class Channel:
    """A file descriptor with the events to watch and their handlers."""

    fd: int
    events: Event
    read_callback: Optional[Callback] = None
    write_callback: Optional[Callback] = None
    destroy_callback: Optional[Callback] = None

    def enable_write(self, flag: bool) -> None:
        """Turn watching for write readiness on or off."""
        if flag:
            self.events |= Event.WRITE
        else:
            self.events &= ~Event.WRITE

    @property
    def write_enabled(self) -> bool:
        return bool(self.events & Event.WRITE)


class _Loop(Protocol):
    thread_name: str

    def event_active(self, fd: int, event: Event) -> object: ...


class Dispatcher(abc.ABC):
    """Watches registered channels and reports ready ones to a loop."""

    def __init__(self, loop: _Loop) -> None:
        self._loop = loop

    @abc.abstractmethod
    def add(self, channel: Channel) -> None:
        """Start watching ``channel``."""

    @abc.abstractmethod
    def remove(self, channel: Channel) -> None:
        """Stop watching ``channel`` and run its destroy callback."""

    @abc.abstractmethod
    def modify(self, channel: Channel) -> None:
        """Update the watched events of ``channel``."""

    @abc.abstractmethod
    def dispatch(self, timeout: float) -> None:
        """Wait up to ``timeout`` seconds and report ready channels."""

    @abc.abstractmethod
    def clear(self) -> None:
        """Release the resources held by the dispatcher."""

    def _report(self, fd: int, readable: bool, writable: bool) -> None:
        if readable:
            logger.debug("read event on fd %d", fd)
            self._loop.event_active(fd, Event.READ)
        if writable:
            logger.debug("write event on fd %d", fd)
            self._loop.event_active(fd, Event.WRITE)

    @staticmethod
    def _destroy(channel: Channel) -> None:
        if channel.destroy_callback is not None:
            channel.destroy_callback()


class EpollDispatcher(Dispatcher):
    """Dispatcher built on epoll."""

    MAX_EVENTS = 520

    def __init__(self, loop: _Loop) -> None:
        super().__init__(loop)
        self._epoll = select.epoll(1)

    @staticmethod
    def _mask(channel: Channel) -> int:
        mask = 0
        if channel.events & Event.READ:
            mask |= select.EPOLLIN
        if channel.events & Event.WRITE:
            mask |= select.EPOLLOUT
        return mask

    def add(self, channel: Channel) -> None:
        with contextlib.suppress(OSError):
            self._epoll.register(channel.fd, self._mask(channel))

    def remove(self, channel: Channel) -> None:
        with contextlib.suppress(OSError):
            self._epoll.unregister(channel.fd)
        self._destroy(channel)

    def modify(self, channel: Channel) -> None:
        with contextlib.suppress(OSError):
            self._epoll.modify(channel.fd, self._mask(channel))

    def dispatch(self, timeout: float) -> None:
        logger.debug("%s dispatch begins listening", self._loop.thread_name)
        ready = self._epoll.poll(timeout, self.MAX_EVENTS)
        logger.debug("%d events ready", len(ready))
        for fd, mask in ready:
            self._report(
                fd,
                bool(mask & select.EPOLLIN),
                bool(mask & select.EPOLLOUT),
            )

    def clear(self) -> None:
        self._epoll.close()


class PollDispatcher(Dispatcher):
    """Dispatcher built on poll, holding at most ``MAX_FDS`` channels."""

    MAX_FDS = 1024

    def __init__(self, loop: _Loop) -> None:
        super().__init__(loop)
        self._poll = select.poll()
        self._fds: set[int] = set()

    @staticmethod
    def _mask(channel: Channel) -> int:
        mask = 0
        if channel.events & Event.READ:
            mask |= select.POLLIN
        if channel.events & Event.WRITE:
            mask |= select.POLLOUT
        return mask

    def add(self, channel: Channel) -> None:
        if channel.fd not in self._fds and len(self._fds) >= self.MAX_FDS:
            raise ValueError("poll dispatcher cannot hold more descriptors")
        self._poll.register(channel.fd, self._mask(channel))
        self._fds.add(channel.fd)

    def remove(self, channel: Channel) -> None:
        if channel.fd in self._fds:
            self._poll.unregister(channel.fd)
            self._fds.discard(channel.fd)
        self._destroy(channel)

    def modify(self, channel: Channel) -> None:
        if channel.fd in self._fds:
            self._poll.modify(channel.fd, self._mask(channel))

    def dispatch(self, timeout: float) -> None:
        for fd, mask in self._poll.poll(timeout * 1000):
            self._report(
                fd,
                bool(mask & select.POLLIN),
                bool(mask & select.POLLOUT),
            )

    def clear(self) -> None:
        for fd in self._fds:
            self._poll.unregister(fd)
        self._fds.clear()


class SelectDispatcher(Dispatcher):
    """Dispatcher built on select, limited to descriptors below ``MAX_FD``."""

    MAX_FD = 1024

    def __init__(self, loop: _Loop) -> None:
        super().__init__(loop)
        self._readers: set[int] = set()
        self._writers: set[int] = set()

    def _check(self, channel: Channel) -> None:
        if channel.fd >= self.MAX_FD:
            raise ValueError(
                f"descriptor {channel.fd} is beyond the select limit"
            )

    def add(self, channel: Channel) -> None:
        self._check(channel)
        if channel.events & Event.READ:
            self._readers.add(channel.fd)
        if channel.events & Event.WRITE:
            self._writers.add(channel.fd)

    def remove(self, channel: Channel) -> None:
        self._check(channel)
        if channel.events & Event.READ:
            self._readers.discard(channel.fd)
        if channel.events & Event.WRITE:
            self._writers.discard(channel.fd)
        self._destroy(channel)

    def modify(self, channel: Channel) -> None:
        self._check(channel)
        for watched, event in (
            (self._readers, Event.READ),
            (self._writers, Event.WRITE),
        ):
            if channel.events & event:
                watched.add(channel.fd)
            else:
                watched.discard(channel.fd)

    def dispatch(self, timeout: float) -> None:
        readable, writable, _ = select.select(
            list(self._readers), list(self._writers), [], timeout
        )
        ready_read, ready_write = set(readable), set(writable)
        for fd in sorted(ready_read | ready_write):
            self._report(fd, fd in ready_read, fd in ready_write)

    def clear(self) -> None:
        self._readers.clear()
        self._writers.clear()