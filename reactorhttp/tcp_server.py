"""Listening server that hands accepted connections to worker loops."""

from __future__ import annotations

import contextlib
import logging
import os
import socket
import sys
from typing import Optional, Sequence

from reactorhttp.dispatcher import Channel, Event
from reactorhttp.event_loop import EventLoop, TaskType
from reactorhttp.tcp_connection import TcpConnection
from reactorhttp.thread_pool import ThreadPool

logger = logging.getLogger(__name__)

BACKLOG = 128
USAGE = "usage: reactorhttp PORT PATH"


def create_listener(port: int) -> socket.socket:
    """A TCP socket bound to ``port`` on all interfaces and listening."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind(("", port))
        listener.listen(BACKLOG)
    except OSError:
        listener.close()
        raise
    return listener


class TcpServer:
    """Accepts connections on the main loop and serves them on worker loops."""

    def __init__(self, port: int, thread_count: int) -> None:
        self.main_loop = EventLoop()
        self.thread_count = thread_count
        self.pool = ThreadPool(self.main_loop, thread_count)
        self.listener = create_listener(port)
        self.port = self.listener.getsockname()[1]

    def __repr__(self) -> str:
        return f"TcpServer(port={self.port}, thread_count={self.thread_count})"

    def accept_connection(self) -> Optional[TcpConnection]:
        """Accept one client and hand it to the next worker loop."""
        try:
            sock, _ = self.listener.accept()
        except OSError as exc:
            logger.debug("accept failed: %s", exc)
            return None
        return TcpConnection(sock, self.pool.take_worker_loop())

    def run(self) -> None:
        """Start the workers and run the main loop until stopped."""
        self.pool.run()
        try:
            channel = Channel(
                self.listener.fileno(),
                Event.READ,
                read_callback=self.accept_connection,
            )
            with self.main_loop:
                self.main_loop.add_task(channel, TaskType.ADD)
                self.main_loop.run()
        finally:
            self.pool.stop()
            self.listener.close()

    def stop(self) -> None:
        """Ask a running server to shut down."""
        with contextlib.suppress(OSError):
            self.main_loop.stop()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Serve the files under PATH on PORT."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        print(USAGE, file=sys.stderr)
        return 1
    try:
        port = int(args[0])
    except ValueError:
        print(f"invalid port: {args[0]}", file=sys.stderr)
        return 1
    try:
        os.chdir(args[1])
    except OSError as exc:
        print(f"cannot serve {args[1]}: {exc}", file=sys.stderr)
        return 1
    server = TcpServer(port, 1)
    try:
        server.run()
    except KeyboardInterrupt:
        pass
    return 0