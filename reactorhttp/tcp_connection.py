"""One accepted client connection served by a reactor loop."""

from __future__ import annotations

import contextlib
import logging
import socket

from reactorhttp.buffer import Buffer
from reactorhttp.dispatcher import Channel, Event
from reactorhttp.event_loop import EventLoop, TaskType
from reactorhttp.http_request import HttpRequest
from reactorhttp.http_response import HttpResponse

logger = logging.getLogger(__name__)

BUFFER_CAPACITY = 10240
BAD_REQUEST_MESSAGE = "Http/1.1 400 Bad Request\r\n\r\n"


class TcpConnection:
    """Reads one HTTP request from a client, answers it and disconnects."""

    def __init__(self, sock: socket.socket, loop: EventLoop) -> None:
        self.sock = sock
        self.loop = loop
        self.read_buffer = Buffer(BUFFER_CAPACITY)
        self.write_buffer = Buffer(BUFFER_CAPACITY)
        self.request = HttpRequest()
        self.response = HttpResponse()
        fd = sock.fileno()
        self.name = f"Connection-{fd}"
        self.closed = False
        self.channel = Channel(
            fd,
            Event.READ,
            read_callback=self.process_read,
            write_callback=self.process_write,
            destroy_callback=self.destroy,
        )
        logger.debug("adding %s to %s", self.name, loop.thread_name)
        loop.add_task(self.channel, TaskType.ADD)

    def __repr__(self) -> str:
        return f"TcpConnection(name={self.name!r}, closed={self.closed})"

    def process_read(self) -> None:
        """Receive the request, send the response, then drop the connection."""
        try:
            count = self.read_buffer.read_from_socket(self.sock)
        except OSError as exc:
            logger.debug("%s read failed: %s", self.name, exc)
            count = -1
        if count > 0:
            try:
                ok = self.request.parse(
                    self.read_buffer, self.response, self.write_buffer, self.sock
                )
            except OSError as exc:
                logger.debug("%s could not answer: %s", self.name, exc)
                ok = True
            if not ok:
                self.write_buffer.append_string(BAD_REQUEST_MESSAGE)
                with contextlib.suppress(OSError):
                    while self.write_buffer.readable_bytes():
                        if not self.write_buffer.send_to(self.sock):
                            break
        self.loop.add_task(self.channel, TaskType.DEL)

    def process_write(self) -> None:
        """Send pending output; disconnect once everything has gone out."""
        logger.debug("%s writes its response", self.name)
        sent = self.write_buffer.send_to(self.sock)
        if sent > 0 and self.write_buffer.readable_bytes() == 0:
            self.loop.add_task(self.channel, TaskType.DEL)

    def destroy(self) -> bool:
        """Close the connection if both buffers are drained; report whether it was."""
        if self.read_buffer.readable_bytes() or self.write_buffer.readable_bytes():
            return False
        self.sock.close()
        self.closed = True
        return True