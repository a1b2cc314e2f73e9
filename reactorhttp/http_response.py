"""HTTP response status line, headers and body sender."""

from __future__ import annotations

import enum
import socket
from dataclasses import dataclass, field
from typing import Callable, Optional

from reactorhttp.buffer import Buffer

MAX_HEADERS = 16

BodySender = Callable[[Optional[str], Buffer, socket.socket], object]


class HttpStatus(enum.IntEnum):
    """Status codes the server can answer with."""

    UNKNOWN = 0
    OK = 200
    MOVED_PERMANENTLY = 301
    MOVED_TEMPORARILY = 302
    BAD_REQUEST = 400
    NOT_FOUND = 404


@dataclass
class HttpResponse:
    """A response being assembled: status, headers and how to send the body."""

    status_code: HttpStatus = HttpStatus.UNKNOWN
    status_message: str = ""
    headers: list[tuple[str, str]] = field(default_factory=list)
    send_func: Optional[BodySender] = None
    filename: Optional[str] = None

    def add_header(self, key: str, value: str) -> None:
        """Append a response header; at most ``MAX_HEADERS`` are allowed."""
        if len(self.headers) >= MAX_HEADERS:
            raise ValueError(f"a response holds at most {MAX_HEADERS} headers")
        self.headers.append((key, value))

    def prepare_message(self, send_buffer: Buffer, sock: socket.socket) -> None:
        """Send the status line and headers, then hand over to the body sender."""
        if self.send_func is None:
            raise RuntimeError("response has no body sender")
        send_buffer.append_string(
            f"HTTP/1.1 {int(self.status_code)} {self.status_message}\r\n"
        )
        for key, value in self.headers:
            send_buffer.append_string(f"{key}: {value}\r\n")
        send_buffer.append_string("\r\n")
        send_buffer.send_to(sock)
        self.send_func(self.filename, send_buffer, sock)