"""HTTP request parsing and static file or directory responses."""

from __future__ import annotations

import enum
import logging
import os
import socket
import stat
from dataclasses import dataclass, field
from typing import Optional

from reactorhttp.buffer import Buffer
from reactorhttp.http_response import HttpResponse, HttpStatus

logger = logging.getLogger(__name__)

MAX_HEADERS = 12
_CHUNK_SIZE = 1024
_ENCODING = "latin-1"

_DEFAULT_TYPE = "text/plain;charset=utf-8"
_FILE_TYPES = {
    ".html": "text/html;charset=utf-8",
    ".htm": "text/html;charset=utf-8",
    ".jpg": "image/jpeg;",
    ".jpeg": "image/jpeg;",
    ".png": "image/png;",
    ".css": "text/css;",
    ".au": "audio/basic;",
    ".wav": "audio/wav;",
    ".js": "text/javascript;",
    ".ico": "image / x - icon;",
    ".tif": "image/tiff;",
    ".tiff": "image/tiff;",
    ".svg": "text/xml;",
    ".woff": "application/font-woff;",
}


class ParseState(enum.Enum):
    """Which part of the request the parser expects next."""

    REQUEST_LINE = enum.auto()
    HEADER_LINE = enum.auto()
    BODY = enum.auto()
    DONE = enum.auto()


def get_file_type(name: str) -> str:
    """Content type for ``name``, judged by the text after its last dot."""
    dot = name.rfind(".")
    if dot == -1:
        return _DEFAULT_TYPE
    return _FILE_TYPES.get(name[dot:], _DEFAULT_TYPE)


def _flush(send_buffer: Buffer, sock: socket.socket) -> None:
    while send_buffer.readable_bytes():
        if not send_buffer.send_to(sock):
            break


def send_file(
    filename: Optional[str], send_buffer: Buffer, sock: socket.socket
) -> None:
    """Stream the file's contents to ``sock`` and then close ``sock``."""
    if filename is None:
        raise ValueError("no file to send")
    with open(filename, "rb") as source:
        for chunk in iter(lambda: source.read(_CHUNK_SIZE), b""):
            send_buffer.append(chunk)
            send_buffer.send_to(sock)
    _flush(send_buffer, sock)
    logger.debug("%s has been sent", filename)
    sock.close()


def _listing_row(dir_name: str, name: str) -> Optional[str]:
    try:
        info = os.stat(f"{dir_name}/{name}")
    except OSError:
        return None
    href = f"{name}/" if stat.S_ISDIR(info.st_mode) else name
    return (
        f'<tr><td><a href="{href}">{name}</a></td> '
        f"<td>{info.st_size}</td></tr>"
    )


def send_dir(
    dir_name: Optional[str], send_buffer: Buffer, sock: socket.socket
) -> None:
    """Send an HTML table listing the entries of ``dir_name``."""
    if dir_name is None:
        raise ValueError("no directory to list")
    names = sorted([".", "..", *os.listdir(dir_name)])
    pending = f"<html><head><title>{dir_name}</title></head><body><table>"
    for name in names:
        row = _listing_row(dir_name, name)
        if row is None:
            continue
        send_buffer.append_string(pending + row)
        send_buffer.send_to(sock)
        pending = ""
    send_buffer.append_string(pending + "</table><body></html>")
    _flush(send_buffer, sock)


@dataclass
class HttpRequest:
    """A request being parsed from a connection's read buffer."""

    method: Optional[str] = None
    url: Optional[str] = None
    version: Optional[str] = None
    headers: list[tuple[str, str]] = field(default_factory=list)
    state: ParseState = ParseState.REQUEST_LINE

    def reset(self) -> None:
        """Forget everything parsed so far."""
        self.method = None
        self.url = None
        self.version = None
        self.headers.clear()
        self.state = ParseState.REQUEST_LINE

    def add_header(self, key: str, value: str) -> None:
        """Store a request header; at most ``MAX_HEADERS`` are allowed."""
        if len(self.headers) >= MAX_HEADERS:
            raise ValueError(f"a request holds at most {MAX_HEADERS} headers")
        self.headers.append((key, value))

    def get_header(self, key: str) -> Optional[str]:
        """Value of the first header named ``key``, ignoring case."""
        wanted = key.lower()
        return next(
            (value for name, value in self.headers if name.lower() == wanted),
            None,
        )

    def parse_request_line(self, buffer: Buffer) -> bool:
        """Consume the request line; False if no non-empty line is there."""
        end = buffer.find_crlf()
        if not end:
            return False
        parts = buffer.peek()[:end].split(b" ", 2)
        if len(parts) < 3:
            raise ValueError("malformed request line")
        self.method, self.url, self.version = (
            part.decode(_ENCODING) for part in parts
        )
        logger.debug("method: %s url: %s version: %s",
                     self.method, self.url, self.version)
        buffer.retrieve(end + 2)
        self.state = ParseState.HEADER_LINE
        return True

    def parse_header_line(self, buffer: Buffer) -> bool:
        """Consume one header line; False at the blank line or on bad input."""
        end = buffer.find_crlf()
        if end is None:
            return False
        if end == 0:
            buffer.retrieve(2)
            self.state = ParseState.DONE
            return False
        line = buffer.peek()[:end]
        key, sep, value = line.partition(b": ")
        if not sep:
            return False
        self.add_header(key.decode(_ENCODING), value.decode(_ENCODING))
        buffer.retrieve(end + 2)
        return True

    def parse(
        self,
        buffer: Buffer,
        response: HttpResponse,
        send_buffer: Buffer,
        sock: socket.socket,
    ) -> bool:
        """Parse a whole GET request and send the response to ``sock``.

        Returns False when the request is incomplete, malformed or not a GET.
        """
        try:
            ok = self.parse_request_line(buffer)
            while (
                self.state is ParseState.HEADER_LINE
                and self.parse_header_line(buffer)
            ):
                pass
        except ValueError as exc:
            logger.debug("bad request: %s", exc)
            ok = False
        if self.state is not ParseState.DONE:
            logger.debug("request parsing did not finish")
            ok = False
        elif self.process(response):
            response.prepare_message(send_buffer, sock)
        else:
            ok = False
        self.state = ParseState.REQUEST_LINE
        return ok

    def process(self, response: HttpResponse) -> bool:
        """Fill ``response`` for the requested path; False unless GET."""
        if self.method is None or self.method.lower() != "get":
            return False
        path = "./" if self.url == "/" else (self.url or "/")[1:]
        try:
            info = os.stat(path)
        except OSError:
            response.status_code = HttpStatus.NOT_FOUND
            response.status_message = "Not Found"
            response.filename = "404.html"
            response.add_header("Content-type", get_file_type(".html"))
            response.send_func = send_file
            return True
        response.status_code = HttpStatus.OK
        response.status_message = "OK"
        response.filename = path
        if stat.S_ISDIR(info.st_mode):
            response.add_header("Content-type", get_file_type(".html"))
            response.send_func = send_dir
        else:
            response.add_header("Content-type", get_file_type(path))
            response.send_func = send_file
        return True