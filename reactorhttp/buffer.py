"""Growable byte buffer with separate read and write positions."""

from __future__ import annotations

import socket

_EXTRA_READ = 2 * 40960


class Buffer:
    """A byte buffer that grows on demand and compacts consumed space."""

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self.capacity = capacity
        self._data = bytearray()
        self._read_pos = 0

    def __repr__(self) -> str:
        return (
            f"Buffer(capacity={self.capacity}, "
            f"readable={self.readable_bytes()})"
        )

    def _writable_bytes(self) -> int:
        return self.capacity - len(self._data)

    def _ensure_writable(self, size: int) -> None:
        if self._writable_bytes() > size:
            return
        if self._writable_bytes() + self._read_pos > size:
            # Enough room once the consumed prefix is dropped.
            del self._data[: self._read_pos]
            self._read_pos = 0
        else:
            self.capacity += size

    def append(self, data: bytes) -> None:
        """Append raw bytes, growing or compacting the buffer as needed."""
        if not data:
            raise ValueError("cannot append empty data")
        self._ensure_writable(len(data))
        self._data += data

    def append_string(self, text: str) -> None:
        """Append text encoded as UTF-8; an empty string is ignored."""
        if text:
            self.append(text.encode("utf-8"))

    def readable_bytes(self) -> int:
        """Number of bytes written but not yet consumed."""
        return len(self._data) - self._read_pos

    def peek(self) -> bytes:
        """Return the unread bytes without consuming them."""
        return bytes(self._data[self._read_pos:])

    def retrieve(self, size: int) -> bytes:
        """Consume and return the next ``size`` unread bytes."""
        if size < 0 or size > self.readable_bytes():
            raise ValueError(
                f"cannot retrieve {size} bytes, "
                f"{self.readable_bytes()} readable"
            )
        chunk = bytes(self._data[self._read_pos : self._read_pos + size])
        self._read_pos += size
        return chunk

    def find_crlf(self) -> int | None:
        """Offset of the first CRLF in the unread data, or None."""
        index = self._data.find(b"\r\n", self._read_pos)
        if index == -1:
            return None
        return index - self._read_pos

    def read_from_socket(self, sock: socket.socket) -> int:
        """Receive available data from ``sock``; return the byte count."""
        limit = max(self._writable_bytes(), 0) + _EXTRA_READ
        chunk = sock.recv(limit)
        if chunk:
            self.append(chunk)
        return len(chunk)

    def send_to(self, sock: socket.socket) -> int:
        """Send unread data to ``sock``; return how many bytes went out."""
        if not self.readable_bytes():
            return 0
        sent = sock.send(memoryview(self._data)[self._read_pos :])
        self._read_pos += sent
        return sent