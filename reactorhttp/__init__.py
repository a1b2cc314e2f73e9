"""A multi-threaded reactor-style HTTP server for static files and directory listings."""

__version__ = "0.1.0"

__all__ = [
    "buffer",
    "dispatcher",
    "event_loop",
    "http_request",
    "http_response",
    "tcp_connection",
    "tcp_server",
    "thread_pool",
]