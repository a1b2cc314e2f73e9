# reactorhttp

A small HTTP server built on the reactor pattern. A main event loop accepts
connections and hands each one, in round-robin order, to a worker thread's
event loop. The worker reads the request, parses it and answers with a file
or a directory listing from the directory being served, then closes the
connection.

Only `GET` requests are answered with content. Any other method, or a
request that cannot be parsed, gets `Http/1.1 400 Bad Request`. A request
for a path that does not exist is answered with status 404 and the contents
of `404.html` from the served directory, so that file should be present.

## Installing

```
pip install .
```

## Running

```
reactorhttp PORT DIRECTORY
```

For example, to serve the current directory on port 8080:

```
reactorhttp 8080 .
```

The command changes its working directory to `DIRECTORY`, starts one worker
thread and serves until interrupted. Requesting `/` lists that directory;
requesting a sub-directory lists its entries (including `.` and `..`) with
their sizes and links; requesting a file sends the file with a
`Content-type` header chosen from its extension by
`reactorhttp.http_request.get_file_type`. It exits with status 1 when the
arguments are missing, the port is not a number or the directory cannot be
entered.

## Using it from Python

```python
from reactorhttp.tcp_server import TcpServer

server = TcpServer(8080, 1)   # port, number of worker threads
server.run()                  # blocks; server.stop() from another thread ends it
```

Passing port `0` binds a free port, available afterwards as `server.port`.
With zero worker threads the main loop serves the connections itself.

The building blocks can be used on their own:

- `reactorhttp.buffer.Buffer` — a growable byte buffer with `append`,
  `append_string`, `peek`, `retrieve`, `find_crlf`, `read_from_socket` and
  `send_to`.
- `reactorhttp.dispatcher` — `Channel`, `Event` and the `EpollDispatcher`,
  `PollDispatcher` and `SelectDispatcher` multiplexers. An event loop picks
  epoll where it is available, then poll, then select.
- `reactorhttp.event_loop.EventLoop` — a reactor owned by one thread, with a
  thread-safe task queue (`add_task` with `TaskType.ADD`, `DEL` or `MOD`),
  `run`, `stop` and `wake_up`. It is also a context manager that releases
  its dispatcher and wake-up sockets.
- `reactorhttp.http_request.HttpRequest` — request-line and header parsing,
  plus `send_file` and `send_dir` for the response body.
- `reactorhttp.http_response.HttpResponse` — status line, headers (at most
  16) and the body sender.
- `reactorhttp.tcp_connection.TcpConnection` — one client connection on a
  loop.
- `reactorhttp.thread_pool.ThreadPool` and `WorkThread` — worker threads,
  each running its own event loop.

Diagnostics go to the standard `logging` module at debug level.

## What it does not do

- One request per connection: there is no keep-alive.
- Request bodies are not read, so methods such as `POST` are not supported.
- Responses carry only a `Content-type` header; there is no
  `Content-Length`, caching or range support.
- No TLS, no configuration file, no access log.

## Tests

```
pip install .[test]
pytest
```