import socket

import pytest

from reactorhttp.buffer import Buffer
from reactorhttp.http_request import (
    MAX_HEADERS,
    HttpRequest,
    ParseState,
    get_file_type,
    send_dir,
    send_file,
)
from reactorhttp.http_response import HttpResponse, HttpStatus


def _buffer(data: bytes) -> Buffer:
    buf = Buffer(1024)
    buf.append(data)
    return buf


def _recv_all(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    yield a, b
    a.close()
    b.close()


@pytest.mark.parametrize(
    "name, expected",
    [
        ("index.html", "text/html;charset=utf-8"),
        ("page.htm", "text/html;charset=utf-8"),
        ("photo.jpg", "image/jpeg;"),
        ("photo.jpeg", "image/jpeg;"),
        ("logo.png", "image/png;"),
        ("style.css", "text/css;"),
        ("app.js", "text/javascript;"),
        ("drawing.svg", "text/xml;"),
        ("font.woff", "application/font-woff;"),
        ("README", "text/plain;charset=utf-8"),
        ("archive.unknown", "text/plain;charset=utf-8"),
    ],
)
def test_get_file_type(name, expected):
    assert get_file_type(name) == expected


def test_parse_request_line_reads_parts():
    buf = _buffer(b"GET /a.txt HTTP/1.1\r\nHost: example.com\r\n\r\n")
    req = HttpRequest()
    assert req.parse_request_line(buf) is True
    assert (req.method, req.url, req.version) == ("GET", "/a.txt", "HTTP/1.1")
    assert req.state is ParseState.HEADER_LINE
    assert buf.peek() == b"Host: example.com\r\n\r\n"


def test_parse_request_line_empty_or_incomplete():
    req = HttpRequest()
    assert req.parse_request_line(_buffer(b"\r\n")) is False
    assert req.parse_request_line(_buffer(b"GET / HTTP/1.1")) is False
    assert req.state is ParseState.REQUEST_LINE


def test_parse_request_line_malformed():
    with pytest.raises(ValueError):
        HttpRequest().parse_request_line(_buffer(b"GARBAGE\r\n"))


def test_parse_header_lines_and_lookup():
    buf = _buffer(b"Host: example.com\r\nAccept: */*\r\n\r\n")
    req = HttpRequest(state=ParseState.HEADER_LINE)
    assert req.parse_header_line(buf) is True
    assert req.parse_header_line(buf) is True
    assert req.parse_header_line(buf) is False
    assert req.state is ParseState.DONE
    assert req.get_header("host") == "example.com"
    assert req.get_header("ACCEPT") == "*/*"
    assert req.get_header("Missing") is None
    assert buf.readable_bytes() == 0


def test_header_limit():
    req = HttpRequest()
    for i in range(MAX_HEADERS):
        req.add_header(f"X-{i}", "v")
    with pytest.raises(ValueError):
        req.add_header("X-extra", "v")


def test_reset_clears_everything():
    req = HttpRequest()
    req.parse_request_line(_buffer(b"GET / HTTP/1.1\r\n"))
    req.add_header("Host", "example.com")
    req.reset()
    assert req == HttpRequest()


def test_process_rejects_non_get():
    req = HttpRequest(method="POST", url="/")
    resp = HttpResponse()
    assert req.process(resp) is False
    assert resp.status_code is HttpStatus.UNKNOWN


def test_process_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "style.css").write_text("body{}")
    resp = HttpResponse()
    assert HttpRequest(method="get", url="/style.css").process(resp) is True
    assert resp.status_code is HttpStatus.OK
    assert resp.status_message == "OK"
    assert resp.filename == "style.css"
    assert resp.headers == [("Content-type", "text/css;")]
    assert resp.send_func is send_file


def test_process_root_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    resp = HttpResponse()
    assert HttpRequest(method="GET", url="/").process(resp) is True
    assert resp.filename == "./"
    assert resp.send_func is send_dir
    assert resp.headers == [("Content-type", "text/html;charset=utf-8")]


def test_process_missing_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    resp = HttpResponse()
    assert HttpRequest(method="GET", url="/nope.txt").process(resp) is True
    assert resp.status_code is HttpStatus.NOT_FOUND
    assert resp.status_message == "Not Found"
    assert resp.filename == "404.html"
    assert resp.send_func is send_file


def test_send_file_streams_and_closes(tmp_path, pair):
    a, b = pair
    content = bytes(range(256)) * 20
    path = tmp_path / "data.bin"
    path.write_bytes(content)
    send_file(str(path), Buffer(1024), a)
    assert a.fileno() == -1
    assert _recv_all(b) == content


def test_send_file_missing(tmp_path, pair):
    a, _ = pair
    with pytest.raises(FileNotFoundError):
        send_file(str(tmp_path / "absent"), Buffer(1024), a)


def test_send_dir_lists_entries(tmp_path, pair):
    a, b = pair
    (tmp_path / "f.txt").write_bytes(b"abc")
    (tmp_path / "sub").mkdir()
    send_buffer = Buffer(1024)
    send_dir(str(tmp_path), send_buffer, a)
    assert send_buffer.readable_bytes() == 0
    a.close()
    page = _recv_all(b).decode()
    assert page.startswith(f"<html><head><title>{tmp_path}</title>")
    assert page.endswith("</table><body></html>")
    assert '<tr><td><a href="f.txt">f.txt</a></td> <td>3</td></tr>' in page
    assert '<a href="sub/">sub</a>' in page
    assert page.index('href="./"') < page.index('href="../"')
    assert page.index('href="../"') < page.index('href="f.txt"')
    assert page.index('href="f.txt"') < page.index('href="sub/"')


def test_parse_full_get_request(tmp_path, monkeypatch, pair):
    a, b = pair
    monkeypatch.chdir(tmp_path)
    (tmp_path / "hello.txt").write_bytes(b"hello world")
    req = HttpRequest()
    resp = HttpResponse()
    raw = b"GET /hello.txt HTTP/1.1\r\nHost: example.com\r\n\r\n"
    assert req.parse(_buffer(raw), resp, Buffer(1024), a) is True
    assert req.state is ParseState.REQUEST_LINE
    assert req.get_header("Host") == "example.com"
    reply = _recv_all(b)
    assert reply == (
        b"HTTP/1.1 200 OK\r\nContent-type: text/plain;charset=utf-8\r\n\r\n"
        b"hello world"
    )


def test_parse_not_found_sends_404_page(tmp_path, monkeypatch, pair):
    a, b = pair
    monkeypatch.chdir(tmp_path)
    (tmp_path / "404.html").write_bytes(b"<p>missing</p>")
    raw = b"GET /gone.html HTTP/1.1\r\n\r\n"
    assert HttpRequest().parse(_buffer(raw), HttpResponse(), Buffer(1024), a)
    reply = _recv_all(b)
    assert reply.startswith(b"HTTP/1.1 404 Not Found\r\n")
    assert reply.endswith(b"\r\n\r\n<p>missing</p>")


def test_parse_incomplete_request_fails(pair):
    a, _ = pair
    req = HttpRequest()
    raw = b"GET / HTTP/1.1\r\nHost: example.com\r\n"
    assert req.parse(_buffer(raw), HttpResponse(), Buffer(1024), a) is False
    assert req.state is ParseState.REQUEST_LINE


def test_parse_non_get_fails(pair):
    a, _ = pair
    resp = HttpResponse()
    raw = b"POST / HTTP/1.1\r\n\r\n"
    assert HttpRequest().parse(_buffer(raw), resp, Buffer(1024), a) is False
    assert resp.send_func is None


def test_parse_malformed_request_line_fails(pair):
    a, _ = pair
    raw = b"BROKEN\r\n\r\n"
    assert HttpRequest().parse(_buffer(raw), HttpResponse(), Buffer(1024), a) is False


def test_parse_too_many_headers_fails(pair):
    a, _ = pair
    headers = b"".join(b"X-%d: v\r\n" % i for i in range(MAX_HEADERS + 1))
    raw = b"GET / HTTP/1.1\r\n" + headers + b"\r\n"
    req = HttpRequest()
    assert req.parse(_buffer(raw), HttpResponse(), Buffer(1024), a) is False
    assert len(req.headers) == MAX_HEADERS