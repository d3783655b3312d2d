import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest


class OriginHandler(BaseHTTPRequestHandler):
    def log_message(self, format, *args):
        pass

    def _reply(self, status, body=b"", content_type=None, extra=()):
        self.send_response(status)
        if content_type:
            self.send_header("Content-Type", content_type)
        for name, value in extra:
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def _handle(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""
        if self.path == "/echo":
            self._reply(200, body, self.headers.get("X-Reply-Type"))
        elif self.path == "/headers":
            lines = "\n".join(f"{k.lower()}: {v}" for k, v in self.headers.items())
            self._reply(200, lines.encode(), "text/plain")
        elif self.path == "/redirect":
            self._reply(302, extra=[("Location", "/final")])
        elif self.path == "/final":
            self._reply(200, f"final {self.command}".encode(), "text/plain; charset=utf-8")
        elif self.path == "/loop":
            self._reply(302, extra=[("Location", "/loop")])
        elif self.path == "/png":
            self._reply(200, b"\x89PNG\r\n\x1a\n\x00\x01", "image/png")
        elif self.path == "/dupes":
            self._reply(200, b"{}", "application/json", extra=[("X-Dup", "one"), ("X-Dup", "two")])
        elif self.path == "/slow":
            time.sleep(1.0)
            self._reply(200, b"late", "text/plain")
        else:
            self._reply(404, b"not found", "text/plain")

    do_GET = do_POST = do_PUT = do_DELETE = do_HEAD = _handle


@pytest.fixture
def origin():
    server = ThreadingHTTPServer(("127.0.0.1", 0), OriginHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()
