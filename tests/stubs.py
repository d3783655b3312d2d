from typing import List, Optional, Tuple

from fetchproxy.errors import TransportError
from fetchproxy.types import RawResponse, TransportProtocol


class StubTransport(TransportProtocol):
    """Records every send and answers from a fixed response or callable."""

    def __init__(self, status=200, headers=None, body=b"", handler=None, error: Optional[str] = None):
        self.status = status
        self.headers: List[Tuple[str, str]] = list(headers or [])
        self.body = body
        self.handler = handler
        self.error = error
        self.calls = []
        self.released = 0

    def send(self, method, url, headers, body, follow_redirects, timeout):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": dict(headers),
                "body": body,
                "follow_redirects": follow_redirects,
                "timeout": timeout,
            }
        )
        if self.error is not None:
            raise TransportError(self.error)
        if self.handler is not None:
            return self.handler(method, url, headers, body, follow_redirects)
        return RawResponse(status=self.status, headers=self.headers, read=lambda: self.body, release=self._release)

    def _release(self):
        self.released += 1
