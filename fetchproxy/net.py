import logging
from typing import Optional

import urllib3
from urllib3 import HTTPHeaderDict
from urllib3 import exceptions as urllib3_exc
from urllib3.util.retry import Retry

from .config import ProxyConfig
from .errors import TransportError
from .types import RawResponse


logger = logging.getLogger(__name__)


def _reason(exc: Exception) -> str:
    # MaxRetryError wraps the real failure (refused, DNS, TLS) in .reason
    reason = getattr(exc, "reason", None)
    if isinstance(exc, urllib3_exc.MaxRetryError) and reason is not None:
        if isinstance(reason, urllib3_exc.ResponseError):
            return f"{exc.url}: {reason}"
        return str(reason)
    return str(exc)


class HttpTransport:
    def __init__(self, config: Optional[ProxyConfig] = None):
        self.config = config or ProxyConfig()
        self.http = urllib3.PoolManager(
            num_pools=self.config.num_pools,
            maxsize=self.config.max_connections,
            headers={"User-Agent": self.config.user_agent},
        )

    def _retries(self, follow_redirects: bool) -> Retry:
        # connection and read failures are never retried; only redirects count
        return Retry(
            total=None,
            connect=0,
            read=0,
            status=0,
            other=0,
            redirect=self.config.max_redirects if follow_redirects else 0,
            raise_on_redirect=follow_redirects,
            raise_on_status=False,
        )

    def _timeout(self, timeout: Optional[float]) -> urllib3.Timeout:
        read = timeout if timeout is not None else self.config.request_timeout
        connect = min(self.config.connect_timeout, read)
        return urllib3.Timeout(connect=connect, read=read)

    def send(
        self,
        method: str,
        url: str,
        headers: HTTPHeaderDict,
        body: Optional[bytes],
        follow_redirects: bool,
        timeout: Optional[float],
    ) -> RawResponse:
        # explicit headers replace the pool defaults wholesale, so merge them in
        merged = HTTPHeaderDict(self.http.headers)
        merged.update(headers or {})
        try:
            response = self.http.request(
                method,
                url,
                body=body,
                headers=merged,
                redirect=follow_redirects,
                retries=self._retries(follow_redirects),
                timeout=self._timeout(timeout),
                preload_content=False,
            )
        except urllib3_exc.HTTPError as exc:
            logger.debug("%s %s failed: %s", method, url, exc)
            raise TransportError(_reason(exc)) from exc
        return RawResponse(
            status=response.status,
            headers=list(response.headers.items()),
            read=response.read,
            release=response.release_conn,
        )

    def clear(self) -> None:
        self.http.clear()
