import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Optional, Tuple

from urllib3 import HTTPHeaderDict
from urllib3.exceptions import LocationParseError
from urllib3.util import parse_url

from .body import buffer_response, classify_body, decode_request_body, encode_response_body
from .cancel import CancelToken
from .config import ProxyConfig
from .errors import FetchError, InvalidRequest, RequestCancelled
from .headers import build_request_headers, collect_response_headers, is_token
from .metrics import Metrics
from .net import HttpTransport
from .types import RawResponse, RequestDescriptor, ResponseEnvelope, TransportProtocol


logger = logging.getLogger(__name__)

PreparedRequest = Tuple[str, str, HTTPHeaderDict, Optional[bytes], bool, Optional[float]]


def _validate_url(url) -> str:
    if not isinstance(url, str) or not url:
        raise InvalidRequest(f"Invalid URL: {url!r}")
    try:
        parsed = parse_url(url)
    except LocationParseError as exc:
        raise InvalidRequest(f"Invalid URL: {exc}") from exc
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise InvalidRequest(f"Invalid URL: {url!r} is not an absolute http(s) URL")
    return url


def _release_abandoned(future: Future) -> None:
    if not future.cancelled() and future.exception() is None:
        future.result().release()


class FetchProxy:
    """Executes one HTTP exchange per call and returns a ResponseEnvelope.

    Instances hold no per-call state and may be shared between threads. The
    transport owns the connection pool.
    """

    def __init__(
        self,
        config: Optional[ProxyConfig] = None,
        transport: Optional[TransportProtocol] = None,
        metrics: Optional[Metrics] = None,
    ):
        self.config = config or ProxyConfig()
        self.transport = transport or HttpTransport(self.config)
        self.metrics = metrics or Metrics()
        # only used for cancellable sends
        self._sender = ThreadPoolExecutor(
            max_workers=self.config.max_connections, thread_name_prefix="fetch-send"
        )

    def prepare(self, descriptor: RequestDescriptor) -> PreparedRequest:
        method = descriptor.method
        if not isinstance(method, str) or not is_token(method):
            raise InvalidRequest(f"Invalid HTTP method: {method!r}")
        url = _validate_url(descriptor.url)
        follow_redirects = not descriptor.manual_redirect
        timeout = descriptor.timeout
        if timeout is not None and timeout <= 0:
            raise InvalidRequest(f"Invalid timeout: {timeout!r}")
        body = decode_request_body(descriptor.body, descriptor.is_body_binary)
        headers = build_request_headers(descriptor.referrer, descriptor.headers)
        return method, url, headers, body, follow_redirects, timeout

    def _exchange(self, prepared: PreparedRequest) -> RawResponse:
        return buffer_response(self.transport.send(*prepared))

    def _send(self, prepared: PreparedRequest, cancel: Optional[CancelToken]) -> RawResponse:
        if cancel is None:
            return self.transport.send(*prepared)
        cancel.raise_if_cancelled()
        # the worker reads the body too, so cancelling covers the download
        future = self._sender.submit(self._exchange, prepared)
        while True:
            done, _ = wait([future], timeout=self.config.cancel_poll_interval)
            if done:
                raw = future.result()
                if cancel.cancelled:
                    raw.release()
                    cancel.raise_if_cancelled()
                return raw
            if cancel.cancelled:
                future.add_done_callback(_release_abandoned)
                raise RequestCancelled(f"Request cancelled: {prepared[0]} {prepared[1]}")

    def _assemble(self, raw: RawResponse) -> Tuple[ResponseEnvelope, int]:
        headers = collect_response_headers(raw.headers)
        kind = classify_body(headers.get("content-type"))
        body, is_base64, size = encode_response_body(kind, raw.read, strict=self.config.strict_body)
        return ResponseEnvelope(status=raw.status, headers=headers, body=body, is_base64=is_base64), size

    def execute(self, descriptor: RequestDescriptor, cancel: Optional[CancelToken] = None) -> ResponseEnvelope:
        t0 = time.perf_counter()
        try:
            prepared = self.prepare(descriptor)
            logger.debug("%s %s (follow_redirects=%s)", prepared[0], prepared[1], prepared[4])
            raw = self._send(prepared, cancel)
            try:
                envelope, size = self._assemble(raw)
            finally:
                raw.release()
        except FetchError as exc:
            dt_ms = (time.perf_counter() - t0) * 1000.0
            self.metrics.record_fetch(False, 0, dt_ms, exc.kind)
            logger.info("%s %s failed (%s): %s", descriptor.method, descriptor.url, exc.kind, exc.message)
            raise
        dt_ms = (time.perf_counter() - t0) * 1000.0
        self.metrics.record_fetch(True, size, dt_ms)
        logger.debug("%s %s -> %d (%d bytes, %.1f ms)", prepared[0], prepared[1], envelope.status, size, dt_ms)
        return envelope

    def fetch_json(self, descriptor: RequestDescriptor, cancel: Optional[CancelToken] = None) -> str:
        return self.execute(descriptor, cancel=cancel).to_json()

    def close(self) -> None:
        self._sender.shutdown(wait=False)
        clear = getattr(self.transport, "clear", None)
        if clear is not None:
            clear()

    def __enter__(self) -> "FetchProxy":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def fetch_from_api(
    url: str,
    method: str,
    body=None,
    headers=None,
    redirect: Optional[str] = None,
    referrer: Optional[str] = None,
    is_body_binary: Optional[bool] = None,
    timeout: Optional[float] = None,
    proxy: Optional[FetchProxy] = None,
) -> str:
    descriptor = RequestDescriptor(
        url=url,
        method=method,
        body=body,
        is_body_binary=is_body_binary,
        headers=headers,
        redirect=redirect,
        referrer=referrer,
        timeout=timeout,
    )
    if proxy is not None:
        return proxy.fetch_json(descriptor)
    with FetchProxy() as own:
        return own.fetch_json(descriptor)
