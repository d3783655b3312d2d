import base64
import binascii
import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

import urllib3

from .errors import InternalError


HeaderPairs = Sequence[Tuple[str, str]]
ENVELOPE_KEYS = ("status", "headers", "body", "is_base64")


class BodyKind(Enum):
    TEXT = "text"
    BINARY = "binary"


@dataclass(frozen=True)
class RequestDescriptor:
    url: str
    method: str = "GET"
    body: Optional[Union[str, bytes]] = None
    is_body_binary: Optional[bool] = None
    headers: Optional[HeaderPairs] = None
    redirect: Optional[str] = None
    referrer: Optional[str] = None
    timeout: Optional[float] = None

    @property
    def manual_redirect(self) -> bool:
        return self.redirect == "manual"

    @classmethod
    def from_options(cls, url: str, options: Mapping[str, Any]) -> "RequestDescriptor":
        """Build a descriptor from fetch-style options.

        ``headers`` may be a mapping or a sequence of pairs; a mapping keeps
        its iteration order.
        """
        headers = options.get("headers")
        if isinstance(headers, Mapping):
            headers = list(headers.items())
        elif headers is not None:
            headers = [tuple(pair) for pair in headers]
        return cls(
            url=url,
            method=options.get("method", "GET"),
            body=options.get("body"),
            is_body_binary=options.get("is_body_binary"),
            headers=headers,
            redirect=options.get("redirect"),
            referrer=options.get("referrer"),
            timeout=options.get("timeout"),
        )


@dataclass(frozen=True)
class ResponseEnvelope:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    is_base64: bool = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        try:
            return json.dumps(self.to_dict(), ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise InternalError(f"Serialization error: {exc}") from exc

    @classmethod
    def from_json(cls, text: str) -> "ResponseEnvelope":
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise InternalError(f"Failed to parse API response: {exc}") from exc
        if not isinstance(data, dict) or any(k not in data for k in ENVELOPE_KEYS):
            raise InternalError("Failed to parse API response: missing envelope fields")
        return cls(
            status=int(data["status"]),
            headers=dict(data["headers"] or {}),
            body=data["body"] or "",
            is_base64=bool(data["is_base64"]),
        )

    def body_bytes(self) -> bytes:
        if not self.is_base64:
            return self.body.encode("utf-8")
        try:
            return base64.b64decode(self.body, validate=True)
        except binascii.Error as exc:
            raise InternalError(f"Envelope body is not valid base64: {exc}") from exc

    def json(self) -> Any:
        if self.is_base64:
            raise InternalError("Envelope body is binary, not JSON text")
        try:
            return json.loads(self.body)
        except ValueError as exc:
            raise InternalError(f"Envelope body is not JSON: {exc}") from exc


@dataclass
class RawResponse:
    status: int
    headers: List[Tuple[str, str]]
    read: Callable[[], bytes]
    release: Callable[[], None] = lambda: None


class TransportProtocol(Protocol):
    def send(
        self,
        method: str,
        url: str,
        headers: "urllib3.HTTPHeaderDict",
        body: Optional[bytes],
        follow_redirects: bool,
        timeout: Optional[float],
    ) -> RawResponse: ...
