import base64
import binascii
import logging
from typing import Callable, Optional, Tuple, Union

from urllib3 import exceptions as urllib3_exc

from .errors import InternalError, InvalidRequest
from .types import BodyKind, RawResponse


logger = logging.getLogger(__name__)

TEXT_PREFIXES = ("text/", "application/json")


def classify_body(content_type: Optional[str]) -> BodyKind:
    """Decide how a response body is represented from its content type alone.

    Only a prefix check is made; charset parameters are ignored.
    """
    ct = (content_type or "").lower()
    if not ct or ct.startswith(TEXT_PREFIXES):
        return BodyKind.TEXT
    return BodyKind.BINARY


def decode_request_body(body: Union[str, bytes, None], is_binary: Optional[bool]) -> Optional[bytes]:
    if body is None:
        return None
    if is_binary:
        try:
            return base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidRequest(f"Request body is not valid base64: {exc}") from exc
    if isinstance(body, bytes):
        return body
    # lone surrogates come from undecodable argv bytes; restore those bytes
    try:
        return body.encode("utf-8", errors="surrogateescape")
    except UnicodeEncodeError as exc:
        raise InvalidRequest(f"Request body is not encodable text: {exc}") from exc


def _read_or_empty(read: Callable[[], bytes], strict: bool) -> bytes:
    try:
        return read() or b""
    except (urllib3_exc.HTTPError, OSError) as exc:
        if strict:
            raise InternalError(f"Failed to read response body: {exc}") from exc
        logger.debug("Response body unreadable, using empty body: %s", exc)
        return b""


def buffer_response(raw: RawResponse) -> RawResponse:
    """Read the whole body now and return a response that replays it.

    A read failure is kept and raised again from the replayed ``read()``.
    """
    try:
        data = raw.read() or b""
        error = None
    except (urllib3_exc.HTTPError, OSError) as exc:
        data, error = b"", exc

    def replay() -> bytes:
        if error is not None:
            raise error
        return data

    return RawResponse(status=raw.status, headers=raw.headers, read=replay, release=raw.release)


def encode_response_body(
    kind: BodyKind, read: Callable[[], bytes], strict: bool = False
) -> Tuple[str, bool, int]:
    """Return ``(body, is_base64, size_bytes)`` for a response body."""
    data = _read_or_empty(read, strict)
    if kind is BodyKind.TEXT:
        return data.decode("utf-8", errors="replace"), False, len(data)
    return base64.b64encode(data).decode("ascii"), True, len(data)
