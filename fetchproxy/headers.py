import logging
import re
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

from urllib3 import HTTPHeaderDict

from .errors import InvalidRequest


logger = logging.getLogger(__name__)

# RFC 7230 token for names; visible ASCII, space and tab for values.
_TOKEN_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
_VALUE_RE = re.compile(r"[\t\x20-\x7e]*")


def is_token(text: str) -> bool:
    return bool(text) and _TOKEN_RE.fullmatch(text) is not None


def validate_header(name, value) -> Optional[Tuple[str, str]]:
    if not isinstance(name, str) or not isinstance(value, str):
        return None
    if not is_token(name) or _VALUE_RE.fullmatch(value) is None:
        return None
    return name, value


def build_request_headers(
    referrer: Optional[str],
    pairs: Union[Mapping[str, str], Iterable[Tuple[str, str]], None],
) -> HTTPHeaderDict:
    headers = HTTPHeaderDict()
    if referrer is not None:
        if validate_header("Referer", referrer) is None:
            raise InvalidRequest(f"Invalid referrer: {referrer!r}")
        headers["Referer"] = referrer
    if isinstance(pairs, Mapping):
        pairs = pairs.items()
    for pair in pairs or ():
        valid = None
        if isinstance(pair, (tuple, list)) and len(pair) == 2:
            valid = validate_header(*pair)
        if valid is None:
            logger.debug("Dropping invalid request header: %r", pair)
            continue
        # assignment replaces any same-named header, case-insensitively
        headers[valid[0]] = valid[1]
    return headers


def collect_response_headers(pairs: Iterable[Tuple[str, str]]) -> Dict[str, str]:
    collected: Dict[str, str] = {}
    for name, value in pairs:
        valid = validate_header(name, value)
        if valid is None:
            logger.debug("Skipping undecodable response header: %r", name)
            continue
        collected[valid[0].lower()] = valid[1]
    return collected
