from dataclasses import dataclass


DEFAULT_USER_AGENT = "fetchproxy/1.0"
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_MAX_REDIRECTS = 10


@dataclass(frozen=True)
class ProxyConfig:
    user_agent: str = DEFAULT_USER_AGENT
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    num_pools: int = 8
    max_connections: int = 16
    strict_body: bool = False
    cancel_poll_interval: float = 0.05
    metrics_interval: float = 0.0
