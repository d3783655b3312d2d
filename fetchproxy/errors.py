from typing import Dict


class FetchError(Exception):
    """Base class for failures of a single proxied exchange.

    ``kind`` tells callers how far the exchange got: ``invalid_request`` was
    never sent, ``transport`` was sent but failed in flight, ``internal`` was
    received but could not be turned into an envelope.
    """

    kind = "fetch_error"
    exit_code = 1

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.kind, "message": self.message}


class InvalidRequest(FetchError):
    kind = "invalid_request"
    exit_code = 1


class TransportError(FetchError):
    kind = "transport"
    exit_code = 2


class InternalError(FetchError):
    kind = "internal"
    exit_code = 3


class RequestCancelled(FetchError):
    kind = "cancelled"
    exit_code = 4
