"""
Error taxonomy for the stamp gateway.

Every failure the gateway reports belongs to one closed set of kinds.
Handlers map each kind to a fixed HTTP status, so the read and write
paths answer callers with the same vocabulary.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Kind of failure reported to callers."""
    VALIDATION = "VALIDATION"
    AUTHORIZATION = "AUTHORIZATION"
    NOT_FOUND = "NOT_FOUND"
    REMOTE_LEDGER = "REMOTE_LEDGER"
    ROUTING = "ROUTING"


STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHORIZATION: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.REMOTE_LEDGER: 500,
    ErrorKind.ROUTING: 404,
}


class GatewayError(Exception):
    """Base class for errors surfaced to gateway callers."""

    kind: ErrorKind = ErrorKind.REMOTE_LEDGER

    # Set by subclasses that keep an HTTP status other than the kind's default
    _status_code: Optional[int] = None

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)

    @property
    def status_code(self) -> int:
        if self._status_code is not None:
            return self._status_code
        return STATUS_BY_KIND[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": False, "error": self.kind.value, "message": self.detail}


class ValidationError(GatewayError):
    """Raised when request input fails validation."""

    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class AuthorizationError(GatewayError):
    kind = ErrorKind.AUTHORIZATION


class NotFoundError(GatewayError):
    kind = ErrorKind.NOT_FOUND


class LedgerError(GatewayError):
    """Raised for any failure reported by, or while talking to, the ledger node."""

    kind = ErrorKind.REMOTE_LEDGER


class RoutingError(GatewayError):
    """Unknown path (404) or wrong method (405)."""

    kind = ErrorKind.ROUTING

    def __init__(self, detail: str, status_code: int = 404):
        self._status_code = status_code
        super().__init__(detail)


class RequestError(GatewayError):
    """
    Client error raised by the HTTP layer itself (oversized body, bad
    content type and the like). Keeps the status the framework chose.
    """

    kind = ErrorKind.VALIDATION

    def __init__(self, detail: str, status_code: int = 400):
        self._status_code = status_code
        super().__init__(detail)
