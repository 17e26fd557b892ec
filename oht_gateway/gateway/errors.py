"""
Gateway Exceptions

This module contains the error taxonomy for every remote-side failure.
Separated to avoid circular imports between the client and the components
that call it.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure classes the host can base its retry policy on."""

    TRANSPORT = "transport"      # network/HTTP failure, no usable envelope
    VALIDATION = "validation"    # envelope status code nonzero, request rejected
    REMOTE = "remote"            # provider executed but reported errors
    AUTH = "auth"                # callback token missing or mismatched
    NOT_FOUND = "not_found"      # local job item or mapping absent


class GatewayError(Exception):
    """Gateway error with a kind and optional provider code and details."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.TRANSPORT, code=None,
                 status_code: int = None, details: dict = None):
        super().__init__(message)
        self.kind = kind
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    @property
    def is_inbound_rejection(self) -> bool:
        """Errors the webhook endpoint answers with a not-found response."""
        return self.kind in (ErrorKind.AUTH, ErrorKind.NOT_FOUND)

    def to_dict(self) -> dict:
        payload = {"error": str(self), "code": self.kind.value}
        if self.code is not None:
            payload["provider_code"] = self.code
        if self.details:
            payload["details"] = self.details
        return payload
