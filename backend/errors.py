# errors.py
from __future__ import annotations
from typing import Any, Dict, Optional


class InterviewError(Exception):
    """Base for every failure surfaced to the user or mapped to a wire body."""

    kind = "error"
    status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "kind": self.kind}
        if self.details:
            body.update(self.details)
        return body


class ValidationError(InterviewError):
    """Missing file/position or missing resume on the gateway."""
    kind = "validation"
    status = 400


class ExtractionError(InterviewError):
    """Unsupported type, oversize or unreadable document."""
    kind = "extraction"
    status = 400


class TransportError(InterviewError):
    """Network failure reaching the gateway or the oracle."""
    kind = "transport"
    status = 502


class UpstreamError(InterviewError):
    """The oracle answered with an explicit error payload."""
    kind = "upstream"
    status = 502


class MalformedResponseError(InterviewError):
    """Body was not JSON, or had no usable shape."""
    kind = "malformed"
    status = 502


class BusyError(InterviewError):
    """A generation request is already in flight for this session."""
    kind = "busy"
    status = 409


class RateLimitedError(InterviewError):
    """Too many generation requests from one client."""
    kind = "rate_limited"
    status = 429


ERRORS_BY_KIND = {
    cls.kind: cls
    for cls in (ValidationError, ExtractionError, TransportError,
                UpstreamError, MalformedResponseError, BusyError, RateLimitedError)
}


def error_from_body(body: Dict[str, Any], http_status: int) -> InterviewError:
    """Rebuild the typed error a gateway error body describes."""
    cls = ERRORS_BY_KIND.get(str(body.get("kind") or ""))
    if cls is None:
        cls = UpstreamError if http_status >= 500 else ValidationError
    message = str(body.get("error") or body.get("text") or f"HTTP {http_status}")
    details = {k: v for k, v in body.items() if k not in ("error", "kind")}
    details.setdefault("httpStatus", http_status)
    return cls(message, details)
