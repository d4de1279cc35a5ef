"""Error taxonomy shared by the proxy pipeline.

Every failure raised while serving a request is one of these types; the
router converts them into the ``{"error": ...}`` envelope exactly once.
"""

from __future__ import annotations


class ProxyError(Exception):
    """Base class for failures that map to a client-visible status code."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AccessError(ProxyError):
    status_code = 403


class OriginNotAllowedError(AccessError):
    status_code = 403

    def __init__(self, message: str = "Origin not allowed") -> None:
        super().__init__(message)


class MissingCredentialsError(AccessError):
    status_code = 401

    def __init__(self, message: str = "Missing authorization header") -> None:
        super().__init__(message)


class InvalidCredentialsError(AccessError):
    status_code = 401

    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(message)


class InputValidationError(ProxyError):
    status_code = 400


class UpstreamError(ProxyError):
    """A dependent Polymarket API failed; detail stays in the server log."""

    status_code = 500
    public_message = "Failed to fetch data from upstream API"

    def __init__(self, detail: str, *, upstream_status: int | None = None) -> None:
        super().__init__(detail)
        self.upstream_status = upstream_status
