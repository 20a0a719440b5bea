"""Exceptions raised by the aihub store, adapters and flows."""

from __future__ import annotations


class AIHubError(Exception):
    """Base exception for every recoverable aihub failure."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PreconditionFailure(AIHubError):
    """Raised before any I/O when a request cannot be attempted."""


class AuthMissing(PreconditionFailure):
    """Raised when the credential a backend needs is blank."""


class TransportError(AIHubError):
    """Raised on timeouts, connection failures and non-2xx responses."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class MalformedResponse(TransportError):
    """Raised when a response body does not have the expected shape."""


class EmptyResult(AIHubError):
    """Raised when a backend answered but produced nothing usable."""

    def __init__(self, message: str, fallback_text: str | None = None) -> None:
        super().__init__(message)
        self.fallback_text = fallback_text


class SessionNotFound(AIHubError, KeyError):
    """Raised when a session id is not in the collection."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id

    def __str__(self) -> str:
        return self.message
