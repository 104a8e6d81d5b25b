"""Error types for the PostHog client package.

Purpose:
- Provide typed exceptions raised by `PostHogApiClient` and the client facades.
- Expose HTTP-oriented context (status code, response body) for diagnosis.

Usage:
- Catch `PostHogApiError` for failed API calls and inspect `status_code` or
  `details`.
- Argument validation problems are plain `ValueError`s and are not part of
  this hierarchy.
"""

from __future__ import annotations

from typing import Any, Optional


class PostHogError(Exception):
    """Base error for all PostHog client exceptions."""


class PostHogApiError(PostHogError):
    """Raised when the PostHog API answers with an unexpected status.

    Args:
        message: Human-readable error description.
        status_code: Optional HTTP status code associated with the failure.
        details: Optional payload from the server (usually the response body).
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details

    @property
    def retryable(self) -> bool:
        """True for throttling and server-side failures."""
        return self.status_code is not None and (self.status_code == 429 or self.status_code >= 500)


class ClientClosedError(PostHogError):
    """Raised when work is submitted to an event queue or timer that was closed."""

    def __init__(self, component: str) -> None:
        super().__init__(f"{component} has been closed")
        self.component = component


class ClientAlreadyInitializedError(PostHogError):
    """Raised when the global client is initialized a second time."""

    def __init__(self) -> None:
        super().__init__("PostHog client already initialized")


class LocalEvaluationNotEnabledError(PostHogError):
    """Raised when a local-evaluation-only operation is used without a personal API key."""

    def __init__(self) -> None:
        super().__init__("Local feature flag evaluation is not enabled")
