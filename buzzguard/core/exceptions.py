"""Domain-specific exceptions for Buzzguard.

Every external integration failure should raise one of these exceptions
so that calling code can handle failures precisely. Never raise bare
Exception or use generic error types.
"""

from __future__ import annotations


# =============================================================================
# Webhook / Security
# =============================================================================


class WebhookDenial(Exception):
    """An incoming delivery was refused.  Rendered as one plain-text response."""

    status_code: int = 500
    message: str = "Blam!"

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class TransportError(WebhookDenial):
    """The request body could not be read (disconnect, size limit, bad encoding)."""


class SignatureMismatch(WebhookDenial):
    """HMAC-SHA1 signature verification failed for an incoming webhook."""

    status_code = 403
    message = "Invalid signature: denying request."


class PayloadParseError(WebhookDenial):
    """The body carried a valid signature but is not a JSON object."""

    message = "entity.parse.failed"


class PayloadShapeError(Exception):
    """A verified payload lacks the fields needed to derive a pull request context."""


# =============================================================================
# GitHub API
# =============================================================================


class GitHubError(Exception):
    """Base exception for all GitHub API failures."""


class GitHubAuthError(GitHubError):
    """The access token (or app credentials) were rejected by GitHub."""


class GitHubRateLimitError(GitHubError):
    """GitHub API rate limit exceeded for the current credentials."""

    def __init__(self, message: str = "Rate limit exceeded", reset_at: str = "") -> None:
        self.reset_at = reset_at
        super().__init__(message)


class GitHubAPIError(GitHubError):
    """Generic GitHub API error with status code context."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        self.status_code = status_code
        super().__init__(message)


class GitHubResponseError(GitHubError):
    """GitHub answered, but the body did not have the expected shape."""


# =============================================================================
# Check workflow
# =============================================================================


class WorkflowStageError(Exception):
    """A check workflow stage failed while talking to GitHub."""

    def __init__(self, stage: str, cause: Exception) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage}: {cause}")


# =============================================================================
# Developer tooling
# =============================================================================


class TunnelNotFoundError(Exception):
    """No running ngrok tunnel forwards to the local port."""
