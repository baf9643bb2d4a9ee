"""Error types raised by the sprint snapshot engine."""

from typing import Optional


class JiraError(Exception):
    """Base class for failures talking to Jira."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamUnavailableError(JiraError):
    """Jira is down or unreachable (5xx, network failure, retries exhausted).

    Transient: the caller may retry the whole request later.
    """


class UpstreamClientError(JiraError):
    """Jira rejected the request (4xx). Not transient, never retried."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message, status_code)
        self.body = body


class SnapshotError(Exception):
    """A stored snapshot document could not be read."""


class TargetValidationError(ValueError):
    """Target settings payload failed validation."""
