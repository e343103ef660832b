"""
Error taxonomy shared by the directory, retrieval and messaging services.

Every error carries a machine-readable ``kind`` so the API layer can render
it as a structured failure payload.
"""

from typing import Optional


class SlackDirectoryError(Exception):
    """Base class for all errors surfaced to callers."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthRequiredError(SlackDirectoryError):
    """
    Raised when no usable Slack credential is available.
    The caller must store a token before retrying.
    """

    kind = "auth_required"


class RemoteAPIError(SlackDirectoryError):
    """Raised when a Slack Web API call fails."""

    kind = "remote_api_error"

    def __init__(
        self,
        method: str,
        code: str,
        status: Optional[int] = None,
        message: Optional[str] = None,
    ):
        super().__init__(message or f"Slack API {method} failed: {code}")
        self.method = method
        self.code = code
        self.status = status


class StorageError(SlackDirectoryError):
    """Raised when the local directory database cannot be read or written."""

    kind = "storage_error"


class NotFoundError(SlackDirectoryError):
    kind = "not_found"


class NoDMChannelError(NotFoundError):
    """
    Raised when a message targets a user with no cached DM channel.
    Refreshing the directory populates the DM cache.
    """

    kind = "no_dm_channel"

    def __init__(self, user_id: str):
        super().__init__(
            f"No cached DM channel for user {user_id}. Refresh the directory first."
        )
        self.user_id = user_id


class OperationTimeoutError(SlackDirectoryError, TimeoutError):
    kind = "timeout"


class ValidationError(SlackDirectoryError, ValueError):
    """Raised for malformed caller input."""

    kind = "validation_error"
