"""
Exception hierarchy shared by the API routes, services and CLI.

Every error carries the HTTP status code the routes answer with.
"""

from typing import Optional


class PortalError(Exception):
    """Base exception for the portal."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(PortalError):
    """Required environment variables are missing."""

    status_code = 500


class InvalidRequestError(PortalError):
    """Caller input failed validation. Never retried."""

    status_code = 400


class RemoteAPIError(PortalError):
    """Non-success response from the RunPod endpoint."""

    def __init__(self, status_code: int, status_text: str, context: str = "RunPod API error"):
        self.status_code = status_code
        self.status_text = status_text
        super().__init__(f"{context}: {status_code} {status_text}")


class InvalidRemoteResponseError(PortalError):
    """RunPod answered with success but the body is unusable."""

    status_code = 502


class JobError(PortalError):
    """Base class for terminal outcomes of a polled job."""

    status_code = 502

    def __init__(self, task_id: str, message: str):
        self.task_id = task_id
        super().__init__(message)


class JobFailedError(JobError):
    """The remote worker reported FAILED."""


class JobCompletedWithoutResultError(JobError):
    """The remote worker reported COMPLETED but attached no output."""


class JobTimeoutError(JobError):
    """The local poll budget ran out before a terminal state."""

    status_code = 504


class StorageError(PortalError):
    """An object-storage call failed."""

    status_code = 500


class StorageFileNotFoundError(StorageError):
    """The requested key does not exist in the bucket."""

    status_code = 404

    def __init__(self, key: str, message: Optional[str] = None):
        self.key = key
        super().__init__(message or "File not found in R2 storage")
