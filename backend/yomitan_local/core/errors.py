"""
Error taxonomy for the local host.

Adapters translate low-level driver and filesystem exceptions into these
types at their boundary. The FastAPI exception handler renders any
HostError as a JSON body of shape {"message": ...} with its status code.
"""
from typing import Optional


class HostError(Exception):
    """Base class for errors raised by the local host layer."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(HostError):
    """Fatal startup problem (missing store file, bad config, missing router)."""

    def __init__(self, message: str, remediation: Optional[str] = None):
        super().__init__(message)
        self.remediation = remediation


class QueryError(HostError):
    """Relational query failure. Carries the driver's message."""


class BlobNotFoundError(HostError):
    """Requested source audio object does not exist."""

    status_code = 404


class StorageIOError(HostError):
    """Filesystem failure other than absence (permissions, disk, ...)."""


class BridgeError(HostError):
    """Request or response could not be converted across the bridge."""


class DeferredTaskError(HostError):
    """A deferred background task failed. Logged only, never surfaced."""
