"""Custom exception hierarchy for fleetsync."""

from __future__ import annotations


class FleetSyncError(Exception):
    """Base exception for all fleetsync errors."""


class FleetSyncConfigError(FleetSyncError):
    """Invalid or missing configuration."""


class FleetSyncTransportError(FleetSyncError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class TollRecordError(FleetSyncError, ValueError):
    """A toll notice record is missing a required identifying field.

    Raised at the normalization boundary so malformed provider results or
    persisted rows fail fast instead of flowing through with blank fields.
    """

    def __init__(self, message: str, *, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class TollPersistenceError(FleetSyncError):
    """The persisted store rejected a read or write.

    Prior persisted state is left as it was; writes spanning several notices
    are not transactional, so some rows of a failed batch may already exist.
    """

    def __init__(self, message: str, *, operation: str = "") -> None:
        self.operation = operation
        super().__init__(message)


class TollSearchError(FleetSyncError):
    """The external toll search reported a failure."""
