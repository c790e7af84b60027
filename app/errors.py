"""Data-layer errors and transient-failure classification."""

import duckdb
import httpx


class CrmError(Exception):
    """Base class for data-layer errors."""

    def __init__(self, message: str = "Data layer error"):
        self.message = message
        super().__init__(self.message)


class StoreUnavailableError(CrmError):
    """Relational store or network is unreachable."""

    def __init__(self, message: str = "Store unavailable"):
        super().__init__(message)


class RequirementNotFoundError(CrmError):
    """No requirement with the given id."""

    def __init__(self, requirement_id: str):
        self.requirement_id = requirement_id
        super().__init__(f"Requirement not found: {requirement_id}")


class SyncConflictError(CrmError):
    """A queued offline change collides with a newer server version."""


_TRANSIENT = (
    StoreUnavailableError,
    duckdb.IOException,
    duckdb.ConnectionException,
    ConnectionError,
    TimeoutError,
    httpx.TransportError,
)


def is_transient(exc: BaseException) -> bool:
    """Check if exception is worth retrying (network/store unavailability)."""
    return isinstance(exc, _TRANSIENT)
