"""Error taxonomy for reconciliation passes.

Every error aborts the current pass and propagates to the caller unchanged.
Completed remote mutations are never rolled back; a later pass converges.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from .client import ApiError


class ReconcileError(Exception):
    """Base class for all reconciliation failures."""

    pass


class ConflictError(ReconcileError):
    """Remote existence contradicts what the phase expects.

    Raised on create when a same-named database already exists and
    adoption was not requested.
    """

    pass


class NotFoundError(ReconcileError):
    """An expected database or branch is missing remotely."""

    pass


class RemoteOperationError(ReconcileError):
    """An API call failed with a status that cannot be ignored.

    The transport error is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        database: str,
        organization: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.database = database
        self.organization = organization
        self.status_code = status_code


class ReadinessTimeoutError(ReconcileError, TimeoutError):
    """The database did not leave a transitional state before the deadline."""

    def __init__(self, message: str, *, last_state: str | None = None) -> None:
        super().__init__(message)
        self.last_state = last_state


@contextmanager
def translate_api_errors(
    operation: str,
    database: str,
    organization: str,
    *,
    not_found: str | None = None,
) -> Iterator[None]:
    """Re-raise client ApiErrors as reconciliation errors.

    Args:
        operation: What was attempted, used in the message.
        database: Database the call targeted.
        organization: Organization the call targeted.
        not_found: If set, a 404 raises NotFoundError with this message
            instead of RemoteOperationError.
    """
    try:
        yield
    except ApiError as e:
        if not_found is not None and e.is_not_found:
            raise NotFoundError(not_found) from e
        raise RemoteOperationError(
            f"Failed to {operation} for database '{database}' "
            f"in organization '{organization}': {e}",
            operation=operation,
            database=database,
            organization=organization,
            status_code=e.status_code,
        ) from e
