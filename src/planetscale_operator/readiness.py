"""Readiness waiter.

The provider rejects branch creation while a database is still provisioning
and offers no completion event, so dependent operations poll the database
until it reports ``ready``. Only ``ready`` counts: a sleeping database or a
state not listed here keeps the waiter polling until the deadline, and the
timeout carries the last state observed. API errors abort the wait
immediately.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from .client import DatabaseApi, DatabaseRecord
from .errors import NotFoundError, ReadinessTimeoutError, translate_api_errors

logger = logging.getLogger(__name__)

# The only state in which branch creation is accepted
READY_STATE = "ready"


def is_ready(state: str | None) -> bool:
    """Check whether a database accepts dependent operations."""
    return (state or "").lower() == READY_STATE


async def wait_until_ready(
    api: DatabaseApi,
    organization: str,
    database: str,
    *,
    poll_interval: float,
    timeout: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> DatabaseRecord:
    """Poll a database until it reports ready.

    Args:
        api: API client.
        organization: Organization owning the database.
        database: Database name.
        poll_interval: Seconds to sleep between polls.
        timeout: Seconds before giving up.
        sleep: Awaitable sleep, injectable for tests.
        clock: Monotonic clock, injectable for tests.

    Returns:
        The first database record observed in the ready state.

    Raises:
        ReadinessTimeoutError: If the deadline passes first.
        NotFoundError: If the database disappears while waiting.
        RemoteOperationError: If a poll fails.
    """
    deadline = clock() + timeout
    attempts = 0

    while True:
        attempts += 1
        with translate_api_errors("check readiness", database, organization):
            record = await api.get_database(organization, database)

        if record is None:
            raise NotFoundError(
                f"Database '{database}' in organization '{organization}' "
                "disappeared while waiting for it to become ready"
            )

        if is_ready(record.state):
            if attempts > 1:
                logger.info(
                    "Database ready",
                    extra={
                        "database": database,
                        "organization": organization,
                        "state": record.state,
                        "attempts": attempts,
                    },
                )
            return record

        remaining = deadline - clock()
        if remaining <= 0:
            raise ReadinessTimeoutError(
                f"Database '{database}' in organization '{organization}' still "
                f"'{record.state}' after {timeout:.0f}s",
                last_state=record.state,
            )

        logger.debug(
            "Database not ready, waiting",
            extra={
                "database": database,
                "state": record.state,
                "attempt": attempts,
                "remaining_seconds": remaining,
            },
        )
        await sleep(min(poll_interval, remaining))
