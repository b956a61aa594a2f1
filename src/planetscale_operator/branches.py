"""Branch helpers: make sure a branch exists and is sized as desired."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from .client import BranchRecord, DatabaseApi
from .errors import NotFoundError, translate_api_errors

logger = logging.getLogger(__name__)


async def ensure_branch(
    api: DatabaseApi,
    organization: str,
    database: str,
    branch: str,
    *,
    parent_branch: str,
    before_create: Callable[[], Awaitable[object]] | None = None,
) -> tuple[BranchRecord, bool]:
    """Create a branch unless it already exists.

    Args:
        api: API client.
        organization: Organization owning the database.
        database: Database name.
        branch: Branch to ensure.
        parent_branch: Branch to fork from when creating.
        before_create: Awaited only on a miss, before the create call.
            Used to wait for the database to finish provisioning.

    Returns:
        Tuple of (branch record, whether it was created).
    """
    with translate_api_errors(f"get branch '{branch}'", database, organization):
        existing = await api.get_branch(organization, database, branch)
    if existing is not None:
        return existing, False

    if before_create is not None:
        await before_create()

    with translate_api_errors(
        f"create branch '{branch}' from '{parent_branch}'",
        database,
        organization,
        not_found=(
            f"Cannot create branch '{branch}': parent branch '{parent_branch}' or "
            f"database '{database}' not found in organization '{organization}'"
        ),
    ):
        created = await api.create_branch(organization, database, branch, parent_branch)

    logger.info(
        "Created branch",
        extra={
            "database": database,
            "organization": organization,
            "branch": branch,
            "parent_branch": parent_branch,
        },
    )
    return created, True


async def ensure_branch_cluster_size(
    api: DatabaseApi,
    organization: str,
    database: str,
    branch: str,
    cluster_size: str,
) -> bool:
    """Resize a branch if its cluster size differs from the desired one.

    Returns:
        True if a resize was issued.

    Raises:
        NotFoundError: If the branch does not exist.
    """
    with translate_api_errors(f"get branch '{branch}'", database, organization):
        current = await api.get_branch(organization, database, branch)
    if current is None:
        raise NotFoundError(
            f"Branch '{branch}' of database '{database}' not found "
            f"in organization '{organization}'"
        )

    if current.cluster_size == cluster_size:
        return False

    with translate_api_errors(
        f"resize branch '{branch}' to {cluster_size}",
        database,
        organization,
        not_found=f"Branch '{branch}' of database '{database}' disappeared before resize",
    ):
        await api.set_branch_cluster_size(organization, database, branch, cluster_size)

    logger.info(
        "Resized branch cluster",
        extra={
            "database": database,
            "branch": branch,
            "from_size": current.cluster_size,
            "to_size": cluster_size,
        },
    )
    return True
