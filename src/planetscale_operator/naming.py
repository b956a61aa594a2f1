"""Name and organization resolution.

Both values are resolved from an explicit, ordered list of sources; the first
source that yields a value wins.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import TypeVar

from .config import MAX_DATABASE_NAME_LENGTH, ORGANIZATION_ENV_VARS, ConfigurationError
from .models import DatabaseSpec, PriorState

logger = logging.getLogger(__name__)

T = TypeVar("T")

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]+")
_REPEATED_HYPHENS = re.compile(r"-{2,}")


def first_present(*sources: T | None) -> T | None:
    """Return the first source that is neither None nor empty."""
    for value in sources:
        if value is not None and value != "":
            return value
    return None


def create_physical_name(logical_id: str, app: str, stage: str) -> str:
    """Generate a deterministic database name from a logical resource id.

    Format: ``{app}-{stage}-{logical_id}``, lowercased, with anything outside
    ``[a-z0-9-]`` replaced by a hyphen and the result capped at the
    provider's name length.
    """
    raw = f"{app}-{stage}-{logical_id}".lower()
    name = _REPEATED_HYPHENS.sub("-", _INVALID_NAME_CHARS.sub("-", raw))
    name = name[:MAX_DATABASE_NAME_LENGTH].strip("-")
    if not name:
        raise ConfigurationError(f"Cannot derive a database name from id '{logical_id}'")
    return name


def resolve_name(
    desired: DatabaseSpec,
    prior: PriorState | None,
    fallback: Callable[[], str],
) -> str:
    """Resolve the effective database name.

    Order: explicit ``name`` on the spec, then the persisted name from the
    previous pass, then ``fallback()``. The fallback is only called when both
    are missing, so an existing database keeps its name until the spec asks
    for a different one.
    """
    name = first_present(desired.name, prior.name if prior else None)
    if name is None:
        name = fallback()
        logger.debug("Generated database name", extra={"database": name})
    return name


def resolve_organization(
    desired: DatabaseSpec,
    prior: PriorState | None,
    env_default: str | None,
) -> str:
    """Resolve the organization a pass operates in.

    Order: the organization recorded by the previous pass, then the spec,
    then the environment default. Prior state wins so a delete always targets
    the organization the database was created in, even if the spec or the
    environment changed since.

    Raises:
        ConfigurationError: If no source yields an organization.
    """
    organization = first_present(
        prior.organization if prior else None,
        desired.organization,
        env_default,
    )
    if organization is None:
        raise ConfigurationError(
            "PlanetScale organization is required. Set the `organization` property "
            f"or the {ORGANIZATION_ENV_VARS[0]} environment variable."
        )

    if desired.organization and organization != desired.organization:
        logger.warning(
            "Spec organization differs from recorded organization, using recorded value",
            extra={"organization": organization, "spec_organization": desired.organization},
        )
    return organization
