"""Phase-driven reconciliation of a PlanetScale database.

One pass converges the remote database toward a DatabaseSpec for a given
phase:

1. Resolve the effective name, organization and cluster size (local, no I/O)
2. Dispatch to the phase handler (create / update / delete)
3. Create falls through to update when the database exists and adoption
   is requested
4. Return the merged DatabaseState (None on delete)

ORDERING:
Each remote call depends on the result of the previous one, so a pass is a
single sequential flow. Renames go before any other settings change, a
non-default branch must exist before it becomes the default, and branch
creation on a fresh database waits for provisioning to finish.

FAILURE MODEL:
Errors abort the pass and propagate unchanged. Completed mutations are not
rolled back: a create followed by a failed settings patch leaves a valid but
partially configured database that the next pass finishes configuring.
Deleting an already-deleted database succeeds.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from .branches import ensure_branch, ensure_branch_cluster_size
from .client import ApiError, DatabaseApi, DatabaseRecord
from .cluster_size import normalize_cluster_size
from .config import DEFAULT_BRANCH, Config, ConfigurationError
from .errors import ConflictError, NotFoundError, translate_api_errors
from .models import DatabaseSpec, DatabaseState, PriorState
from .naming import create_physical_name, resolve_name, resolve_organization
from .provenance import ProvenanceLogger, ReconcileProvenance
from .readiness import wait_until_ready

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    """Lifecycle phases the runtime can request."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ReconcileContext:
    """Resolved inputs for one pass."""

    phase: Phase
    logical_id: str
    desired: DatabaseSpec
    prior: PriorState | None
    name: str
    organization: str
    cluster_size: str | None
    adopt: bool
    provenance: ReconcileProvenance


class _RecordingApi:
    """Wraps the API client and logs every call into the provenance record."""

    def __init__(self, api: DatabaseApi, provenance: ReconcileProvenance) -> None:
        self._api = api
        self._provenance = provenance

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._api, name)
        if not callable(attr):
            return attr

        async def call(*args: Any, **kwargs: Any) -> Any:
            self._provenance.record(name)
            return await attr(*args, **kwargs)

        return call


Handler = Callable[[ReconcileContext, DatabaseApi], Awaitable[DatabaseState | None]]


class DatabaseReconciler:
    """Converges one PlanetScale database toward its desired spec.

    CONCURRENCY: The reconciler takes no locks. The runtime must keep at most
    one pass per logical id in flight; concurrent passes against the same
    database interleave their remote calls in undefined order.
    """

    def __init__(
        self,
        api: DatabaseApi,
        config: Config | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize reconciler.

        Args:
            api: API client implementing DatabaseApi.
            config: Runtime configuration. Loaded from the environment if omitted.
            sleep: Awaitable sleep used by the readiness waiter.
            clock: Monotonic clock used by the readiness waiter.
        """
        self._api = api
        self._config = config if config is not None else Config.from_env()
        self._sleep = sleep
        self._clock = clock
        self._provenance_logger = ProvenanceLogger(enabled=self._config.enable_audit_logging)

        self._handlers: dict[Phase, Handler] = {
            Phase.CREATE: self._create,
            Phase.UPDATE: self._update,
            Phase.DELETE: self._delete,
        }

    @property
    def config(self) -> Config:
        """Get the reconciler configuration."""
        return self._config

    async def reconcile(
        self,
        phase: Phase | str,
        logical_id: str,
        desired: DatabaseSpec,
        prior: PriorState | None = None,
    ) -> DatabaseState | None:
        """Run one reconciliation pass.

        Args:
            phase: Lifecycle phase requested by the runtime.
            logical_id: Stable id of the resource in the runtime's graph.
            desired: Desired configuration.
            prior: Output persisted by the previous pass, if any.

        Returns:
            The state to persist, or None when the record should be dropped
            (delete).

        Raises:
            ConfigurationError: Invalid input; no remote call was made.
            ConflictError: Create found an unmanaged database with the same name.
            NotFoundError: Update or rename targeted a missing database or branch.
            RemoteOperationError: An API call failed.
            ReadinessTimeoutError: The database stayed in a transitional state.
        """
        try:
            phase = Phase(phase)
        except ValueError as e:
            valid = [p.value for p in Phase]
            raise ConfigurationError(f"Phase must be one of {valid}: {phase}") from e

        provenance = self._provenance_logger.create_provenance(logical_id, phase.value)
        start = time.monotonic()

        try:
            if phase is Phase.DELETE and not desired.delete:
                # Protect data by default: the record is dropped, the database stays
                logger.info(
                    "Deletion disabled for database, dropping state only",
                    extra={
                        "logical_id": logical_id,
                        "database": prior.name if prior else None,
                    },
                )
                provenance.database = (prior.name or "") if prior else ""
                return None

            ctx = self._resolve(phase, logical_id, desired, prior, provenance)
            provenance.database = ctx.name
            provenance.organization = ctx.organization

            logger.info(
                "Reconciling database",
                extra={
                    "phase": phase.value,
                    "logical_id": logical_id,
                    "database": ctx.name,
                    "organization": ctx.organization,
                    "cluster_size": ctx.cluster_size,
                },
            )
            return await self._handlers[phase](ctx, _RecordingApi(self._api, provenance))

        except Exception as e:
            provenance.error = str(e)
            provenance.error_type = type(e).__name__
            raise
        finally:
            provenance.duration_seconds = time.monotonic() - start
            self._provenance_logger.log_provenance(provenance)

    def _resolve(
        self,
        phase: Phase,
        logical_id: str,
        desired: DatabaseSpec,
        prior: PriorState | None,
        provenance: ReconcileProvenance,
    ) -> ReconcileContext:
        """Resolve name, organization and cluster size before any remote call."""
        name = resolve_name(
            desired,
            prior,
            lambda: create_physical_name(logical_id, self._config.app, self._config.stage),
        )
        organization = resolve_organization(desired, prior, self._config.organization)

        cluster_size = None
        if phase is not Phase.DELETE:
            cluster_size = normalize_cluster_size(
                desired.cluster_size,
                desired.kind,
                arch=desired.arch,
                region=desired.region_slug,
            )

        adopt = desired.adopt if desired.adopt is not None else self._config.adopt

        return ReconcileContext(
            phase=phase,
            logical_id=logical_id,
            desired=desired,
            prior=prior,
            name=name,
            organization=organization,
            cluster_size=cluster_size,
            adopt=adopt,
            provenance=provenance,
        )

    # -------------------------------------------------------------------------
    # Phase handlers
    # -------------------------------------------------------------------------

    async def _delete(self, ctx: ReconcileContext, api: DatabaseApi) -> None:
        """Delete the recorded database. A 404 counts as already deleted."""
        target = ctx.prior.name if ctx.prior else None
        if not target:
            logger.info(
                "No recorded database to delete",
                extra={"logical_id": ctx.logical_id, "organization": ctx.organization},
            )
            return None

        with translate_api_errors("delete database", target, ctx.organization):
            try:
                await api.delete_database(ctx.organization, target)
            except ApiError as e:
                if not e.is_not_found:
                    raise
                logger.info(
                    "Database already deleted",
                    extra={"database": target, "organization": ctx.organization},
                )
                return None

        logger.info(
            "Deleted database",
            extra={"database": target, "organization": ctx.organization},
        )
        return None

    async def _create(self, ctx: ReconcileContext, api: DatabaseApi) -> DatabaseState:
        """Create the database, or adopt a same-named one when allowed."""
        name, organization, desired = ctx.name, ctx.organization, ctx.desired

        with translate_api_errors("look up database", name, organization):
            existing = await api.get_database(organization, name)

        if existing is not None:
            if not ctx.adopt:
                raise ConflictError(
                    f"Database with name '{name}' already exists in organization "
                    f"'{organization}'. Set adopt to manage it."
                )
            logger.info(
                "Adopting existing database",
                extra={"database": name, "organization": organization, "id": existing.id},
            )
            ctx.provenance.adopted = True
            adopted = replace(ctx, prior=PriorState.from_record(existing, organization))
            return await self._update(adopted, api, existing=existing)

        assert ctx.cluster_size is not None
        with translate_api_errors("create database", name, organization):
            created = await api.create_database(
                organization, desired.creation_payload(name, ctx.cluster_size)
            )
        logger.info(
            "Created database",
            extra={
                "database": name,
                "organization": organization,
                "id": created.id,
                "kind": desired.kind.value,
                "cluster_size": ctx.cluster_size,
            },
        )

        # The create endpoint rejects these settings, so they always follow as a patch
        with translate_api_errors("apply initial settings", name, organization):
            record = await api.update_database_settings(
                organization, name, desired.settings_payload(include_default_branch=False)
            )

        if desired.wants_non_default_branch:
            record = await self._switch_to_new_default_branch(ctx, api)

        return DatabaseState.from_record(
            desired, record, organization=organization, database_id=created.id
        )

    async def _switch_to_new_default_branch(
        self, ctx: ReconcileContext, api: DatabaseApi
    ) -> DatabaseRecord:
        """Create the requested default branch on a fresh database and switch to it."""
        name, organization, branch = ctx.name, ctx.organization, ctx.desired.default_branch
        assert ctx.cluster_size is not None

        await self._wait_until_ready(ctx, api)
        await ensure_branch(api, organization, name, branch, parent_branch=DEFAULT_BRANCH)
        await ensure_branch_cluster_size(api, organization, name, branch, ctx.cluster_size)

        with translate_api_errors(f"set default branch to '{branch}'", name, organization):
            return await api.update_database_settings(
                organization, name, {"default_branch": branch}
            )

    async def _update(
        self,
        ctx: ReconcileContext,
        api: DatabaseApi,
        existing: DatabaseRecord | None = None,
    ) -> DatabaseState:
        """Converge an existing database: rename, branch, settings, cluster size.

        Args:
            ctx: Resolved pass inputs.
            api: API client.
            existing: Database record already fetched by the create handler
                when adopting; skips the rename and existence probe.
        """
        name, organization, desired = ctx.name, ctx.organization, ctx.desired
        assert ctx.cluster_size is not None

        if existing is None:
            if ctx.prior is not None and ctx.prior.name and ctx.prior.name != name:
                await self._rename(ctx, api, ctx.prior.name)

            with translate_api_errors("look up database", name, organization):
                existing = await api.get_database(organization, name)
            if existing is None:
                raise NotFoundError(
                    f"Database '{name}' not found in organization '{organization}'"
                )

        if desired.wants_non_default_branch:
            await ensure_branch(
                api,
                organization,
                name,
                desired.default_branch,
                parent_branch=DEFAULT_BRANCH,
                before_create=lambda: self._wait_until_ready(ctx, api),
            )

        with translate_api_errors(
            "update settings",
            name,
            organization,
            not_found=f"Database '{name}' not found in organization '{organization}'",
        ):
            record = await api.update_database_settings(
                organization, name, desired.settings_payload(include_default_branch=True)
            )

        await ensure_branch_cluster_size(
            api, organization, name, desired.default_branch, ctx.cluster_size
        )

        logger.info(
            "Updated database",
            extra={
                "database": name,
                "organization": organization,
                "default_branch": record.default_branch,
                "state": record.state,
            },
        )
        return DatabaseState.from_record(desired, record, organization=organization)

    async def _rename(self, ctx: ReconcileContext, api: DatabaseApi, current_name: str) -> None:
        """Rename the database. Always issued before any other settings change.

        A 404 on the old name is accepted when the new name already exists:
        the rename landed in an earlier pass that failed before its output
        was persisted.
        """
        with translate_api_errors(
            f"rename database to '{ctx.name}'", current_name, ctx.organization
        ):
            try:
                await api.update_database_settings(
                    ctx.organization, current_name, {"new_name": ctx.name}
                )
            except ApiError as e:
                if not e.is_not_found:
                    raise
                renamed = await api.get_database(ctx.organization, ctx.name)
                if renamed is None:
                    raise NotFoundError(
                        f"Cannot rename database '{current_name}' to '{ctx.name}': neither "
                        f"name exists in organization '{ctx.organization}'"
                    ) from e
                logger.info(
                    "Database already renamed",
                    extra={"from": current_name, "to": ctx.name, "organization": ctx.organization},
                )
                return
        logger.info(
            "Renamed database",
            extra={"from": current_name, "to": ctx.name, "organization": ctx.organization},
        )

    async def _wait_until_ready(self, ctx: ReconcileContext, api: DatabaseApi) -> DatabaseRecord:
        ctx.provenance.record("wait_until_ready")
        return await wait_until_ready(
            api,
            ctx.organization,
            ctx.name,
            poll_interval=self._config.ready_poll_interval_seconds,
            timeout=self._config.ready_timeout_seconds,
            sleep=self._sleep,
            clock=self._clock,
        )
