"""Pydantic models for the database spec, prior state and result state.

These models provide:
1. Type-safe YAML / runtime-record parsing
2. Validation at the boundary (fail fast, fail loudly)
3. Clean transformation to provider API payloads
"""

from __future__ import annotations

import re
from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from .client import DatabaseRecord
from .cluster_size import CpuArch, DatabaseKind
from .config import DEFAULT_BRANCH, MAX_DATABASE_NAME_LENGTH

VALID_DATABASE_NAME_PATTERN = r"^[a-z0-9][a-z0-9_-]*$"
VALID_BRANCH_NAME_PATTERN = r"^[a-z0-9][a-z0-9_-]*$"

# Settings the create endpoint rejects; applied with a follow-up patch
GENERAL_SETTINGS: tuple[str, ...] = (
    "require_approval_for_deploy",
    "restrict_branch_region",
    "insights_raw_queries",
    "production_branch_web_console",
)

# Vitess-only settings, never sent for postgresql databases
MYSQL_SETTINGS: tuple[str, ...] = (
    "automatic_migrations",
    "migration_framework",
    "migration_table_name",
    "allow_foreign_key_constraints",
    "allow_data_branching",
)


class RegionConfig(BaseModel):
    """Region reference (create only)."""

    model_config = {"extra": "ignore", "frozen": True}

    slug: Annotated[str, Field(min_length=1)]


class DatabaseSpec(BaseModel):
    """Desired configuration for one database and its default branch."""

    model_config = {"extra": "ignore", "populate_by_name": True, "frozen": True}

    name: Annotated[str, Field(min_length=1, max_length=MAX_DATABASE_NAME_LENGTH)] | None = None
    organization: str | None = None

    # Create-only fields
    region: RegionConfig | None = None
    replicas: Annotated[int, Field(ge=0)] | None = None
    kind: DatabaseKind = DatabaseKind.MYSQL
    major_version: str | None = Field(None, alias="majorVersion")  # postgresql only

    cluster_size: Annotated[str, Field(min_length=1)] = Field(alias="clusterSize")
    arch: CpuArch | None = None  # postgresql only

    # Vitess (mysql) settings
    automatic_migrations: bool | None = Field(None, alias="automaticMigrations")
    migration_framework: str | None = Field(None, alias="migrationFramework")
    migration_table_name: str | None = Field(None, alias="migrationTableName")
    allow_data_branching: bool | None = Field(None, alias="allowDataBranching")
    allow_foreign_key_constraints: bool | None = Field(None, alias="allowForeignKeyConstraints")

    # Engine-agnostic settings
    require_approval_for_deploy: bool | None = Field(None, alias="requireApprovalForDeploy")
    restrict_branch_region: bool | None = Field(None, alias="restrictBranchRegion")
    insights_raw_queries: bool | None = Field(None, alias="insightsRawQueries")
    production_branch_web_console: bool | None = Field(None, alias="productionBranchWebConsole")

    default_branch: str = Field(DEFAULT_BRANCH, alias="defaultBranch")

    # Lifecycle flags
    adopt: bool | None = None
    delete: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is not None and not re.match(VALID_DATABASE_NAME_PATTERN, v):
            raise ValueError(
                "name must be lowercase alphanumerics, hyphens or underscores "
                f"(pattern {VALID_DATABASE_NAME_PATTERN})"
            )
        return v

    @field_validator("default_branch")
    @classmethod
    def validate_default_branch(cls, v: str) -> str:
        if not re.match(VALID_BRANCH_NAME_PATTERN, v):
            raise ValueError(f"defaultBranch must match pattern {VALID_BRANCH_NAME_PATTERN}")
        return v

    @field_validator("organization")
    @classmethod
    def validate_organization(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("organization must not be blank")
        return v

    @model_validator(mode="after")
    def validate_postgresql_only_fields(self) -> DatabaseSpec:
        if self.kind is DatabaseKind.MYSQL:
            if self.arch is not None:
                raise ValueError("arch can only be set for postgresql databases")
            if self.major_version is not None:
                raise ValueError("majorVersion can only be set for postgresql databases")
        return self

    @property
    def region_slug(self) -> str | None:
        return self.region.slug if self.region else None

    @property
    def is_postgresql(self) -> bool:
        return self.kind is DatabaseKind.POSTGRESQL

    @property
    def wants_non_default_branch(self) -> bool:
        """True when the production branch is something other than ``main``."""
        return self.default_branch != DEFAULT_BRANCH

    def creation_payload(self, name: str, cluster_size: str) -> dict[str, Any]:
        """Fields accepted by the create endpoint."""
        payload: dict[str, Any] = {
            "name": name,
            "region": self.region_slug,
            "kind": self.kind.value,
            "cluster_size": cluster_size,
            "replicas": self.replicas,
        }
        if self.is_postgresql:
            payload["major_version"] = self.major_version
        return _drop_unset(payload)

    def settings_payload(self, *, include_default_branch: bool) -> dict[str, Any]:
        """Settings applied through the database settings endpoint.

        Args:
            include_default_branch: Whether to send ``default_branch``. Left
                out right after creation, when the branch may not exist yet.
        """
        keys = GENERAL_SETTINGS if self.is_postgresql else MYSQL_SETTINGS + GENERAL_SETTINGS
        payload = {key: getattr(self, key) for key in keys}
        if include_default_branch:
            payload["default_branch"] = self.default_branch
        return _drop_unset(payload)


class PriorState(BaseModel):
    """Output record persisted by the previous pass.

    Reads the legacy ``organizationId`` key so records written by older
    versions still delete from the right organization.
    """

    model_config = {"extra": "ignore", "populate_by_name": True, "frozen": True}

    id: str | None = None
    name: str | None = None
    organization: str | None = Field(
        None, validation_alias=AliasChoices("organization", "organizationId")
    )
    default_branch: str | None = Field(None, alias="defaultBranch")
    state: str | None = None

    @classmethod
    def from_record(cls, record: DatabaseRecord, organization: str) -> PriorState:
        """Prior state for a database found remotely (adoption)."""
        return cls(
            id=record.id,
            name=record.name,
            organization=organization,
            default_branch=record.default_branch,
            state=record.state,
        )


class DatabaseState(DatabaseSpec):
    """Result of a reconciliation pass: the spec merged with remote truth."""

    name: str
    organization: str
    id: str
    state: str
    default_branch: str = Field(DEFAULT_BRANCH, alias="defaultBranch")
    plan: str = ""
    created_at: str = Field("", alias="createdAt")
    updated_at: str = Field("", alias="updatedAt")
    html_url: str = Field("", alias="htmlUrl")

    @classmethod
    def from_record(
        cls,
        spec: DatabaseSpec,
        record: DatabaseRecord,
        *,
        organization: str,
        database_id: str | None = None,
    ) -> DatabaseState:
        """Merge desired fields with the remote record.

        Args:
            spec: Desired configuration for the pass.
            record: Latest database record returned by the API.
            organization: Organization the database lives in.
            database_id: Override for the id (the create response id is kept
                when later responses come from a settings patch).
        """
        data = spec.model_dump()
        data.update(
            id=database_id or record.id,
            name=record.name,
            organization=organization,
            state=record.state,
            default_branch=record.default_branch,
            plan=record.plan,
            created_at=record.created_at,
            updated_at=record.updated_at,
            html_url=record.html_url,
        )
        return cls.model_validate(data)

    def to_prior(self) -> PriorState:
        """Prior state for the next pass."""
        return PriorState(
            id=self.id,
            name=self.name,
            organization=self.organization,
            default_branch=self.default_branch,
            state=self.state,
        )

    def to_output(self) -> dict[str, Any]:
        """JSON-ready record for the runtime to persist."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _drop_unset(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}
