"""Contract for the PlanetScale API client collaborator.

The reconciler never speaks HTTP itself. Whatever client is handed to it
must implement DatabaseApi: lookups return None on 404, every other non-2xx
response is raised as ApiError. Transport, authentication and retries are
the client's concern.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


class ApiError(Exception):
    """Non-2xx response from the provider API."""

    def __init__(self, status_code: int, message: str = "", body: Any = None) -> None:
        super().__init__(f"HTTP {status_code}: {message}" if message else f"HTTP {status_code}")
        self.status_code = status_code
        self.message = message
        self.body = body

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


@dataclass(frozen=True)
class DatabaseRecord:
    """Database as reported by the provider."""

    id: str
    name: str
    state: str
    default_branch: str = "main"
    plan: str = ""
    kind: str = "mysql"
    created_at: str = ""
    updated_at: str = ""
    html_url: str = ""
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> DatabaseRecord:
        """Build a record from a provider database payload."""
        return cls(
            id=str(data["id"]),
            name=data["name"],
            state=data.get("state", ""),
            default_branch=data.get("default_branch") or "main",
            plan=data.get("plan", ""),
            kind=data.get("kind", "mysql"),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            html_url=data.get("html_url", ""),
            raw=dict(data),
        )


@dataclass(frozen=True)
class BranchRecord:
    """Branch as reported by the provider."""

    id: str
    name: str
    parent_branch: str | None = None
    cluster_size: str | None = None
    ready: bool = False
    production: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> BranchRecord:
        """Build a record from a provider branch payload."""
        return cls(
            id=str(data["id"]),
            name=data["name"],
            parent_branch=data.get("parent_branch"),
            cluster_size=data.get("cluster_name") or data.get("cluster_size"),
            ready=bool(data.get("ready", False)),
            production=bool(data.get("production", False)),
        )


class DatabaseApi(Protocol):
    """Operations the reconciler consumes from the API client."""

    async def get_database(self, organization: str, name: str) -> DatabaseRecord | None:
        ...

    async def create_database(
        self, organization: str, fields: dict[str, Any]
    ) -> DatabaseRecord:
        ...

    async def update_database_settings(
        self, organization: str, name: str, fields: dict[str, Any]
    ) -> DatabaseRecord:
        ...

    async def delete_database(self, organization: str, name: str) -> None:
        ...

    async def get_branch(
        self, organization: str, database: str, branch: str
    ) -> BranchRecord | None:
        ...

    async def create_branch(
        self, organization: str, database: str, branch: str, parent_branch: str
    ) -> BranchRecord:
        ...

    async def set_branch_cluster_size(
        self, organization: str, database: str, branch: str, cluster_size: str
    ) -> BranchRecord:
        ...
