"""Configuration management with validation.

Runtime defaults that the desired database spec does not carry (the
fallback organization, the physical-name prefix, readiness polling bounds)
are read from the environment once and validated at load time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .errors import ReconcileError


class ConfigurationError(ReconcileError):
    """Raised when configuration or desired-state validation fails.

    Always raised before any remote call is issued.
    """

    pass


# Configuration constants with documented bounds
DEFAULT_BRANCH = "main"

DEFAULT_APP_NAME = "app"
DEFAULT_STAGE = "dev"

DEFAULT_READY_POLL_INTERVAL_SECONDS = 5.0
MIN_READY_POLL_INTERVAL_SECONDS = 0.1
MAX_READY_POLL_INTERVAL_SECONDS = 300.0

DEFAULT_READY_TIMEOUT_SECONDS = 1800.0
MIN_READY_TIMEOUT_SECONDS = 1.0
MAX_READY_TIMEOUT_SECONDS = 7200.0

MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max spec / state file
MAX_DATABASE_NAME_LENGTH = 64

# Organization fallbacks, checked in order
ORGANIZATION_ENV_VARS: tuple[str, ...] = ("PLANETSCALE_ORGANIZATION", "PLANETSCALE_ORG_ID")

VALID_NAME_SEGMENT_PATTERN = r"^[a-z0-9][a-z0-9-]*$"


@dataclass(frozen=True)
class Config:
    """Reconciler configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-pass.
    """

    # Fallback organization when neither prior state nor the spec names one
    organization: str | None = None

    # Physical name prefix: {app}-{stage}-{logical_id}
    app: str = DEFAULT_APP_NAME
    stage: str = DEFAULT_STAGE

    # Readiness waiter bounds
    ready_poll_interval_seconds: float = DEFAULT_READY_POLL_INTERVAL_SECONDS
    ready_timeout_seconds: float = DEFAULT_READY_TIMEOUT_SECONDS

    # Runtime-wide adoption default, overridden per spec by `adopt`
    adopt: bool = False

    # Emit one provenance record per reconciliation pass
    enable_audit_logging: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        import re

        errors: list[str] = []

        if self.organization is not None and not self.organization.strip():
            errors.append("PLANETSCALE_ORGANIZATION must not be blank when set")

        if not re.match(VALID_NAME_SEGMENT_PATTERN, self.app):
            errors.append(f"APP_NAME must match pattern {VALID_NAME_SEGMENT_PATTERN}: {self.app}")

        if not re.match(VALID_NAME_SEGMENT_PATTERN, self.stage):
            errors.append(f"STAGE must match pattern {VALID_NAME_SEGMENT_PATTERN}: {self.stage}")

        if not (
            MIN_READY_POLL_INTERVAL_SECONDS
            <= self.ready_poll_interval_seconds
            <= MAX_READY_POLL_INTERVAL_SECONDS
        ):
            errors.append(
                f"READY_POLL_INTERVAL must be between {MIN_READY_POLL_INTERVAL_SECONDS} "
                f"and {MAX_READY_POLL_INTERVAL_SECONDS} seconds"
            )

        if not (
            MIN_READY_TIMEOUT_SECONDS <= self.ready_timeout_seconds <= MAX_READY_TIMEOUT_SECONDS
        ):
            errors.append(
                f"READY_TIMEOUT must be between {MIN_READY_TIMEOUT_SECONDS} "
                f"and {MAX_READY_TIMEOUT_SECONDS} seconds"
            )
        elif self.ready_poll_interval_seconds > self.ready_timeout_seconds:
            errors.append("READY_POLL_INTERVAL cannot exceed READY_TIMEOUT")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            PLANETSCALE_ORGANIZATION: Default organization (fallback: PLANETSCALE_ORG_ID)
            APP_NAME: Prefix for generated database names (default: app)
            STAGE: Stage segment of generated database names (default: dev)
            READY_POLL_INTERVAL: Seconds between readiness polls (default: 5)
            READY_TIMEOUT: Seconds to wait for a database to become ready (default: 1800)
            ADOPT: If "true", adopt existing databases on create (default: false)
            ENABLE_AUDIT_LOGGING: Emit provenance records (default: true)
        """

        def get_float(key: str, default: float) -> float:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be a number: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        organization = None
        for key in ORGANIZATION_ENV_VARS:
            organization = os.environ.get(key) or None
            if organization:
                break

        return cls(
            organization=organization,
            app=os.environ.get("APP_NAME", DEFAULT_APP_NAME),
            stage=os.environ.get("STAGE", DEFAULT_STAGE),
            ready_poll_interval_seconds=get_float(
                "READY_POLL_INTERVAL", DEFAULT_READY_POLL_INTERVAL_SECONDS
            ),
            ready_timeout_seconds=get_float("READY_TIMEOUT", DEFAULT_READY_TIMEOUT_SECONDS),
            adopt=get_bool("ADOPT", False),
            enable_audit_logging=get_bool("ENABLE_AUDIT_LOGGING", True),
        )
