"""Cluster size normalization.

Size tokens come in two shapes:

- base tiers, ``PS_<n>``, valid for both engines (each engine has its own
  list), and
- architecture-qualified tiers, ``PS_<n>_<CLOUD>_<ARCH>``, which only
  PostgreSQL databases use.

MySQL databases are sized with base tiers. PostgreSQL base tiers are
expanded to a qualified tier from the CPU architecture and the region's
cloud. Everything here is pure; no API calls.
"""

from __future__ import annotations

import re
from enum import Enum

from .config import ConfigurationError


class DatabaseKind(str, Enum):
    """Database engines."""

    MYSQL = "mysql"
    POSTGRESQL = "postgresql"


class CpuArch(str, Enum):
    """CPU architectures offered for PostgreSQL clusters."""

    X86 = "x86"
    ARM = "arm"


class Cloud(str, Enum):
    """Cloud backing a region."""

    AWS = "AWS"
    GCP = "GCP"


MYSQL_SIZES: tuple[str, ...] = (
    "PS_10",
    "PS_20",
    "PS_40",
    "PS_80",
    "PS_160",
    "PS_320",
    "PS_400",
    "PS_640",
    "PS_700",
    "PS_900",
    "PS_1280",
    "PS_1400",
    "PS_1800",
    "PS_2100",
    "PS_2560",
    "PS_2700",
    "PS_2800",
)

POSTGRESQL_SIZES: tuple[str, ...] = (
    "PS_5",
    "PS_10",
    "PS_20",
    "PS_40",
    "PS_80",
    "PS_160",
    "PS_320",
    "PS_640",
    "PS_1280",
    "PS_2560",
)

DEFAULT_ARCH = CpuArch.X86
GCP_REGION_PREFIX = "gcp-"

# Tiers not offered in regions of the given cloud
CLOUD_UNAVAILABLE_SIZES: dict[Cloud, frozenset[str]] = {
    Cloud.AWS: frozenset(),
    Cloud.GCP: frozenset({"PS_2560", "PS_2700", "PS_2800"}),
}

# Architectures offered per cloud
CLOUD_ARCHES: dict[Cloud, frozenset[CpuArch]] = {
    Cloud.AWS: frozenset({CpuArch.X86, CpuArch.ARM}),
    Cloud.GCP: frozenset({CpuArch.X86}),
}

_BASE_PATTERN = re.compile(r"^PS_\d+$")
_QUALIFIED_PATTERN = re.compile(r"^(PS_\d+)_(AWS|GCP)_(X86|ARM)$")


def cloud_for_region(region: str | None) -> Cloud:
    """Return the cloud that hosts a region slug (AWS unless ``gcp-`` prefixed)."""
    if region and region.lower().startswith(GCP_REGION_PREFIX):
        return Cloud.GCP
    return Cloud.AWS


def _canonical_token(size: str) -> str:
    return size.strip().upper().replace("-", "_")


def _coerce_kind(kind: DatabaseKind | str | None) -> DatabaseKind:
    if kind is None:
        return DatabaseKind.MYSQL
    try:
        return DatabaseKind(kind)
    except ValueError as e:
        valid = [k.value for k in DatabaseKind]
        raise ConfigurationError(f"Database kind must be one of {valid}: {kind}") from e


def _coerce_arch(arch: CpuArch | str | None) -> CpuArch | None:
    if arch is None:
        return None
    try:
        return CpuArch(arch.lower())
    except ValueError as e:
        valid = [a.value for a in CpuArch]
        raise ConfigurationError(f"CPU architecture must be one of {valid}: {arch}") from e


def normalize_cluster_size(
    size: str,
    kind: DatabaseKind | str | None = DatabaseKind.MYSQL,
    arch: CpuArch | str | None = None,
    region: str | None = None,
) -> str:
    """Validate a cluster size against engine, architecture and region.

    Args:
        size: Size token as written by the user (``PS_10``, ``ps-10``,
            ``PS_10_AWS_ARM``).
        kind: Database engine. Defaults to MySQL.
        arch: CPU architecture (PostgreSQL only). Defaults to x86.
        region: Region slug, used to pick the cloud and check availability.

    Returns:
        The canonical size token the API expects.

    Raises:
        ConfigurationError: If the combination is not offered.
    """
    if not size or not size.strip():
        raise ConfigurationError("Cluster size is required")

    engine = _coerce_kind(kind)
    requested_arch = _coerce_arch(arch)
    cloud = cloud_for_region(region)
    token = _canonical_token(size)

    qualified = _QUALIFIED_PATTERN.match(token)
    if qualified:
        base = qualified.group(1)
    elif _BASE_PATTERN.match(token):
        base = token
    else:
        raise ConfigurationError(f"Invalid cluster size '{size}': expected a PS_<n> tier")

    if engine is DatabaseKind.MYSQL:
        if qualified:
            raise ConfigurationError(
                f"Cluster size '{size}' is architecture-specific and only valid "
                f"for postgresql databases"
            )
        if requested_arch is not None:
            raise ConfigurationError("CPU architecture can only be set for postgresql databases")
        if base not in MYSQL_SIZES:
            raise ConfigurationError(
                f"Cluster size '{size}' is not available for mysql databases"
            )
        _check_region(base, cloud, region)
        return base

    if base not in POSTGRESQL_SIZES:
        raise ConfigurationError(f"Cluster size '{size}' is not available for postgresql databases")

    if qualified:
        token_cloud = Cloud(qualified.group(2))
        token_arch = CpuArch(qualified.group(3).lower())
        if requested_arch is not None and requested_arch is not token_arch:
            raise ConfigurationError(
                f"Cluster size '{size}' does not match requested architecture "
                f"'{requested_arch.value}'"
            )
        if region is not None and token_cloud is not cloud:
            raise ConfigurationError(
                f"Cluster size '{size}' targets {token_cloud.value} but region "
                f"'{region}' is hosted on {cloud.value}"
            )
        cloud = token_cloud
        effective_arch = token_arch
    else:
        effective_arch = requested_arch or DEFAULT_ARCH

    if effective_arch not in CLOUD_ARCHES[cloud]:
        raise ConfigurationError(
            f"CPU architecture '{effective_arch.value}' is not available on {cloud.value}"
            + (f" (region '{region}')" if region else "")
        )
    _check_region(base, cloud, region)

    return f"{base}_{cloud.value}_{effective_arch.value.upper()}"


def _check_region(base: str, cloud: Cloud, region: str | None) -> None:
    if base in CLOUD_UNAVAILABLE_SIZES[cloud]:
        where = f"region '{region}'" if region else cloud.value
        raise ConfigurationError(f"Cluster size '{base}' is not available in {where}")
