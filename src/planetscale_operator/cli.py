"""PlanetScale operator CLI (psdb).

Offline helpers around the reconciler: everything here resolves values the
way a reconciliation pass would, without calling the API.

Usage:
    psdb validate database.yaml --id app-db        # Resolve name, org, cluster size
    psdb validate database.yaml --prior state.json # ...against a persisted record
    psdb cluster-size PS_10 --kind postgresql      # Normalize a cluster size
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

import click

from .cluster_size import CpuArch, DatabaseKind, normalize_cluster_size
from .config import Config, ConfigurationError
from .naming import create_physical_name, resolve_name, resolve_organization
from .provenance import OPERATOR_VERSION
from .spec_loader import SpecLoadError, load_database_spec, load_prior_state

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_LOG_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Add extra fields from the record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_LOG_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_format: str = "json", level: int = logging.INFO) -> None:
    """Configure root logging to stderr, JSON for production or plain text."""
    handler = logging.StreamHandler(sys.stderr)
    if log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if getattr(existing, "_psdb_handler", False):
            root_logger.removeHandler(existing)
    handler._psdb_handler = True  # type: ignore[attr-defined]
    root_logger.addHandler(handler)
    root_logger.setLevel(level)


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version=OPERATOR_VERSION, prog_name="psdb")
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"]),
    default="json",
    show_default=True,
    help="Log output format.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(log_format: str, verbose: bool) -> None:
    """PlanetScale operator CLI (psdb).

    \b
    Quick Start:
        psdb validate database.yaml --id app-db
        psdb cluster-size PS_10 --kind postgresql --arch arm
    """
    setup_logging(log_format, logging.DEBUG if verbose else logging.INFO)


@cli.command()
@click.argument("spec_file", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--id", "logical_id", default="database", show_default=True, help="Logical id.")
@click.option(
    "--prior",
    "prior_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Persisted output record of the previous pass (YAML or JSON).",
)
def validate(spec_file: Path, logical_id: str, prior_file: Path | None) -> None:
    """Validate a database spec and print the values a pass would use."""
    try:
        config = Config.from_env()
        spec = load_database_spec(spec_file)
        prior = load_prior_state(prior_file) if prior_file else None

        name = resolve_name(
            spec, prior, lambda: create_physical_name(logical_id, config.app, config.stage)
        )
        organization = resolve_organization(spec, prior, config.organization)
        cluster_size = normalize_cluster_size(
            spec.cluster_size, spec.kind, arch=spec.arch, region=spec.region_slug
        )
    except (SpecLoadError, ConfigurationError) as e:
        raise click.ClickException(str(e)) from e

    resolved = {
        "name": name,
        "organization": organization,
        "kind": spec.kind.value,
        "clusterSize": cluster_size,
        "region": spec.region_slug,
        "defaultBranch": spec.default_branch,
        "adopt": spec.adopt if spec.adopt is not None else config.adopt,
        "delete": spec.delete,
        "rename": bool(prior and prior.name and prior.name != name),
    }
    click.echo(json.dumps(resolved, indent=2))


@cli.command("cluster-size")
@click.argument("size")
@click.option(
    "--kind",
    type=click.Choice([k.value for k in DatabaseKind]),
    default=DatabaseKind.MYSQL.value,
    show_default=True,
)
@click.option("--arch", type=click.Choice([a.value for a in CpuArch]), default=None)
@click.option("--region", default=None, help="Region slug, e.g. us-east or gcp-us-central1.")
def cluster_size(size: str, kind: str, arch: str | None, region: str | None) -> None:
    """Print the canonical cluster size for an engine, architecture and region."""
    try:
        click.echo(normalize_cluster_size(size, kind, arch=arch, region=region))
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


def main() -> None:
    """Entry point for the psdb console script."""
    cli()


if __name__ == "__main__":
    main()
