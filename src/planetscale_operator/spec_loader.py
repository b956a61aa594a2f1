"""Spec and prior-state file loading with validation.

SECURITY: All file operations enforce size limits to prevent DoS attacks
via large files. Input validation is performed at the boundary.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES
from .models import DatabaseSpec, PriorState

logger = logging.getLogger(__name__)


class SpecLoadError(Exception):
    """Raised when spec loading or validation fails."""

    pass


def _read_mapping(path: Path, what: str) -> dict[str, Any]:
    """Read a YAML (or JSON) file that must contain a mapping."""
    if not path.exists():
        raise SpecLoadError(f"{what} file not found: {path}")

    # SECURITY: Check file size before reading to prevent DoS
    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat {what} file {path}: {e}") from e

    if file_size > MAX_SPEC_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"{what} file exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read {what} file {path}: {e}") from e

    # JSON is a subset of YAML, so state files written as JSON load here too
    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"{what} file must contain a YAML mapping: {path}")

    return raw_data


def _validate(model: type[BaseModel], data: dict[str, Any], path: Path) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        # Format Pydantic validation errors for readability
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            errors.append(f"  - {loc}: {msg}")

        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {path}:\n{error_list}") from e


def load_database_spec(path: Path) -> DatabaseSpec:
    """Load and validate a database spec from YAML.

    Both a flat mapping and a Kubernetes-style document
    (``apiVersion``/``kind``/``metadata``/``spec``) are accepted.

    Args:
        path: Spec file path.

    Returns:
        Validated DatabaseSpec.

    Raises:
        SpecLoadError: If the spec cannot be loaded or fails validation.
    """
    raw_data = _read_mapping(path, "Spec")

    if "apiVersion" in raw_data and "spec" in raw_data:
        spec_data = raw_data.get("spec", {})
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {path}")
    else:
        spec_data = raw_data

    spec = _validate(DatabaseSpec, spec_data, path)
    logger.info("Loaded database spec from %s", path)
    return spec


def load_prior_state(path: Path) -> PriorState:
    """Load a previously persisted output record.

    Raises:
        SpecLoadError: If the file cannot be loaded or fails validation.
    """
    state = _validate(PriorState, _read_mapping(path, "State"), path)
    logger.info("Loaded prior state from %s", path)
    return state
