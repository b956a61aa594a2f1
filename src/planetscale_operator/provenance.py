"""Provenance tracking for reconciliation passes.

Every pass is stamped with one structured record that answers:
- "Which database and organization did this pass touch?"
- "Which remote calls did it issue, in what order?"
- "Did it adopt, create, or fail, and why?"
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

# Version is set at build time or falls back to dev
OPERATOR_VERSION = os.environ.get("OPERATOR_VERSION", "dev")


@dataclass
class ReconcileProvenance:
    """Provenance record for a single reconciliation pass."""

    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    # Identity
    logical_id: str = ""
    phase: str = ""
    operator_version: str = OPERATOR_VERSION

    # Target
    database: str = ""
    organization: str = ""

    # Outcome
    adopted: bool = False
    operations: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    # Error tracking
    error: str | None = None
    error_type: str | None = None

    def record(self, operation: str) -> None:
        """Append a remote operation to the ordered operation log."""
        self.operations.append(operation)

    @property
    def mutation_count(self) -> int:
        """Number of mutating calls issued (everything except reads and waits)."""
        return sum(1 for op in self.operations if not op.startswith(("get_", "wait_")))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = asdict(self)
        result["timestamp"] = self.timestamp.isoformat()
        result["mutation_count"] = self.mutation_count
        return result


class ProvenanceLogger:
    """Emits provenance records to the structured logger."""

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled

    def create_provenance(self, logical_id: str, phase: str) -> ReconcileProvenance:
        """Create a new provenance record for a pass."""
        return ReconcileProvenance(logical_id=logical_id, phase=phase)

    def log_provenance(self, provenance: ReconcileProvenance) -> None:
        """Log a completed provenance record.

        Error records are logged at ERROR, everything else at INFO.
        """
        if not self._enabled:
            return

        log_level = logging.ERROR if provenance.error else logging.INFO
        logger.log(
            log_level,
            "Reconciliation provenance",
            extra={
                "provenance": provenance.to_dict(),
                # Flatten key fields for easier querying
                "logical_id": provenance.logical_id,
                "phase": provenance.phase,
                "database": provenance.database,
                "organization": provenance.organization,
                "adopted": provenance.adopted,
                "mutation_count": provenance.mutation_count,
                "duration_seconds": provenance.duration_seconds,
            },
        )
