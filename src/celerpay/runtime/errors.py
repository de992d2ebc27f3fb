from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from celerpay.ledger.types import SnapshotRef


@dataclass
class AccessorError(Exception):
    """Canonical error type for state accessor failures.

    code is one of:
      - unsupported: the query is not available at the snapshot's api version
      - version_mismatch: the snapshot's api version is outside what this build reads
      - corrupt_state: the snapshot's state document does not match the schema
    """

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


@dataclass
class SnapshotNotFound(Exception):
    """The snapshot reference does not name any retained snapshot."""

    at: SnapshotRef | None

    def __str__(self) -> str:  # pragma: no cover
        if self.at is None:
            return "snapshot_not_found:no head snapshot"
        return f"snapshot_not_found:{self.at!r}"
