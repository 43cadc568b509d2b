"""
Domain: reconciliation run report.

A sweep records what it fixed and what failed, step by step. A run is a full
success only when no step reported an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from .time import require_utc_timestamp, to_iso_utc


@dataclass(slots=True)
class ReconciliationReport:
    """Mutable accumulator filled in by the sweep, one entry per step."""

    timestamp: datetime
    triggered_by: Optional[str] = None
    fixes_applied: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        require_utc_timestamp("timestamp", self.timestamp)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "timestamp": to_iso_utc(self.timestamp),
            "triggered_by": self.triggered_by,
            "fixes_applied": list(self.fixes_applied),
            "errors": list(self.errors),
        }
