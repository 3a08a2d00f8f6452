"""
PassResult dataclass for scheduling pass tracking.

Provides structured tracking of pass execution with per-phase results.
"""

from dataclasses import dataclass, field
from datetime import datetime

from slotkeeper.verify import MoveOutcome, MoveResult


@dataclass
class PhaseResult:
    """Result of a single phase execution."""

    name: str
    success: bool = True
    error: str | None = None
    duration_seconds: float = 0.0
    results: list[MoveResult] = field(default_factory=list)
    alerts: list[str] = field(default_factory=list)
    data: dict = field(default_factory=dict)

    def _with(self, outcome: MoveOutcome) -> list[MoveResult]:
        return [r for r in self.results if r.outcome == outcome]

    @property
    def moves(self) -> list[MoveResult]:
        return self._with(MoveOutcome.MOVED)

    @property
    def unverified(self) -> list[MoveResult]:
        return self._with(MoveOutcome.UNVERIFIED)

    @property
    def unplaced(self) -> list[MoveResult]:
        return self._with(MoveOutcome.NO_SLOT)

    @property
    def failed(self) -> list[MoveResult]:
        return self._with(MoveOutcome.FAILED)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "success": self.success,
            "error": self.error,
            "duration_seconds": self.duration_seconds,
            "moves": [r.to_dict() for r in self.moves],
            "unverified": [r.to_dict() for r in self.unverified],
            "unplaced": [r.to_dict() for r in self.unplaced],
            "failed": [r.to_dict() for r in self.failed],
            "alerts": list(self.alerts),
            **self.data,
        }


@dataclass
class PassResult:
    """Result of a complete scheduling pass."""

    name: str
    started_at: datetime
    completed_at: datetime | None = None
    pass_id: str | None = None
    phases: list[PhaseResult] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        """Calculate total duration."""
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def overall_success(self) -> bool:
        return all(p.success for p in self.phases)

    @property
    def failed_phases(self) -> list[str]:
        """Get names of failed phases."""
        return [p.name for p in self.phases if not p.success]

    @property
    def moves(self) -> list[MoveResult]:
        return [m for p in self.phases for m in p.moves]

    @property
    def unverified(self) -> list[MoveResult]:
        return [m for p in self.phases for m in p.unverified]

    @property
    def unplaced(self) -> list[MoveResult]:
        return [m for p in self.phases for m in p.unplaced]

    @property
    def alerts(self) -> list[str]:
        return [a for p in self.phases for a in p.alerts]

    def phase(self, name: str) -> PhaseResult | None:
        return next((p for p in self.phases if p.name == name), None)

    def to_dict(self) -> dict:
        """Convert to dictionary for logging and API responses."""
        return {
            "name": self.name,
            "pass_id": self.pass_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "overall_success": self.overall_success,
            "moves": len(self.moves),
            "unverified": len(self.unverified),
            "unplaced": len(self.unplaced),
            "phases": [p.to_dict() for p in self.phases],
            "failed_phases": self.failed_phases,
        }
