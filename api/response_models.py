"""
Pydantic response models for the SlotKeeper API.

These models give FastAPI the type information it needs to generate
accurate OpenAPI schemas.

Usage:
    from api.response_models import PassResponse

    @router.post("/passes/conflicts", response_model=PassResponse)
    async def run_conflicts(): ...
"""

from typing import Any

from pydantic import BaseModel, Field

# ==== Moves and Phases ====


class MoveModel(BaseModel):
    """One relocation attempt."""

    item_id: str
    title: str
    outcome: str = Field(description="moved, unverified, no_slot or failed")
    from_: str | None = Field(default=None, alias="from", description="Previous start")
    to: str | None = Field(default=None, description="New start, if a slot was found")
    error: str | None = None

    model_config = {"populate_by_name": True}


class PhaseModel(BaseModel):
    """Result of one phase of a pass."""

    name: str
    success: bool
    error: str | None = None
    duration_seconds: float = 0.0
    moves: list[MoveModel] = Field(default_factory=list, description="Verified moves")
    unverified: list[MoveModel] = Field(default_factory=list)
    unplaced: list[MoveModel] = Field(default_factory=list)
    failed: list[MoveModel] = Field(default_factory=list)
    alerts: list[str] = Field(default_factory=list, description="Operator reports")

    model_config = {"extra": "allow"}


# ==== Pass Result ====


class PassResponse(BaseModel):
    """Outcome of a scheduling pass."""

    name: str
    pass_id: str | None = None
    started_at: str = Field(description="ISO timestamp")
    completed_at: str | None = Field(default=None, description="ISO timestamp")
    duration_seconds: float = 0.0
    overall_success: bool
    moves: int = Field(description="Verified moves")
    unverified: int = 0
    unplaced: int = 0
    phases: list[PhaseModel] = Field(default_factory=list)
    failed_phases: list[str] = Field(default_factory=list)


# ==== Highlights ====


class HighlightedEventModel(BaseModel):
    id: str
    title: str
    type: str
    start: str
    end: str
    time: str = Field(description="Display time, e.g. 9:05 AM")
    minutes_until: int
    in_progress: bool


class HighlightResponse(BaseModel):
    """Upcoming and in-progress events."""

    highlighted: list[HighlightedEventModel] = Field(default_factory=list)
    newly_upcoming: list[HighlightedEventModel] = Field(default_factory=list)


# ==== Bumps ====


class BumpResponse(BaseModel):
    success: bool
    item_id: str
    until: str = Field(description="Date the bump expires at the end of")


# ==== Health Check ====


class HealthResponse(BaseModel):
    """Health check result."""

    status: str = Field(description="healthy or degraded")
    timestamp: str = Field(description="ISO timestamp")
    last_passes: dict[str, Any] = Field(
        default_factory=dict, description="Summary of the latest pass of each kind"
    )
    jobs: dict[str, Any] = Field(
        default_factory=dict, description="Timer job health when the daemon runs in this server"
    )
    metrics: dict[str, Any] = Field(default_factory=dict)
