"""Pydantic schemas for plan file validation."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .resources import SiteConstraints, Worker
from .scheduler.config import CompletionPriority, PlanningMode, RiskTolerance, ScheduleTempo
from .scheduler.core import Task, TaskMetadata, ThreePointEstimate
from .workflows import Phase, Space


class EstimateSchema(BaseModel):
    """Three-point estimate in hours."""

    low: float | None = Field(default=None, ge=0)
    medium: float | None = Field(default=None, ge=0)
    high: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_order(self) -> EstimateSchema:
        """Reject estimates whose points are out of order."""
        points = [p for p in (self.low, self.medium, self.high) if p is not None]
        if points != sorted(points):
            raise ValueError("estimate must satisfy low <= medium <= high")
        return self


class TaskSchema(BaseModel):
    """Schema for one explicit task."""

    id: str
    title: str = ""
    estimated_hours: float | None = Field(default=None, ge=0)
    estimate: EstimateSchema | None = None
    min_contiguous_hours: float = Field(default=0.0, ge=0)
    dependencies: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    confidence: float | None = Field(default=None, ge=0, le=1)
    workers_needed: int | None = Field(default=None, ge=1)
    scale_factor: float = Field(default=1.0, ge=0)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        """Allow numeric IDs in YAML."""
        return str(v)

    @field_validator("dependencies", "tags", mode="before")
    @classmethod
    def ensure_list(cls, v: Any) -> list[str]:
        """Ensure value is a list."""
        if v is None:
            return []
        if isinstance(v, list):
            return [str(item) for item in v]  # type: ignore[misc]
        return [str(v)]

    def to_task(self) -> Task:
        estimate = None
        if self.estimate is not None:
            estimate = ThreePointEstimate(
                low=self.estimate.low, medium=self.estimate.medium, high=self.estimate.high
            )
        metadata = None
        if self.workers_needed is not None:
            metadata = TaskMetadata(workers_needed=self.workers_needed)
        return Task(
            id=self.id,
            title=self.title or self.id,
            estimated_hours=self.estimated_hours,
            estimate=estimate,
            min_contiguous_hours=self.min_contiguous_hours,
            dependencies=list(self.dependencies),
            tags=list(self.tags),
            confidence=self.confidence,
            metadata=metadata,
            scale_factor=self.scale_factor,
        )


class ProjectSchema(BaseModel):
    """Project-level dates and planning decisions."""

    target_completion_date: datetime | date
    drop_dead_date: datetime | date
    timezone: str = "UTC"
    start_time: datetime | None = None
    horizon_end: datetime | date | None = None
    schedule_tempo: ScheduleTempo = ScheduleTempo.STEADY
    mode: PlanningMode = PlanningMode.STANDARD
    completion_priority: CompletionPriority = CompletionPriority.AGILE
    prefer_helpers: bool = False
    risk_tolerance: RiskTolerance = RiskTolerance.MEDIUM
    blackout_dates: list[date] = Field(default_factory=list)


class WorkflowSchema(BaseModel):
    """Project template applied across spaces."""

    phases: list[Phase] = Field(default_factory=list)
    spaces: list[Space] = Field(default_factory=list)
    completed_steps: list[str] = Field(default_factory=list)


class PlanSchema(BaseModel):
    """Schema for an entire plan file."""

    project: ProjectSchema
    site: SiteConstraints = Field(default_factory=SiteConstraints)
    workers: list[Worker] = Field(default_factory=list)
    tasks: list[TaskSchema] = Field(default_factory=list)
    workflow: WorkflowSchema | None = None
    # Validated separately into SchedulingConfig
    scheduler: dict[str, Any] | None = None

    @field_validator("workers", mode="before")
    @classmethod
    def coerce_worker_ids(cls, v: Any) -> Any:
        """Allow numeric worker IDs in YAML."""
        if isinstance(v, list):
            return [
                {**item, "id": str(item["id"])} if isinstance(item, dict) and "id" in item else item
                for item in v  # type: ignore[misc]
            ]
        return v
