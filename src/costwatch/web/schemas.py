"""Pydantic schemas for the Web API.

Request and response models for cost events, the aggregation job, alerts
and admin cost reports.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


# =============================================================================
# HEALTH
# =============================================================================


class HealthResponse(BaseModel):
    """Response for health check."""

    status: str
    version: str
    timestamp: str


# =============================================================================
# COST EVENT SCHEMAS
# =============================================================================


class UnitDetailsBody(BaseModel):
    """Usage units of one service call. Counts are checked for sign by the cost logger."""

    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
    duration: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class UsageBody(BaseModel):
    """Cost and unit details of one service call."""

    cost: float = 0.0
    unit_details: UnitDetailsBody = Field(default_factory=UnitDetailsBody)


class ServiceUsageBody(BaseModel):
    """One service consumed by an operation."""

    service: str
    usage: UsageBody = Field(default_factory=UsageBody)
    status: Literal["success", "failed"] = "success"
    error_message: str | None = None


class CostEventCreate(BaseModel):
    """Request body for recording a cost event.

    Malformed bodies are rejected by FastAPI with a 422. Values the cost
    logger refuses (empty user, unknown source, negative amounts) get a 400.
    """

    user_id: str = ""
    source: str = ""
    services: list[ServiceUsageBody] = Field(default_factory=list)
    total_cost: float | None = None
    video_id: str | None = None
    transcript_id: str | None = None
    problem_id: str | None = None


class CostEventResponse(BaseModel):
    """Response after recording a cost event."""

    success: bool
    cost_id: str


# =============================================================================
# JOB SCHEMAS
# =============================================================================


class JobInfoResponse(BaseModel):
    """Description of the aggregation job endpoint."""

    job: str
    description: str
    method: str
    parameters: dict[str, str]


class AlertDetectionSummary(BaseModel):
    """Outcome of the alert detection step."""

    success: bool
    alerts_created: int = 0
    error: str | None = None


class AggregationJobResponse(BaseModel):
    """Response of a cost aggregation run."""

    success: bool
    date: str
    skipped: bool = False
    aggregation: dict[str, Any] | None = None
    alert_detection: AlertDetectionSummary | None = None


# =============================================================================
# ALERT SCHEMAS
# =============================================================================


class AuditTrailEntryResponse(BaseModel):
    """One entry in an alert's audit trail."""

    status: str
    changed_by: str | None = None
    changed_at: str
    reason: str | None = None


class AlertResponse(BaseModel):
    """Response for an alert."""

    id: str
    type: str
    severity: str
    status: str
    message: str
    description: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)
    alert_date: str | None = None
    affected_resource: str | None = None
    created_at: str
    updated_at: str
    audit_trail: list[AuditTrailEntryResponse] = Field(default_factory=list)


class AlertListResponse(BaseModel):
    """Response for list of alerts."""

    alerts: list[AlertResponse]
    count: int


class AlertStatusUpdate(BaseModel):
    """Request body for changing an alert's status."""

    status: str = Field(..., min_length=1)
    reason: str | None = Field(default=None, max_length=500)


class AlertActionResponse(BaseModel):
    """Response after acknowledging or updating an alert."""

    success: bool
    message: str
    alert: AlertResponse


# =============================================================================
# COST REPORT SCHEMAS
# =============================================================================


class ServiceTotal(BaseModel):
    service: str
    total_cost: float


class CostSummaryResponse(BaseModel):
    """All-time cost totals."""

    total_cost: float
    by_service: list[ServiceTotal]


class SourceCost(BaseModel):
    source: str
    cost: float
    operations: int
    percentage: float


class SourceBreakdownResponse(BaseModel):
    """Cost per feature source."""

    sources: list[SourceCost]
    total_cost: float


class ServiceEfficiency(BaseModel):
    service: str
    total_cost: float
    operations: int
    avg_cost_per_operation: float
    success_rate: float
    efficiency_score: float


class ServiceEfficiencyResponse(BaseModel):
    services: list[ServiceEfficiency]


class ModelCost(BaseModel):
    model: str
    total_cost: float
    input_tokens: int
    output_tokens: int
    total_tokens: int
    cost_per_token: float


class ModelComparisonResponse(BaseModel):
    models: list[ModelCost]


class UserCost(BaseModel):
    user_id: str
    user_name: str
    email: str
    total_cost: float
    operations: int
    avg_cost_per_operation: float


class TopUsersResponse(BaseModel):
    users: list[UserCost]


class HeatmapDay(BaseModel):
    date: str
    day_of_week: int
    cost: float
    intensity: float


class HeatmapStats(BaseModel):
    min_cost: float
    max_cost: float
    avg_cost: float
    trend_indicator: str


class HeatmapResponse(BaseModel):
    """Daily spend over a period."""

    heatmap: list[HeatmapDay]
    stats: HeatmapStats
    period_start: str
    period_end: str


class TokensTrendDay(BaseModel):
    date: str
    cost: float
    input_tokens: int
    output_tokens: int
    total_tokens: int
    moving_average_7d: float
    is_anomaly: bool


class TokensTrendResponse(BaseModel):
    """Daily token usage over a period."""

    trends: list[TokensTrendDay]
    period_start: str
    period_end: str


class SourceOperations(BaseModel):
    source: str
    count: int
    cost: float


class UserCostProfileResponse(BaseModel):
    """Cost profile of one user."""

    user_id: str
    total_cost: float
    operations: int
    avg_daily_cost: float
    recent_operations: list[SourceOperations]


# =============================================================================
# USER SCHEMAS
# =============================================================================


class UserUpsert(BaseModel):
    """Request body for creating or updating a user."""

    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    email: str = Field(default="", max_length=200)


class UserResponse(BaseModel):
    """Response for a user."""

    user_id: str
    first_name: str
    last_name: str
    email: str
    full_name: str
    created_at: str
