"""Scheduled job endpoints.

Meant to be called by a scheduler shortly after midnight UTC.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from costwatch.core.alert_detection import run_alert_detection
from costwatch.core.cost_aggregation import run_daily_cost_aggregation
from costwatch.utils.dates import DateParseError, day_key, parse_day, yesterday
from costwatch.web.dependencies import require_admin_key
from costwatch.web.schemas import (
    AggregationJobResponse,
    AlertDetectionSummary,
    JobInfoResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/api/jobs",
    tags=["jobs"],
    dependencies=[Depends(require_admin_key)],
)


@router.get("/cost-aggregation", response_model=JobInfoResponse)
async def cost_aggregation_info() -> JobInfoResponse:
    """Describe the cost aggregation job."""
    return JobInfoResponse(
        job="cost-aggregation",
        description="Aggregates one day of costs, then runs alert detection",
        method="POST",
        parameters={
            "date": "Day to aggregate, YYYY-MM-DD (default: yesterday UTC)",
            "skipAlerts": "Skip alert detection (default: false)",
            "force": "Recompute an existing aggregation (default: false)",
        },
    )


@router.post("/cost-aggregation", response_model=AggregationJobResponse)
def run_cost_aggregation(
    date: str | None = Query(default=None),
    skip_alerts: bool = Query(default=False, alias="skipAlerts"),
    force: bool = Query(default=False),
) -> AggregationJobResponse:
    """Aggregate a day's costs, then detect alerts for it."""
    try:
        day = parse_day(date) if date else yesterday()
    except DateParseError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    result = run_daily_cost_aggregation(day, force=force)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"step": "aggregation", "error": result.error},
        )

    detection = None
    if not skip_alerts:
        alert_result = run_alert_detection(day)
        if not alert_result.success:
            logger.warning("jobs.alert_detection_failed", date=day_key(day), error=alert_result.error)
        detection = AlertDetectionSummary(
            success=alert_result.success,
            alerts_created=alert_result.alerts_created,
            error=alert_result.error,
        )

    return AggregationJobResponse(
        success=True,
        date=day_key(day),
        skipped=result.skipped,
        aggregation=result.aggregation.to_dict() if result.aggregation else None,
        alert_detection=detection,
    )
