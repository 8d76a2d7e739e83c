"""Admin alert endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from costwatch.core.alert_workflow import (
    DEFAULT_LIMIT,
    AlertNotFoundError,
    AlertStatusError,
    acknowledge_alert,
    list_alerts,
    parse_status_filter,
    update_alert_status,
)
from costwatch.db.alerts_repository import AlertRecord
from costwatch.web.dependencies import require_admin_key
from costwatch.web.schemas import (
    AlertActionResponse,
    AlertListResponse,
    AlertResponse,
    AlertStatusUpdate,
)

ADMIN_ACTOR = "admin"

router = APIRouter(
    prefix="/api/admin/analytics/alerts",
    tags=["alerts"],
    dependencies=[Depends(require_admin_key)],
)


def _to_response(alert: AlertRecord) -> AlertResponse:
    return AlertResponse(**alert.to_dict())


def _not_found(e: AlertNotFoundError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Alert '{e.alert_id}' not found",
    )


@router.get("", response_model=AlertListResponse)
def get_alerts(
    type: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=500),
) -> AlertListResponse:
    """List alerts, newest first."""
    alerts = [_to_response(a) for a in list_alerts(type, status_filter, limit)]
    return AlertListResponse(alerts=alerts, count=len(alerts))


@router.post("/{alert_id}/acknowledge", response_model=AlertActionResponse)
def acknowledge(alert_id: str) -> AlertActionResponse:
    """Acknowledge an alert."""
    try:
        alert, changed = acknowledge_alert(alert_id, changed_by=ADMIN_ACTOR)
    except AlertNotFoundError as e:
        raise _not_found(e)

    message = "Alert acknowledged" if changed else f"Alert already {alert.status.value}"
    return AlertActionResponse(success=True, message=message, alert=_to_response(alert))


@router.patch("/{alert_id}", response_model=AlertActionResponse)
def update_status(alert_id: str, body: AlertStatusUpdate) -> AlertActionResponse:
    """Change an alert's status."""
    new_status = parse_status_filter(body.status)
    if new_status is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown alert status: {body.status}",
        )

    try:
        alert = update_alert_status(alert_id, new_status, changed_by=ADMIN_ACTOR, reason=body.reason)
    except AlertNotFoundError as e:
        raise _not_found(e)
    except AlertStatusError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )

    return AlertActionResponse(
        success=True,
        message=f"Alert status updated to {alert.status.value}",
        alert=_to_response(alert),
    )
