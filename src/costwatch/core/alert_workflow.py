"""Alert listing and status changes.

Every status change appends an audit trail entry; the trail is never
rewritten.
"""

from __future__ import annotations

import structlog

from costwatch.db.alerts_repository import (
    AlertRecord,
    AlertStatus,
    AlertType,
    AuditTrailEntry,
    get_alert,
    list_alerts as _list_alerts,
    save_status,
)
from costwatch.utils.dates import to_iso, utc_now

logger = structlog.get_logger(__name__)

DEFAULT_LIMIT = 20

# Short filter names accepted by list_alerts
TYPE_ALIASES = {
    "outlier": AlertType.STATISTICAL_OUTLIER,
    "user_spike": AlertType.USER_COST_SPIKE,
}


class AlertNotFoundError(Exception):
    """Raised when an alert id doesn't exist."""

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Alert not found: {alert_id}")


class AlertStatusError(Exception):
    """Raised for a status change that is not allowed."""

    pass


def parse_type_filter(value: str | None) -> AlertType | None:
    """Map a type filter to AlertType. Unknown values mean no filter."""
    if not value:
        return None
    text = value.strip()
    if text.lower() in TYPE_ALIASES:
        return TYPE_ALIASES[text.lower()]
    try:
        return AlertType(text.upper())
    except ValueError:
        return None


def parse_status_filter(value: str | None) -> AlertStatus | None:
    """Map a status filter (any case) to AlertStatus. Unknown values mean no filter."""
    if not value:
        return None
    try:
        return AlertStatus(value.strip().upper())
    except ValueError:
        return None


def list_alerts(
    alert_type: str | None = None,
    status: str | None = None,
    limit: int = DEFAULT_LIMIT,
) -> list[AlertRecord]:
    """List alerts newest first, with optional type/status filters."""
    return _list_alerts(
        alert_type=parse_type_filter(alert_type),
        status=parse_status_filter(status),
        limit=limit if limit and limit > 0 else DEFAULT_LIMIT,
    )


def _load(alert_id: str) -> AlertRecord:
    alert = get_alert(alert_id)
    if alert is None:
        raise AlertNotFoundError(alert_id)
    return alert


def _transition(
    alert: AlertRecord,
    status: AlertStatus,
    changed_by: str | None,
    reason: str | None,
) -> AlertRecord:
    alert.status = status
    alert.audit_trail.append(
        AuditTrailEntry(
            status=status,
            changed_at=to_iso(utc_now()),
            changed_by=changed_by,
            reason=reason,
        )
    )
    save_status(alert)
    logger.info("alerts.status_changed", alert_id=alert.alert_id, status=status.value, changed_by=changed_by)
    return alert


def acknowledge_alert(alert_id: str, changed_by: str | None = None) -> tuple[AlertRecord, bool]:
    """Acknowledge an alert.

    Alerts already ACKNOWLEDGED or RESOLVED are left unchanged.

    Returns:
        (alert, changed) where changed is False if nothing was done

    Raises:
        AlertNotFoundError: If the alert doesn't exist
    """
    alert = _load(alert_id)

    if alert.status in (AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED):
        return alert, False

    return _transition(alert, AlertStatus.ACKNOWLEDGED, changed_by, None), True


def update_alert_status(
    alert_id: str,
    status: AlertStatus | str,
    changed_by: str | None = None,
    reason: str | None = None,
) -> AlertRecord:
    """Move an alert to another status.

    Raises:
        AlertNotFoundError: If the alert doesn't exist
        AlertStatusError: If the status is unknown, unchanged, or NEW
    """
    raw = status.value if isinstance(status, AlertStatus) else str(status)
    try:
        new_status = AlertStatus(raw.strip().upper())
    except ValueError:
        raise AlertStatusError(f"Unknown alert status: {status}") from None

    alert = _load(alert_id)

    if new_status == AlertStatus.NEW:
        raise AlertStatusError("Alerts cannot be moved back to NEW")
    if new_status == alert.status:
        raise AlertStatusError(f"Alert is already {new_status.value}")

    return _transition(alert, new_status, changed_by, reason)
