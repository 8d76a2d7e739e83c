"""Repository functions for alerts table."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

import structlog

from costwatch.db.database import get_db
from costwatch.utils.dates import day_key, to_iso, utc_now

logger = structlog.get_logger(__name__)


class AlertType(str, Enum):
    """Kinds of anomaly alert."""

    STATISTICAL_OUTLIER = "STATISTICAL_OUTLIER"
    USER_COST_SPIKE = "USER_COST_SPIKE"


class AlertSeverity(str, Enum):
    """Alert severity levels."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class AlertStatus(str, Enum):
    """Alert lifecycle status."""

    NEW = "NEW"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    RESOLVED = "RESOLVED"
    ARCHIVED = "ARCHIVED"


@dataclass
class AuditTrailEntry:
    """One status change. changed_by is None for system changes."""

    status: AlertStatus
    changed_at: str
    changed_by: str | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "status": AlertStatus(self.status).value,
            "changed_by": self.changed_by,
            "changed_at": self.changed_at,
        }
        if self.reason:
            result["reason"] = self.reason
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditTrailEntry:
        """Create from dictionary."""
        return cls(
            status=AlertStatus(data["status"]),
            changed_at=data["changed_at"],
            changed_by=data.get("changed_by"),
            reason=data.get("reason"),
        )


@dataclass
class AlertRecord:
    """Alert record from database."""

    alert_id: str
    type: AlertType
    severity: AlertSeverity
    status: AlertStatus
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    description: str | None = None
    alert_date: str | None = None
    affected_resource: str | None = None
    audit_trail: list[AuditTrailEntry] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "id": self.alert_id,
            "type": self.type.value,
            "severity": self.severity.value,
            "status": self.status.value,
            "message": self.message,
            "description": self.description,
            "context": self.context,
            "alert_date": self.alert_date,
            "affected_resource": self.affected_resource,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "audit_trail": [e.to_dict() for e in self.audit_trail],
        }


def insert_alert(
    alert_type: AlertType,
    severity: AlertSeverity,
    message: str,
    context: dict[str, Any],
    alert_date: date,
    affected_resource: str,
    description: str | None = None,
) -> AlertRecord:
    """Insert a new alert in NEW status with a system audit entry.

    Args:
        alert_type: Alert kind
        severity: Severity level
        message: One-line summary
        context: Detection details (JSON-serializable)
        alert_date: Day the anomaly refers to
        affected_resource: "system" or a user_id
        description: Longer explanation

    Returns:
        The stored AlertRecord
    """
    now = to_iso(utc_now())
    record = AlertRecord(
        alert_id=uuid.uuid4().hex,
        type=AlertType(alert_type),
        severity=AlertSeverity(severity),
        status=AlertStatus.NEW,
        message=message,
        context=context,
        description=description,
        alert_date=day_key(alert_date),
        affected_resource=affected_resource,
        audit_trail=[AuditTrailEntry(status=AlertStatus.NEW, changed_at=now)],
        created_at=now,
        updated_at=now,
    )

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO alerts (
                alert_id, type, severity, status, alert_date, affected_resource,
                context, message, description, audit_trail, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.alert_id,
                record.type.value,
                record.severity.value,
                record.status.value,
                record.alert_date,
                record.affected_resource,
                json.dumps(record.context),
                record.message,
                record.description,
                json.dumps([e.to_dict() for e in record.audit_trail]),
                record.created_at,
                record.updated_at,
            ),
        )

    logger.debug("alerts.inserted", alert_id=record.alert_id, type=record.type.value)
    return record


def get_alert(alert_id: str) -> AlertRecord | None:
    """Get alert by ID.

    Returns:
        AlertRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM alerts WHERE alert_id = ?", (alert_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def find_alert(alert_type: AlertType, alert_date: date, affected_resource: str | None = None) -> AlertRecord | None:
    """Find an existing alert of a type for a day (and resource)."""
    query = "SELECT * FROM alerts WHERE type = ? AND alert_date = ?"
    params: list[Any] = [AlertType(alert_type).value, day_key(alert_date)]
    if affected_resource is not None:
        query += " AND affected_resource = ?"
        params.append(affected_resource)

    with get_db() as conn:
        row = conn.execute(query + " LIMIT 1", tuple(params)).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def count_alerts_for_date(alert_date: date) -> int:
    """Number of alerts referring to a day."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM alerts WHERE alert_date = ?",
            (day_key(alert_date),),
        ).fetchone()

    return int(row["n"])


def list_alerts(
    alert_type: AlertType | None = None,
    status: AlertStatus | None = None,
    limit: int = 20,
) -> list[AlertRecord]:
    """List alerts, newest first."""
    clauses = []
    params: list[Any] = []
    if alert_type is not None:
        clauses.append("type = ?")
        params.append(AlertType(alert_type).value)
    if status is not None:
        clauses.append("status = ?")
        params.append(AlertStatus(status).value)

    query = "SELECT * FROM alerts"
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
    params.append(int(limit))

    with get_db() as conn:
        rows = conn.execute(query, tuple(params)).fetchall()

    return [_row_to_record(row) for row in rows]


def save_status(alert: AlertRecord) -> AlertRecord:
    """Persist status, audit trail and updated_at of an alert.

    Raises:
        ValueError: If the alert doesn't exist
    """
    alert.updated_at = to_iso(utc_now())
    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE alerts SET status = ?, audit_trail = ?, updated_at = ?
            WHERE alert_id = ?
            """,
            (
                alert.status.value,
                json.dumps([e.to_dict() for e in alert.audit_trail]),
                alert.updated_at,
                alert.alert_id,
            ),
        )

        if cursor.rowcount == 0:
            raise ValueError(f"Alert not found: {alert.alert_id}")

    logger.debug("alerts.status_updated", alert_id=alert.alert_id, status=alert.status.value)
    return alert


def _row_to_record(row) -> AlertRecord:
    """Convert database row to AlertRecord."""
    return AlertRecord(
        alert_id=row["alert_id"],
        type=AlertType(row["type"]),
        severity=AlertSeverity(row["severity"]),
        status=AlertStatus(row["status"]),
        message=row["message"],
        context=json.loads(row["context"]) if row["context"] else {},
        description=row["description"],
        alert_date=row["alert_date"],
        affected_resource=row["affected_resource"],
        audit_trail=[
            AuditTrailEntry.from_dict(e) for e in json.loads(row["audit_trail"] or "[]")
        ],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
