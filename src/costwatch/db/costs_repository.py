"""Repository functions for costs table.

A cost row records one billable operation (a material generation run or a
chatbot answer) with the third-party services it consumed.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

import structlog

from costwatch.db.database import get_db
from costwatch.utils.dates import to_iso, utc_now

logger = structlog.get_logger(__name__)


class ServiceType(str, Enum):
    """Third-party services that incur cost."""

    GROQ_LLM = "groq_llm"
    APIFY_TRANSCRIPT = "apify_transcript"


class CostSource(str, Enum):
    """Feature a cost originated from."""

    LEARNING_MATERIAL_GENERATION = "learning_material_generation"
    LEARNING_CHATBOT = "learning_chatbot"
    CHALLENGE_CHATBOT = "challenge_chatbot"


@dataclass
class UnitDetails:
    """Usage units for a service call. All fields optional."""

    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
    duration: int | None = None  # milliseconds
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def model(self) -> str | None:
        """Model id recorded in metadata, if any."""
        model = self.metadata.get("model")
        return str(model) if model else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {}
        for key in ("input_tokens", "output_tokens", "total_tokens", "duration"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result["metadata"] = dict(self.metadata)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> UnitDetails:
        """Create from dictionary."""
        data = data or {}
        return cls(
            input_tokens=data.get("input_tokens"),
            output_tokens=data.get("output_tokens"),
            total_tokens=data.get("total_tokens"),
            duration=data.get("duration"),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class ServiceUsage:
    """One service consumed by an operation."""

    service: ServiceType
    cost: float
    unit_details: UnitDetails = field(default_factory=UnitDetails)
    status: Literal["success", "failed"] = "success"
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "service": ServiceType(self.service).value,
            "usage": {
                "cost": self.cost,
                "unit_details": self.unit_details.to_dict(),
            },
            "status": self.status,
        }
        if self.error_message:
            result["error_message"] = self.error_message
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServiceUsage:
        """Create from dictionary."""
        usage = data.get("usage", {})
        return cls(
            service=ServiceType(data["service"]),
            cost=float(usage.get("cost", 0.0)),
            unit_details=UnitDetails.from_dict(usage.get("unit_details")),
            status=data.get("status", "success"),
            error_message=data.get("error_message"),
        )


@dataclass
class CostRecord:
    """Cost record from database."""

    cost_id: str
    user_id: str
    source: CostSource
    services: list[ServiceUsage]
    total_cost: float
    created_at: str
    updated_at: str
    video_id: str | None = None
    transcript_id: str | None = None
    problem_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "cost_id": self.cost_id,
            "user_id": self.user_id,
            "source": self.source.value,
            "video_id": self.video_id,
            "transcript_id": self.transcript_id,
            "problem_id": self.problem_id,
            "services": [s.to_dict() for s in self.services],
            "total_cost": self.total_cost,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def insert_cost(
    user_id: str,
    source: CostSource,
    services: list[ServiceUsage],
    total_cost: float,
    video_id: str | None = None,
    transcript_id: str | None = None,
    problem_id: str | None = None,
    created_at: datetime | None = None,
) -> str:
    """Insert a cost record.

    Args:
        user_id: User that triggered the operation
        source: Feature the cost came from
        services: Services consumed
        total_cost: Denormalized sum of service costs (USD)
        video_id: Related video, if any
        transcript_id: Related transcript, if any
        problem_id: Related challenge problem, if any
        created_at: Event time (defaults to now)

    Returns:
        The new cost_id

    Raises:
        sqlite3.IntegrityError: If a column constraint is violated
    """
    cost_id = uuid.uuid4().hex
    timestamp = to_iso(created_at or utc_now())

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO costs (
                cost_id, user_id, source, video_id, transcript_id, problem_id,
                services, total_cost, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                cost_id,
                user_id,
                CostSource(source).value,
                video_id,
                transcript_id,
                problem_id,
                json.dumps([s.to_dict() for s in services]),
                total_cost,
                timestamp,
                timestamp,
            ),
        )

    logger.debug("costs.inserted", cost_id=cost_id, user_id=user_id)
    return cost_id


def get_cost_by_id(cost_id: str) -> CostRecord | None:
    """Get cost by ID.

    Returns:
        CostRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM costs WHERE cost_id = ?", (cost_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def list_costs(
    start: datetime | None = None,
    end: datetime | None = None,
    user_id: str | None = None,
) -> list[CostRecord]:
    """List costs in the half-open window [start, end), oldest first.

    Args:
        start: Inclusive lower bound (None = unbounded)
        end: Exclusive upper bound (None = unbounded)
        user_id: Restrict to one user
    """
    clauses = []
    params: list[Any] = []
    if start is not None:
        clauses.append("created_at >= ?")
        params.append(to_iso(start))
    if end is not None:
        clauses.append("created_at < ?")
        params.append(to_iso(end))
    if user_id is not None:
        clauses.append("user_id = ?")
        params.append(user_id)

    query = "SELECT * FROM costs"
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY created_at ASC, rowid ASC"

    with get_db() as conn:
        rows = conn.execute(query, tuple(params)).fetchall()

    return [_row_to_record(row) for row in rows]


def _row_to_record(row) -> CostRecord:
    """Convert database row to CostRecord."""
    services = json.loads(row["services"]) if row["services"] else []
    return CostRecord(
        cost_id=row["cost_id"],
        user_id=row["user_id"],
        source=CostSource(row["source"]),
        services=[ServiceUsage.from_dict(s) for s in services],
        total_cost=row["total_cost"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        video_id=row["video_id"],
        transcript_id=row["transcript_id"],
        problem_id=row["problem_id"],
    )
