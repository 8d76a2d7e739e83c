"""Repository functions for cost_aggregations table.

One row per UTC day, written by the daily aggregation job.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any

import structlog

from costwatch.db.database import get_db
from costwatch.utils.dates import day_key, to_iso, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class ServiceAggregation:
    """Per-service totals for a day."""

    service: str
    cost: float
    operations: int
    avg_cost_per_op: float


@dataclass
class SourceAggregation:
    """Per-source totals for a day."""

    source: str
    cost: float
    operations: int
    percentage: float


@dataclass
class ModelAggregation:
    """Per-model totals for a day."""

    model: str
    cost: float
    input_tokens: int
    output_tokens: int
    total_tokens: int
    operations: int
    cost_per_token: float


@dataclass
class UserAggregation:
    """Per-user totals for a day."""

    user_id: str
    cost: float
    operations: int


@dataclass
class CostAggregation:
    """Pre-computed daily cost rollup."""

    date: str  # YYYY-MM-DD (UTC)
    daily_total_cost: float = 0.0
    daily_input_tokens: int = 0
    daily_output_tokens: int = 0
    daily_total_tokens: int = 0
    daily_operations: int = 0
    by_service: list[ServiceAggregation] = field(default_factory=list)
    by_source: list[SourceAggregation] = field(default_factory=list)
    by_model: list[ModelAggregation] = field(default_factory=list)
    by_user: list[UserAggregation] = field(default_factory=list)
    moving_average_7d: float = 0.0
    moving_average_30d: float = 0.0
    std_dev_7d: float = 0.0
    std_dev_30d: float = 0.0
    created_at: str = ""
    updated_at: str = ""

    def get_user(self, user_id: str) -> UserAggregation | None:
        """Find a user's entry in by_user."""
        for entry in self.by_user:
            if entry.user_id == user_id:
                return entry
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def save_aggregation(aggregation: CostAggregation, replace: bool = False) -> CostAggregation:
    """Persist an aggregation.

    Args:
        aggregation: Aggregation to store
        replace: Overwrite an existing row for the same date

    Returns:
        The stored aggregation with timestamps set

    Raises:
        sqlite3.IntegrityError: If the date exists and replace is False
    """
    now = to_iso(utc_now())
    if not aggregation.created_at:
        aggregation.created_at = now
    aggregation.updated_at = now

    verb = "INSERT OR REPLACE" if replace else "INSERT"
    with get_db() as conn:
        conn.execute(
            f"""
            {verb} INTO cost_aggregations (
                date, daily_total_cost, daily_input_tokens, daily_output_tokens,
                daily_total_tokens, daily_operations,
                by_service, by_source, by_model, by_user,
                moving_average_7d, moving_average_30d, std_dev_7d, std_dev_30d,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                aggregation.date,
                aggregation.daily_total_cost,
                aggregation.daily_input_tokens,
                aggregation.daily_output_tokens,
                aggregation.daily_total_tokens,
                aggregation.daily_operations,
                json.dumps([asdict(a) for a in aggregation.by_service]),
                json.dumps([asdict(a) for a in aggregation.by_source]),
                json.dumps([asdict(a) for a in aggregation.by_model]),
                json.dumps([asdict(a) for a in aggregation.by_user]),
                aggregation.moving_average_7d,
                aggregation.moving_average_30d,
                aggregation.std_dev_7d,
                aggregation.std_dev_30d,
                aggregation.created_at,
                aggregation.updated_at,
            ),
        )

    logger.debug("cost_aggregations.saved", date=aggregation.date, replace=replace)
    return aggregation


def get_aggregation(day: date) -> CostAggregation | None:
    """Get the aggregation for a day.

    Returns:
        CostAggregation if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM cost_aggregations WHERE date = ?", (day_key(day),)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def list_aggregations(start: date, end: date) -> list[CostAggregation]:
    """List aggregations for days in [start, end), oldest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM cost_aggregations
            WHERE date >= ? AND date < ?
            ORDER BY date ASC
            """,
            (day_key(start), day_key(end)),
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def _row_to_record(row) -> CostAggregation:
    """Convert database row to CostAggregation."""
    return CostAggregation(
        date=row["date"],
        daily_total_cost=row["daily_total_cost"],
        daily_input_tokens=row["daily_input_tokens"],
        daily_output_tokens=row["daily_output_tokens"],
        daily_total_tokens=row["daily_total_tokens"],
        daily_operations=row["daily_operations"],
        by_service=[ServiceAggregation(**a) for a in json.loads(row["by_service"] or "[]")],
        by_source=[SourceAggregation(**a) for a in json.loads(row["by_source"] or "[]")],
        by_model=[ModelAggregation(**a) for a in json.loads(row["by_model"] or "[]")],
        by_user=[UserAggregation(**a) for a in json.loads(row["by_user"] or "[]")],
        moving_average_7d=row["moving_average_7d"],
        moving_average_30d=row["moving_average_30d"],
        std_dev_7d=row["std_dev_7d"],
        std_dev_30d=row["std_dev_30d"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
