"""Cost event recording.

Recording is non-blocking: a cost that cannot be validated or stored is
logged as a warning and reported as None, so a failure here never breaks the
generation or chat pipeline that produced the cost.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

import structlog

from costwatch.db.costs_repository import CostSource, ServiceUsage, insert_cost

logger = structlog.get_logger(__name__)

SERVICE_STATUSES = ("success", "failed")
UNIT_COUNT_FIELDS = ("input_tokens", "output_tokens", "total_tokens", "duration")


class CostValidationError(Exception):
    """Cost event failed validation."""

    pass


def validate_cost_event(
    user_id: str,
    source: CostSource | str,
    services: list[ServiceUsage],
    total_cost: float,
) -> CostSource:
    """Validate a cost event.

    Returns:
        The source as a CostSource

    Raises:
        CostValidationError: On the first invalid field
    """
    if not user_id or not str(user_id).strip():
        raise CostValidationError("Missing required field: user_id")

    try:
        resolved_source = CostSource(source)
    except ValueError:
        raise CostValidationError(f"Unknown cost source: {source}") from None

    if not services:
        raise CostValidationError("Missing or empty services array")

    for service in services:
        if service.cost < 0:
            raise CostValidationError(f"Negative cost for service {service.service}")
        if service.status not in SERVICE_STATUSES:
            raise CostValidationError(f"Invalid status for service {service.service}: {service.status!r}")
        for name in UNIT_COUNT_FIELDS:
            value = getattr(service.unit_details, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise CostValidationError(f"Invalid {name} for service {service.service}: {value!r}")

    if isinstance(total_cost, bool) or not isinstance(total_cost, (int, float)) or total_cost < 0:
        raise CostValidationError(f"Invalid total_cost: {total_cost!r}")

    return resolved_source


def log_generation_cost(
    user_id: str,
    source: CostSource | str,
    services: list[ServiceUsage],
    total_cost: float,
    video_id: str | None = None,
    transcript_id: str | None = None,
    problem_id: str | None = None,
    created_at: datetime | None = None,
) -> str | None:
    """Record the cost of one operation.

    Args:
        user_id: User that triggered the operation
        source: Feature the cost came from
        services: Services consumed, each with its own cost
        total_cost: Sum of service costs (USD)
        video_id: Related video, if any
        transcript_id: Related transcript, if any
        problem_id: Related challenge problem, if any
        created_at: Event time (defaults to now)

    Returns:
        The new cost_id, or None if the event was rejected or not stored
    """
    try:
        resolved_source = validate_cost_event(user_id, source, services, total_cost)
    except CostValidationError as e:
        logger.warning("cost_logger.rejected", reason=str(e), user_id=user_id)
        return None

    try:
        cost_id = insert_cost(
            user_id=str(user_id),
            source=resolved_source,
            services=services,
            total_cost=float(total_cost),
            video_id=video_id,
            transcript_id=transcript_id,
            problem_id=problem_id,
            created_at=created_at,
        )
    except Exception as e:
        logger.warning("cost_logger.store_failed", error=str(e), user_id=user_id)
        return None

    logger.debug("cost_logger.recorded", cost_id=cost_id, total_cost=format_cost(total_cost))
    return cost_id


def calculate_total_cost(services: Iterable[ServiceUsage]) -> float:
    """Sum of service costs rounded to 6 decimals."""
    return round(sum(s.cost for s in services), 6)


def format_cost(cost: float) -> str:
    """Format cost for logs and display, e.g. "$0.001784"."""
    return f"${cost:.6f}"
