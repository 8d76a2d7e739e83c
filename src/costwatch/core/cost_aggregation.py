"""Daily cost aggregation job.

Rolls up the raw cost events of one UTC day into a single CostAggregation:
- daily totals (cost, tokens, operations)
- breakdowns by service, source, model and user
- 7-day and 30-day moving average / standard deviation of daily cost,
  computed over the aggregations of the preceding days only

The job is idempotent per day. It is normally run shortly after midnight UTC
for the previous day, and always before alert detection.
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

import structlog

from costwatch.db.aggregations_repository import (
    CostAggregation,
    ModelAggregation,
    ServiceAggregation,
    SourceAggregation,
    UserAggregation,
    get_aggregation,
    list_aggregations,
    save_aggregation,
)
from costwatch.db.costs_repository import CostRecord, list_costs
from costwatch.utils.dates import day_bounds, day_key, iter_days, to_day, yesterday

logger = structlog.get_logger(__name__)

SHORT_WINDOW_DAYS = 7
LONG_WINDOW_DAYS = 30


class AggregationError(Exception):
    """Error during cost aggregation."""

    pass


@dataclass
class AggregationResult:
    """Result of aggregating one day."""

    success: bool
    date: date
    aggregation: CostAggregation | None = None
    skipped: bool = False
    error: str | None = None


@dataclass
class _Bucket:
    cost: float = 0.0
    operations: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class _Totals:
    cost: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    services: dict[str, _Bucket] = field(default_factory=dict)
    sources: dict[str, _Bucket] = field(default_factory=dict)
    models: dict[str, _Bucket] = field(default_factory=dict)
    users: dict[str, _Bucket] = field(default_factory=dict)


# =============================================================================
# STATISTICS
# =============================================================================


def mean_and_std(values: list[float]) -> tuple[float, float]:
    """Mean and population standard deviation.

    Mean is 0 for no values; std dev is 0 for fewer than two values.
    """
    if not values:
        return 0.0, 0.0
    mean = statistics.fmean(values)
    if len(values) < 2:
        return mean, 0.0
    return mean, statistics.pstdev(values, mu=mean)


def compute_rolling_stats(day: date, days: int) -> tuple[float, float]:
    """Moving average and std dev of daily cost over [day - days, day).

    Only days that have an aggregation are counted.
    """
    history = list_aggregations(day - timedelta(days=days), day)
    return mean_and_std([agg.daily_total_cost for agg in history])


# =============================================================================
# AGGREGATION
# =============================================================================


def _accumulate(costs: list[CostRecord]) -> _Totals:
    totals = _Totals()

    for cost in costs:
        totals.cost += cost.total_cost

        source = totals.sources.setdefault(cost.source.value, _Bucket())
        source.cost += cost.total_cost
        source.operations += 1

        user = totals.users.setdefault(cost.user_id, _Bucket())
        user.cost += cost.total_cost
        user.operations += 1

        for service in cost.services:
            bucket = totals.services.setdefault(service.service.value, _Bucket())
            bucket.cost += service.cost
            bucket.operations += 1

            details = service.unit_details
            totals.input_tokens += details.input_tokens or 0
            totals.output_tokens += details.output_tokens or 0
            totals.total_tokens += details.total_tokens or 0

            if details.model:
                model = totals.models.setdefault(details.model, _Bucket())
                model.cost += service.cost
                model.input_tokens += details.input_tokens or 0
                model.output_tokens += details.output_tokens or 0
                model.total_tokens += details.total_tokens or 0
                model.operations += 1

    return totals


def build_aggregation(day: date, costs: list[CostRecord]) -> CostAggregation:
    """Build the totals and breakdowns of a day (without rolling stats).

    Args:
        day: Day being aggregated
        costs: Every cost event of that day

    Returns:
        CostAggregation with money values rounded to 6 decimals
    """
    totals = _accumulate(costs)

    by_service = [
        ServiceAggregation(
            service=name,
            cost=round(b.cost, 6),
            operations=b.operations,
            avg_cost_per_op=round(b.cost / b.operations, 6),
        )
        for name, b in totals.services.items()
    ]

    by_source = [
        SourceAggregation(
            source=name,
            cost=round(b.cost, 6),
            operations=b.operations,
            percentage=round(b.cost / totals.cost * 100, 2) if totals.cost > 0 else 0.0,
        )
        for name, b in totals.sources.items()
    ]

    by_model = [
        ModelAggregation(
            model=name,
            cost=round(b.cost, 6),
            input_tokens=b.input_tokens,
            output_tokens=b.output_tokens,
            total_tokens=b.total_tokens,
            operations=b.operations,
            cost_per_token=round(b.cost / b.total_tokens, 10) if b.total_tokens > 0 else 0.0,
        )
        for name, b in totals.models.items()
    ]

    by_user = [
        UserAggregation(user_id=user_id, cost=round(b.cost, 6), operations=b.operations)
        for user_id, b in totals.users.items()
    ]

    return CostAggregation(
        date=day_key(day),
        daily_total_cost=round(totals.cost, 6),
        daily_input_tokens=totals.input_tokens,
        daily_output_tokens=totals.output_tokens,
        daily_total_tokens=totals.total_tokens,
        daily_operations=len(costs),
        by_service=by_service,
        by_source=by_source,
        by_model=by_model,
        by_user=by_user,
    )


def run_daily_cost_aggregation(
    target_date: date | datetime | None = None,
    force: bool = False,
) -> AggregationResult:
    """Aggregate the costs of one UTC day.

    Args:
        target_date: Day to aggregate (defaults to yesterday, UTC)
        force: Recompute and replace an existing aggregation

    Returns:
        AggregationResult; success=False with the error message on failure
    """
    day = to_day(target_date) if target_date is not None else yesterday()

    try:
        logger.info("cost_aggregation.started", date=day_key(day))

        existing = get_aggregation(day)
        if existing is not None and not force:
            logger.info("cost_aggregation.already_exists", date=day_key(day))
            return AggregationResult(success=True, date=day, aggregation=existing, skipped=True)

        start, end = day_bounds(day)
        costs = list_costs(start=start, end=end)
        if not costs:
            logger.info("cost_aggregation.no_costs", date=day_key(day))

        aggregation = build_aggregation(day, costs)

        ma7, sd7 = compute_rolling_stats(day, SHORT_WINDOW_DAYS)
        ma30, sd30 = compute_rolling_stats(day, LONG_WINDOW_DAYS)
        aggregation.moving_average_7d = round(ma7, 6)
        aggregation.std_dev_7d = round(sd7, 6)
        aggregation.moving_average_30d = round(ma30, 6)
        aggregation.std_dev_30d = round(sd30, 6)

        if existing is not None:
            aggregation.created_at = existing.created_at

        save_aggregation(aggregation, replace=existing is not None)

        logger.info(
            "cost_aggregation.completed",
            date=day_key(day),
            total_cost=aggregation.daily_total_cost,
            operations=aggregation.daily_operations,
            replaced=existing is not None,
        )
        return AggregationResult(success=True, date=day, aggregation=aggregation)

    except Exception as e:
        logger.error("cost_aggregation.failed", date=day_key(day), error=str(e))
        return AggregationResult(success=False, date=day, error=str(e))


def backfill_aggregations(start: date, end: date, force: bool = False) -> list[AggregationResult]:
    """Aggregate every day in [start, end], oldest first.

    Running in order lets each day's rolling statistics see the days
    aggregated before it.

    Raises:
        AggregationError: If start is after end
    """
    if start > end:
        raise AggregationError(f"Start date {start} is after end date {end}")

    return [run_daily_cost_aggregation(day, force=force) for day in iter_days(start, end)]
