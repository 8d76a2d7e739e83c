"""Alert detection over daily cost aggregations.

Two detectors run for a day, after that day has been aggregated:

- Statistical outlier: the day's total cost is above the 30-day moving
  average plus ``outlier_sigma`` standard deviations.
- User cost spike: a user's cost for the day is above
  ``min(user_spike_multiplier * their recent daily average, user_spike_absolute)``.

At most one alert is created per (type, day, affected resource), so
re-running detection for a day is safe.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta

import structlog

from costwatch.config.app_config import AlertConfig, load_app_config
from costwatch.db.aggregations_repository import get_aggregation, list_aggregations
from costwatch.db.alerts_repository import (
    AlertRecord,
    AlertSeverity,
    AlertType,
    count_alerts_for_date,
    find_alert,
    insert_alert,
)
from costwatch.db.costs_repository import list_costs
from costwatch.db.users_repository import get_user_by_id
from costwatch.utils.dates import day_bounds, day_key, to_day, yesterday

logger = structlog.get_logger(__name__)

SYSTEM_RESOURCE = "system"


@dataclass
class AlertDetectionResult:
    """Result of running detection for one day."""

    success: bool
    date: date
    alerts_created: int = 0
    error: str | None = None


def outlier_severity(cost: float, mean: float, std_dev: float, config: AlertConfig) -> AlertSeverity:
    """Severity of a daily cost already known to be an outlier."""
    if cost > mean + config.outlier_high_sigma * std_dev:
        return AlertSeverity.HIGH
    if cost > mean + config.outlier_medium_sigma * std_dev:
        return AlertSeverity.MEDIUM
    return AlertSeverity.LOW


def spike_severity(multiplier: float, config: AlertConfig) -> AlertSeverity:
    """Severity of a user spike from cost / average."""
    if multiplier >= config.user_high_multiplier:
        return AlertSeverity.HIGH
    if multiplier >= config.user_medium_multiplier:
        return AlertSeverity.MEDIUM
    return AlertSeverity.LOW


def detect_statistical_outliers(day: date, config: AlertConfig | None = None) -> AlertRecord | None:
    """Create an outlier alert for the day if its total cost is anomalous.

    Returns:
        The new alert, or None when nothing was created
    """
    config = config or load_app_config().alerts

    aggregation = get_aggregation(day)
    if aggregation is None:
        logger.info("alert_detection.outlier.no_aggregation", date=day_key(day))
        return None

    daily_cost = aggregation.daily_total_cost
    mean = aggregation.moving_average_30d
    std_dev = aggregation.std_dev_30d

    if mean == 0 or std_dev == 0:
        logger.info("alert_detection.outlier.insufficient_history", date=day_key(day))
        return None

    threshold = mean + config.outlier_sigma * std_dev
    if daily_cost <= threshold:
        logger.info("alert_detection.outlier.none", date=day_key(day))
        return None

    if find_alert(AlertType.STATISTICAL_OUTLIER, day) is not None:
        logger.info("alert_detection.outlier.already_exists", date=day_key(day))
        return None

    percentage_above = (daily_cost - mean) / mean * 100
    severity = outlier_severity(daily_cost, mean, std_dev, config)

    alert = insert_alert(
        alert_type=AlertType.STATISTICAL_OUTLIER,
        severity=severity,
        message=f"Daily spending anomaly detected: ${daily_cost:.4f}",
        description=(
            f"Daily cost on {day_key(day)} was ${daily_cost:.4f}, "
            f"exceeding normal average by {percentage_above:.1f}%"
        ),
        context={
            "date": day_key(day),
            "daily_cost": daily_cost,
            "moving_average_7d": aggregation.moving_average_7d,
            "std_dev_7d": aggregation.std_dev_7d,
            "moving_average_30d": mean,
            "std_dev_30d": std_dev,
            "threshold": round(threshold, 6),
            "percentage_above_normal": round(percentage_above, 2),
            "affected_resource": SYSTEM_RESOURCE,
        },
        alert_date=day,
        affected_resource=SYSTEM_RESOURCE,
    )

    logger.info(
        "alert_detection.outlier.created",
        date=day_key(day),
        severity=severity.value,
        daily_cost=daily_cost,
        threshold=round(threshold, 6),
    )
    return alert


def _recent_operations(user_id: str, day: date) -> list[dict]:
    start, end = day_bounds(day)
    counts = Counter(cost.source.value for cost in list_costs(start=start, end=end, user_id=user_id))
    return [{"source": source, "count": count} for source, count in counts.items()]


def detect_user_cost_spikes(day: date, config: AlertConfig | None = None) -> list[AlertRecord]:
    """Create spike alerts for users whose cost jumped on the day.

    Returns:
        The alerts created (possibly empty)
    """
    config = config or load_app_config().alerts

    aggregation = get_aggregation(day)
    if aggregation is None or not aggregation.by_user:
        logger.info("alert_detection.spike.no_user_costs", date=day_key(day))
        return []

    history = list_aggregations(day - timedelta(days=config.user_history_days), day)
    created = []

    for entry in aggregation.by_user:
        user_daily_cost = entry.cost
        if user_daily_cost < config.user_min_daily_cost:
            continue

        past = [h.get_user(entry.user_id) for h in history]
        past_costs = [p.cost for p in past if p is not None]
        user_daily_average = sum(past_costs) / len(past_costs) if past_costs else 0.0
        if user_daily_average == 0:
            continue

        threshold = min(
            user_daily_average * config.user_spike_multiplier,
            config.user_spike_absolute,
        )
        if user_daily_cost <= threshold:
            continue

        if find_alert(AlertType.USER_COST_SPIKE, day, entry.user_id) is not None:
            continue

        user = get_user_by_id(entry.user_id)
        user_name = (user.full_name if user else "") or entry.user_id
        user_email = (user.email if user else "") or "N/A"

        multiplier = user_daily_cost / user_daily_average
        severity = spike_severity(multiplier, config)

        alert = insert_alert(
            alert_type=AlertType.USER_COST_SPIKE,
            severity=severity,
            message=(
                f"User cost spike: {user_name} spent ${user_daily_cost:.4f} "
                f"({multiplier:.1f}x average)"
            ),
            description=(
                f"{user_name} ({user_email}) cost ${user_daily_cost:.4f} on {day_key(day)}, "
                f"{multiplier:.1f}x their average of ${user_daily_average:.4f}"
            ),
            context={
                "user_id": entry.user_id,
                "user_name": user_name,
                "user_email": user_email,
                "user_daily_cost": user_daily_cost,
                "user_daily_average": round(user_daily_average, 6),
                "threshold": round(threshold, 6),
                "date": day_key(day),
                "recent_operations": _recent_operations(entry.user_id, day),
                "affected_resource": entry.user_id,
            },
            alert_date=day,
            affected_resource=entry.user_id,
        )
        created.append(alert)

        logger.info(
            "alert_detection.spike.created",
            date=day_key(day),
            user_id=entry.user_id,
            severity=severity.value,
            multiplier=round(multiplier, 1),
        )

    return created


def run_alert_detection(target_date: date | datetime | None = None) -> AlertDetectionResult:
    """Run every detector for a day.

    Args:
        target_date: Day to check (defaults to yesterday, UTC)

    Returns:
        AlertDetectionResult; success=False with the error message on failure
    """
    day = to_day(target_date) if target_date is not None else yesterday()

    try:
        logger.info("alert_detection.started", date=day_key(day))
        config = load_app_config().alerts

        before = count_alerts_for_date(day)
        detect_statistical_outliers(day, config)
        detect_user_cost_spikes(day, config)
        alerts_created = count_alerts_for_date(day) - before

        logger.info("alert_detection.completed", date=day_key(day), alerts_created=alerts_created)
        return AlertDetectionResult(success=True, date=day, alerts_created=alerts_created)

    except Exception as e:
        logger.error("alert_detection.failed", date=day_key(day), error=str(e))
        return AlertDetectionResult(success=False, date=day, error=str(e))
