"""Admin cost reports computed from raw cost events.

Every function returns JSON-ready dictionaries/lists. Money values are
rounded to 6 decimals, percentages to 2.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from functools import cmp_to_key
from typing import Any

from costwatch.core.cost_aggregation import mean_and_std
from costwatch.db.costs_repository import CostRecord, list_costs
from costwatch.db.users_repository import get_users_by_ids
from costwatch.utils.dates import parse_day, start_of_day, to_iso, utc_now

TREND_WINDOW = 7
ANOMALY_SIGMA = 3.0
# Scores closer than this are considered equally efficient
EFFICIENCY_TOLERANCE = 5.0


def _money(value: float) -> float:
    return round(value, 6)


def _day_of(cost: CostRecord) -> str:
    # created_at is UTC ISO-8601, so the first 10 chars are the UTC day
    return cost.created_at[:10]


def cost_summary() -> dict[str, Any]:
    """All-time total cost and total per service (highest first)."""
    costs = list_costs()
    total_cost = sum(c.total_cost for c in costs)

    by_service: dict[str, float] = defaultdict(float)
    for cost in costs:
        for service in cost.services:
            by_service[service.service.value] += service.cost

    services = [
        {"service": name, "total_cost": _money(value)}
        for name, value in sorted(by_service.items(), key=lambda kv: kv[1], reverse=True)
    ]
    return {"total_cost": _money(total_cost), "by_service": services}


def costs_by_source() -> dict[str, Any]:
    """Cost, operations and share of total per feature source."""
    costs = list_costs()
    total_cost = sum(c.total_cost for c in costs)

    stats: dict[str, dict[str, float]] = {}
    for cost in costs:
        entry = stats.setdefault(cost.source.value, {"cost": 0.0, "operations": 0})
        entry["cost"] += cost.total_cost
        entry["operations"] += 1

    sources = [
        {
            "source": name,
            "cost": _money(entry["cost"]),
            "operations": int(entry["operations"]),
            "percentage": round(entry["cost"] / total_cost * 100, 2) if total_cost > 0 else 0.0,
        }
        for name, entry in sorted(stats.items(), key=lambda kv: kv[1]["cost"], reverse=True)
    ]
    return {"sources": sources, "total_cost": _money(total_cost)}


def _compare_efficiency(a: dict[str, Any], b: dict[str, Any]) -> int:
    if abs(a["efficiency_score"] - b["efficiency_score"]) > EFFICIENCY_TOLERANCE:
        return -1 if a["efficiency_score"] > b["efficiency_score"] else 1
    if a["avg_cost_per_operation"] == b["avg_cost_per_operation"]:
        return 0
    return -1 if a["avg_cost_per_operation"] < b["avg_cost_per_operation"] else 1


def service_efficiency() -> list[dict[str, Any]]:
    """Per-service cost, success rate and efficiency ranking.

    Services are ordered by efficiency score when scores differ by more than
    EFFICIENCY_TOLERANCE points, otherwise by cheaper average cost.
    """
    stats: dict[str, dict[str, float]] = {}
    for cost in list_costs():
        for service in cost.services:
            entry = stats.setdefault(
                service.service.value, {"cost": 0.0, "operations": 0, "success": 0}
            )
            entry["cost"] += service.cost
            entry["operations"] += 1
            if service.status == "success":
                entry["success"] += 1

    services = []
    for name, entry in stats.items():
        success_rate = entry["success"] / entry["operations"] * 100
        services.append({
            "service": name,
            "total_cost": _money(entry["cost"]),
            "operations": int(entry["operations"]),
            "avg_cost_per_operation": _money(entry["cost"] / entry["operations"]),
            "success_rate": round(success_rate, 2),
            "efficiency_score": round(success_rate, 2),
        })

    return sorted(services, key=cmp_to_key(_compare_efficiency))


def model_comparison() -> list[dict[str, Any]]:
    """Per-model cost and token usage (highest cost first)."""
    stats: dict[str, dict[str, float]] = {}
    for cost in list_costs():
        for service in cost.services:
            details = service.unit_details
            if not details.model:
                continue
            entry = stats.setdefault(
                details.model,
                {"cost": 0.0, "input_tokens": 0, "output_tokens": 0, "total_tokens": 0},
            )
            entry["cost"] += service.cost
            entry["input_tokens"] += details.input_tokens or 0
            entry["output_tokens"] += details.output_tokens or 0
            entry["total_tokens"] += details.total_tokens or 0

    models = []
    for name, entry in sorted(stats.items(), key=lambda kv: kv[1]["cost"], reverse=True):
        total_tokens = int(entry["total_tokens"])
        models.append({
            "model": name,
            "total_cost": _money(entry["cost"]),
            "input_tokens": int(entry["input_tokens"]),
            "output_tokens": int(entry["output_tokens"]),
            "total_tokens": total_tokens,
            "cost_per_token": round(entry["cost"] / total_tokens, 10) if total_tokens > 0 else 0.0,
        })
    return models


def top_users(limit: int = 10) -> list[dict[str, Any]]:
    """Users with the highest all-time cost."""
    stats: dict[str, dict[str, float]] = {}
    for cost in list_costs():
        entry = stats.setdefault(cost.user_id, {"cost": 0.0, "operations": 0})
        entry["cost"] += cost.total_cost
        entry["operations"] += 1

    ranked = sorted(stats.items(), key=lambda kv: kv[1]["cost"], reverse=True)[:max(limit, 0)]
    users = get_users_by_ids([user_id for user_id, _ in ranked])

    result = []
    for user_id, entry in ranked:
        user = users.get(user_id)
        result.append({
            "user_id": user_id,
            "user_name": (user.full_name if user else "") or "Unknown",
            "email": (user.email if user else "") or "N/A",
            "total_cost": _money(entry["cost"]),
            "operations": int(entry["operations"]),
            "avg_cost_per_operation": _money(entry["cost"] / entry["operations"]),
        })
    return result


def _daily_rows(costs: list[CostRecord]) -> list[dict[str, Any]]:
    """Costs grouped by UTC day, oldest first."""
    days: dict[str, dict[str, Any]] = {}
    for cost in costs:
        row = days.setdefault(
            _day_of(cost),
            {"date": _day_of(cost), "cost": 0.0, "input_tokens": 0, "output_tokens": 0},
        )
        row["cost"] += cost.total_cost
        for service in cost.services:
            row["input_tokens"] += service.unit_details.input_tokens or 0
            row["output_tokens"] += service.unit_details.output_tokens or 0
    return [days[key] for key in sorted(days)]


def _window(days: int, now: datetime | None) -> tuple[datetime, datetime]:
    end = now or utc_now()
    return start_of_day(end - timedelta(days=days)), end


def spending_heatmap(days: int = 30, now: datetime | None = None) -> dict[str, Any]:
    """Daily spend with relative intensity and a week-over-week trend."""
    start, end = _window(days, now)
    rows = _daily_rows(list_costs(start=start, end=end))

    values = [row["cost"] for row in rows]
    min_cost = min(values) if values else 0.0
    max_cost = max(values) if values else 0.0
    spread = max_cost - min_cost

    heatmap = []
    for row in rows:
        if spread > 0:
            intensity = (row["cost"] - min_cost) / spread
        else:
            intensity = 1.0 if max_cost > 0 else 0.0
        heatmap.append({
            "date": row["date"],
            # 0 = Sunday ... 6 = Saturday
            "day_of_week": (parse_day(row["date"]).weekday() + 1) % 7,
            "cost": _money(row["cost"]),
            "intensity": round(intensity, 4),
        })

    trend = "stable"
    if len(values) >= 2 * TREND_WINDOW:
        recent_avg = sum(values[-TREND_WINDOW:]) / TREND_WINDOW
        previous_avg = sum(values[-2 * TREND_WINDOW:-TREND_WINDOW]) / TREND_WINDOW
        if recent_avg > previous_avg * 1.1:
            trend = "up"
        elif recent_avg < previous_avg * 0.9:
            trend = "down"

    return {
        "heatmap": heatmap,
        "stats": {
            "min_cost": _money(min_cost),
            "max_cost": _money(max_cost),
            "avg_cost": _money(sum(values) / len(values)) if values else 0.0,
            "trend_indicator": trend,
        },
        "period_start": to_iso(start),
        "period_end": to_iso(end),
    }


def tokens_trend(days: int = 30, now: datetime | None = None) -> dict[str, Any]:
    """Daily cost and token consumption with a 7-point moving average.

    A day is flagged as an anomaly when its cost exceeds the mean of up to
    7 preceding days by more than ANOMALY_SIGMA standard deviations.
    """
    start, end = _window(days, now)
    rows = _daily_rows(list_costs(start=start, end=end))
    values = [row["cost"] for row in rows]

    trends = []
    for index, row in enumerate(rows):
        window = values[max(0, index - TREND_WINDOW + 1):index + 1]
        moving_average = sum(window) / len(window)

        baseline = values[max(0, index - TREND_WINDOW):index]
        base_mean, base_std = mean_and_std(baseline)
        is_anomaly = base_std > 0 and row["cost"] > base_mean + ANOMALY_SIGMA * base_std

        trends.append({
            "date": row["date"],
            "cost": _money(row["cost"]),
            "input_tokens": row["input_tokens"],
            "output_tokens": row["output_tokens"],
            "total_tokens": row["input_tokens"] + row["output_tokens"],
            "moving_average_7d": _money(moving_average),
            "is_anomaly": is_anomaly,
        })

    return {"trends": trends, "period_start": to_iso(start), "period_end": to_iso(end)}


def user_cost_profile(user_id: str, now: datetime | None = None) -> dict[str, Any]:
    """Cost totals for one user: all-time, recent daily average, per source."""
    costs = list_costs(user_id=user_id)

    total_cost = sum(c.total_cost for c in costs)

    recent_start = start_of_day((now or utc_now()) - timedelta(days=TREND_WINDOW))
    recent = [c for c in costs if c.created_at >= to_iso(recent_start)]
    daily = _daily_rows(recent)
    avg_daily_cost = sum(d["cost"] for d in daily) / len(daily) if daily else 0.0

    by_source: dict[str, dict[str, float]] = {}
    for cost in costs:
        entry = by_source.setdefault(cost.source.value, {"count": 0, "cost": 0.0})
        entry["count"] += 1
        entry["cost"] += cost.total_cost

    return {
        "user_id": user_id,
        "total_cost": _money(total_cost),
        "operations": len(costs),
        "avg_daily_cost": _money(avg_daily_cost),
        "recent_operations": [
            {"source": source, "count": int(entry["count"]), "cost": _money(entry["cost"])}
            for source, entry in by_source.items()
        ],
    }
