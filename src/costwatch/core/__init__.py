"""Core cost-tracking logic.

Modules:
- calculator: LLM and transcript pricing
- cost_logger: Cost event validation and recording
- cost_aggregation: Daily aggregation job and backfill
- alert_detection: Statistical outlier and user spike detectors
- alert_workflow: Alert listing, acknowledgement and status changes
- cost_analytics: Admin cost reports
"""

__all__ = [
    "calculator",
    "cost_logger",
    "cost_aggregation",
    "alert_detection",
    "alert_workflow",
    "cost_analytics",
]
