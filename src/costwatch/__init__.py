"""Cost tracking, daily aggregation and anomaly alerting for the learning platform."""

__version__ = "0.1.0"
