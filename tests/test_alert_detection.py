"""Tests for alert detection."""

from datetime import date, timedelta

import pytest

from conftest import at, llm_usage
from costwatch.config.app_config import AlertConfig
from costwatch.core.alert_detection import (
    SYSTEM_RESOURCE,
    detect_statistical_outliers,
    detect_user_cost_spikes,
    outlier_severity,
    run_alert_detection,
    spike_severity,
)
from costwatch.db.alerts_repository import (
    AlertSeverity,
    AlertStatus,
    AlertType,
    list_alerts,
)
from costwatch.db.costs_repository import CostSource
from costwatch.db.users_repository import upsert_user

DAY = date(2025, 2, 10)


def _user_history(add_aggregation, costs_by_offset):
    """Store prior aggregations keyed by days before DAY."""
    for offset, users in costs_by_offset.items():
        add_aggregation(DAY - timedelta(days=offset), sum(users.values()), users=users)


class TestSeverity:
    """Tests for severity helpers."""

    def test_outlier_severity(self):
        """Outlier severity grows with distance from the mean."""
        config = AlertConfig()
        assert outlier_severity(6.5, 2.0, 1.0, config) == AlertSeverity.HIGH
        assert outlier_severity(5.6, 2.0, 1.0, config) == AlertSeverity.MEDIUM
        assert outlier_severity(5.2, 2.0, 1.0, config) == AlertSeverity.LOW

    def test_spike_severity(self):
        """Spike severity uses inclusive multiplier bounds."""
        config = AlertConfig()
        assert spike_severity(4.0, config) == AlertSeverity.HIGH
        assert spike_severity(3.0, config) == AlertSeverity.MEDIUM
        assert spike_severity(2.9, config) == AlertSeverity.LOW


class TestStatisticalOutliers:
    """Tests for detect_statistical_outliers."""

    def test_creates_outlier_alert(self, add_aggregation):
        """Cost above ma30 + 3 sd30 creates a HIGH alert when far out."""
        add_aggregation(DAY, 10.0, moving_average_30d=2.0, std_dev_30d=1.0)

        alert = detect_statistical_outliers(DAY)

        assert alert is not None
        assert alert.type == AlertType.STATISTICAL_OUTLIER
        assert alert.severity == AlertSeverity.HIGH
        assert alert.status == AlertStatus.NEW
        assert alert.affected_resource == SYSTEM_RESOURCE
        assert alert.context["threshold"] == 5.0
        assert alert.context["percentage_above_normal"] == 400.0
        assert alert.context["date"] == "2025-02-10"
        assert len(alert.audit_trail) == 1
        assert alert.audit_trail[0].changed_by is None

    @pytest.mark.parametrize(
        "cost,severity",
        [(5.6, AlertSeverity.MEDIUM), (5.2, AlertSeverity.LOW)],
    )
    def test_severity_bands(self, add_aggregation, cost, severity):
        """Smaller excesses get lower severities."""
        add_aggregation(DAY, cost, moving_average_30d=2.0, std_dev_30d=1.0)
        assert detect_statistical_outliers(DAY).severity == severity

    def test_at_threshold_is_normal(self, add_aggregation):
        """Cost equal to the threshold is not an outlier."""
        add_aggregation(DAY, 5.0, moving_average_30d=2.0, std_dev_30d=1.0)
        assert detect_statistical_outliers(DAY) is None

    @pytest.mark.parametrize("mean,std", [(0.0, 1.0), (2.0, 0.0)])
    def test_needs_history(self, add_aggregation, mean, std):
        """Zero average or zero spread skips detection."""
        add_aggregation(DAY, 100.0, moving_average_30d=mean, std_dev_30d=std)
        assert detect_statistical_outliers(DAY) is None

    def test_missing_aggregation(self):
        """No aggregation, no alert."""
        assert detect_statistical_outliers(DAY) is None

    def test_one_alert_per_day(self, add_aggregation):
        """Running twice creates a single alert."""
        add_aggregation(DAY, 10.0, moving_average_30d=2.0, std_dev_30d=1.0)
        detect_statistical_outliers(DAY)
        assert detect_statistical_outliers(DAY) is None
        assert len(list_alerts(alert_type=AlertType.STATISTICAL_OUTLIER)) == 1


class TestUserCostSpikes:
    """Tests for detect_user_cost_spikes."""

    def test_spike_alert(self, add_aggregation):
        """A user at 4.5x their average gets a HIGH alert."""
        upsert_user("u1", "Ada", "Lovelace", "ada@example.com")
        _user_history(add_aggregation, {1: {"u1": 0.1}, 2: {"u1": 0.1}, 3: {"u1": 0.1}})
        add_aggregation(DAY, 0.45, users={"u1": 0.45})

        alerts = detect_user_cost_spikes(DAY)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.type == AlertType.USER_COST_SPIKE
        assert alert.severity == AlertSeverity.HIGH
        assert alert.affected_resource == "u1"
        assert alert.context["user_name"] == "Ada Lovelace"
        assert alert.context["user_email"] == "ada@example.com"
        assert alert.context["user_daily_average"] == pytest.approx(0.1)
        assert alert.context["threshold"] == pytest.approx(0.2)
        assert "Ada Lovelace" in alert.message

    @pytest.mark.parametrize(
        "cost,severity",
        [(0.35, AlertSeverity.MEDIUM), (0.25, AlertSeverity.LOW)],
    )
    def test_spike_severity_bands(self, add_aggregation, cost, severity):
        """Severity follows cost / average."""
        _user_history(add_aggregation, {1: {"u1": 0.1}})
        add_aggregation(DAY, cost, users={"u1": cost})
        assert detect_user_cost_spikes(DAY)[0].severity == severity

    def test_absolute_cap(self, add_aggregation):
        """Threshold is capped at $0.50 for heavy users."""
        _user_history(add_aggregation, {1: {"u1": 0.4}})
        add_aggregation(DAY, 0.6, users={"u1": 0.6})

        alerts = detect_user_cost_spikes(DAY)
        assert len(alerts) == 1
        assert alerts[0].context["threshold"] == 0.5
        assert alerts[0].severity == AlertSeverity.LOW

    def test_small_costs_ignored(self, add_aggregation):
        """Users below $0.10 for the day are never flagged."""
        _user_history(add_aggregation, {1: {"u1": 0.01}})
        add_aggregation(DAY, 0.09, users={"u1": 0.09})
        assert detect_user_cost_spikes(DAY) == []

    def test_no_history(self, add_aggregation):
        """A user with no prior activity has no average to compare with."""
        add_aggregation(DAY, 5.0, users={"new-user": 5.0})
        assert detect_user_cost_spikes(DAY) == []

    def test_inactive_days_not_averaged(self, add_aggregation):
        """Days where the user had no costs don't lower the average."""
        _user_history(add_aggregation, {1: {"u1": 0.1}, 2: {"other": 1.0}, 3: {"other": 1.0}})
        add_aggregation(DAY, 0.25, users={"u1": 0.25})

        alerts = detect_user_cost_spikes(DAY)
        assert len(alerts) == 1
        assert alerts[0].context["user_daily_average"] == pytest.approx(0.1)

    def test_history_window(self, add_aggregation):
        """Only the previous 7 days count."""
        _user_history(add_aggregation, {8: {"u1": 0.01}, 1: {"u1": 0.2}})
        add_aggregation(DAY, 0.3, users={"u1": 0.3})
        assert detect_user_cost_spikes(DAY) == []

    def test_unknown_user(self, add_aggregation):
        """A user without a record is named by id."""
        _user_history(add_aggregation, {1: {"ghost": 0.1}})
        add_aggregation(DAY, 0.45, users={"ghost": 0.45})

        alert = detect_user_cost_spikes(DAY)[0]
        assert alert.context["user_name"] == "ghost"
        assert alert.context["user_email"] == "N/A"

    def test_recent_operations(self, add_aggregation, add_cost):
        """Context lists the day's operations per source."""
        add_cost("u1", at(DAY, 9), [llm_usage(0.2)], CostSource.LEARNING_CHATBOT)
        add_cost("u1", at(DAY, 10), [llm_usage(0.2)], CostSource.LEARNING_CHATBOT)
        add_cost("u1", at(DAY, 11), [llm_usage(0.05)], CostSource.CHALLENGE_CHATBOT)
        _user_history(add_aggregation, {1: {"u1": 0.1}})
        add_aggregation(DAY, 0.45, users={"u1": 0.45})

        operations = detect_user_cost_spikes(DAY)[0].context["recent_operations"]
        assert {o["source"]: o["count"] for o in operations} == {
            "learning_chatbot": 2,
            "challenge_chatbot": 1,
        }

    def test_one_alert_per_user_and_day(self, add_aggregation):
        """Running twice doesn't duplicate spike alerts."""
        _user_history(add_aggregation, {1: {"u1": 0.1, "u2": 0.1}})
        add_aggregation(DAY, 0.9, users={"u1": 0.45, "u2": 0.45})

        assert len(detect_user_cost_spikes(DAY)) == 2
        assert detect_user_cost_spikes(DAY) == []


class TestRunAlertDetection:
    """Tests for run_alert_detection."""

    def test_counts_new_alerts(self, add_aggregation):
        """alerts_created counts both detectors, only once."""
        _user_history(add_aggregation, {1: {"u1": 0.1}})
        add_aggregation(DAY, 10.0, users={"u1": 0.45}, moving_average_30d=2.0, std_dev_30d=1.0)

        first = run_alert_detection(DAY)
        assert first.success
        assert first.alerts_created == 2

        second = run_alert_detection(DAY)
        assert second.success
        assert second.alerts_created == 0

    def test_nothing_to_check(self):
        """A day without aggregation succeeds with no alerts."""
        result = run_alert_detection(DAY)
        assert result.success
        assert result.alerts_created == 0

    def test_failure_is_reported(self, monkeypatch):
        """Errors are returned, not raised."""

        def _boom(day):
            raise RuntimeError("broken")

        monkeypatch.setattr("costwatch.core.alert_detection.get_aggregation", _boom)
        result = run_alert_detection(DAY)
        assert not result.success
        assert result.error == "broken"
