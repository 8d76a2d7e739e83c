"""Tests for alert listing and status changes."""

from datetime import date

import pytest

from costwatch.core.alert_workflow import (
    AlertNotFoundError,
    AlertStatusError,
    acknowledge_alert,
    list_alerts,
    parse_status_filter,
    parse_type_filter,
    update_alert_status,
)
from costwatch.db.alerts_repository import (
    AlertSeverity,
    AlertStatus,
    AlertType,
    get_alert,
    insert_alert,
)


def _alert(alert_type=AlertType.STATISTICAL_OUTLIER, day=date(2025, 3, 1), resource="system"):
    return insert_alert(
        alert_type=alert_type,
        severity=AlertSeverity.MEDIUM,
        message="test alert",
        context={"date": day.isoformat()},
        alert_date=day,
        affected_resource=resource,
    )


class TestFilters:
    """Tests for filter parsing."""

    def test_type_aliases(self):
        """Short names and enum values are accepted."""
        assert parse_type_filter("outlier") == AlertType.STATISTICAL_OUTLIER
        assert parse_type_filter("user_spike") == AlertType.USER_COST_SPIKE
        assert parse_type_filter("USER_COST_SPIKE") == AlertType.USER_COST_SPIKE

    def test_unknown_filters_ignored(self):
        """Unknown or empty filters mean no filter."""
        assert parse_type_filter("bogus") is None
        assert parse_type_filter(None) is None
        assert parse_status_filter("nope") is None
        assert parse_status_filter("") is None

    def test_status_case_insensitive(self):
        """Status filter ignores case."""
        assert parse_status_filter("acknowledged") == AlertStatus.ACKNOWLEDGED


class TestListAlerts:
    """Tests for list_alerts."""

    def test_newest_first(self):
        """Alerts are listed newest first."""
        first = _alert()
        second = _alert(AlertType.USER_COST_SPIKE, resource="u1")
        ids = [a.alert_id for a in list_alerts()]
        assert ids == [second.alert_id, first.alert_id]

    def test_filter_by_type(self):
        """Type filter keeps only matching alerts."""
        _alert()
        spike = _alert(AlertType.USER_COST_SPIKE, resource="u1")
        alerts = list_alerts(alert_type="user_spike")
        assert [a.alert_id for a in alerts] == [spike.alert_id]

    def test_filter_by_status(self):
        """Status filter keeps only matching alerts."""
        acked = _alert()
        _alert(day=date(2025, 3, 2))
        acknowledge_alert(acked.alert_id)
        alerts = list_alerts(status="acknowledged")
        assert [a.alert_id for a in alerts] == [acked.alert_id]

    def test_limit(self):
        """Limit caps the number of alerts."""
        for i in range(5):
            _alert(day=date(2025, 3, i + 1))
        assert len(list_alerts(limit=3)) == 3

    def test_bad_filter_lists_all(self):
        """An unknown filter value is ignored."""
        _alert()
        assert len(list_alerts(alert_type="bogus", status="bogus")) == 1


class TestAcknowledge:
    """Tests for acknowledge_alert."""

    def test_acknowledge_new(self):
        """A NEW alert becomes ACKNOWLEDGED with an audit entry."""
        alert = _alert()
        updated, changed = acknowledge_alert(alert.alert_id, changed_by="ops")

        assert changed
        assert updated.status == AlertStatus.ACKNOWLEDGED
        stored = get_alert(alert.alert_id)
        assert stored.status == AlertStatus.ACKNOWLEDGED
        assert [e.status for e in stored.audit_trail] == [AlertStatus.NEW, AlertStatus.ACKNOWLEDGED]
        assert stored.audit_trail[-1].changed_by == "ops"

    def test_acknowledge_twice(self):
        """Acknowledging again changes nothing."""
        alert = _alert()
        acknowledge_alert(alert.alert_id)
        updated, changed = acknowledge_alert(alert.alert_id)
        assert not changed
        assert len(updated.audit_trail) == 2

    def test_acknowledge_resolved(self):
        """Resolved alerts stay resolved."""
        alert = _alert()
        update_alert_status(alert.alert_id, AlertStatus.RESOLVED)
        updated, changed = acknowledge_alert(alert.alert_id)
        assert not changed
        assert updated.status == AlertStatus.RESOLVED

    def test_acknowledge_missing(self):
        """Unknown id raises AlertNotFoundError."""
        with pytest.raises(AlertNotFoundError):
            acknowledge_alert("missing")


class TestUpdateStatus:
    """Tests for update_alert_status."""

    def test_resolve_with_reason(self):
        """Status change records who and why."""
        alert = _alert()
        updated = update_alert_status(alert.alert_id, "resolved", changed_by="ops", reason="expected batch run")

        assert updated.status == AlertStatus.RESOLVED
        entry = get_alert(alert.alert_id).audit_trail[-1]
        assert entry.status == AlertStatus.RESOLVED
        assert entry.reason == "expected batch run"

    def test_audit_trail_only_grows(self):
        """Each change appends; earlier entries are kept."""
        alert = _alert()
        update_alert_status(alert.alert_id, AlertStatus.ACKNOWLEDGED)
        update_alert_status(alert.alert_id, AlertStatus.RESOLVED)
        update_alert_status(alert.alert_id, AlertStatus.ARCHIVED)
        statuses = [e.status for e in get_alert(alert.alert_id).audit_trail]
        assert statuses == [
            AlertStatus.NEW,
            AlertStatus.ACKNOWLEDGED,
            AlertStatus.RESOLVED,
            AlertStatus.ARCHIVED,
        ]

    def test_same_status_rejected(self):
        """Setting the current status again is an error."""
        alert = _alert()
        update_alert_status(alert.alert_id, AlertStatus.ACKNOWLEDGED)
        with pytest.raises(AlertStatusError):
            update_alert_status(alert.alert_id, AlertStatus.ACKNOWLEDGED)

    def test_back_to_new_rejected(self):
        """Alerts can't return to NEW."""
        alert = _alert()
        update_alert_status(alert.alert_id, AlertStatus.ACKNOWLEDGED)
        with pytest.raises(AlertStatusError):
            update_alert_status(alert.alert_id, AlertStatus.NEW)

    def test_unknown_status(self):
        """Unknown status values are rejected."""
        alert = _alert()
        with pytest.raises(AlertStatusError):
            update_alert_status(alert.alert_id, "closed")

    def test_missing_alert(self):
        """Unknown id raises AlertNotFoundError."""
        with pytest.raises(AlertNotFoundError):
            update_alert_status("missing", AlertStatus.RESOLVED)
