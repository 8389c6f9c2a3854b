"""Tests for SLA evaluation."""

import math
from datetime import timedelta

import pytest

from app.schemas.customer_success.alert import Alert, AlertCategory, AlertSeverity, AlertType, SLAStatus
from app.services.customer_success.sla import calculate_sla, refresh_sla_status


class TestCalculateSla:
    """24 hour window opened at `now`."""

    @pytest.fixture
    def deadline(self, now):
        return now + timedelta(hours=24)

    def test_no_deadline(self, now):
        info = calculate_sla(None, now, now=now)
        assert info.status == SLAStatus.NONE
        assert info.time_remaining == "No SLA"
        assert info.hours_remaining == math.inf
        assert info.percent_remaining == 100

    def test_fresh_window(self, now, deadline):
        info = calculate_sla(deadline, now, now=now)
        assert info.status == SLAStatus.ON_TRACK
        assert info.time_remaining == "1d 0h"
        assert info.hours_remaining == 24
        assert info.percent_remaining == 100

    def test_hours_and_minutes(self, now, deadline):
        info = calculate_sla(deadline, now, now=now + timedelta(hours=17, minutes=30))
        assert info.status == SLAStatus.ON_TRACK
        assert info.time_remaining == "6h 30m"

    def test_last_quarter_is_at_risk(self, now, deadline):
        info = calculate_sla(deadline, now, now=now + timedelta(hours=18))
        assert info.percent_remaining == pytest.approx(25)
        assert info.status == SLAStatus.AT_RISK

    def test_minutes_only(self, now, deadline):
        info = calculate_sla(deadline, now, now=now + timedelta(hours=23, minutes=50))
        assert info.time_remaining == "10m"
        assert info.status == SLAStatus.AT_RISK

    def test_deadline_reached_is_breached(self, now, deadline):
        info = calculate_sla(deadline, now, now=deadline)
        assert info.status == SLAStatus.BREACHED
        assert info.time_remaining == "0h overdue"
        assert info.percent_remaining == 0

    @pytest.mark.parametrize("late,text", [(timedelta(hours=5), "5h overdue"), (timedelta(hours=50), "2d overdue")])
    def test_overdue_text(self, now, deadline, late, text):
        info = calculate_sla(deadline, now, now=deadline + late)
        assert info.status == SLAStatus.BREACHED
        assert info.time_remaining == text
        assert info.hours_remaining < 0

    def test_zero_length_window(self, now):
        assert calculate_sla(now, now, now=now - timedelta(minutes=1)).percent_remaining == 100
        assert calculate_sla(now, now, now=now + timedelta(minutes=1)).status == SLAStatus.BREACHED


class TestRefreshSlaStatus:
    def test_status_follows_the_clock(self, now):
        alert = Alert(
            id="support_escalation-acct-1",
            account_id="acct-1",
            type=AlertType.SUPPORT_ESCALATION,
            category=AlertCategory.ACTION_REQUIRED,
            severity=AlertSeverity.CRITICAL,
            title="1 critical support ticket(s)",
            description="d",
            suggested_action="a",
            sla_deadline=now + timedelta(hours=4),
            sla_status=SLAStatus.ON_TRACK,
            created_at=now,
        )

        assert refresh_sla_status(alert, now=now + timedelta(hours=3, minutes=30)).sla_status == SLAStatus.AT_RISK
        assert refresh_sla_status(alert, now=now + timedelta(hours=5)).sla_status == SLAStatus.BREACHED
        # original is untouched
        assert alert.sla_status == SLAStatus.ON_TRACK
