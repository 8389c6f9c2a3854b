"""Tests for the alert response playbook catalog."""

import pytest

from app.data.playbooks_data import PLAYBOOKS, get_alert_playbooks, get_recommended_playbook
from app.schemas.customer_success.alert import AlertType


class TestPlaybookCatalog:
    def test_definitions_validate(self):
        assert len(PLAYBOOKS) == len(get_alert_playbooks()) == 5
        assert len({p.id for p in PLAYBOOKS}) == 5

    def test_every_playbook_has_tasks(self):
        for playbook in PLAYBOOKS:
            assert playbook.tasks, playbook.id
            assert playbook.estimated_days >= 1

    @pytest.mark.parametrize(
        "alert_type,playbook_id",
        [
            (AlertType.CHURN_RISK, "churn-risk-response"),
            (AlertType.USAGE_DECLINE, "churn-risk-response"),
            (AlertType.LOW_ENGAGEMENT, "churn-risk-response"),
            (AlertType.EXPANSION_OPPORTUNITY, "expansion-opportunity"),
            (AlertType.ONBOARDING_STALLED, "onboarding-rescue"),
            (AlertType.CHAMPION_LEFT, "champion-transition"),
            (AlertType.RENEWAL_APPROACHING, "renewal-preparation"),
        ],
    )
    def test_recommendation(self, alert_type, playbook_id):
        assert get_recommended_playbook(alert_type).id == playbook_id

    def test_accepts_wire_value(self):
        assert get_recommended_playbook("champion_left").id == "champion-transition"

    def test_no_playbook(self):
        assert get_recommended_playbook(AlertType.PAYMENT_OVERDUE) is None

    def test_wire_format(self):
        wire = PLAYBOOKS[0].to_wire()
        assert wire["alertTypes"] == ["churn_risk", "usage_decline", "low_engagement"]
        assert "estimatedDays" in wire
