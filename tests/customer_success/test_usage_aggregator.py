"""
Tests for the usage aggregator.

Raw tenant activity in, UsageMetrics / scoring input / alert input out.
"""

from datetime import timedelta

import pytest

from app.exceptions import AggregationError
from app.schemas.customer_success.health_score import PaymentStatus
from app.schemas.customer_success.metrics import (
    CommercialMetrics,
    RelationshipSignals,
    SupportMetrics,
    TenantActivity,
)
from app.services.customer_success.usage_aggregator import (
    TIMELINE_WEEKS,
    account_age_days,
    build_alert_input,
    build_scoring_input,
    build_usage_metrics,
    estimate_active_users,
)
from tests.factories import ActivityRecordFactory, TenantActivityFactory


def activity(**overrides) -> TenantActivity:
    return TenantActivity(**TenantActivityFactory(**overrides))


def record(now, kind, days_ago, author="ops@example.com"):
    return ActivityRecordFactory(kind=kind, author=author, created_at=now - timedelta(days=days_ago))


class TestEstimateActiveUsers:
    """Volume-based estimate, capped at known users."""

    def test_no_recent_activity(self, now):
        assert estimate_active_users([now - timedelta(days=10)], 7, 4, now) == 0

    def test_sparse_activity_counts_one_user(self, now):
        timestamps = [now - timedelta(days=1)] * 2
        assert estimate_active_users(timestamps, 7, 5, now) == 1

    def test_one_user_per_five_actions(self, now):
        timestamps = [now - timedelta(days=1)] * 11
        assert estimate_active_users(timestamps, 7, 4, now) == 3

    def test_capped_at_total_users(self, now):
        timestamps = [now - timedelta(hours=1)] * 40
        assert estimate_active_users(timestamps, 30, 3, now) == 3


class TestBuildUsageMetrics:
    """Counts, recency, timeline and time-to-first milestones."""

    def test_counts_and_authors(self, now):
        data = activity(
            records=[
                record(now, "item", 90, "a@example.com"),
                record(now, "item", 60, "b@example.com"),
                record(now, "kanban_card", 40, "a@example.com"),
                record(now, "order", 3, "c@example.com"),
            ]
        )
        usage = build_usage_metrics(data, now=now)

        assert (usage.item_count, usage.kanban_card_count, usage.order_count) == (2, 1, 1)
        assert usage.total_users == 3
        assert usage.days_since_last_activity == 3
        assert usage.days_active == 4
        assert usage.avg_actions_per_day == pytest.approx(4 / 100)
        assert usage.outcomes.orders_placed == 1

    def test_time_to_first(self, now):
        data = activity(records=[record(now, "item", 90), record(now, "item", 95), record(now, "order", 30)])
        usage = build_usage_metrics(data, now=now)

        assert usage.time_to_first_item == 5
        assert usage.time_to_first_order == 70
        assert usage.time_to_first_kanban is None

    def test_feature_adoption(self, now):
        records = [record(now, "item", 5)] * 25 + [record(now, "order", 5)] * 20
        usage = build_usage_metrics(activity(records=records), now=now)

        assert usage.feature_adoption.items == 50
        assert usage.feature_adoption.ordering == 100
        assert usage.feature_adoption.kanban == 0

    def test_timeline(self, now):
        records = [record(now, "item", 1), record(now, "order", 2), record(now, "kanban_card", 8)]
        usage = build_usage_metrics(activity(records=records), now=now)
        timeline = usage.activity_timeline

        assert len(timeline) == TIMELINE_WEEKS
        assert timeline[0].date == (now - timedelta(weeks=TIMELINE_WEEKS)).date().isoformat()
        assert (timeline[-1].items, timeline[-1].orders) == (1, 1)
        assert timeline[-2].kanban_cards == 1
        assert timeline[-1].active_users == 1
        assert sum(week.total_actions for week in timeline[:-2]) == 0

    def test_no_activity(self, now):
        usage = build_usage_metrics(activity(records=[]), now=now)

        assert usage.total_users == 0
        assert usage.days_since_last_activity == 100
        assert usage.active_users_last_30_days == 0
        assert all(week.total_actions == 0 for week in usage.activity_timeline)

    def test_future_creation_date_is_rejected(self, now):
        data = activity(created_at=now + timedelta(days=1))
        with pytest.raises(AggregationError):
            build_usage_metrics(data, now=now)

    def test_account_age(self, now):
        assert account_age_days(activity(created_at=now - timedelta(days=45, hours=3)), now) == 45


class TestBuildInputs:
    """Enrichment pass-through into the engine inputs."""

    def test_scoring_input_without_enrichment(self, now):
        data = activity()
        usage = build_usage_metrics(data, now=now)
        scoring = build_scoring_input(data, usage, 100)

        assert scoring.item_count == usage.item_count
        assert scoring.account_age_days == 100
        assert scoring.days_since_last_cs_contact is None
        assert scoring.open_tickets is None
        assert scoring.payment_status is None

    def test_scoring_input_with_enrichment(self, now):
        data = activity(
            segment="enterprise",
            relationship=RelationshipSignals(days_since_last_cs_contact=12, has_champion=True),
            support=SupportMetrics(open_tickets=3, critical_tickets=1, avg_first_response_hours=6, csat=88),
            commercial=CommercialMetrics(payment_status=PaymentStatus.CURRENT, days_to_renewal=40),
        )
        usage = build_usage_metrics(data, now=now)
        scoring = build_scoring_input(data, usage, 100, previous_score=72, previous_score_date=now)

        assert scoring.segment == "enterprise"
        assert scoring.days_since_last_cs_contact == 12
        assert scoring.has_champion is True
        assert scoring.open_tickets == 3
        assert scoring.avg_response_time_hours == 6
        assert scoring.csat == 88
        assert scoring.payment_status == PaymentStatus.CURRENT
        assert scoring.days_to_renewal == 40
        assert scoring.previous_score == 72

    def test_alert_input_arr_falls_back_to_commercial(self, now):
        data = activity(commercial=CommercialMetrics(arr=36000))
        alert_input = build_alert_input(data, build_usage_metrics(data, now=now), 100)
        assert alert_input.arr == 36000

    def test_alert_input_prefers_account_arr(self, now):
        data = activity(arr=12000, commercial=CommercialMetrics(arr=36000), owner_id="csm-1")
        alert_input = build_alert_input(data, build_usage_metrics(data, now=now), 100)
        assert alert_input.arr == 12000
        assert alert_input.owner_id == "csm-1"

    def test_unnamed_account(self, now):
        data = activity(account_name=None, tenant_id="0f1e2d3c-aaaa-bbbb")
        alert_input = build_alert_input(data, build_usage_metrics(data, now=now), 100)
        assert alert_input.account_name == "Org 0f1e2d3c"
