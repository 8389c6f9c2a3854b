"""
Scoring test factories.

Generates health scoring inputs, usage metrics and raw tenant activity.
Factories build plain dicts; wrap them in the schema under test.
"""

from datetime import datetime, timedelta, timezone

import factory
from faker import Faker

fake = Faker()

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class HealthScoringInputFactory(factory.Factory):
    """
    Factory for HealthScoringInput data.

    Usage:
        data = HealthScoringInputFactory()
        data = HealthScoringInputFactory(order_count=0, days_since_last_activity=40)
    """

    class Meta:
        model = dict

    item_count = factory.LazyFunction(lambda: fake.random_int(min=0, max=120))
    kanban_card_count = factory.LazyFunction(lambda: fake.random_int(min=0, max=60))
    order_count = factory.LazyFunction(lambda: fake.random_int(min=0, max=30))
    total_users = factory.LazyFunction(lambda: fake.random_int(min=1, max=15))
    active_users_last_7_days = factory.LazyAttribute(lambda obj: min(obj.total_users, 2))
    active_users_last_30_days = factory.LazyAttribute(lambda obj: min(obj.total_users, 4))
    days_since_last_activity = factory.LazyFunction(lambda: fake.random_int(min=0, max=45))
    account_age_days = factory.LazyFunction(lambda: fake.random_int(min=45, max=400))


class ActiveAccountInputFactory(HealthScoringInputFactory):
    """Healthy, busy account."""

    item_count = 80
    kanban_card_count = 40
    order_count = 25
    total_users = 8
    active_users_last_7_days = 4
    active_users_last_30_days = 6
    days_since_last_activity = 0
    account_age_days = 120


class DormantAccountInputFactory(HealthScoringInputFactory):
    """Nothing created, nobody active for 40 days."""

    item_count = 0
    kanban_card_count = 0
    order_count = 0
    total_users = 0
    active_users_last_7_days = 0
    active_users_last_30_days = 0
    days_since_last_activity = 40
    account_age_days = 40


class UsageMetricsFactory(factory.Factory):
    """Factory for UsageMetrics data."""

    class Meta:
        model = dict

    item_count = 12
    kanban_card_count = 3
    order_count = 1
    total_users = 2
    active_users_last_7_days = 1
    active_users_last_30_days = 1
    days_since_last_activity = 2
    activity_timeline = factory.LazyFunction(list)


class ActivityRecordFactory(factory.Factory):
    """Factory for one raw activity record."""

    class Meta:
        model = dict

    kind = factory.LazyFunction(lambda: fake.random_element(["item", "kanban_card", "order"]))
    author = factory.LazyFunction(lambda: fake.email().lower())
    created_at = factory.LazyFunction(lambda: NOW - timedelta(days=fake.random_int(min=0, max=60)))


class TenantActivityFactory(factory.Factory):
    """
    Factory for TenantActivity data.

    Usage:
        activity = TenantActivityFactory(records=[ActivityRecordFactory(kind="order")])
    """

    class Meta:
        model = dict

    account_id = factory.Sequence(lambda n: f"acct-{n + 1}")
    account_name = factory.LazyFunction(fake.company)
    tenant_id = factory.LazyFunction(lambda: fake.uuid4())
    created_at = factory.LazyFunction(lambda: NOW - timedelta(days=100))
    records = factory.LazyFunction(lambda: ActivityRecordFactory.build_batch(10))
    segment = None
    tier = None
    owner_id = None
    owner_name = None
    arr = None


def timeline(weekly_totals: list[int]) -> list[dict]:
    """Activity timeline (oldest first) with all actions counted as items."""
    start = NOW - timedelta(weeks=len(weekly_totals))
    return [
        {
            "date": (start + timedelta(weeks=i)).date().isoformat(),
            "items": total,
            "kanban_cards": 0,
            "orders": 0,
            "active_users": 1 if total else 0,
        }
        for i, total in enumerate(weekly_totals)
    ]
