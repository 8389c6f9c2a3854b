"""
Usage Aggregator

Turns already-fetched tenant activity (items, kanban cards and orders with
their authors and creation times) into the metric records the scoring and
alert engines consume.

The fetch layer is responsible for tenant-to-account mapping and for
CRM/billing enrichment; unavailable enrichment arrives here as None and is
passed through as absent data, never as an error.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from app.exceptions import AggregationError
from app.schemas.customer_success.alert import AlertGenerationInput
from app.schemas.customer_success.health_score import AccountHealth, HealthScoringInput
from app.schemas.customer_success.metrics import (
    ActivityDataPoint,
    ActivityKind,
    ActivityRecord,
    FeatureAdoption,
    TenantActivity,
    UsageMetrics,
    UsageOutcomes,
)
from app.utils.numbers import round_half_up

logger = logging.getLogger(__name__)

TIMELINE_WEEKS = 12
SECONDS_PER_DAY = 24 * 60 * 60

# Counts at which a feature reads as fully adopted
ITEMS_FOR_FULL_ADOPTION = 50
KANBAN_FOR_FULL_ADOPTION = 50
ORDERS_FOR_FULL_ADOPTION = 10


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _whole_days(delta: timedelta) -> int:
    return math.floor(delta.total_seconds() / SECONDS_PER_DAY)


def estimate_active_users(
    timestamps: Sequence[datetime],
    days: int,
    total_users: int,
    now: datetime,
) -> int:
    """
    Rough active-user count for the trailing window.

    Activity records carry authors but there is no per-period author
    tracking, so the count is estimated from activity volume: roughly one
    active user per five actions, never more than the known users.
    """
    cutoff = now - timedelta(days=days)
    recent = [ts for ts in timestamps if ts >= cutoff]

    if not recent:
        return 0

    activity_per_user = len(recent) / max(1, total_users)
    if activity_per_user < 1:
        return min(total_users, 1)

    return min(total_users, math.ceil(len(recent) / 5))


def _feature_adoption(count: int, full_adoption: int) -> int:
    return min(100, round_half_up(count / full_adoption * 100))


def _build_timeline(records: Sequence[ActivityRecord], total_users: int, now: datetime) -> list[ActivityDataPoint]:
    """Weekly buckets for the last TIMELINE_WEEKS weeks, oldest first."""
    week = timedelta(weeks=1)
    timeline = []

    for weeks_ago in range(TIMELINE_WEEKS - 1, -1, -1):
        week_start = now - (weeks_ago + 1) * week
        week_end = now - weeks_ago * week
        counts = {kind: 0 for kind in ActivityKind}
        for record in records:
            if record.created_at and week_start <= _as_utc(record.created_at) < week_end:
                counts[record.kind] += 1

        total = sum(counts.values())
        timeline.append(
            ActivityDataPoint(
                date=week_start.date().isoformat(),
                items=counts[ActivityKind.ITEM],
                kanban_cards=counts[ActivityKind.KANBAN_CARD],
                orders=counts[ActivityKind.ORDER],
                active_users=min(total_users, 1 if total > 0 else 0),
            )
        )

    return timeline


def account_age_days(activity: TenantActivity, now: datetime) -> int:
    created_at = _as_utc(activity.created_at)
    if created_at > now:
        raise AggregationError(
            activity.tenant_id or activity.account_id,
            f"Account created in the future ({created_at.isoformat()})",
        )
    return _whole_days(now - created_at)


def build_usage_metrics(activity: TenantActivity, now: Optional[datetime] = None) -> UsageMetrics:
    """
    Aggregate raw activity records into UsageMetrics.

    Raises:
        AggregationError: when the account's creation time is after now
    """
    now = now or datetime.now(timezone.utc)
    age_days = account_age_days(activity, now)
    created_at = _as_utc(activity.created_at)

    records = activity.records
    counts = {kind: 0 for kind in ActivityKind}
    first_seen: dict[ActivityKind, datetime] = {}
    authors = set()
    timestamps = []

    for record in records:
        counts[record.kind] += 1
        if record.author:
            authors.add(record.author)
        if record.created_at:
            ts = _as_utc(record.created_at)
            timestamps.append(ts)
            if record.kind not in first_seen or ts < first_seen[record.kind]:
                first_seen[record.kind] = ts

    total_users = len(authors)
    item_count = counts[ActivityKind.ITEM]
    kanban_count = counts[ActivityKind.KANBAN_CARD]
    order_count = counts[ActivityKind.ORDER]
    total_actions = item_count + kanban_count + order_count

    if timestamps:
        days_since_last_activity = max(0, _whole_days(now - max(timestamps)))
    else:
        days_since_last_activity = age_days

    def time_to_first(kind: ActivityKind) -> Optional[int]:
        if kind not in first_seen:
            return None
        return _whole_days(first_seen[kind] - created_at)

    return UsageMetrics(
        item_count=item_count,
        kanban_card_count=kanban_count,
        order_count=order_count,
        total_users=total_users,
        active_users_last_7_days=estimate_active_users(timestamps, 7, total_users, now),
        active_users_last_30_days=estimate_active_users(timestamps, 30, total_users, now),
        days_active=len({ts.date() for ts in timestamps}),
        days_since_last_activity=days_since_last_activity,
        avg_actions_per_day=total_actions / age_days if age_days > 0 else 0.0,
        feature_adoption=FeatureAdoption(
            items=_feature_adoption(item_count, ITEMS_FOR_FULL_ADOPTION),
            kanban=_feature_adoption(kanban_count, KANBAN_FOR_FULL_ADOPTION),
            ordering=_feature_adoption(order_count, ORDERS_FOR_FULL_ADOPTION),
        ),
        outcomes=UsageOutcomes(orders_placed=order_count),
        activity_timeline=_build_timeline(records, total_users, now),
        time_to_first_item=time_to_first(ActivityKind.ITEM),
        time_to_first_kanban=time_to_first(ActivityKind.KANBAN_CARD),
        time_to_first_order=time_to_first(ActivityKind.ORDER),
    )


def build_scoring_input(
    activity: TenantActivity,
    usage: UsageMetrics,
    account_age: int,
    previous_score: Optional[int] = None,
    previous_score_date: Optional[datetime] = None,
) -> HealthScoringInput:
    """Scoring input from usage plus whatever enrichment is present."""
    fields = dict(
        item_count=usage.item_count,
        kanban_card_count=usage.kanban_card_count,
        order_count=usage.order_count,
        total_users=usage.total_users,
        active_users_last_7_days=usage.active_users_last_7_days,
        active_users_last_30_days=usage.active_users_last_30_days,
        days_since_last_activity=usage.days_since_last_activity,
        account_age_days=account_age,
        segment=activity.segment,
        tier=activity.tier,
        previous_score=previous_score,
        previous_score_date=previous_score_date,
    )

    if activity.relationship:
        fields.update(
            days_since_last_cs_contact=activity.relationship.days_since_last_cs_contact,
            interaction_count_last_30_days=activity.relationship.interaction_count_last_30_days,
            has_champion=activity.relationship.has_champion,
        )

    if activity.support:
        fields.update(
            open_tickets=activity.support.open_tickets,
            critical_tickets=activity.support.critical_tickets,
            avg_response_time_hours=activity.support.avg_first_response_hours,
            csat=activity.support.csat,
        )

    if activity.commercial:
        fields.update(
            payment_status=activity.commercial.payment_status,
            days_to_renewal=activity.commercial.days_to_renewal,
        )

    return HealthScoringInput(**fields)


def build_alert_input(
    activity: TenantActivity,
    usage: UsageMetrics,
    account_age: int,
    health: Optional[AccountHealth] = None,
    previous_health: Optional[AccountHealth] = None,
) -> AlertGenerationInput:
    arr = activity.arr
    if arr is None and activity.commercial:
        arr = activity.commercial.arr

    return AlertGenerationInput(
        account_id=activity.account_id,
        account_name=activity.display_name,
        health=health,
        previous_health=previous_health,
        usage=usage,
        commercial=activity.commercial,
        support=activity.support,
        account_age_days=account_age,
        tier=activity.tier,
        segment=activity.segment,
        arr=arr,
        owner_id=activity.owner_id,
        owner_name=activity.owner_name,
    )
