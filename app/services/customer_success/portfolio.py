"""
Portfolio Scoring

Runs the full pipeline over every account in a portfolio:
aggregate activity -> score health -> generate alerts -> merge lifecycle
state -> refresh SLA status.

Accounts are processed in batches with asyncio.gather and an optional
pause between batches, which keeps any enrichment lookups done alongside
the pass inside upstream rate limits.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence

from app.config import settings
from app.core.sentry import capture_exception
from app.exceptions import AggregationError, AlertStoreError
from app.schemas.customer_success.alert import (
    SEVERITY_RANK,
    Alert,
    AlertSeverity,
    AlertStatus,
    AlertsSummary,
)
from app.schemas.customer_success.health_score import AccountHealth, HealthScoringConfig
from app.schemas.customer_success.metrics import TenantActivity, UsageMetrics
from app.schemas.customer_success.portfolio import AccountSnapshot, PortfolioResult
from app.services.customer_success.alert_engine import generate_alerts
from app.services.customer_success.alert_store import AlertStateStore, merge_alert_state
from app.services.customer_success.health_calculator import HealthScoreCalculator
from app.services.customer_success.sla import refresh_sla_status
from app.services.customer_success.usage_aggregator import (
    account_age_days,
    build_alert_input,
    build_scoring_input,
    build_usage_metrics,
)

logger = logging.getLogger(__name__)


def portfolio_sort_key(alert: Alert) -> tuple[int, float, float]:
    """Severity, then ARR at risk (desc), then newest first."""
    return (
        SEVERITY_RANK[alert.severity],
        -(alert.arr_at_risk or 0),
        -alert.created_at.timestamp(),
    )


def sort_alerts(alerts: Sequence[Alert]) -> list[Alert]:
    return sorted(alerts, key=portfolio_sort_key)


def filter_alerts(
    alerts: Sequence[Alert],
    severity: Optional[AlertSeverity] = None,
    status: Optional[AlertStatus] = None,
    account_id: Optional[str] = None,
    owner_id: Optional[str] = None,
    limit: Optional[int] = None,
) -> list[Alert]:
    """Apply the alert inbox filters. A limit of 0 or less means no limit."""
    filtered = list(alerts)

    if severity:
        filtered = [a for a in filtered if a.severity == severity]
    if status:
        filtered = [a for a in filtered if a.status == status]
    if account_id:
        filtered = [a for a in filtered if a.account_id == account_id]
    if owner_id:
        filtered = [a for a in filtered if a.owner_id == owner_id]

    if limit and limit > 0:
        filtered = filtered[:limit]

    return filtered


def summarize_alerts(alerts: Sequence[Alert]) -> AlertsSummary:
    def count(severity: AlertSeverity) -> int:
        return sum(1 for a in alerts if a.severity == severity)

    return AlertsSummary(
        alerts=list(alerts),
        total_count=len(alerts),
        critical_count=count(AlertSeverity.CRITICAL),
        high_count=count(AlertSeverity.HIGH),
        medium_count=count(AlertSeverity.MEDIUM),
        low_count=count(AlertSeverity.LOW),
    )


class PortfolioScorer:
    """
    Scores a portfolio of accounts against one lifecycle store.

    Holds no per-pass state; concurrent passes only share the store, which
    serializes writes per alert id.
    """

    def __init__(
        self,
        store: AlertStateStore,
        config: Optional[HealthScoringConfig] = None,
        batch_size: Optional[int] = None,
        batch_delay_seconds: Optional[float] = None,
    ):
        self.store = store
        self.calculator = HealthScoreCalculator(config)
        self.batch_size = batch_size or settings.AGGREGATION_BATCH_SIZE
        self.batch_delay_seconds = (
            settings.AGGREGATION_BATCH_DELAY_SECONDS if batch_delay_seconds is None else batch_delay_seconds
        )

    async def score_portfolio(
        self,
        activities: Sequence[TenantActivity],
        previous_scores: Optional[Mapping[str, AccountHealth]] = None,
        now: Optional[datetime] = None,
    ) -> PortfolioResult:
        """
        Score every account and collect their alerts.

        Args:
            activities: One record per account, already mapped and enriched
            previous_scores: Last known health per account id, for trends
                and health_drop alerts
            now: Clock override used for the whole pass

        Returns:
            PortfolioResult with per-account snapshots and all alerts sorted
        """
        now = now or datetime.now(timezone.utc)
        previous_scores = previous_scores or {}
        snapshots: list[AccountSnapshot] = []
        skipped = 0

        for start in range(0, len(activities), self.batch_size):
            batch = activities[start : start + self.batch_size]
            results = await asyncio.gather(
                *(
                    self.score_account(activity, previous_scores.get(activity.account_id), now)
                    for activity in batch
                )
            )
            for snapshot in results:
                if snapshot is None:
                    skipped += 1
                else:
                    snapshots.append(snapshot)

            if self.batch_delay_seconds and start + self.batch_size < len(activities):
                await asyncio.sleep(self.batch_delay_seconds)

        alerts = sort_alerts([alert for snapshot in snapshots for alert in snapshot.alerts])

        logger.info(
            "Scored %d accounts (%d skipped), %d alerts",
            len(snapshots),
            skipped,
            len(alerts),
        )

        return PortfolioResult(
            accounts=snapshots,
            alerts=alerts,
            total_accounts=len(snapshots),
            skipped_accounts=skipped,
            generated_at=now,
        )

    async def score_account(
        self,
        activity: TenantActivity,
        previous_health: Optional[AccountHealth],
        now: datetime,
    ) -> Optional[AccountSnapshot]:
        """Score one account; None when it has neither users nor activity."""
        try:
            usage = build_usage_metrics(activity, now)
            age = account_age_days(activity, now)
        except AggregationError as e:
            # Score with neutral defaults rather than dropping the account
            logger.warning("Aggregation failed for %s: %s", activity.account_id, e.detail)
            capture_exception(e, context=e.context)
            usage = UsageMetrics()
            age = 0
        else:
            if usage.total_users == 0 and usage.total_activity == 0:
                logger.debug("Skipping %s: no users and no activity", activity.account_id)
                return None

        scoring_input = build_scoring_input(
            activity,
            usage,
            age,
            previous_score=previous_health.score if previous_health else None,
            previous_score_date=previous_health.calculated_at if previous_health else None,
        )
        health = self.calculator.calculate(scoring_input, now=now)

        alert_input = build_alert_input(activity, usage, age, health=health, previous_health=previous_health)
        alerts = [await self._merge_lifecycle(alert, now) for alert in generate_alerts(alert_input, now=now)]

        return AccountSnapshot(
            account_id=activity.account_id,
            account_name=activity.display_name,
            segment=activity.segment,
            tier=activity.tier,
            owner_name=activity.owner_name,
            health=health,
            usage=usage,
            alerts=alerts,
        )

    async def _merge_lifecycle(self, alert: Alert, now: datetime) -> Alert:
        try:
            state = await self.store.mark_seen(alert.id, alert.created_at)
        except AlertStoreError as e:
            logger.warning("Lifecycle state unavailable for %s: %s", alert.id, e.detail)
            capture_exception(e, context=e.context)
            state = None
        return refresh_sla_status(merge_alert_state(alert, state), now)
