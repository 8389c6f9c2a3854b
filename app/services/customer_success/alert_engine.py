"""
Alert Generation Engine

Derives actionable alerts from an account's health score and metrics.

Rules are a flat table of (type, category, check) entries. Every rule is
evaluated for every account, independently of the others; a rule that
raises is logged and skipped without affecting the rest. Each firing rule
contributes evidence, a suggested action, an optional playbook and an
optional SLA.

Alert ids are derived from (type, account id) only, so the same logical
alert keeps its id across recomputation and lifecycle state stored under
that id can be merged back in.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

from app.core.sentry import capture_exception
from app.exceptions import AlertRuleError
from app.schemas.customer_success.alert import (
    SEVERITY_RANK,
    Alert,
    AlertCategory,
    AlertGenerationInput,
    AlertSeverity,
    AlertStatus,
    AlertType,
    SLAStatus,
)
from app.schemas.customer_success.health_score import PaymentStatus
from app.utils.numbers import format_money, round_half_up

logger = logging.getLogger(__name__)


@dataclass
class AlertCheckResult:
    """What a firing rule reports."""

    severity: AlertSeverity
    title: str
    description: str
    evidence: list[str]
    suggested_action: str
    playbook: Optional[str] = None
    sla_hours: Optional[int] = None


@dataclass(frozen=True)
class AlertRule:
    """One entry of the rule table."""

    type: AlertType
    category: AlertCategory
    check: Callable[[AlertGenerationInput], Optional[AlertCheckResult]] = field(compare=False)


def alert_id_for(alert_type: AlertType, account_id: str) -> str:
    """Stable identity: one alert per rule type per account."""
    return f"{AlertType(alert_type).value}-{account_id}"


# ============================================
# Churn risk
# ============================================


def check_churn_risk(input: AlertGenerationInput) -> Optional[AlertCheckResult]:
    usage = input.usage
    days_inactive = usage.days_since_last_activity if usage else 0

    if days_inactive >= 30:
        return AlertCheckResult(
            severity=AlertSeverity.CRITICAL,
            title="High churn risk - No activity for 30+ days",
            description=(
                f"{input.account_name} has had no product activity for {days_inactive} days. "
                "This is a strong indicator of potential churn."
            ),
            evidence=[
                f"{days_inactive} days since last activity",
                f"Last active users: {usage.active_users_last_30_days if usage else 0}",
                f"Health score: {input.health.score}" if input.health else "No health data",
            ],
            suggested_action="Immediately reach out to understand blockers and re-engage the customer",
            playbook="churn-intervention",
            sla_hours=24,
        )

    if days_inactive >= 14:
        return AlertCheckResult(
            severity=AlertSeverity.HIGH,
            title="Churn risk - No activity for 14+ days",
            description=f"{input.account_name} has had no product activity for {days_inactive} days.",
            evidence=[
                f"{days_inactive} days since last activity",
                f"Weekly active users: {usage.active_users_last_7_days if usage else 0}",
            ],
            suggested_action="Schedule a check-in call to understand if there are any issues",
            playbook="reengagement",
            sla_hours=48,
        )

    return None


# ============================================
# Health drop
# ============================================


def check_health_drop(input: AlertGenerationInput) -> Optional[AlertCheckResult]:
    if not input.health or not input.previous_health:
        return None

    previous = input.previous_health.score
    current = input.health.score
    drop = previous - current

    if drop >= 20:
        weak_components = [
            f"{name}: {component.score}/100"
            for name, component in input.health.components.items()
            if component.score < 50
        ]
        return AlertCheckResult(
            severity=AlertSeverity.CRITICAL,
            title="Significant health score drop",
            description=f"{input.account_name}'s health score dropped {drop} points from {previous} to {current}.",
            evidence=[
                f"Score change: {previous} → {current}",
                input.health.change_reason or "Multiple factors contributing",
                *weak_components,
            ],
            suggested_action="Review account activity and reach out to understand what changed",
            playbook="health-recovery",
            sla_hours=24,
        )

    if drop >= 10:
        return AlertCheckResult(
            severity=AlertSeverity.HIGH,
            title="Health score declining",
            description=f"{input.account_name}'s health score dropped {drop} points.",
            evidence=[
                f"Score change: {previous} → {current}",
                input.health.change_reason or "Score declining",
            ],
            suggested_action="Monitor closely and prepare intervention if decline continues",
            sla_hours=72,
        )

    return None


# ============================================
# Low engagement
# ============================================


def check_low_engagement(input: AlertGenerationInput) -> Optional[AlertCheckResult]:
    usage = input.usage
    if not usage:
        return None

    total_users = usage.total_users
    monthly_active = usage.active_users_last_30_days

    if total_users > 0 and monthly_active == 0:
        return AlertCheckResult(
            severity=AlertSeverity.HIGH,
            title="No active users in 30 days",
            description=(
                f"{input.account_name} has {total_users} users but none have been active in the last 30 days."
            ),
            evidence=[
                f"Total users: {total_users}",
                "Monthly active: 0",
                f"Days since activity: {usage.days_since_last_activity}",
            ],
            suggested_action="Reach out to understand if there are adoption blockers or training needs",
            playbook="adoption-boost",
            sla_hours=48,
        )

    engagement_rate = monthly_active / total_users if total_users > 0 else 0
    if total_users >= 3 and engagement_rate < 0.2:
        rate_pct = round_half_up(engagement_rate * 100)
        return AlertCheckResult(
            severity=AlertSeverity.MEDIUM,
            title="Low user engagement",
            description=f"Only {rate_pct}% of users at {input.account_name} are active.",
            evidence=[
                f"Total users: {total_users}",
                f"Monthly active: {monthly_active}",
                f"Engagement rate: {rate_pct}%",
            ],
            suggested_action="Consider offering training or identifying champions to drive adoption",
            playbook="user-activation",
            sla_hours=168,
        )

    return None


# ============================================
# Onboarding stalled
# ============================================


def check_onboarding_stalled(input: AlertGenerationInput) -> Optional[AlertCheckResult]:
    # Only early-lifecycle accounts
    if input.account_age_days > 60 or not input.usage:
        return None

    age = input.account_age_days
    items = input.usage.item_count
    cards = input.usage.kanban_card_count
    orders = input.usage.order_count
    has_basic_setup = items >= 5
    has_workflow = cards >= 1
    has_value = orders >= 1

    if age >= 14 and not has_basic_setup:
        return AlertCheckResult(
            severity=AlertSeverity.HIGH,
            title="Onboarding stalled - No item setup",
            description=f"{input.account_name} signed up {age} days ago but has only {items} items.",
            evidence=[
                f"Account age: {age} days",
                f"Items created: {items}",
                "Expected: 5+ items by day 14",
            ],
            suggested_action="Offer hands-on onboarding assistance or data import help",
            playbook="onboarding-assist",
            sla_hours=24,
        )

    if age >= 21 and has_basic_setup and not has_workflow:
        return AlertCheckResult(
            severity=AlertSeverity.MEDIUM,
            title="Onboarding stalled - No kanban adoption",
            description=f"{input.account_name} has items but hasn't started using kanban workflows yet.",
            evidence=[
                f"Account age: {age} days",
                f"Items: {items}",
                f"Kanban cards: {cards}",
            ],
            suggested_action="Schedule a kanban workflow training session",
            playbook="kanban-onboarding",
            sla_hours=72,
        )

    if age >= 30 and has_workflow and not has_value:
        return AlertCheckResult(
            severity=AlertSeverity.MEDIUM,
            title="Onboarding stalled - No orders placed",
            description=f"{input.account_name} is using kanban but hasn't placed any orders yet.",
            evidence=[
                f"Account age: {age} days",
                f"Kanban cards: {cards}",
                f"Orders: {orders}",
            ],
            suggested_action="Guide customer through placing their first order",
            playbook="first-order",
            sla_hours=72,
        )

    return None


# ============================================
# Renewal approaching
# ============================================


def check_renewal_approaching(input: AlertGenerationInput) -> Optional[AlertCheckResult]:
    commercial = input.commercial
    # Zero days counts as "no renewal data", matching the dashboard
    if not commercial or not commercial.days_to_renewal:
        return None

    days = commercial.days_to_renewal
    renewal_date = commercial.renewal_date or "unknown"

    if days <= 30:
        health_risk = input.health is not None and input.health.score < 60
        evidence = [
            f"Renewal date: {renewal_date}",
            f"Days remaining: {days}",
            f"Health score: {input.health.score}" if input.health else "No health data",
        ]
        if commercial.arr:
            evidence.append(f"ARR: {format_money(commercial.arr)}")

        description = f"{input.account_name}'s contract renews in {days} days."
        if health_risk:
            description += " Health score is low, indicating potential churn risk."

        return AlertCheckResult(
            severity=AlertSeverity.CRITICAL if health_risk else AlertSeverity.HIGH,
            title=f"Renewal in {days} days" + (" - At risk" if health_risk else ""),
            description=description,
            evidence=evidence,
            suggested_action=(
                "Urgent: Begin renewal conversation and address health concerns"
                if health_risk
                else "Initiate renewal discussion and confirm expansion opportunities"
            ),
            playbook="renewal",
            sla_hours=24,
        )

    if days <= 60:
        return AlertCheckResult(
            severity=AlertSeverity.MEDIUM,
            title=f"Renewal in {days} days",
            description=(
                f"{input.account_name}'s contract renews in {days} days. Start planning renewal conversation."
            ),
            evidence=[
                f"Renewal date: {renewal_date}",
                f"Days remaining: {days}",
            ],
            suggested_action="Schedule renewal planning call and gather success metrics",
            playbook="renewal-prep",
            sla_hours=168,
        )

    if days <= 90:
        return AlertCheckResult(
            severity=AlertSeverity.LOW,
            title=f"Renewal in {days} days",
            description=f"{input.account_name}'s contract renews in {days} days.",
            evidence=[f"Renewal date: {renewal_date}"],
            suggested_action="Add to upcoming renewals list and begin value documentation",
        )

    return None


# ============================================
# Expansion opportunity
# ============================================


def check_expansion_opportunity(input: AlertGenerationInput) -> Optional[AlertCheckResult]:
    usage = input.usage
    if not usage:
        return None

    signals = []
    strength = 0

    total_activity = usage.total_activity
    if total_activity >= 100:
        signals.append(f"High activity: {total_activity} total actions")
        strength += 2

    if usage.active_users_last_30_days >= 5:
        signals.append(f"{usage.active_users_last_30_days} monthly active users")
        strength += 1

    if usage.order_count >= 10:
        signals.append(f"{usage.order_count} orders placed - strong value realization")
        strength += 2

    if input.health and input.health.score >= 80:
        signals.append(f"Health score: {input.health.score} (A grade)")
        strength += 1

    if strength >= 4:
        return AlertCheckResult(
            severity=AlertSeverity.MEDIUM,
            title="Strong expansion opportunity",
            description=f"{input.account_name} is showing strong adoption signals that indicate expansion potential.",
            evidence=signals,
            suggested_action=(
                "Schedule success review and explore expansion opportunities (additional seats, features, or sites)"
            ),
            playbook="expansion",
            sla_hours=168,
        )

    if strength >= 2:
        return AlertCheckResult(
            severity=AlertSeverity.LOW,
            title="Potential expansion opportunity",
            description=f"{input.account_name} is showing good adoption that may indicate expansion readiness.",
            evidence=signals,
            suggested_action="Monitor for continued growth and prepare expansion discussion",
        )

    return None


# ============================================
# Support escalation
# ============================================


def check_support_escalation(input: AlertGenerationInput) -> Optional[AlertCheckResult]:
    support = input.support
    if not support:
        return None

    if support.critical_tickets > 0:
        evidence = [
            f"Critical tickets: {support.critical_tickets}",
            f"Total open tickets: {support.open_tickets}",
        ]
        if support.escalation_count > 0:
            evidence.append(f"Escalations: {support.escalation_count}")
        return AlertCheckResult(
            severity=AlertSeverity.CRITICAL,
            title=f"{support.critical_tickets} critical support ticket(s)",
            description=(
                f"{input.account_name} has {support.critical_tickets} critical support issue(s) "
                "that require immediate attention."
            ),
            evidence=evidence,
            suggested_action="Coordinate with support team and proactively reach out to customer",
            playbook="support-escalation",
            sla_hours=4,
        )

    if support.open_tickets >= 5:
        return AlertCheckResult(
            severity=AlertSeverity.HIGH,
            title="High support ticket volume",
            description=f"{input.account_name} has {support.open_tickets} open support tickets.",
            evidence=[
                f"Open tickets: {support.open_tickets}",
                f"Tickets last 30 days: {support.tickets_last_30_days}",
            ],
            suggested_action="Review ticket patterns and reach out to understand systematic issues",
            playbook="support-review",
            sla_hours=24,
        )

    return None


# ============================================
# Usage decline
# ============================================

DECLINE_WINDOW_WEEKS = 4


def check_usage_decline(input: AlertGenerationInput) -> Optional[AlertCheckResult]:
    timeline = input.usage.activity_timeline if input.usage else []
    if len(timeline) < DECLINE_WINDOW_WEEKS * 2:
        return None

    recent_weeks = timeline[-DECLINE_WINDOW_WEEKS:]
    older_weeks = timeline[-DECLINE_WINDOW_WEEKS * 2 : -DECLINE_WINDOW_WEEKS]

    recent_avg = sum(week.total_actions for week in recent_weeks) / len(recent_weeks)
    older_avg = sum(week.total_actions for week in older_weeks) / len(older_weeks)

    if older_avg > 10 and recent_avg < older_avg * 0.5:
        decline_pct = round_half_up((1 - recent_avg / older_avg) * 100)
        return AlertCheckResult(
            severity=AlertSeverity.HIGH,
            title=f"Usage declined {decline_pct}%",
            description=f"{input.account_name}'s activity has dropped significantly over the past month.",
            evidence=[
                f"Recent weekly average: {recent_avg:.1f} actions",
                f"Previous weekly average: {older_avg:.1f} actions",
                f"Decline: {decline_pct}%",
            ],
            suggested_action="Investigate cause of decline and reach out to re-engage",
            playbook="usage-recovery",
            sla_hours=48,
        )

    return None


# ============================================
# Payment overdue
# ============================================

HIGH_VALUE_ARR = 10000


def check_payment_overdue(input: AlertGenerationInput) -> Optional[AlertCheckResult]:
    commercial = input.commercial
    if not commercial:
        return None

    status = commercial.payment_status
    overdue_amount = commercial.overdue_amount

    if status == PaymentStatus.OVERDUE and overdue_amount and overdue_amount > 0:
        is_high_value = bool(input.arr and input.arr >= HIGH_VALUE_ARR)
        amount = format_money(overdue_amount)
        evidence = [
            f"Overdue amount: {amount}",
            f"Payment status: {status.value}",
        ]
        if input.arr:
            evidence.append(f"ARR: {format_money(input.arr)}")
        if commercial.last_payment_date:
            evidence.append(f"Last payment: {commercial.last_payment_date}")

        description = f"{input.account_name} has an overdue balance of {amount}."
        if is_high_value:
            description += " This is a high-value account requiring immediate attention."

        return AlertCheckResult(
            severity=AlertSeverity.CRITICAL if is_high_value else AlertSeverity.HIGH,
            title=f"Payment overdue - {amount}",
            description=description,
            evidence=evidence,
            suggested_action="Coordinate with finance team and reach out to understand payment situation",
            playbook="payment-recovery",
            sla_hours=24 if is_high_value else 48,
        )

    if status == PaymentStatus.AT_RISK:
        return AlertCheckResult(
            severity=AlertSeverity.MEDIUM,
            title="Payment at risk",
            description=f"{input.account_name}'s payment status indicates potential issues.",
            evidence=[
                f"Payment status: {status.value}",
                f"Last payment: {commercial.last_payment_date}"
                if commercial.last_payment_date
                else "No recent payment on file",
            ],
            suggested_action="Monitor payment status and prepare to engage if payment fails",
            sla_hours=72,
        )

    return None


# ============================================
# Champion left
# ============================================


def check_champion_left(input: AlertGenerationInput) -> Optional[AlertCheckResult]:
    """
    Approximate champion-departure detection.

    There is no stakeholder-change feed yet, so an established, multi-user
    account going completely silent stands in for "a key person left".
    """
    usage = input.usage
    if not usage:
        return None

    went_silent = usage.active_users_last_30_days == 0 and usage.total_users > 3 and input.account_age_days > 90

    if went_silent and usage.days_since_last_activity >= 21:
        return AlertCheckResult(
            severity=AlertSeverity.HIGH,
            title="Potential champion departure",
            description=(
                f"{input.account_name} was previously active but has gone silent. "
                "A key stakeholder may have left."
            ),
            evidence=[
                f"No active users in last 30 days (previously had {usage.total_users} users)",
                f"Days since last activity: {usage.days_since_last_activity}",
                "Recommend verifying stakeholder contacts",
            ],
            suggested_action="Verify key contacts are still at the company and identify new champion if needed",
            playbook="champion-recovery",
            sla_hours=48,
        )

    return None


# ============================================
# Rule table
# ============================================

ALERT_RULES: tuple[AlertRule, ...] = (
    AlertRule(AlertType.CHURN_RISK, AlertCategory.RISK, check_churn_risk),
    AlertRule(AlertType.HEALTH_DROP, AlertCategory.RISK, check_health_drop),
    AlertRule(AlertType.LOW_ENGAGEMENT, AlertCategory.RISK, check_low_engagement),
    AlertRule(AlertType.ONBOARDING_STALLED, AlertCategory.ACTION_REQUIRED, check_onboarding_stalled),
    AlertRule(AlertType.RENEWAL_APPROACHING, AlertCategory.ACTION_REQUIRED, check_renewal_approaching),
    AlertRule(AlertType.EXPANSION_OPPORTUNITY, AlertCategory.OPPORTUNITY, check_expansion_opportunity),
    AlertRule(AlertType.SUPPORT_ESCALATION, AlertCategory.ACTION_REQUIRED, check_support_escalation),
    AlertRule(AlertType.USAGE_DECLINE, AlertCategory.RISK, check_usage_decline),
    AlertRule(AlertType.PAYMENT_OVERDUE, AlertCategory.ACTION_REQUIRED, check_payment_overdue),
    AlertRule(AlertType.CHAMPION_LEFT, AlertCategory.RISK, check_champion_left),
)

CATEGORY_BY_TYPE = {rule.type: rule.category for rule in ALERT_RULES}


def alert_sort_key(alert: Alert) -> tuple[int, float]:
    """Critical first, then most ARR at risk."""
    return (SEVERITY_RANK[alert.severity], -(alert.arr_at_risk or 0))


def generate_alerts(
    input: AlertGenerationInput,
    now: Optional[datetime] = None,
    rules: Sequence[AlertRule] = ALERT_RULES,
) -> list[Alert]:
    """
    Evaluate every rule for one account and return the sorted alerts.

    Args:
        input: Health, usage, commercial and support context for the account
        now: Clock override for createdAt / slaDeadline
        rules: Rule table to evaluate

    Returns:
        Alerts ordered by severity, then ARR at risk (descending)
    """
    now = now or datetime.now(timezone.utc)
    alerts = []

    for rule in rules:
        try:
            result = rule.check(input)
        except Exception as e:
            error = AlertRuleError(rule.type.value, input.account_id, e)
            logger.exception(error.detail, extra={"trace_id": error.trace_id})
            capture_exception(error, context=error.context)
            continue

        if result is None:
            continue

        alerts.append(
            Alert(
                id=alert_id_for(rule.type, input.account_id),
                account_id=input.account_id,
                account_name=input.account_name,
                type=rule.type,
                category=rule.category,
                severity=result.severity,
                title=result.title,
                description=result.description,
                evidence=result.evidence,
                suggested_action=result.suggested_action,
                playbook=result.playbook,
                owner_id=input.owner_id,
                owner_name=input.owner_name,
                sla_deadline=now + timedelta(hours=result.sla_hours) if result.sla_hours else None,
                sla_status=SLAStatus.ON_TRACK if result.sla_hours else SLAStatus.NONE,
                status=AlertStatus.OPEN,
                created_at=now,
                arr_at_risk=input.arr if rule.category == AlertCategory.RISK else None,
            )
        )

    alerts.sort(key=alert_sort_key)
    return alerts
