"""
Health Score Calculator Service

Calculates account health scores from five weighted components:
- Adoption (30%): Items, kanban cards and orders created, onboarding velocity
- Engagement (25%): Activity recency, monthly/weekly active users, team size
- Relationship (15%): CS touch recency, interaction frequency, champion
- Support (15%): Open and critical tickets, CSAT
- Commercial (15%): Payment status, renewal proximity

Weights and grade thresholds come from HealthScoringConfig and may be
overridden per segment. Scoring is a pure function of its input: no I/O,
no shared state, and missing optional signals fall back to neutral
defaults instead of raising.
"""

from datetime import datetime, timezone
from typing import Optional

from app.schemas.customer_success.health_score import (
    AccountHealth,
    DataFreshness,
    FactorImpact,
    GradeThresholds,
    HealthComponent,
    HealthComponents,
    HealthFactor,
    HealthGrade,
    HealthScoringConfig,
    HealthScoringInput,
    HealthTrend,
    PaymentStatus,
)
from app.services.customer_success.health_config import DEFAULT_HEALTH_CONFIG, resolve_segment_config
from app.utils.numbers import clamp, round_half_up


POSITIVE = FactorImpact.POSITIVE
NEUTRAL = FactorImpact.NEUTRAL
NEGATIVE = FactorImpact.NEGATIVE

TREND_THRESHOLD = 5
STABLE_CHANGE_THRESHOLD = 3

# Core usage signals are always present; these six are optional
CORE_DATA_POINTS = 4
OPTIONAL_SIGNALS = (
    "days_since_last_cs_contact",
    "interaction_count_last_30_days",
    "has_champion",
    "open_tickets",
    "payment_status",
    "days_to_renewal",
)

PAYMENT_POINTS = {
    PaymentStatus.CURRENT: 40,
    PaymentStatus.OVERDUE: 10,
    PaymentStatus.AT_RISK: 25,
}


class HealthScoreCalculator:
    """
    Calculates explainable health scores for customer accounts.

    The calculator holds only immutable configuration, so one instance can
    score many accounts concurrently.
    """

    def __init__(self, config: Optional[HealthScoringConfig] = None):
        self.config = config or DEFAULT_HEALTH_CONFIG

    def calculate(self, input: HealthScoringInput, now: Optional[datetime] = None) -> AccountHealth:
        """
        Calculate the complete health score with all components.

        Args:
            input: Aggregated signals for one account
            now: Clock override for calculatedAt / lastUpdated

        Returns:
            AccountHealth with composite score, grade, trend and per-component factors
        """
        now = now or datetime.now(timezone.utc)
        effective = resolve_segment_config(self.config, input.segment)
        weights = effective.weights

        scored = {
            "adoption": self._calculate_adoption_score(input, now),
            "engagement": self._calculate_engagement_score(input, now),
            "relationship": self._calculate_relationship_score(input, now),
            "support": self._calculate_support_score(input, now),
            "commercial": self._calculate_commercial_score(input, now),
        }

        weighted = {}
        for name, component in scored.items():
            weight = weights.for_component(name)
            weighted[name] = component.model_copy(
                update={"weight": weight, "weighted_score": component.score * weight}
            )
        components = HealthComponents(**weighted)

        composite = round_half_up(sum(c.weighted_score for c in weighted.values()))
        composite = int(clamp(composite))

        score_change = composite - input.previous_score if input.previous_score is not None else 0

        return AccountHealth(
            score=composite,
            grade=score_to_grade(composite, effective.grade_thresholds),
            trend=calculate_trend(score_change),
            components=components,
            previous_score=input.previous_score,
            score_change=score_change,
            change_reason=generate_change_reason(components, score_change),
            calculated_at=now,
            data_freshness=determine_data_freshness(input.days_since_last_activity),
            confidence=calculate_confidence(input),
        )

    # ============================================
    # Component scoring
    # ============================================

    def _calculate_adoption_score(self, input: HealthScoringInput, now: datetime) -> HealthComponent:
        """
        Product usage depth.

        Items up to 25 pts (linear to 50), kanban cards up to 30 (linear to
        100), orders up to 30 (linear to 20), plus up to 15 for onboarding
        velocity.
        """
        factors = []
        score = 0

        items = input.item_count
        item_points = min(25, round_half_up(items / 50 * 25))
        if items >= 50:
            explanation = "Excellent item catalog depth"
        elif items >= 20:
            explanation = "Good item catalog"
        elif items >= 5:
            explanation = "Basic item setup"
        else:
            explanation = "Limited item setup - needs attention"
        factors.append(
            HealthFactor(
                name="Items created",
                value=items,
                impact=POSITIVE if items >= 20 else NEUTRAL if items >= 5 else NEGATIVE,
                points=item_points,
                explanation=explanation,
            )
        )
        score += item_points

        cards = input.kanban_card_count
        kanban_points = min(30, round_half_up(cards / 100 * 30))
        if cards >= 100:
            explanation = "Heavy kanban workflow adoption"
        elif cards >= 50:
            explanation = "Active kanban usage"
        elif cards >= 10:
            explanation = "Beginning to use kanban"
        else:
            explanation = "Minimal kanban adoption"
        factors.append(
            HealthFactor(
                name="Kanban cards",
                value=cards,
                impact=POSITIVE if cards >= 50 else NEUTRAL if cards >= 10 else NEGATIVE,
                points=kanban_points,
                explanation=explanation,
            )
        )
        score += kanban_points

        orders = input.order_count
        order_points = min(30, round_half_up(orders / 20 * 30))
        if orders >= 20:
            explanation = "Strong ordering activity - delivering value"
        elif orders >= 10:
            explanation = "Regular ordering"
        elif orders >= 1:
            explanation = "Started placing orders"
        else:
            explanation = "No orders yet - key adoption milestone missing"
        factors.append(
            HealthFactor(
                name="Orders placed",
                value=orders,
                impact=POSITIVE if orders >= 10 else NEUTRAL if orders >= 1 else NEGATIVE,
                points=order_points,
                explanation=explanation,
            )
        )
        score += order_points

        velocity_bonus = calculate_velocity_bonus(input)
        if velocity_bonus > 0:
            factors.append(
                HealthFactor(
                    name="Onboarding velocity",
                    value=f"{input.account_age_days} days",
                    impact=POSITIVE,
                    points=velocity_bonus,
                    explanation="Fast adoption relative to account age",
                )
            )
            score += velocity_bonus

        return _component(min(100, score), factors, now)

    def _calculate_engagement_score(self, input: HealthScoringInput, now: datetime) -> HealthComponent:
        """
        User activity breadth.

        Recency up to 35 pts (2.5 lost per idle day), monthly active ratio up
        to 30, weekly actives up to 20 (4 each), team size up to 15 (3 each).
        """
        factors = []
        score = 0.0

        idle_days = input.days_since_last_activity
        recency_points = max(0, 35 - min(35, idle_days * 2.5))
        if idle_days <= 3:
            explanation = "Very recent activity"
        elif idle_days <= 7:
            explanation = "Active this week"
        elif idle_days <= 14:
            explanation = "Some recent activity"
        else:
            explanation = f"No activity for {idle_days} days - potential churn risk"
        factors.append(
            HealthFactor(
                name="Days since last activity",
                value=idle_days,
                impact=POSITIVE if idle_days <= 3 else NEUTRAL if idle_days <= 14 else NEGATIVE,
                points=round_half_up(recency_points),
                explanation=explanation,
            )
        )
        score += recency_points

        total_users = input.total_users
        monthly_active = input.active_users_last_30_days
        breadth = monthly_active / total_users if total_users > 0 else 0
        breadth_points = round_half_up(breadth * 30)
        if breadth >= 0.75:
            explanation = "Most users are active"
        elif breadth >= 0.5:
            explanation = "Good user engagement"
        elif breadth >= 0.25:
            explanation = "Some user engagement"
        else:
            explanation = "Low user adoption across the team"
        factors.append(
            HealthFactor(
                name="Monthly active user ratio",
                value=f"{monthly_active}/{total_users}",
                impact=POSITIVE if breadth >= 0.5 else NEUTRAL if breadth >= 0.25 else NEGATIVE,
                points=breadth_points,
                explanation=explanation,
            )
        )
        score += breadth_points

        weekly_active = input.active_users_last_7_days
        wau_points = min(20, weekly_active * 4)
        if weekly_active >= 5:
            explanation = "Strong weekly engagement"
        elif weekly_active >= 3:
            explanation = "Regular weekly usage"
        elif weekly_active >= 1:
            explanation = "At least one weekly user"
        else:
            explanation = "No activity this week"
        factors.append(
            HealthFactor(
                name="Weekly active users",
                value=weekly_active,
                impact=POSITIVE if weekly_active >= 3 else NEUTRAL if weekly_active >= 1 else NEGATIVE,
                points=wau_points,
                explanation=explanation,
            )
        )
        score += wau_points

        user_count_points = min(15, total_users * 3)
        if total_users >= 5:
            explanation = "Good team adoption"
        elif total_users >= 2:
            explanation = "Multiple users"
        else:
            explanation = "Single user - concentration risk"
        factors.append(
            HealthFactor(
                name="Total users",
                value=total_users,
                impact=POSITIVE if total_users >= 5 else NEUTRAL if total_users >= 2 else NEGATIVE,
                points=user_count_points,
                explanation=explanation,
            )
        )
        score += user_count_points

        return _component(min(100, round_half_up(score)), factors, now)

    def _calculate_relationship_score(self, input: HealthScoringInput, now: datetime) -> HealthComponent:
        """
        CS relationship health.

        Starts at a neutral 50. Known CS contact recency replaces the base
        (up to 40, 1.5 lost per day); interactions add up to 30 and an
        identified champion adds 30.
        """
        factors = []
        score = 50.0

        if input.days_since_last_cs_contact is not None:
            days = input.days_since_last_cs_contact
            touch_points = max(0, 40 - min(40, days * 1.5))
            if days <= 14:
                explanation = "Recent CS engagement"
            elif days <= 30:
                explanation = "Contacted this month"
            else:
                explanation = "Overdue for CS touch"
            factors.append(
                HealthFactor(
                    name="Days since last CS contact",
                    value=days,
                    impact=POSITIVE if days <= 14 else NEUTRAL if days <= 30 else NEGATIVE,
                    points=round_half_up(touch_points),
                    explanation=explanation,
                )
            )
            score = touch_points
        else:
            # Factor reports 25 but the neutral base of 50 is kept
            factors.append(
                HealthFactor(
                    name="CS contact data",
                    value="Missing",
                    impact=NEUTRAL,
                    points=25,
                    explanation="No CS interaction data - using neutral score",
                )
            )

        if input.interaction_count_last_30_days is not None:
            interactions = input.interaction_count_last_30_days
            interaction_points = min(30, interactions * 10)
            if interactions >= 3:
                explanation = "High-touch engagement"
            elif interactions >= 1:
                explanation = "Regular engagement"
            else:
                explanation = "No recent interactions"
            factors.append(
                HealthFactor(
                    name="Interactions last 30 days",
                    value=interactions,
                    impact=POSITIVE if interactions >= 2 else NEUTRAL if interactions >= 1 else NEGATIVE,
                    points=interaction_points,
                    explanation=explanation,
                )
            )
            score += interaction_points

        if input.has_champion is not None:
            champion_points = 30 if input.has_champion else 0
            factors.append(
                HealthFactor(
                    name="Champion identified",
                    value="Yes" if input.has_champion else "No",
                    impact=POSITIVE if input.has_champion else NEGATIVE,
                    points=champion_points,
                    explanation="Has identified champion" if input.has_champion else "No champion - relationship risk",
                )
            )
            score += champion_points

        return _component(min(100, round_half_up(score)), factors, now)

    def _calculate_support_score(self, input: HealthScoringInput, now: datetime) -> HealthComponent:
        """
        Support health. No ticket data counts as healthy (80).

        Open tickets rebase the score to 60 + up to 40; each critical ticket
        costs 20; CSAT is blended in at 30%.
        """
        factors = []
        score = 80.0

        if input.open_tickets is not None:
            open_tickets = input.open_tickets
            ticket_points = max(0, 40 - min(40, open_tickets * 10))
            if open_tickets == 0:
                explanation = "No open tickets"
            elif open_tickets <= 2:
                explanation = "Normal ticket volume"
            else:
                explanation = "High ticket volume - frustration risk"
            factors.append(
                HealthFactor(
                    name="Open support tickets",
                    value=open_tickets,
                    impact=POSITIVE if open_tickets == 0 else NEUTRAL if open_tickets <= 2 else NEGATIVE,
                    points=ticket_points,
                    explanation=explanation,
                )
            )
            score = 60 + ticket_points

        if input.critical_tickets is not None and input.critical_tickets > 0:
            critical_penalty = input.critical_tickets * 20
            factors.append(
                HealthFactor(
                    name="Critical tickets",
                    value=input.critical_tickets,
                    impact=NEGATIVE,
                    points=-critical_penalty,
                    explanation=f"{input.critical_tickets} critical issue(s) requiring immediate attention",
                )
            )
            score = max(0, score - critical_penalty)

        if input.csat is not None:
            csat = input.csat
            csat_points = round_half_up(csat / 100 * 30)
            if csat >= 80:
                explanation = "High customer satisfaction"
            elif csat >= 60:
                explanation = "Adequate satisfaction"
            else:
                explanation = "Low satisfaction - action needed"
            factors.append(
                HealthFactor(
                    name="CSAT score",
                    value=f"{csat:g}%",
                    impact=POSITIVE if csat >= 80 else NEUTRAL if csat >= 60 else NEGATIVE,
                    points=csat_points,
                    explanation=explanation,
                )
            )
            score = round_half_up(score * 0.7 + csat_points * 0.3)

        if not factors:
            factors.append(
                HealthFactor(
                    name="Support data",
                    value="No data",
                    impact=NEUTRAL,
                    points=80,
                    explanation="No support tickets or data - assuming healthy",
                )
            )

        return _component(int(clamp(round_half_up(score))), factors, now)

    def _calculate_commercial_score(self, input: HealthScoringInput, now: datetime) -> HealthComponent:
        """
        Payment and renewal health. No data counts as neutral-positive (70).

        A known payment status rebases to status points + 30; renewal
        proximity is blended in at 40%.
        """
        factors = []
        score = 70.0

        status = input.payment_status
        if status is not None and status != PaymentStatus.UNKNOWN:
            # Statuses outside the table score like "current"
            payment_points = PAYMENT_POINTS.get(status, 40)
            if status == PaymentStatus.CURRENT:
                explanation = "Payments current"
            elif status == PaymentStatus.OVERDUE:
                explanation = "Payment overdue - churn risk"
            else:
                explanation = "Payment at risk"
            factors.append(
                HealthFactor(
                    name="Payment status",
                    value=status.value,
                    impact=POSITIVE if status == PaymentStatus.CURRENT else NEGATIVE,
                    points=payment_points,
                    explanation=explanation,
                )
            )
            score = payment_points + 30

        if input.days_to_renewal is not None:
            days = input.days_to_renewal
            if days <= 30:
                renewal_points, impact, explanation = 10, NEGATIVE, "Renewal in <30 days - requires attention"
            elif days <= 60:
                renewal_points, impact, explanation = 20, NEUTRAL, "Renewal approaching in 30-60 days"
            elif days <= 90:
                renewal_points, impact, explanation = 25, NEUTRAL, "Renewal in 60-90 days - plan ahead"
            else:
                renewal_points, impact, explanation = 30, POSITIVE, "Renewal not imminent"
            factors.append(
                HealthFactor(
                    name="Days to renewal",
                    value=days,
                    impact=impact,
                    points=renewal_points,
                    explanation=explanation,
                )
            )
            score = round_half_up(score * 0.6 + renewal_points * 0.4)

        if not factors:
            factors.append(
                HealthFactor(
                    name="Commercial data",
                    value="No data",
                    impact=NEUTRAL,
                    points=70,
                    explanation="No commercial data available - using neutral score",
                )
            )

        return _component(int(clamp(round_half_up(score))), factors, now)


# ============================================
# Helpers
# ============================================


def _component(score: int, factors: list[HealthFactor], now: datetime) -> HealthComponent:
    return HealthComponent(
        score=int(clamp(score)),
        factors=factors,
        data_points=len(factors),
        last_updated=now,
    )


def calculate_velocity_bonus(input: HealthScoringInput) -> int:
    """Bonus for activity per day of account age: >=2 -> 15, >=1 -> 10, >=0.5 -> 5."""
    total_activity = input.item_count + input.kanban_card_count + input.order_count
    activity_per_day = total_activity / max(1, input.account_age_days)

    if activity_per_day >= 2:
        return 15
    if activity_per_day >= 1:
        return 10
    if activity_per_day >= 0.5:
        return 5
    return 0


def score_to_grade(score: int, thresholds: GradeThresholds) -> HealthGrade:
    if score >= thresholds.a:
        return HealthGrade.A
    if score >= thresholds.b:
        return HealthGrade.B
    if score >= thresholds.c:
        return HealthGrade.C
    if score >= thresholds.d:
        return HealthGrade.D
    return HealthGrade.F


def calculate_trend(score_change: int) -> HealthTrend:
    if score_change >= TREND_THRESHOLD:
        return HealthTrend.IMPROVING
    if score_change <= -TREND_THRESHOLD:
        return HealthTrend.DECLINING
    return HealthTrend.STABLE


def lowest_component(components: HealthComponents) -> tuple[str, HealthComponent]:
    """Weakest component; ties go to the earliest in declaration order."""
    return min(components.items(), key=lambda pair: pair[1].score)


def generate_change_reason(components: HealthComponents, score_change: int) -> str:
    if abs(score_change) < STABLE_CHANGE_THRESHOLD:
        return "Score is stable"

    name, component = lowest_component(components)
    if score_change < 0:
        return f"Score declined, primarily due to {name} ({component.score}/100)"
    return f"Score improved across components; weakest area is {name} ({component.score}/100)"


def calculate_confidence(input: HealthScoringInput) -> int:
    """Share of the ten possible data points actually supplied, 0-100."""
    supplied = CORE_DATA_POINTS + sum(
        1 for field in OPTIONAL_SIGNALS if getattr(input, field) is not None
    )
    possible = CORE_DATA_POINTS + len(OPTIONAL_SIGNALS)
    return round_half_up(supplied / possible * 100)


def determine_data_freshness(days_since_last_activity: int) -> DataFreshness:
    if days_since_last_activity <= 1:
        return DataFreshness.FRESH
    if days_since_last_activity <= 7:
        return DataFreshness.STALE
    if days_since_last_activity <= 30:
        return DataFreshness.OUTDATED
    return DataFreshness.MISSING


def calculate_health_score(
    input: HealthScoringInput,
    config: Optional[HealthScoringConfig] = None,
    now: Optional[datetime] = None,
) -> AccountHealth:
    """Score one account. See HealthScoreCalculator.calculate."""
    return HealthScoreCalculator(config).calculate(input, now=now)
