"""
Tests for the Health Score Calculator

Covers component scoring breakpoints, composite weighting, grading, trend
and change reasons, confidence, freshness and segment overrides.
"""

import pytest
from datetime import timedelta

from app.schemas.customer_success.health_score import (
    COMPONENT_NAMES,
    DataFreshness,
    FactorImpact,
    GradeThresholds,
    HealthGrade,
    HealthScoringInput,
    HealthTrend,
    PaymentStatus,
)
from app.services.customer_success.health_calculator import (
    HealthScoreCalculator,
    calculate_confidence,
    calculate_health_score,
    calculate_trend,
    calculate_velocity_bonus,
    determine_data_freshness,
    score_to_grade,
)
from app.services.customer_success.health_config import DEFAULT_HEALTH_CONFIG
from tests.factories import (
    ActiveAccountInputFactory,
    DormantAccountInputFactory,
    HealthScoringInputFactory,
)


def scoring_input(**overrides) -> HealthScoringInput:
    return HealthScoringInput(**HealthScoringInputFactory(**overrides))


def composite_70_input(**overrides) -> HealthScoringInput:
    """Adoption 50, engagement 100, no optional data: composite exactly 70."""
    data = dict(
        item_count=50,
        kanban_card_count=0,
        order_count=10,
        total_users=5,
        active_users_last_7_days=5,
        active_users_last_30_days=5,
        days_since_last_activity=0,
        account_age_days=60,
    )
    data.update(overrides)
    return HealthScoringInput(**data)


class TestAdoptionScore:
    """Adoption component breakpoints."""

    def test_no_usage_scores_zero(self, calculator, now):
        """An account with nothing created gets no adoption points."""
        health = calculator.calculate(HealthScoringInput(**DormantAccountInputFactory()), now=now)
        assert health.components.adoption.score == 0

    def test_point_caps(self, calculator, now):
        """Items cap at 25, kanban at 30, orders at 30, velocity at 15."""
        data = scoring_input(
            item_count=500,
            kanban_card_count=500,
            order_count=500,
            account_age_days=10,
        )
        component = calculator.calculate(data, now=now).components.adoption
        points = {f.name: f.points for f in component.factors}

        assert points["Items created"] == 25
        assert points["Kanban cards"] == 30
        assert points["Orders placed"] == 30
        assert points["Onboarding velocity"] == 15
        assert component.score == 100

    def test_velocity_bonus_tiers(self):
        """Activity per day of age >=2, >=1, >=0.5 earns 15, 10, 5."""
        assert calculate_velocity_bonus(scoring_input(item_count=200, kanban_card_count=0, order_count=0, account_age_days=100)) == 15
        assert calculate_velocity_bonus(scoring_input(item_count=100, kanban_card_count=0, order_count=0, account_age_days=100)) == 10
        assert calculate_velocity_bonus(scoring_input(item_count=50, kanban_card_count=0, order_count=0, account_age_days=100)) == 5
        assert calculate_velocity_bonus(scoring_input(item_count=49, kanban_card_count=0, order_count=0, account_age_days=100)) == 0

    def test_zero_age_does_not_divide_by_zero(self, calculator, now):
        """Brand new accounts use an age of one day for velocity."""
        data = scoring_input(item_count=3, kanban_card_count=0, order_count=0, account_age_days=0)
        assert calculate_velocity_bonus(data) == 15
        calculator.calculate(data, now=now)

    def test_more_orders_never_lower_adoption(self, calculator, now):
        """Holding everything else fixed, adoption is monotonic in orders."""
        previous = -1
        for orders in range(0, 21):
            data = scoring_input(item_count=10, kanban_card_count=5, order_count=orders, account_age_days=200)
            score = calculator.calculate(data, now=now).components.adoption.score
            assert score >= previous
            previous = score

    def test_no_orders_is_negative_factor(self, calculator, now):
        data = scoring_input(order_count=0)
        factors = calculator.calculate(data, now=now).components.adoption.factors
        order_factor = next(f for f in factors if f.name == "Orders placed")
        assert order_factor.impact == FactorImpact.NEGATIVE


class TestEngagementScore:
    """Engagement component breakpoints."""

    def test_full_engagement(self, calculator, now):
        """Recent activity with everyone active maxes out at 100."""
        component = calculator.calculate(composite_70_input(), now=now).components.engagement
        assert component.score == 100

    def test_recency_decays(self, calculator, now):
        """2.5 points are lost per idle day, down to zero at 14 days."""
        component = calculator.calculate(
            composite_70_input(days_since_last_activity=4), now=now
        ).components.engagement
        recency = next(f for f in component.factors if f.name == "Days since last activity")
        assert recency.points == 25

        component = calculator.calculate(
            composite_70_input(days_since_last_activity=14), now=now
        ).components.engagement
        recency = next(f for f in component.factors if f.name == "Days since last activity")
        assert recency.points == 0

    def test_no_users_scores_no_breadth(self, calculator, now):
        """Zero total users gives zero monthly ratio points, not an error."""
        data = scoring_input(total_users=0, active_users_last_7_days=0, active_users_last_30_days=0)
        component = calculator.calculate(data, now=now).components.engagement
        breadth = next(f for f in component.factors if f.name == "Monthly active user ratio")
        assert breadth.points == 0


class TestRelationshipScore:
    """Relationship component."""

    def test_missing_data_is_neutral(self, calculator, now):
        """No CRM data keeps the neutral base of 50."""
        component = calculator.calculate(scoring_input(), now=now).components.relationship
        assert component.score == 50
        assert component.factors[0].name == "CS contact data"
        assert component.factors[0].impact == FactorImpact.NEUTRAL

    def test_full_crm_signals(self, calculator, now):
        """Contact 10 days ago (25) + 2 interactions (20) + champion (30)."""
        data = scoring_input(
            days_since_last_cs_contact=10,
            interaction_count_last_30_days=2,
            has_champion=True,
        )
        component = calculator.calculate(data, now=now).components.relationship
        assert component.score == 75
        assert component.data_points == 3

    def test_no_champion_is_negative(self, calculator, now):
        data = scoring_input(days_since_last_cs_contact=45, has_champion=False)
        component = calculator.calculate(data, now=now).components.relationship
        assert component.score == 0
        assert component.factors[-1].impact == FactorImpact.NEGATIVE


class TestSupportScore:
    """Support component."""

    def test_no_data_is_healthy(self, calculator, now):
        component = calculator.calculate(scoring_input(), now=now).components.support
        assert component.score == 80

    def test_tickets_criticals_and_csat(self, calculator, now):
        """3 open (70), 1 critical (-20 -> 50), CSAT 90 blended: 43."""
        data = scoring_input(open_tickets=3, critical_tickets=1, csat=90)
        component = calculator.calculate(data, now=now).components.support
        assert component.score == 43
        critical = next(f for f in component.factors if f.name == "Critical tickets")
        assert critical.points == -20

    def test_many_criticals_clamp_at_zero(self, calculator, now):
        data = scoring_input(open_tickets=5, critical_tickets=6)
        assert calculator.calculate(data, now=now).components.support.score == 0


class TestCommercialScore:
    """Commercial component."""

    def test_no_data_is_neutral(self, calculator, now):
        assert calculator.calculate(scoring_input(), now=now).components.commercial.score == 70

    def test_unknown_payment_status_is_ignored(self, calculator, now):
        data = scoring_input(payment_status=PaymentStatus.UNKNOWN)
        assert calculator.calculate(data, now=now).components.commercial.score == 70

    def test_overdue_close_to_renewal(self, calculator, now):
        """Overdue (40) blended with renewal in 25 days (10): 28."""
        data = scoring_input(payment_status=PaymentStatus.OVERDUE, days_to_renewal=25)
        assert calculator.calculate(data, now=now).components.commercial.score == 28

    @pytest.mark.parametrize(
        "days,expected",
        [(30, 46), (60, 50), (90, 52), (91, 54)],
    )
    def test_renewal_proximity_bands(self, calculator, now, days, expected):
        """Current payments (70) blended with each renewal band."""
        data = scoring_input(payment_status=PaymentStatus.CURRENT, days_to_renewal=days)
        assert calculator.calculate(data, now=now).components.commercial.score == expected


class TestComposite:
    """Composite score, grade, trend and explainability."""

    def test_dormant_account(self, now):
        """Nothing created and 40 idle days lands in grade F."""
        health = calculate_health_score(HealthScoringInput(**DormantAccountInputFactory()), now=now)

        assert health.components.adoption.score == 0
        assert health.components.engagement.score == 0
        assert health.score == 30
        assert health.score < 40
        assert health.grade == HealthGrade.F
        assert health.data_freshness == DataFreshness.MISSING

    def test_composite_matches_weighted_components(self, now):
        for _ in range(25):
            health = calculate_health_score(scoring_input(), now=now)
            weighted = sum(c.score * c.weight for _, c in health.components.items())
            assert health.score == int(weighted + 0.5)

    def test_scores_are_clamped(self, now):
        for _ in range(25):
            health = calculate_health_score(scoring_input(csat=100, open_tickets=0), now=now)
            assert 0 <= health.score <= 100
            for _, component in health.components.items():
                assert 0 <= component.score <= 100

    def test_five_components_in_order(self, now):
        health = calculate_health_score(scoring_input(), now=now)
        assert [name for name, _ in health.components.items()] == list(COMPONENT_NAMES)

    def test_deterministic(self, now):
        data = HealthScoringInput(**ActiveAccountInputFactory())
        first = calculate_health_score(data, now=now)
        second = calculate_health_score(data, now=now)
        assert first == second

    def test_deterministic_apart_from_timestamps(self, now):
        data = HealthScoringInput(**ActiveAccountInputFactory())
        first = calculate_health_score(data, now=now).model_dump()
        second = calculate_health_score(data, now=now + timedelta(hours=1)).model_dump()

        first.pop("calculated_at")
        second.pop("calculated_at")
        for payload in (first, second):
            for component in payload["components"].values():
                component.pop("last_updated")
        assert first == second

    def test_score_drop_names_weakest_component(self, now):
        """Previous 90, now 70: declining, blamed on the lowest component."""
        health = calculate_health_score(composite_70_input(previous_score=90), now=now)

        assert health.score == 70
        assert health.previous_score == 90
        assert health.score_change == -20
        assert health.trend == HealthTrend.DECLINING
        # adoption and relationship tie at 50; adoption comes first
        assert health.change_reason == "Score declined, primarily due to adoption (50/100)"

    def test_improvement_reason(self, now):
        health = calculate_health_score(composite_70_input(previous_score=60), now=now)
        assert health.trend == HealthTrend.IMPROVING
        assert health.change_reason.startswith("Score improved")
        assert "adoption (50/100)" in health.change_reason

    def test_small_change_is_stable(self, now):
        health = calculate_health_score(composite_70_input(previous_score=72), now=now)
        assert health.score_change == -2
        assert health.trend == HealthTrend.STABLE
        assert health.change_reason == "Score is stable"

    def test_no_previous_score(self, now):
        health = calculate_health_score(composite_70_input(), now=now)
        assert health.previous_score is None
        assert health.score_change == 0
        assert health.trend == HealthTrend.STABLE

    def test_serializes_camel_case(self, now):
        wire = calculate_health_score(composite_70_input(previous_score=90), now=now).to_wire()

        assert wire["scoreChange"] == -20
        assert wire["grade"] == "B"
        assert wire["trend"] == "declining"
        assert wire["dataFreshness"] == "fresh"
        assert set(wire["components"]) == set(COMPONENT_NAMES)
        assert "weightedScore" in wire["components"]["adoption"]


class TestSegmentOverrides:
    """Per-segment weights."""

    def test_enterprise_weights_relationship_more(self, now):
        data = composite_70_input(segment="enterprise")
        health = calculate_health_score(data, now=now)

        assert health.components.relationship.weight == pytest.approx(0.25)
        # 50*.25 + 100*.20 + 50*.25 + 80*.15 + 70*.15
        assert health.score == 68

    def test_unknown_segment_uses_defaults(self, now):
        health = calculate_health_score(composite_70_input(segment="mid-market"), now=now)
        assert health.components.adoption.weight == pytest.approx(0.30)
        assert health.score == 70


class TestHelpers:
    """Grade, trend, confidence and freshness helpers."""

    @pytest.mark.parametrize(
        "score,grade",
        [
            (100, HealthGrade.A),
            (80, HealthGrade.A),
            (79, HealthGrade.B),
            (65, HealthGrade.B),
            (64, HealthGrade.C),
            (50, HealthGrade.C),
            (49, HealthGrade.D),
            (35, HealthGrade.D),
            (34, HealthGrade.F),
            (0, HealthGrade.F),
        ],
    )
    def test_default_grade_thresholds(self, score, grade):
        assert score_to_grade(score, DEFAULT_HEALTH_CONFIG.grade_thresholds) == grade

    def test_custom_grade_thresholds(self):
        thresholds = GradeThresholds(A=90, B=75, C=60, D=40)
        assert score_to_grade(85, thresholds) == HealthGrade.B

    @pytest.mark.parametrize(
        "change,trend",
        [(5, HealthTrend.IMPROVING), (4, HealthTrend.STABLE), (-4, HealthTrend.STABLE), (-5, HealthTrend.DECLINING)],
    )
    def test_trend_threshold(self, change, trend):
        assert calculate_trend(change) == trend

    def test_confidence_counts_supplied_signals(self):
        assert calculate_confidence(scoring_input()) == 40
        assert calculate_confidence(scoring_input(has_champion=False, open_tickets=0)) == 60
        full = scoring_input(
            days_since_last_cs_contact=3,
            interaction_count_last_30_days=1,
            has_champion=True,
            open_tickets=0,
            payment_status=PaymentStatus.CURRENT,
            days_to_renewal=200,
        )
        assert calculate_confidence(full) == 100

    @pytest.mark.parametrize(
        "days,freshness",
        [
            (0, DataFreshness.FRESH),
            (1, DataFreshness.FRESH),
            (7, DataFreshness.STALE),
            (30, DataFreshness.OUTDATED),
            (31, DataFreshness.MISSING),
        ],
    )
    def test_data_freshness(self, days, freshness):
        assert determine_data_freshness(days) == freshness

    def test_calculator_instance_reusable(self, now):
        calculator = HealthScoreCalculator()
        a = calculator.calculate(composite_70_input(), now=now)
        b = calculator.calculate(HealthScoringInput(**DormantAccountInputFactory()), now=now)
        assert (a.score, b.score) == (70, 30)
