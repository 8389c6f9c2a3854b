"""
Health Score Schemas for the Customer Success Dashboard

Input signals, per-component explainability records, the composite
AccountHealth result and the scoring configuration.
"""

from pydantic import ConfigDict, Field, model_validator
from datetime import datetime
from typing import Optional, Union
from enum import Enum

from app.schemas.types import CamelModel


WEIGHT_SUM_TOLERANCE = 1e-9

COMPONENT_NAMES = ("adoption", "engagement", "relationship", "support", "commercial")


class HealthGrade(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


class HealthTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"
    UNKNOWN = "unknown"


class DataFreshness(str, Enum):
    # "stale" is fresher than "outdated"; consumers depend on these names
    FRESH = "fresh"
    STALE = "stale"
    OUTDATED = "outdated"
    MISSING = "missing"


class FactorImpact(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class PaymentStatus(str, Enum):
    CURRENT = "current"
    OVERDUE = "overdue"
    AT_RISK = "at_risk"
    CHURNED = "churned"
    UNKNOWN = "unknown"


# ============================================
# Scoring input
# ============================================


class HealthScoringInput(CamelModel):
    """
    Signals for one scoring pass. Built fresh per call, never persisted.

    Core usage counts are always present. Relationship, support and
    commercial signals are optional; absence means "no data", not zero.
    """

    # Adoption
    item_count: int = Field(0, ge=0)
    kanban_card_count: int = Field(0, ge=0)
    order_count: int = Field(0, ge=0)

    # Engagement
    total_users: int = Field(0, ge=0)
    active_users_last_7_days: int = Field(0, ge=0)
    active_users_last_30_days: int = Field(0, ge=0)
    days_since_last_activity: int = Field(0, ge=0)
    account_age_days: int = Field(0, ge=0)

    # Relationship
    days_since_last_cs_contact: Optional[int] = Field(None, ge=0, alias="daysSinceLastCSContact")
    interaction_count_last_30_days: Optional[int] = Field(None, ge=0)
    has_champion: Optional[bool] = None

    # Support
    open_tickets: Optional[int] = Field(None, ge=0)
    critical_tickets: Optional[int] = Field(None, ge=0)
    avg_response_time_hours: Optional[float] = Field(None, ge=0)
    csat: Optional[float] = Field(None, ge=0, le=100)

    # Commercial
    payment_status: Optional[PaymentStatus] = None
    days_to_renewal: Optional[int] = None

    # Context
    segment: Optional[str] = None
    tier: Optional[str] = None

    # Trend
    previous_score: Optional[int] = Field(None, ge=0, le=100)
    previous_score_date: Optional[datetime] = None


# ============================================
# Scoring output
# ============================================


class HealthFactor(CamelModel):
    """One explainable contribution to a component score."""

    name: str
    value: Union[int, float, str]
    impact: FactorImpact
    points: int = Field(..., description="Signed contribution; penalties are negative")
    explanation: str


class HealthComponent(CamelModel):
    """Score for a single health dimension with the factors behind it."""

    score: int = Field(..., ge=0, le=100)
    weight: float = Field(0.0, ge=0, le=1)
    weighted_score: float = 0.0
    trend: HealthTrend = HealthTrend.STABLE
    factors: list[HealthFactor] = Field(default_factory=list)
    data_points: int = 0
    last_updated: datetime


class HealthComponents(CamelModel):
    """The five scored dimensions, always all present."""

    adoption: HealthComponent
    engagement: HealthComponent
    relationship: HealthComponent
    support: HealthComponent
    commercial: HealthComponent

    def items(self) -> list[tuple[str, HealthComponent]]:
        """(name, component) pairs in the fixed declaration order."""
        return [(name, getattr(self, name)) for name in COMPONENT_NAMES]


class AccountHealth(CamelModel):
    """Composite health score with full explainability."""

    score: int = Field(..., ge=0, le=100)
    grade: HealthGrade
    trend: HealthTrend
    components: HealthComponents

    previous_score: Optional[int] = None
    score_change: int = 0
    change_reason: Optional[str] = None

    calculated_at: datetime
    data_freshness: DataFreshness
    confidence: int = Field(..., ge=0, le=100)


# ============================================
# Configuration
# ============================================


class HealthWeights(CamelModel):
    """Component weights, must sum to 1.0."""

    adoption: float = Field(..., ge=0, le=1)
    engagement: float = Field(..., ge=0, le=1)
    relationship: float = Field(..., ge=0, le=1)
    support: float = Field(..., ge=0, le=1)
    commercial: float = Field(..., ge=0, le=1)

    @model_validator(mode="after")
    def check_sum(self) -> "HealthWeights":
        total = sum(getattr(self, name) for name in COMPONENT_NAMES)
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"Component weights must sum to 1.0, got {total!r}")
        return self

    def for_component(self, name: str) -> float:
        return getattr(self, name)


class GradeThresholds(CamelModel):
    """Minimum composite score per grade. Anything below D is F."""

    a: int = Field(80, ge=0, le=100, alias="A")
    b: int = Field(65, ge=0, le=100, alias="B")
    c: int = Field(50, ge=0, le=100, alias="C")
    d: int = Field(35, ge=0, le=100, alias="D")

    @model_validator(mode="after")
    def check_descending(self) -> "GradeThresholds":
        if not (self.a > self.b > self.c > self.d):
            raise ValueError(
                f"Grade thresholds must be strictly descending (A>B>C>D), got "
                f"A={self.a} B={self.b} C={self.c} D={self.d}"
            )
        return self


class SegmentOverride(CamelModel):
    """Per-segment replacement for weights and/or thresholds."""

    weights: Optional[HealthWeights] = None
    grade_thresholds: Optional[GradeThresholds] = None


class HealthScoringConfig(CamelModel):
    """Process-wide scoring configuration. Loaded once, never mutated."""

    model_config = ConfigDict(frozen=True)

    weights: HealthWeights
    grade_thresholds: GradeThresholds = Field(default_factory=GradeThresholds)
    segment_overrides: dict[str, SegmentOverride] = Field(default_factory=dict)
