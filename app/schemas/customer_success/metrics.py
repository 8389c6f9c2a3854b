"""
Usage, commercial and support metric schemas.

These are the already-aggregated records the alert engine reads, plus the
raw tenant activity shape the reference aggregator consumes.
"""

from pydantic import Field
from datetime import datetime
from typing import Optional, Literal
from enum import Enum

from app.schemas.types import CamelModel
from app.schemas.customer_success.health_score import PaymentStatus


class ActivityDataPoint(CamelModel):
    """One week of product activity."""

    date: str = Field(..., description="ISO date of the week start")
    items: int = Field(0, ge=0)
    kanban_cards: int = Field(0, ge=0)
    orders: int = Field(0, ge=0)
    active_users: int = Field(0, ge=0)

    @property
    def total_actions(self) -> int:
        return self.items + self.kanban_cards + self.orders


class FeatureAdoption(CamelModel):
    """Per-feature adoption, 0-100 each."""

    items: int = 0
    kanban: int = 0
    ordering: int = 0
    receiving: int = 0
    reporting: int = 0


class UsageOutcomes(CamelModel):
    orders_placed: int = 0
    orders_received: int = 0
    stockouts_prevented: Optional[int] = None
    reorder_cadence_days: Optional[int] = None


class UsageMetrics(CamelModel):
    """Product adoption metrics for one account."""

    item_count: int = Field(0, ge=0)
    kanban_card_count: int = Field(0, ge=0)
    order_count: int = Field(0, ge=0)

    total_users: int = Field(0, ge=0)
    active_users_last_7_days: int = Field(0, ge=0)
    active_users_last_30_days: int = Field(0, ge=0)

    days_active: int = 0
    days_since_last_activity: int = Field(0, ge=0)
    avg_actions_per_day: float = 0.0

    feature_adoption: FeatureAdoption = Field(default_factory=FeatureAdoption)
    outcomes: UsageOutcomes = Field(default_factory=UsageOutcomes)

    # Oldest week first
    activity_timeline: list[ActivityDataPoint] = Field(default_factory=list)

    time_to_first_item: Optional[int] = None
    time_to_first_kanban: Optional[int] = None
    time_to_first_order: Optional[int] = None
    time_to_live: Optional[int] = None

    @property
    def total_activity(self) -> int:
        return self.item_count + self.kanban_card_count + self.order_count


class CommercialMetrics(CamelModel):
    """Billing / contract metrics from the commercial enrichment source."""

    plan: str = "unknown"
    arr: Optional[float] = None
    mrr: Optional[float] = None
    currency: str = "USD"
    source: Optional[Literal["stripe", "hubspot", "account"]] = None

    contract_start_date: Optional[str] = None
    contract_end_date: Optional[str] = None
    renewal_date: Optional[str] = None
    days_to_renewal: Optional[int] = None
    term_months: Optional[int] = None
    auto_renew: Optional[bool] = None

    seat_limit: Optional[int] = None
    seat_usage: Optional[int] = None
    seat_utilization: Optional[float] = None

    payment_status: PaymentStatus = PaymentStatus.UNKNOWN
    last_payment_date: Optional[str] = None
    overdue_amount: Optional[float] = None


class SupportMetrics(CamelModel):
    """Support desk metrics for one account."""

    open_tickets: int = 0
    tickets_last_30_days: int = 0
    tickets_last_90_days: int = 0

    critical_tickets: int = 0
    high_tickets: int = 0
    normal_tickets: int = 0

    avg_first_response_hours: Optional[float] = None
    avg_resolution_hours: Optional[float] = None

    reopen_rate: Optional[float] = None
    escalation_count: int = 0

    csat: Optional[float] = Field(None, ge=0, le=100)
    nps: Optional[float] = Field(None, ge=-100, le=100)
    last_survey_date: Optional[str] = None


# ============================================
# Raw tenant activity (aggregator input)
# ============================================


class ActivityKind(str, Enum):
    ITEM = "item"
    KANBAN_CARD = "kanban_card"
    ORDER = "order"


class ActivityRecord(CamelModel):
    """A single item / kanban card / order created in a tenant."""

    kind: ActivityKind
    author: Optional[str] = None
    created_at: Optional[datetime] = None


class RelationshipSignals(CamelModel):
    """CRM-derived relationship signals, when a CRM match exists."""

    days_since_last_cs_contact: Optional[int] = Field(None, ge=0, alias="daysSinceLastCSContact")
    interaction_count_last_30_days: Optional[int] = Field(None, ge=0)
    has_champion: Optional[bool] = None


class TenantActivity(CamelModel):
    """
    Everything the aggregator knows about one account.

    Produced by the (external) fetch layer after tenant-to-account mapping.
    Enrichment blocks are None when the CRM/billing lookup found nothing or
    was unavailable.
    """

    account_id: str
    account_name: Optional[str] = None
    tenant_id: Optional[str] = None
    created_at: datetime

    records: list[ActivityRecord] = Field(default_factory=list)

    segment: Optional[str] = None
    tier: Optional[str] = None
    owner_id: Optional[str] = None
    owner_name: Optional[str] = None
    arr: Optional[float] = None

    relationship: Optional[RelationshipSignals] = None
    commercial: Optional[CommercialMetrics] = None
    support: Optional[SupportMetrics] = None

    @property
    def display_name(self) -> str:
        if self.account_name:
            return self.account_name
        return f"Org {(self.tenant_id or self.account_id)[:8]}"
