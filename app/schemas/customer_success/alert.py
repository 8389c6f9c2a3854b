"""
Alert Schemas for the Customer Success Dashboard

Computed alert content, the rule engine's input, and the lifecycle state
(status, assignment, notes) that survives recomputation.
"""

from pydantic import Field
from datetime import datetime
from typing import Optional, Any
from enum import Enum

from app.schemas.types import CamelModel
from app.schemas.customer_success.health_score import AccountHealth
from app.schemas.customer_success.metrics import UsageMetrics, CommercialMetrics, SupportMetrics


class AlertType(str, Enum):
    CHURN_RISK = "churn_risk"
    EXPANSION_OPPORTUNITY = "expansion_opportunity"
    ONBOARDING_STALLED = "onboarding_stalled"
    USAGE_DECLINE = "usage_decline"
    CHAMPION_LEFT = "champion_left"
    SUPPORT_ESCALATION = "support_escalation"
    PAYMENT_OVERDUE = "payment_overdue"
    RENEWAL_APPROACHING = "renewal_approaching"
    LOW_ENGAGEMENT = "low_engagement"
    HEALTH_DROP = "health_drop"


class AlertCategory(str, Enum):
    RISK = "risk"
    OPPORTUNITY = "opportunity"
    ACTION_REQUIRED = "action_required"
    INFORMATIONAL = "informational"


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


SEVERITY_RANK = {
    AlertSeverity.CRITICAL: 0,
    AlertSeverity.HIGH: 1,
    AlertSeverity.MEDIUM: 2,
    AlertSeverity.LOW: 3,
}


class AlertStatus(str, Enum):
    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    SNOOZED = "snoozed"


class SLAStatus(str, Enum):
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    BREACHED = "breached"
    NONE = "none"


class OutcomeResult(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    NOT_APPLICABLE = "not_applicable"


class AlertAction(str, Enum):
    ACKNOWLEDGED = "acknowledged"
    SNOOZED = "snoozed"
    RESOLVED = "resolved"
    ASSIGNED = "assigned"
    NOTE_ADDED = "note_added"
    REOPENED = "reopened"
    STATUS_CHANGED = "status_changed"


# ============================================
# Lifecycle records
# ============================================


class AlertOutcome(CamelModel):
    result: OutcomeResult
    notes: Optional[str] = None
    resolved_by: Optional[str] = None


class AlertNote(CamelModel):
    """Free-text note attached to an alert. Append-only."""

    id: str
    alert_id: str
    content: str
    created_by: str
    created_at: datetime


class AlertNoteCreate(CamelModel):
    content: str = Field(..., min_length=1)
    created_by: str = "unknown"


class AlertActionLog(CamelModel):
    """Audit entry for one applied lifecycle update."""

    id: str
    alert_id: str
    action: AlertAction
    actor: Optional[str] = None
    timestamp: datetime
    details: dict[str, Any] = Field(default_factory=dict)


# ============================================
# Alert
# ============================================


class Alert(CamelModel):
    """
    One triggered rule for one account.

    Content fields (severity, evidence, ...) are recomputed every pass.
    Lifecycle fields (status, acknowledgement, notes, ...) come from the
    lifecycle store and are merged in by alert id.
    """

    id: str
    account_id: str
    account_name: Optional[str] = None

    # Classification
    type: AlertType
    category: AlertCategory
    severity: AlertSeverity

    # Content
    title: str
    description: str
    evidence: list[str] = Field(default_factory=list)

    # Recommended action
    suggested_action: str
    playbook: Optional[str] = None

    # Ownership
    owner_id: Optional[str] = None
    owner_name: Optional[str] = None
    acknowledged_by: Optional[str] = None
    resolved_by: Optional[str] = None
    snoozed_until: Optional[datetime] = None
    snooze_reason: Optional[str] = None

    # SLA
    sla_deadline: Optional[datetime] = None
    sla_status: SLAStatus = SLAStatus.NONE

    # Lifecycle
    status: AlertStatus = AlertStatus.OPEN
    created_at: datetime
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    outcome: Optional[AlertOutcome] = None
    notes: list[AlertNote] = Field(default_factory=list)

    # Impact
    arr_at_risk: Optional[float] = None


class AlertGenerationInput(CamelModel):
    """Everything the rule engine may look at for one account."""

    account_id: str
    account_name: str

    health: Optional[AccountHealth] = None
    previous_health: Optional[AccountHealth] = None

    usage: Optional[UsageMetrics] = None
    commercial: Optional[CommercialMetrics] = None
    support: Optional[SupportMetrics] = None

    account_age_days: int = Field(0, ge=0)
    tier: Optional[str] = None
    segment: Optional[str] = None
    arr: Optional[float] = None
    owner_id: Optional[str] = None
    owner_name: Optional[str] = None


# ============================================
# Lifecycle store contract
# ============================================


class AlertStateUpdate(CamelModel):
    """
    Partial lifecycle update. Only fields that are set overwrite stored
    values; a note is appended.
    """

    status: Optional[AlertStatus] = None
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    snoozed_until: Optional[datetime] = None
    snooze_reason: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    outcome: Optional[AlertOutcome] = None
    assigned_to: Optional[str] = None
    assigned_to_name: Optional[str] = None
    note: Optional[AlertNoteCreate] = None


class StoredAlertState(CamelModel):
    """Mutable lifecycle fields for one alert id."""

    alert_id: str
    status: AlertStatus = AlertStatus.OPEN
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    snoozed_until: Optional[datetime] = None
    snooze_reason: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    outcome: Optional[AlertOutcome] = None
    owner_id: Optional[str] = None
    owner_name: Optional[str] = None
    notes: list[AlertNote] = Field(default_factory=list)
    first_seen_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AlertUpdateResult(CamelModel):
    alert_id: str
    updated_fields: list[str] = Field(default_factory=list)
    note: Optional[AlertNote] = None
    state: StoredAlertState


# ============================================
# Portfolio views
# ============================================


class AlertsSummary(CamelModel):
    alerts: list[Alert] = Field(default_factory=list)
    total_count: int = 0
    critical_count: int = 0
    high_count: int = 0
    medium_count: int = 0
    low_count: int = 0
