"""
Customer Success Pydantic Schemas

Scoring input and output, alerts and their lifecycle state, and the
portfolio pass results.
"""

from app.schemas.customer_success.health_score import (
    HealthGrade, HealthTrend, DataFreshness, FactorImpact, PaymentStatus,
    HealthScoringInput, HealthFactor, HealthComponent, HealthComponents, AccountHealth,
    HealthWeights, GradeThresholds, SegmentOverride, HealthScoringConfig,
)
from app.schemas.customer_success.metrics import (
    ActivityDataPoint, FeatureAdoption, UsageOutcomes, UsageMetrics,
    CommercialMetrics, SupportMetrics,
    ActivityKind, ActivityRecord, RelationshipSignals, TenantActivity,
)
from app.schemas.customer_success.alert import (
    AlertType, AlertCategory, AlertSeverity, AlertStatus, SLAStatus, OutcomeResult, AlertAction,
    SEVERITY_RANK,
    AlertOutcome, AlertNote, AlertNoteCreate, AlertActionLog,
    Alert, AlertGenerationInput,
    AlertStateUpdate, StoredAlertState, AlertUpdateResult, AlertsSummary,
)
from app.schemas.customer_success.playbook import PlaybookTask, PlaybookDefinition
from app.schemas.customer_success.portfolio import AccountSnapshot, PortfolioResult

__all__ = [
    # Health scoring
    "HealthGrade",
    "HealthTrend",
    "DataFreshness",
    "FactorImpact",
    "PaymentStatus",
    "HealthScoringInput",
    "HealthFactor",
    "HealthComponent",
    "HealthComponents",
    "AccountHealth",
    "HealthWeights",
    "GradeThresholds",
    "SegmentOverride",
    "HealthScoringConfig",
    # Metrics
    "ActivityDataPoint",
    "FeatureAdoption",
    "UsageOutcomes",
    "UsageMetrics",
    "CommercialMetrics",
    "SupportMetrics",
    "ActivityKind",
    "ActivityRecord",
    "RelationshipSignals",
    "TenantActivity",
    # Alerts
    "AlertType",
    "AlertCategory",
    "AlertSeverity",
    "AlertStatus",
    "SLAStatus",
    "OutcomeResult",
    "AlertAction",
    "SEVERITY_RANK",
    "AlertOutcome",
    "AlertNote",
    "AlertNoteCreate",
    "AlertActionLog",
    "Alert",
    "AlertGenerationInput",
    "AlertStateUpdate",
    "StoredAlertState",
    "AlertUpdateResult",
    "AlertsSummary",
    # Playbooks
    "PlaybookTask",
    "PlaybookDefinition",
    # Portfolio
    "AccountSnapshot",
    "PortfolioResult",
]
