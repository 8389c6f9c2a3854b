"""Portfolio pass results."""

from pydantic import Field
from datetime import datetime
from typing import Optional

from app.schemas.types import CamelModel
from app.schemas.customer_success.alert import Alert, AlertSeverity
from app.schemas.customer_success.health_score import AccountHealth
from app.schemas.customer_success.metrics import UsageMetrics


class AccountSnapshot(CamelModel):
    """One scored account with its merged alerts."""

    account_id: str
    account_name: str
    segment: Optional[str] = None
    tier: Optional[str] = None
    owner_name: Optional[str] = None
    health: AccountHealth
    usage: UsageMetrics
    alerts: list[Alert] = Field(default_factory=list)

    @property
    def critical_alert_count(self) -> int:
        return sum(1 for alert in self.alerts if alert.severity == AlertSeverity.CRITICAL)


class PortfolioResult(CamelModel):
    accounts: list[AccountSnapshot] = Field(default_factory=list)
    alerts: list[Alert] = Field(default_factory=list)
    total_accounts: int = 0
    skipped_accounts: int = 0
    generated_at: datetime
