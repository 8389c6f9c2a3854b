"""
Customer Success Services

Health scoring, alert generation, alert lifecycle storage and the
portfolio pass that ties them together.
"""

from app.services.customer_success.health_calculator import HealthScoreCalculator, calculate_health_score
from app.services.customer_success.health_config import (
    DEFAULT_HEALTH_CONFIG,
    get_health_config,
    load_health_config,
    resolve_segment_config,
)
from app.services.customer_success.alert_engine import ALERT_RULES, AlertRule, generate_alerts
from app.services.customer_success.alert_store import (
    AlertStateStore,
    InMemoryAlertStateStore,
    SqlAlchemyAlertStateStore,
    get_alert_store,
    merge_alert_state,
)
from app.services.customer_success.sla import calculate_sla, refresh_sla_status
from app.services.customer_success.portfolio import PortfolioScorer, filter_alerts, summarize_alerts

__all__ = [
    "HealthScoreCalculator",
    "calculate_health_score",
    "DEFAULT_HEALTH_CONFIG",
    "get_health_config",
    "load_health_config",
    "resolve_segment_config",
    "ALERT_RULES",
    "AlertRule",
    "generate_alerts",
    "AlertStateStore",
    "InMemoryAlertStateStore",
    "SqlAlchemyAlertStateStore",
    "get_alert_store",
    "merge_alert_state",
    "calculate_sla",
    "refresh_sla_status",
    "PortfolioScorer",
    "filter_alerts",
    "summarize_alerts",
]
