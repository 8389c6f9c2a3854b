"""
Error taxonomy for the health scoring and alerting engine.

The scoring and alert engines never raise for well-typed input: missing
data degrades to neutral defaults. Exceptions here cover the edges:

- ConfigurationError: invalid scoring config or settings, raised at load time
- AlertRuleError: a single alert rule blew up; logged and skipped by the engine
- AlertStoreError: the lifecycle store backend failed to persist
- AggregationError: a tenant activity record could not be turned into input
"""

from typing import Optional, Dict, Any
from enum import Enum
import uuid
from datetime import datetime, timezone


def _new_trace_id() -> str:
    return str(uuid.uuid4())[:12]


class ErrorCode(str, Enum):
    """Standardized error codes for the engine."""

    # Configuration
    INVALID_CONFIG = "CFG_001"
    INVALID_WEIGHTS = "CFG_002"
    INVALID_THRESHOLDS = "CFG_003"
    CONFIG_FILE_UNREADABLE = "CFG_004"

    # Alerting
    RULE_EVALUATION_FAILED = "ALR_001"

    # Lifecycle store
    STORE_WRITE_FAILED = "STO_001"
    STORE_READ_FAILED = "STO_002"

    # Aggregation
    MALFORMED_ACTIVITY = "AGG_001"


class CSException(Exception):
    """
    Base exception for the customer success engine.

    Usage:
        raise CSException(
            code=ErrorCode.INVALID_CONFIG,
            detail="Weights must sum to 1.0",
        )
    """

    def __init__(
        self,
        code: ErrorCode,
        detail: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.detail = detail
        self.context = context or {}
        self.trace_id = _new_trace_id()
        self.timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        super().__init__(detail)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable representation for logs and CLI output."""
        payload = {
            "code": self.code.value,
            "detail": self.detail,
            "timestamp": self.timestamp,
            "trace_id": self.trace_id,
        }
        if self.context:
            payload["context"] = self.context
        return payload


class ConfigurationError(CSException):
    """Scoring configuration or settings are invalid."""

    def __init__(self, detail: str, code: ErrorCode = ErrorCode.INVALID_CONFIG):
        super().__init__(code=code, detail=detail)


class AlertRuleError(CSException):
    """An alert rule raised while being evaluated for one account."""

    def __init__(self, rule_type: str, account_id: str, cause: BaseException):
        self.rule_type = rule_type
        self.account_id = account_id
        self.cause = cause
        super().__init__(
            code=ErrorCode.RULE_EVALUATION_FAILED,
            detail=f"Alert rule {rule_type} failed for account {account_id}: {type(cause).__name__}: {cause}",
            context={"rule_type": rule_type, "account_id": account_id},
        )


class AlertStoreError(CSException):
    """The lifecycle store backend failed."""

    def __init__(self, alert_id: str, detail: str, code: ErrorCode = ErrorCode.STORE_WRITE_FAILED):
        self.alert_id = alert_id
        super().__init__(code=code, detail=detail, context={"alert_id": alert_id})


class AggregationError(CSException):
    """A tenant activity record could not be aggregated."""

    def __init__(self, tenant_id: str, detail: str):
        self.tenant_id = tenant_id
        super().__init__(
            code=ErrorCode.MALFORMED_ACTIVITY,
            detail=detail,
            context={"tenant_id": tenant_id},
        )
