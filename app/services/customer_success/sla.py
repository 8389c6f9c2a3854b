"""
SLA evaluation for alerts.

An alert's SLA window runs from createdAt (first seen) to slaDeadline. The
last quarter of the window is "at risk"; past the deadline it is breached.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from app.schemas.customer_success.alert import Alert, SLAStatus

AT_RISK_PERCENT = 25

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * 60


@dataclass
class SLAInfo:
    deadline: Optional[datetime]
    status: SLAStatus
    time_remaining: str
    hours_remaining: float
    percent_remaining: float


def _format_remaining(remaining_seconds: float) -> str:
    if remaining_seconds <= 0:
        hours = math.floor(abs(remaining_seconds) / SECONDS_PER_HOUR)
        if hours >= 24:
            return f"{hours // 24}d overdue"
        return f"{hours}h overdue"

    hours = math.floor(remaining_seconds / SECONDS_PER_HOUR)
    minutes = math.floor((remaining_seconds % SECONDS_PER_HOUR) / SECONDS_PER_MINUTE)
    if hours >= 24:
        return f"{hours // 24}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def calculate_sla(
    sla_deadline: Optional[datetime],
    created_at: datetime,
    now: Optional[datetime] = None,
) -> SLAInfo:
    """
    Where an alert stands against its SLA.

    Args:
        sla_deadline: Response deadline, or None when the alert has no SLA
        created_at: Start of the SLA window
        now: Clock override

    Returns:
        SLAInfo with status, human-readable time remaining, hours remaining
        and the percentage of the window left (0-100)
    """
    if sla_deadline is None:
        return SLAInfo(
            deadline=None,
            status=SLAStatus.NONE,
            time_remaining="No SLA",
            hours_remaining=math.inf,
            percent_remaining=100,
        )

    now = now or datetime.now(timezone.utc)
    total_seconds = (sla_deadline - created_at).total_seconds()
    remaining_seconds = (sla_deadline - now).total_seconds()

    if total_seconds > 0:
        percent_remaining = max(0.0, min(100.0, remaining_seconds / total_seconds * 100))
    else:
        percent_remaining = 100.0 if remaining_seconds > 0 else 0.0

    if remaining_seconds <= 0:
        status = SLAStatus.BREACHED
    elif percent_remaining <= AT_RISK_PERCENT:
        status = SLAStatus.AT_RISK
    else:
        status = SLAStatus.ON_TRACK

    return SLAInfo(
        deadline=sla_deadline,
        status=status,
        time_remaining=_format_remaining(remaining_seconds),
        hours_remaining=remaining_seconds / SECONDS_PER_HOUR,
        percent_remaining=percent_remaining,
    )


def refresh_sla_status(alert: Alert, now: Optional[datetime] = None) -> Alert:
    """Copy of the alert with sla_status recomputed against now."""
    info = calculate_sla(alert.sla_deadline, alert.created_at, now)
    return alert.model_copy(update={"sla_status": info.status})
