"""
Test factories for generating realistic test data.

Uses factory_boy for declarative test data generation.
"""

from .scoring import (
    NOW,
    HealthScoringInputFactory,
    ActiveAccountInputFactory,
    DormantAccountInputFactory,
    UsageMetricsFactory,
    ActivityRecordFactory,
    TenantActivityFactory,
    timeline,
)

__all__ = [
    "NOW",
    "HealthScoringInputFactory",
    "ActiveAccountInputFactory",
    "DormantAccountInputFactory",
    "UsageMetricsFactory",
    "ActivityRecordFactory",
    "TenantActivityFactory",
    "timeline",
]
