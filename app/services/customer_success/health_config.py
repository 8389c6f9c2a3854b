"""
Health Scoring Configuration

Default weights and grade thresholds, per-segment overrides, and loading a
replacement config from a JSON file at startup.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from app.exceptions import ConfigurationError, ErrorCode
from app.schemas.customer_success.health_score import (
    GradeThresholds,
    HealthScoringConfig,
    HealthWeights,
    SegmentOverride,
)

logger = logging.getLogger(__name__)


DEFAULT_HEALTH_CONFIG = HealthScoringConfig(
    weights=HealthWeights(
        adoption=0.30,  # Product usage depth
        engagement=0.25,  # User activity breadth
        relationship=0.15,  # CS touch recency
        support=0.15,
        commercial=0.15,  # Payment/renewal health
    ),
    grade_thresholds=GradeThresholds(A=80, B=65, C=50, D=35),
    segment_overrides={
        "enterprise": SegmentOverride(
            weights=HealthWeights(
                adoption=0.25,
                engagement=0.20,
                relationship=0.25,  # Relationship matters more for enterprise
                support=0.15,
                commercial=0.15,
            ),
        ),
        "smb": SegmentOverride(
            weights=HealthWeights(
                adoption=0.35,  # Usage matters more for SMB
                engagement=0.30,
                relationship=0.10,
                support=0.10,
                commercial=0.15,
            ),
        ),
    },
)


def resolve_segment_config(config: HealthScoringConfig, segment: Optional[str]) -> HealthScoringConfig:
    """
    Effective config for an account's segment.

    An override replaces the weight map and/or the thresholds wholesale;
    whatever it leaves unset is inherited from the base config.
    """
    if not segment:
        return config

    override = config.segment_overrides.get(segment)
    if override is None:
        return config

    return config.model_copy(
        update={
            "weights": override.weights or config.weights,
            "grade_thresholds": override.grade_thresholds or config.grade_thresholds,
        }
    )


def load_health_config(path: Optional[str] = None) -> HealthScoringConfig:
    """
    Load scoring config from a JSON file, falling back to defaults.

    The file may be partial: missing top-level keys come from the defaults.
    Invalid weights or thresholds fail here, at startup, rather than during
    a scoring pass.
    """
    if not path:
        return DEFAULT_HEALTH_CONFIG

    config_path = Path(path)
    try:
        raw = json.loads(config_path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            f"Cannot read health config {config_path}: {e}",
            code=ErrorCode.CONFIG_FILE_UNREADABLE,
        ) from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Health config {config_path} must be a JSON object")

    merged = DEFAULT_HEALTH_CONFIG.model_dump(by_alias=True)
    merged.update(raw)

    try:
        config = HealthScoringConfig.model_validate(merged)
    except ValidationError as e:
        code = ErrorCode.INVALID_CONFIG
        text = str(e)
        if "weights must sum" in text:
            code = ErrorCode.INVALID_WEIGHTS
        elif "strictly descending" in text:
            code = ErrorCode.INVALID_THRESHOLDS
        raise ConfigurationError(f"Invalid health config {config_path}: {e}", code=code) from e

    logger.info(
        "Loaded health config from %s (%d segment overrides)",
        config_path,
        len(config.segment_overrides),
    )
    return config


@lru_cache()
def get_health_config() -> HealthScoringConfig:
    """Process-wide config, loaded once from settings."""
    from app.config import settings

    return load_health_config(settings.HEALTH_CONFIG_FILE)
