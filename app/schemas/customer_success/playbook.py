"""
Playbook Schemas

Structured response plans recommended for alert types.
"""

from pydantic import Field
from typing import Optional

from app.schemas.types import CamelModel
from app.schemas.customer_success.alert import AlertType


class PlaybookTask(CamelModel):
    title: str
    description: Optional[str] = None


class PlaybookDefinition(CamelModel):
    id: str
    name: str
    description: str
    alert_types: list[AlertType] = Field(default_factory=list)
    estimated_days: int = Field(..., ge=1)
    tasks: list[PlaybookTask] = Field(default_factory=list)
