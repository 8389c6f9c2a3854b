"""
Shared Pydantic types for schema validation.

CamelModel: Base for every schema that crosses the presentation boundary.
Attributes are snake_case in Python, serialized as camelCase
(``model_dump(by_alias=True)``) because dashboard consumers read
``scoreChange``, ``arrAtRisk``, ``slaDeadline`` and so on. Both spellings
are accepted on input.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase wire names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    def to_wire(self) -> dict:
        """JSON-ready dict with camelCase keys and enum values."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
