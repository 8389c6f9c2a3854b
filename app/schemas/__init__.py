from app.schemas.types import CamelModel

__all__ = ["CamelModel"]
