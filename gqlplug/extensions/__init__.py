from .base_extension import Extension
from .context import CustomContext
from .query_complexity_validator import QueryComplexityValidator

__all__ = [
    "Extension",
    "CustomContext",
    "QueryComplexityValidator",
]
