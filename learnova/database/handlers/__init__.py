"""Module for database handlers."""

from .catalog import CatalogHandler
from .token_usage import TokenUsageHandler

__all__ = [
    "CatalogHandler",
    "TokenUsageHandler",
]
