"""
Utility helpers shared across rowgraph packages.
"""

from .logging import configure_logging, get_logger, time_call
from .naming import camel_to_snake, entity_alias, field_alias

__all__ = [
    "camel_to_snake",
    "configure_logging",
    "entity_alias",
    "field_alias",
    "get_logger",
    "time_call",
]
