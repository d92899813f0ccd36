"""
The container types for block and log streaming.

All containers are frozen pydantic models: two blocks or logs with the same
fields are equal, and none of them can be modified once built.
"""

from .block import Block
from .filters import Filter, FilterOptions, TopicSelector
from .history import BlockAndLogHistory, BlockHistory, LogHistory
from .log import Log

__all__ = [
    "Block",
    "BlockAndLogHistory",
    "BlockHistory",
    "Filter",
    "FilterOptions",
    "Log",
    "LogHistory",
    "TopicSelector",
]
