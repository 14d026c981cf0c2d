"""Join path resolution and processing order planning."""

from datasubjects.core.joins.ordering import ProcessingOrderPlanner
from datasubjects.core.joins.resolver import JoinPathResolver

__all__ = [
    "JoinPathResolver",
    "ProcessingOrderPlanner",
]
