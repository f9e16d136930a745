"""
Context items offered to the assistant and their aggregation from the browser.
"""

from tabpilot.context.aggregator import ContextAggregator, search_contexts
from tabpilot.context.models import ContextItem, ContextType, source_tab_id

__all__ = [
    "ContextAggregator",
    "ContextItem",
    "ContextType",
    "search_contexts",
    "source_tab_id",
]
