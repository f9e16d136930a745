"""
Browser capability surface: the tabs, groups, bookmarks and history the
assistant reads and mutates, plus tab lifecycle notifications.
"""

from tabpilot.browser.base import BrowserHost, CapabilityUnavailable
from tabpilot.browser.memory import InMemoryBrowser
from tabpilot.browser.models import (
    TAB_GROUP_NONE,
    BookmarkNode,
    BrowserTab,
    HistoryItem,
    TabChangeInfo,
    TabEvent,
    TabGroup,
    TabGroupColor,
)

__all__ = [
    "TAB_GROUP_NONE",
    "BookmarkNode",
    "BrowserHost",
    "BrowserTab",
    "CapabilityUnavailable",
    "HistoryItem",
    "InMemoryBrowser",
    "TabChangeInfo",
    "TabEvent",
    "TabGroup",
    "TabGroupColor",
]
