"""
Data models for the browser state the assistant reads and mutates.

These mirror the shapes the browser hands back for tabs, tab groups,
bookmarks and history entries. Optional fields are optional because the
browser omits them (e.g. a tab without an id, or a folder without a URL).
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


TAB_GROUP_NONE = -1


class TabGroupColor(str, Enum):
    """Available colors for browser tab groups."""
    GREY = "grey"
    BLUE = "blue"
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"
    PINK = "pink"
    PURPLE = "purple"
    CYAN = "cyan"
    ORANGE = "orange"


class TabEvent(str, Enum):
    """Tab lifecycle notifications the browser dispatches."""
    ACTIVATED = "activated"
    CREATED = "created"
    REMOVED = "removed"
    UPDATED = "updated"


class BrowserTab(BaseModel):
    """A browser tab as reported by the host.

    Attributes:
        id: Platform tab id (missing for some special tabs)
        index: Position of the tab within its window
        window_id: Window containing this tab
        title: Tab title
        url: Tab URL
        fav_icon_url: URL of the tab's favicon
        active: Whether this is the active tab of its window
        group_id: Tab group id, or TAB_GROUP_NONE
    """

    id: Optional[int] = None
    index: int = 0
    window_id: int = 1
    title: Optional[str] = None
    url: Optional[str] = None
    fav_icon_url: Optional[str] = None
    active: bool = False
    group_id: int = TAB_GROUP_NONE


class TabGroup(BaseModel):
    """A browser-native named, collapsible cluster of tabs within one window."""

    id: int
    window_id: int
    title: Optional[str] = None
    color: TabGroupColor = TabGroupColor.GREY
    collapsed: bool = False


class TabChangeInfo(BaseModel):
    """Properties of a tab that changed in an `updated` notification."""

    status: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    fav_icon_url: Optional[str] = None
    pinned: Optional[bool] = None
    audible: Optional[bool] = None

    def is_meaningful(self) -> bool:
        """True if the change affects what the assistant shows for the tab."""
        return bool(self.title or self.url or self.status == "complete")


class BookmarkNode(BaseModel):
    """A node of the bookmark tree; folders carry children, bookmarks a URL."""

    id: str
    title: str = ""
    url: Optional[str] = None
    children: list[BookmarkNode] = Field(default_factory=list)

    @field_validator('children', mode='before')
    @classmethod
    def convert_none_to_empty_list(cls, v):
        """Convert None to empty list for children field."""
        return v if v is not None else []


class HistoryItem(BaseModel):
    """A browsing history entry."""

    id: str
    url: Optional[str] = None
    title: Optional[str] = None
    last_visit_time: Optional[float] = None  # Milliseconds since epoch
