"""
Data models for context items offered to the assistant.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ContextType(str, Enum):
    """Where a context item came from."""
    PAGE = "page"
    TAB = "tab"
    BOOKMARK = "bookmark"
    CLIPBOARD = "clipboard"
    SCREENSHOT = "screenshot"
    CUSTOM = "custom"


class ContextItem(BaseModel):
    """A candidate piece of information offered as selectable input to the AI.

    Attributes:
        id: Unique within one aggregation; encodes origin and source id
            (e.g. "tab-42") so later events can resolve back to it
        type: Origin of the item
        label: Human-readable title
        value: The content, or a resolvable URL
        metadata: Open bag of extra fields (url, title, favIconUrl, timestamps)
    """

    id: str
    type: ContextType
    label: str
    value: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def url(self) -> Optional[str]:
        """URL recorded in the metadata, if any."""
        return self.metadata.get("url")


def page_context_id(tab_id: int) -> str:
    return f"page-{tab_id}"


def tab_context_id(tab_id: int) -> str:
    return f"tab-{tab_id}"


def bookmark_context_id(node_id: str) -> str:
    return f"bookmark-{node_id}"


def history_context_id(item_id: str) -> str:
    return f"history-{item_id}"


def source_tab_id(context_id: str) -> Optional[int]:
    """
    Recover the originating tab id from a page or tab context id.

    Args:
        context_id: An id such as "page-12" or "tab-12"

    Returns:
        The tab id, or None if the id does not originate from a tab
    """
    prefix, _, suffix = context_id.partition("-")
    if prefix not in ("page", "tab") or not suffix:
        return None
    try:
        return int(suffix)
    except ValueError:
        return None
