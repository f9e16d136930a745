"""
Abstract base class for the browser capability surface.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable, Optional

from tabpilot.browser.models import (
    BookmarkNode,
    BrowserTab,
    HistoryItem,
    TabEvent,
    TabGroup,
    TabGroupColor,
)
from tabpilot.config import get_logger

logger = get_logger(__name__)

TabListener = Callable[..., None]


class CapabilityUnavailable(Exception):
    """A browser capability is absent or the permission for it was denied."""


class BrowserHost(ABC):
    """Abstract interface to the browser the assistant operates on.

    All query and mutation methods are coroutines; tab lifecycle
    notifications are delivered synchronously to registered listeners:

    - ACTIVATED(tab_id, window_id)
    - CREATED(tab)
    - REMOVED(tab_id)
    - UPDATED(tab_id, change_info, tab)
    """

    def __init__(self):
        self._listeners: dict[TabEvent, list[TabListener]] = defaultdict(list)

    # ------------------------------------------------------------------
    # Tabs and windows
    # ------------------------------------------------------------------

    @abstractmethod
    async def query_tabs(
        self,
        *,
        active: Optional[bool] = None,
        current_window: bool = False,
        window_id: Optional[int] = None,
        group_id: Optional[int] = None,
    ) -> list[BrowserTab]:
        """
        List tabs matching every given filter.

        Args:
            active: Only tabs whose active flag equals this value
            current_window: Only tabs in the focused window
            window_id: Only tabs in this window
            group_id: Only tabs in this tab group

        Returns:
            Matching tabs ordered by window, then index
        """
        pass

    @abstractmethod
    async def get_tab(self, tab_id: int) -> BrowserTab:
        """
        Get a tab by ID.

        Raises:
            KeyError: If no such tab exists
        """
        pass

    @abstractmethod
    async def get_current_window_id(self) -> int:
        """Get the ID of the focused window."""
        pass

    async def active_tab(self) -> Optional[BrowserTab]:
        """Get the active tab of the focused window, if any."""
        tabs = await self.query_tabs(active=True, current_window=True)
        return tabs[0] if tabs else None

    async def activate_tab(self, tab_id: int) -> None:
        """Make a tab active and focus its window."""
        raise CapabilityUnavailable("activate_tab")

    async def create_tab(self, url: str) -> BrowserTab:
        """Open a new tab on the given URL."""
        raise CapabilityUnavailable("create_tab")

    # ------------------------------------------------------------------
    # Tab groups
    # ------------------------------------------------------------------

    @abstractmethod
    async def query_tab_groups(self, *, window_id: Optional[int] = None) -> list[TabGroup]:
        """List tab groups, optionally restricted to one window."""
        pass

    @abstractmethod
    async def group_tabs(
        self,
        tab_ids: list[int],
        *,
        group_id: Optional[int] = None,
        window_id: Optional[int] = None,
    ) -> int:
        """
        Move tabs into a group.

        Args:
            tab_ids: Tabs to group
            group_id: Existing group to add the tabs to; a new group is
                created when omitted
            window_id: Window to create the new group in

        Returns:
            ID of the group the tabs ended up in
        """
        pass

    @abstractmethod
    async def update_group(
        self,
        group_id: int,
        *,
        title: Optional[str] = None,
        color: Optional[TabGroupColor] = None,
        collapsed: Optional[bool] = None,
    ) -> TabGroup:
        """Update properties of a tab group; omitted properties are unchanged."""
        pass

    @abstractmethod
    async def ungroup_tabs(self, tab_ids: list[int]) -> None:
        """Remove tabs from whatever group they are in."""
        pass

    # ------------------------------------------------------------------
    # Bookmarks, history, page content
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_bookmark_tree(self) -> list[BookmarkNode]:
        """Get the bookmark tree roots."""
        pass

    async def run_in_active_tab(self, extractor: str) -> Any:
        """
        Run a named content extractor in the active tab.

        Args:
            extractor: Name of the content-script action (e.g. "getPageContent")

        Returns:
            Whatever the extractor returns

        Raises:
            CapabilityUnavailable: If no content script can be reached
        """
        raise CapabilityUnavailable("run_in_active_tab")

    async def search_history(
        self, text: str = "", max_results: int = 100, start_time: float = 0
    ) -> list[HistoryItem]:
        """Search browsing history visited since start_time (ms since epoch)."""
        raise CapabilityUnavailable("search_history")

    async def capture_visible_tab(self) -> str:
        """Capture the visible area of the active tab as a PNG data URL."""
        raise CapabilityUnavailable("capture_visible_tab")

    # ------------------------------------------------------------------
    # Lifecycle notifications
    # ------------------------------------------------------------------

    def add_listener(self, event: TabEvent, listener: TabListener) -> None:
        """Register a listener for a tab lifecycle event."""
        self._listeners[event].append(listener)

    def remove_listener(self, event: TabEvent, listener: TabListener) -> None:
        """Unregister a listener; unknown listeners are ignored."""
        if listener in self._listeners[event]:
            self._listeners[event].remove(listener)

    def listener_count(self, event: TabEvent) -> int:
        """Number of listeners registered for an event."""
        return len(self._listeners[event])

    def emit(self, event: TabEvent, *args: Any) -> None:
        """Deliver a lifecycle notification to every registered listener."""
        for listener in list(self._listeners[event]):
            try:
                listener(*args)
            except Exception as e:
                logger.error(f"Listener for tab {event.value} event failed: {e}", exc_info=True)
