"""
In-memory browser host.

Holds windows, tabs, tab groups, bookmarks and history in plain Python
structures and fires lifecycle notifications when they change. Used by
the test suite and for running the engine without a real browser.
"""

from typing import Any, Optional

from tabpilot.browser.base import BrowserHost, CapabilityUnavailable
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


class InMemoryBrowser(BrowserHost):
    """Browser host backed by in-process state."""

    def __init__(
        self,
        bookmarks: Optional[list[BookmarkNode]] = None,
        history: Optional[list[HistoryItem]] = None,
        current_window_id: int = 1,
    ):
        super().__init__()
        self.tabs: dict[int, BrowserTab] = {}
        self.groups: dict[int, TabGroup] = {}
        self.bookmarks: list[BookmarkNode] = bookmarks or []
        self.history: list[HistoryItem] = history or []
        self.page_contents: dict[int, str] = {}
        self.screenshot: Optional[str] = None
        self.current_window_id = current_window_id
        self._next_tab_id = 1
        self._next_group_id = 100

    # ------------------------------------------------------------------
    # Direct state manipulation (simulates the user acting in the browser)
    # ------------------------------------------------------------------

    def open_tab(
        self,
        url: Optional[str],
        title: Optional[str] = None,
        window_id: Optional[int] = None,
        active: bool = False,
        tab_id: Optional[int] = None,
        notify: bool = True,
    ) -> BrowserTab:
        """Add a tab, optionally making it active, and fire CREATED."""
        if tab_id is None:
            tab_id = self._next_tab_id
        self._next_tab_id = max(self._next_tab_id, tab_id) + 1
        window_id = window_id or self.current_window_id
        index = sum(1 for t in self.tabs.values() if t.window_id == window_id)
        tab = BrowserTab(id=tab_id, index=index, window_id=window_id, title=title, url=url)
        self.tabs[tab_id] = tab
        if notify:
            self.emit(TabEvent.CREATED, tab)
        if active:
            self.set_active(tab_id, notify=notify)
        return tab

    def set_active(self, tab_id: int, notify: bool = True) -> None:
        """Make a tab the active tab of its window and fire ACTIVATED."""
        tab = self.tabs[tab_id]
        for other in self.tabs.values():
            if other.window_id == tab.window_id:
                other.active = other.id == tab_id
        if notify:
            self.emit(TabEvent.ACTIVATED, tab_id, tab.window_id)

    def change_tab(self, tab_id: int, notify: bool = True, **changes: Any) -> None:
        """Apply changes to a tab and fire UPDATED with the change info."""
        tab = self.tabs[tab_id]
        info = TabChangeInfo(**changes)
        for field in ("url", "title", "fav_icon_url"):
            value = getattr(info, field)
            if value is not None:
                setattr(tab, field, value)
        if notify:
            self.emit(TabEvent.UPDATED, tab_id, info, tab)

    def close_tab(self, tab_id: int, notify: bool = True) -> None:
        """Remove a tab and fire REMOVED."""
        tab = self.tabs.pop(tab_id)
        self.page_contents.pop(tab_id, None)
        self._drop_empty_group(tab.group_id)
        if notify:
            self.emit(TabEvent.REMOVED, tab_id)

    def _drop_empty_group(self, group_id: int) -> None:
        if group_id == TAB_GROUP_NONE:
            return
        if not any(t.group_id == group_id for t in self.tabs.values()):
            self.groups.pop(group_id, None)

    # ------------------------------------------------------------------
    # BrowserHost
    # ------------------------------------------------------------------

    async def query_tabs(
        self,
        *,
        active: Optional[bool] = None,
        current_window: bool = False,
        window_id: Optional[int] = None,
        group_id: Optional[int] = None,
    ) -> list[BrowserTab]:
        tabs = []
        for tab in self.tabs.values():
            if active is not None and tab.active != active:
                continue
            if current_window and tab.window_id != self.current_window_id:
                continue
            if window_id is not None and tab.window_id != window_id:
                continue
            if group_id is not None and tab.group_id != group_id:
                continue
            tabs.append(tab.model_copy())
        return sorted(tabs, key=lambda t: (t.window_id, t.index))

    async def get_tab(self, tab_id: int) -> BrowserTab:
        if tab_id not in self.tabs:
            raise KeyError(f"No tab with id: {tab_id}")
        return self.tabs[tab_id].model_copy()

    async def get_current_window_id(self) -> int:
        return self.current_window_id

    async def activate_tab(self, tab_id: int) -> None:
        tab = self.tabs[tab_id]
        self.current_window_id = tab.window_id
        self.set_active(tab_id)

    async def create_tab(self, url: str) -> BrowserTab:
        tab = self.open_tab(url, title=url, active=True)
        return tab.model_copy()

    async def query_tab_groups(self, *, window_id: Optional[int] = None) -> list[TabGroup]:
        return [
            group.model_copy()
            for group in self.groups.values()
            if window_id is None or group.window_id == window_id
        ]

    async def group_tabs(
        self,
        tab_ids: list[int],
        *,
        group_id: Optional[int] = None,
        window_id: Optional[int] = None,
    ) -> int:
        for tab_id in tab_ids:
            if tab_id not in self.tabs:
                raise KeyError(f"No tab with id: {tab_id}")

        if group_id is None:
            group_id = self._next_group_id
            self._next_group_id += 1
            target_window = window_id or self.tabs[tab_ids[0]].window_id
            self.groups[group_id] = TabGroup(id=group_id, window_id=target_window)
        elif group_id not in self.groups:
            raise KeyError(f"No group with id: {group_id}")

        for tab_id in tab_ids:
            tab = self.tabs[tab_id]
            previous = tab.group_id
            tab.group_id = group_id
            tab.window_id = self.groups[group_id].window_id
            if previous != group_id:
                self._drop_empty_group(previous)
        return group_id

    async def update_group(
        self,
        group_id: int,
        *,
        title: Optional[str] = None,
        color: Optional[TabGroupColor] = None,
        collapsed: Optional[bool] = None,
    ) -> TabGroup:
        group = self.groups[group_id]
        if title is not None:
            group.title = title
        if color is not None:
            group.color = color
        if collapsed is not None:
            group.collapsed = collapsed
        return group.model_copy()

    async def ungroup_tabs(self, tab_ids: list[int]) -> None:
        for tab_id in tab_ids:
            tab = self.tabs.get(tab_id)
            if tab is None:
                continue
            previous = tab.group_id
            tab.group_id = TAB_GROUP_NONE
            self._drop_empty_group(previous)

    async def get_bookmark_tree(self) -> list[BookmarkNode]:
        return [node.model_copy(deep=True) for node in self.bookmarks]

    async def run_in_active_tab(self, extractor: str) -> Any:
        if extractor != "getPageContent":
            raise CapabilityUnavailable(f"Unknown extractor: {extractor}")
        tab = await self.active_tab()
        if tab is None or tab.id not in self.page_contents:
            raise CapabilityUnavailable("Content script not available")
        return {"title": tab.title, "url": tab.url, "content": self.page_contents[tab.id]}

    async def search_history(
        self, text: str = "", max_results: int = 100, start_time: float = 0
    ) -> list[HistoryItem]:
        text = text.lower()
        matches = [
            item
            for item in self.history
            if (item.last_visit_time or 0) >= start_time
            and (not text or text in (item.title or "").lower() or text in (item.url or "").lower())
        ]
        return matches[:max_results]

    async def capture_visible_tab(self) -> str:
        if self.screenshot is None:
            raise CapabilityUnavailable("capture_visible_tab")
        return self.screenshot
