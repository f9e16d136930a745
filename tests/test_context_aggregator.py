"""
Unit tests for context aggregation.

Tests the context list offered to the assistant:
- Ordering of page, tabs and bookmarks
- Deduplication against the current page
- Bookmark traversal and cap
- Isolation of failing sources
- Search filtering
"""

import time
from unittest.mock import AsyncMock

import pytest

from tabpilot.access import HostAccessManager
from tabpilot.access.manager import STORAGE_KEY
from tabpilot.browser import BookmarkNode, CapabilityUnavailable, HistoryItem
from tabpilot.context import ContextAggregator, ContextItem, ContextType, search_contexts


def bookmark_folders(folder_count: int, per_folder: int) -> list[BookmarkNode]:
    """Nested bookmark tree; bookmark ids are numbered in traversal order."""
    folders = []
    n = 0
    for f in range(folder_count):
        children = []
        for _ in range(per_folder):
            children.append(BookmarkNode(id=f"b{n}", title=f"Bookmark {n}", url=f"https://site{n}.com/"))
            n += 1
        folders.append(BookmarkNode(id=f"f{f}", title=f"Folder {f}", children=children))
    return [BookmarkNode(id="root", title="", children=folders)]


class TestAggregate:
    """Tests for ContextAggregator.aggregate()."""

    @pytest.mark.asyncio
    async def test_order_page_tabs_bookmarks(self, five_tab_browser):
        contexts = await ContextAggregator(five_tab_browser).aggregate()

        types = [ctx.type for ctx in contexts]
        assert types[0] is ContextType.PAGE
        assert types[1:5] == [ContextType.TAB] * 4
        assert types[5:] == [ContextType.BOOKMARK] * 2
        assert [ctx.id for ctx in contexts[1:5]] == ["tab-2", "tab-3", "tab-4", "tab-5"]

    @pytest.mark.asyncio
    async def test_current_page_deduplicated(self, five_tab_browser):
        # Bookmark with the active tab's URL
        five_tab_browser.bookmarks[0].children.append(
            BookmarkNode(id="99", title="A one bookmarked", url="https://a.com/one")
        )

        contexts = await ContextAggregator(five_tab_browser).aggregate()
        ids = [ctx.id for ctx in contexts]

        assert ids[0] == "page-1"
        assert "tab-1" not in ids
        assert "bookmark-99" not in ids
        assert "bookmark-11" in ids

    @pytest.mark.asyncio
    async def test_no_active_tab_keeps_all_tabs(self, browser):
        browser.open_tab("https://a.com/", "A")
        browser.open_tab("https://b.com/", "B")

        contexts = await ContextAggregator(browser).aggregate()

        assert [ctx.id for ctx in contexts] == ["tab-1", "tab-2"]

    @pytest.mark.asyncio
    async def test_tabs_without_title_skipped(self, browser):
        browser.open_tab("https://a.com/", "A")
        browser.open_tab("https://loading.com/", None)

        contexts = await ContextAggregator(browser).aggregate()

        assert [ctx.label for ctx in contexts] == ["A"]

    @pytest.mark.asyncio
    async def test_tabs_from_all_windows(self, browser):
        browser.open_tab("https://a.com/", "A", window_id=1)
        browser.open_tab("https://b.com/", "B", window_id=2)

        contexts = await ContextAggregator(browser).aggregate()

        assert {ctx.id for ctx in contexts} == {"tab-1", "tab-2"}

    @pytest.mark.asyncio
    async def test_tab_item_shape(self, browser):
        tab = browser.open_tab("https://a.com/x", "A page")
        browser.tabs[tab.id].fav_icon_url = "https://a.com/favicon.ico"

        [item] = await ContextAggregator(browser).get_tabs_context()

        assert item == ContextItem(
            id="tab-1",
            type=ContextType.TAB,
            label="A page",
            value="https://a.com/x",
            metadata={
                "url": "https://a.com/x",
                "title": "A page",
                "favIconUrl": "https://a.com/favicon.ico",
            },
        )


class TestPageContext:
    """Tests for the current page item."""

    @pytest.mark.asyncio
    async def test_uses_extracted_content(self, five_tab_browser):
        five_tab_browser.page_contents[1] = "Full page text"

        page = await ContextAggregator(five_tab_browser).get_current_page_context()

        assert page.id == "page-1"
        assert page.value == "Full page text"
        assert page.metadata == {"url": "https://a.com/one", "title": "A one"}

    @pytest.mark.asyncio
    async def test_falls_back_to_url_and_title(self, five_tab_browser):
        page = await ContextAggregator(five_tab_browser).get_current_page_context()

        assert page.value == "URL: https://a.com/one\nTitle: A one"

    @pytest.mark.asyncio
    async def test_untitled_page_label(self, browser):
        browser.open_tab("https://a.com/", None, active=True)

        page = await ContextAggregator(browser).get_current_page_context()

        assert page.label == "Current Page"

    @pytest.mark.asyncio
    async def test_denied_host_not_extracted(self, five_tab_browser, store):
        five_tab_browser.page_contents[1] = "Secret text"
        store.data[STORAGE_KEY] = {"mode": "blocklist", "blocklist": ["a.com"]}
        aggregator = ContextAggregator(five_tab_browser, access_manager=HostAccessManager(store))

        page = await aggregator.get_current_page_context()

        assert page.value == "URL: https://a.com/one\nTitle: A one"


class TestBookmarks:
    """Tests for bookmark traversal."""

    @pytest.mark.asyncio
    async def test_capped_at_fifty_in_traversal_order(self, browser):
        browser.bookmarks = bookmark_folders(folder_count=3, per_folder=30)

        bookmarks = await ContextAggregator(browser).get_bookmarks_context()

        assert len(bookmarks) == 50
        assert [b.id for b in bookmarks] == [f"bookmark-b{n}" for n in range(50)]

    @pytest.mark.asyncio
    async def test_folders_not_emitted(self, browser):
        browser.bookmarks = bookmark_folders(folder_count=2, per_folder=2)

        bookmarks = await ContextAggregator(browser).get_bookmarks_context()

        assert len(bookmarks) == 4
        assert all(b.type is ContextType.BOOKMARK for b in bookmarks)
        assert not any(b.id.startswith("bookmark-f") for b in bookmarks)

    @pytest.mark.asyncio
    async def test_fewer_than_limit(self, browser):
        browser.bookmarks = bookmark_folders(folder_count=1, per_folder=3)

        bookmarks = await ContextAggregator(browser, bookmark_limit=50).get_bookmarks_context()

        assert [b.value for b in bookmarks] == [f"https://site{n}.com/" for n in range(3)]


class TestSourceIsolation:
    """A failing source must not take the others down."""

    @pytest.mark.asyncio
    async def test_bookmarks_failure(self, five_tab_browser):
        five_tab_browser.get_bookmark_tree = AsyncMock(side_effect=CapabilityUnavailable("bookmarks"))

        contexts = await ContextAggregator(five_tab_browser).aggregate()

        assert [ctx.id for ctx in contexts] == ["page-1", "tab-2", "tab-3", "tab-4", "tab-5"]

    @pytest.mark.asyncio
    async def test_tabs_failure(self, five_tab_browser):
        aggregator = ContextAggregator(five_tab_browser)
        aggregator.get_tabs_context = AsyncMock(side_effect=RuntimeError("tabs permission denied"))

        contexts = await aggregator.aggregate()

        assert [ctx.id for ctx in contexts] == ["page-1", "bookmark-11", "bookmark-12"]

    @pytest.mark.asyncio
    async def test_everything_fails(self, browser):
        browser.query_tabs = AsyncMock(side_effect=RuntimeError("boom"))
        browser.get_bookmark_tree = AsyncMock(side_effect=RuntimeError("boom"))

        assert await ContextAggregator(browser).aggregate() == []


class TestExtraSources:
    """Tests for history, screenshot and clipboard items."""

    @pytest.mark.asyncio
    async def test_history_context(self, browser):
        recent = time.time() * 1000 - 60_000
        month_ago = time.time() * 1000 - 30 * 24 * 60 * 60 * 1000
        browser.history = [
            HistoryItem(id="1", url="https://a.com/", title="A", last_visit_time=recent),
            HistoryItem(id="2", url="https://b.com/", title=None, last_visit_time=recent),
            HistoryItem(id="3", url="https://old.com/", title="Old", last_visit_time=month_ago),
        ]

        items = await ContextAggregator(browser).get_history_context()

        assert [(i.id, i.type) for i in items] == [("history-1", ContextType.CUSTOM)]
        assert items[0].metadata["lastVisitTime"] == recent

    @pytest.mark.asyncio
    async def test_history_unavailable(self, browser):
        browser.search_history = AsyncMock(side_effect=CapabilityUnavailable("history"))

        assert await ContextAggregator(browser).get_history_context() == []

    @pytest.mark.asyncio
    async def test_screenshot(self, browser):
        aggregator = ContextAggregator(browser)
        assert await aggregator.get_screenshot_context() is None

        browser.screenshot = "data:image/png;base64,AAAA"
        item = await aggregator.get_screenshot_context()

        assert item.id == "screenshot"
        assert item.type is ContextType.SCREENSHOT
        assert item.value == "data:image/png;base64,AAAA"
        assert "timestamp" in item.metadata

    @pytest.mark.asyncio
    async def test_clipboard_disabled(self, browser):
        assert await ContextAggregator(browser).get_clipboard_context() is None


class TestSearch:
    """Tests for search_contexts()."""

    @pytest.fixture
    def contexts(self):
        return [
            ContextItem(id="tab-1", type=ContextType.TAB, label="Python Docs", value="https://docs.python.org/"),
            ContextItem(id="tab-2", type=ContextType.TAB, label="News", value="https://bbc.com/news"),
            ContextItem(id="bookmark-3", type=ContextType.BOOKMARK, label="Recipes", value="https://food.com/"),
        ]

    def test_empty_query_is_identity(self, contexts):
        assert search_contexts(contexts, "") is contexts

    def test_case_insensitive_label(self, contexts):
        assert [c.id for c in search_contexts(contexts, "PYTHON")] == ["tab-1"]

    def test_matches_value(self, contexts):
        assert [c.id for c in search_contexts(contexts, "bbc.com")] == ["tab-2"]

    def test_no_match(self, contexts):
        assert ContextAggregator.search(contexts, "zzz") == []
