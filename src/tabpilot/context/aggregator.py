"""
Context aggregation from live browser sources.

This module builds the ordered, deduplicated list of context candidates
offered to the assistant: the current page first, then the other open
tabs, then bookmarks. Each source is fetched concurrently and in
isolation, so a failing source only removes its own contribution.
"""

import asyncio
import time
from typing import Optional

from tabpilot.access.manager import HostAccessManager
from tabpilot.browser.base import BrowserHost, CapabilityUnavailable
from tabpilot.browser.models import BookmarkNode
from tabpilot.config import get_logger
from tabpilot.context.models import (
    ContextItem,
    ContextType,
    bookmark_context_id,
    history_context_id,
    page_context_id,
    source_tab_id,
    tab_context_id,
)

logger = get_logger(__name__)

PAGE_CONTENT_EXTRACTOR = "getPageContent"
DEFAULT_BOOKMARK_LIMIT = 50
DAY_MS = 24 * 60 * 60 * 1000


class ContextAggregator:
    """
    Collects context items from the browser.

    Key Design Decisions:
    - Sources are fetched concurrently; a failure in one never aborts the others
    - The current page's tab and URL are removed from the tab and bookmark lists
    - Bookmarks are capped (default 50) in depth-first traversal order
    - aggregate() never raises; a failed source contributes nothing

    Attributes:
        browser: Host the context is read from
        bookmark_limit: Maximum number of bookmark items
        access_manager: Optional policy gating page content extraction
    """

    def __init__(
        self,
        browser: BrowserHost,
        bookmark_limit: int = DEFAULT_BOOKMARK_LIMIT,
        access_manager: Optional[HostAccessManager] = None,
    ):
        self.browser = browser
        self.bookmark_limit = bookmark_limit
        self.access_manager = access_manager

    # ------------------------------------------------------------------
    # Individual sources
    # ------------------------------------------------------------------

    async def get_current_page_context(self) -> Optional[ContextItem]:
        """
        Build the context item for the page in the active tab.

        Tries the content extractor first and falls back to a descriptor
        made from the tab's URL and title.

        Returns:
            A page item, or None if there is no active tab
        """
        tab = await self.browser.active_tab()
        if tab is None or tab.id is None:
            return None

        content = await self._extract_page_content(tab.url)
        if content is None:
            content = f"URL: {tab.url}\nTitle: {tab.title}"

        return ContextItem(
            id=page_context_id(tab.id),
            type=ContextType.PAGE,
            label=tab.title or "Current Page",
            value=content,
            metadata={"url": tab.url, "title": tab.title},
        )

    async def _extract_page_content(self, url: Optional[str]) -> Optional[str]:
        if self.access_manager is not None:
            decision = await self.access_manager.is_host_allowed(url)
            if not decision.allowed:
                logger.info(f"Skipping content extraction: {decision.reason}")
                return None
        try:
            result = await self.browser.run_in_active_tab(PAGE_CONTENT_EXTRACTOR)
        except Exception as e:
            logger.warning(f"Content script not available, using tab info only: {e}")
            return None
        if isinstance(result, dict):
            return result.get("content") or ""
        return str(result) if result is not None else ""

    async def get_tabs_context(self) -> list[ContextItem]:
        """Build a tab item for every open tab (all windows) with an id and title."""
        tabs = await self.browser.query_tabs()
        return [
            ContextItem(
                id=tab_context_id(tab.id),
                type=ContextType.TAB,
                label=tab.title or "Untitled",
                value=tab.url or "",
                metadata={
                    "url": tab.url,
                    "title": tab.title,
                    "favIconUrl": tab.fav_icon_url,
                },
            )
            for tab in tabs
            if tab.id is not None and tab.title
        ]

    async def get_bookmarks_context(self) -> list[ContextItem]:
        """Build bookmark items from a depth-first walk of the bookmark tree."""
        tree = await self.browser.get_bookmark_tree()
        bookmarks: list[ContextItem] = []

        def traverse(nodes: list[BookmarkNode]) -> None:
            for node in nodes:
                if node.url:
                    bookmarks.append(
                        ContextItem(
                            id=bookmark_context_id(node.id),
                            type=ContextType.BOOKMARK,
                            label=node.title or "Untitled",
                            value=node.url,
                            metadata={"url": node.url, "title": node.title},
                        )
                    )
                if node.children:
                    traverse(node.children)

        traverse(tree)
        return bookmarks[: self.bookmark_limit]

    async def get_history_context(self, max_results: int = 20, days: int = 7) -> list[ContextItem]:
        """
        Build items for recently visited pages.

        Args:
            max_results: Maximum number of history entries requested
            days: How far back to look

        Returns:
            Custom items for entries with both a URL and a title; empty on failure
        """
        start_time = time.time() * 1000 - days * DAY_MS
        try:
            items = await self.browser.search_history("", max_results=max_results, start_time=start_time)
        except Exception as e:
            logger.error(f"Failed to get history context: {e}")
            return []

        return [
            ContextItem(
                id=history_context_id(item.id),
                type=ContextType.CUSTOM,
                label=item.title or "Untitled",
                value=item.url or "",
                metadata={
                    "url": item.url,
                    "title": item.title,
                    "lastVisitTime": item.last_visit_time,
                },
            )
            for item in items
            if item.url and item.title
        ]

    async def get_screenshot_context(self) -> Optional[ContextItem]:
        """Capture the visible tab as a screenshot item; None on failure."""
        try:
            data_url = await self.browser.capture_visible_tab()
        except Exception as e:
            logger.error(f"Failed to capture screenshot: {e}")
            return None

        return ContextItem(
            id="screenshot",
            type=ContextType.SCREENSHOT,
            label="Current Screenshot",
            value=data_url,
            metadata={"timestamp": int(time.time() * 1000)},
        )

    async def get_clipboard_context(self) -> Optional[ContextItem]:
        """Clipboard access needs a user gesture and extra permissions; always None."""
        return None

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    async def aggregate(self) -> list[ContextItem]:
        """
        Build the full candidate list: page, other tabs, bookmarks.

        Returns:
            Ordered, deduplicated context items
        """
        page_result, tabs_result, bookmarks_result = await asyncio.gather(
            self.get_current_page_context(),
            self.get_tabs_context(),
            self.get_bookmarks_context(),
            return_exceptions=True,
        )

        page = self._outcome("current page", page_result, None)
        tabs = self._outcome("tabs", tabs_result, [])
        bookmarks = self._outcome("bookmarks", bookmarks_result, [])

        contexts: list[ContextItem] = []
        if page is not None:
            page_tab_id = source_tab_id(page.id)
            page_url = page.url
            tabs = [t for t in tabs if source_tab_id(t.id) != page_tab_id]
            if page_url:
                bookmarks = [b for b in bookmarks if b.value != page_url]
            contexts.append(page)

        contexts.extend(tabs)
        contexts.extend(bookmarks)
        logger.debug(f"Aggregated {len(contexts)} context items")
        return contexts

    @staticmethod
    def search(contexts: list[ContextItem], query: str) -> list[ContextItem]:
        """Filter context items by query; see search_contexts()."""
        return search_contexts(contexts, query)

    @staticmethod
    def _outcome(source: str, result, fallback):
        if isinstance(result, BaseException):
            if isinstance(result, CapabilityUnavailable):
                logger.warning(f"Context source '{source}' unavailable: {result}")
            else:
                logger.error(f"Failed to get {source} context: {result}")
            return fallback
        return result


def search_contexts(contexts: list[ContextItem], query: str) -> list[ContextItem]:
    """
    Filter context items by a case-insensitive substring of label or value.

    Args:
        contexts: Items to filter
        query: Search text; empty returns the input unchanged

    Returns:
        Matching items in their original order
    """
    if not query:
        return contexts

    lower_query = query.lower()
    return [
        ctx for ctx in contexts
        if lower_query in ctx.label.lower() or lower_query in ctx.value.lower()
    ]
