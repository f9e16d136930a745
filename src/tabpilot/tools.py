"""
In-process tool calls the assistant's model can issue.

Each tool is a thin wrapper over the browser host or the organizer. Calls
never raise: every outcome is a ToolResponse carrying either data or an
error message.
"""

import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from tabpilot.access.manager import HostAccessManager
from tabpilot.agents.tab_organizer import TabOrganizer
from tabpilot.browser.base import BrowserHost
from tabpilot.config import get_logger
from tabpilot.context.aggregator import PAGE_CONTENT_EXTRACTOR

logger = get_logger(__name__)

_HAS_WEB_SCHEME = re.compile(r"^https?://", re.IGNORECASE)
_HAS_BROWSER_SCHEME = re.compile(r"^(chrome|chrome-extension):", re.IGNORECASE)


class ToolName(str, Enum):
    GET_ALL_TABS = "get_all_tabs"
    GET_CURRENT_TAB = "get_current_tab"
    SWITCH_TO_TAB = "switch_to_tab"
    ORGANIZE_TABS = "organize_tabs"
    UNGROUP_TABS = "ungroup_tabs"
    GET_CURRENT_TAB_CONTENT = "get_current_tab_content"
    CREATE_NEW_TAB = "create_new_tab"


class ToolResponse(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None


def _simplify(tab) -> dict:
    return {
        "id": tab.id,
        "index": tab.index,
        "windowId": tab.window_id,
        "title": tab.title,
        "url": tab.url,
    }


def normalize_new_tab_url(url: str) -> str:
    """Prefix https:// unless the URL already has a web or browser scheme."""
    final_url = url.strip()
    if not _HAS_WEB_SCHEME.match(final_url) and not _HAS_BROWSER_SCHEME.match(final_url):
        final_url = f"https://{final_url}"
    return final_url


class ToolDispatcher:
    """
    Routes named tool calls to the browser host and organizer.

    Attributes:
        browser: Host the tools act on
        organizer: Handles organize_tabs and ungroup_tabs
        access_manager: Policy checked before reading page content
    """

    def __init__(
        self,
        browser: BrowserHost,
        organizer: TabOrganizer,
        access_manager: HostAccessManager,
    ):
        self.browser = browser
        self.organizer = organizer
        self.access_manager = access_manager

    async def call_tool(self, name: str, args: Optional[dict] = None) -> ToolResponse:
        """
        Run a tool by name.

        Args:
            name: One of the ToolName values
            args: Tool arguments (tabId for switch_to_tab, url for create_new_tab)

        Returns:
            ToolResponse with the tool's data or an error message
        """
        args = args or {}
        try:
            tool = ToolName(name)
        except ValueError:
            return ToolResponse(success=False, error="Unsupported tool")

        try:
            return await self._dispatch(tool, args)
        except Exception as e:
            logger.error(f"Tool {tool.value} failed: {e}")
            return ToolResponse(success=False, error=str(e) or type(e).__name__)

    async def _dispatch(self, tool: ToolName, args: dict) -> ToolResponse:
        if tool is ToolName.GET_ALL_TABS:
            tabs = await self.browser.query_tabs()
            return ToolResponse(success=True, data=[_simplify(t) for t in tabs if t.id is not None])

        if tool is ToolName.GET_CURRENT_TAB:
            tab = await self.browser.active_tab()
            return ToolResponse(success=True, data=_simplify(tab) if tab and tab.id is not None else None)

        if tool is ToolName.SWITCH_TO_TAB:
            tab_id = args.get("tabId")
            if not isinstance(tab_id, int) or isinstance(tab_id, bool):
                return ToolResponse(success=False, error="Invalid tabId")
            await self.browser.get_tab(tab_id)
            await self.browser.activate_tab(tab_id)
            return ToolResponse(success=True)

        if tool is ToolName.ORGANIZE_TABS:
            result = await self.organizer.organize_tabs()
            return ToolResponse(success=result.success, data=result.model_dump(), error=result.error)

        if tool is ToolName.UNGROUP_TABS:
            result = await self.organizer.ungroup_all()
            return ToolResponse(success=result.success, data=result.model_dump(), error=result.error)

        if tool is ToolName.GET_CURRENT_TAB_CONTENT:
            tab = await self.browser.active_tab()
            if tab is None:
                return ToolResponse(success=True, data=None)
            decision = await self.access_manager.is_host_allowed(tab.url)
            if not decision.allowed:
                return ToolResponse(success=False, error=decision.reason)
            content = await self.browser.run_in_active_tab(PAGE_CONTENT_EXTRACTOR)
            return ToolResponse(success=True, data=content)

        if tool is ToolName.CREATE_NEW_TAB:
            url = args.get("url")
            if not isinstance(url, str) or not url.strip():
                return ToolResponse(success=False, error="Invalid url")
            final_url = normalize_new_tab_url(url)
            tab = await self.browser.create_tab(final_url)
            return ToolResponse(success=True, data={"tabId": tab.id, "url": tab.url or final_url})

        return ToolResponse(success=False, error="Unsupported tool")
