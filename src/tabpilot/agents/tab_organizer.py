"""
AI-driven tab organization.

This module asks an inference endpoint to sort the current window's tabs
into a handful of topical groups, then applies the answer to the
browser's tab groups. Proposals are merged into existing groups with the
same title rather than replacing them, so repeated runs converge on the
same layout and keep whatever the user changed by hand.
"""

import json
import re
from typing import Optional
from urllib.parse import urlsplit

from pydantic import ValidationError

from tabpilot.agents.inference import InferenceClient
from tabpilot.agents.models import (
    GroupProposal,
    OrganizeResult,
    Parsed,
    ParseError,
    ParseResult,
    TabDescriptor,
    UngroupResult,
)
from tabpilot.browser.base import BrowserHost
from tabpilot.browser.models import BrowserTab, TabGroupColor
from tabpilot.config import get_logger

logger = get_logger(__name__)

NEW_GROUP_COLOR = TabGroupColor.GREEN

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def describe_tab(tab: BrowserTab) -> TabDescriptor:
    """
    Build the classifier's view of a tab.

    The hostname falls back to "scheme://" for URLs without a parseable
    scheme and host structure (e.g. "chrome://newtab" keeps "newtab",
    a bare "foo" becomes "foo://").
    """
    url = tab.url or ""
    try:
        parts = urlsplit(url)
        if not parts.scheme:
            raise ValueError(url)
        hostname = parts.hostname or ""
    except ValueError:
        hostname = url.split("://")[0] + "://"
    return TabDescriptor(id=tab.id, title=tab.title, url=url, hostname=hostname)


def build_classification_prompt(descriptors: list[TabDescriptor]) -> str:
    """Build the grouping instruction for a list of tabs."""
    tab_data = json.dumps([d.model_dump() for d in descriptors], indent=2)
    return f"""Classify these browser tabs into 3-7 meaningful groups based on their content, purpose, or topic:
{tab_data}

You must return a JSON object with a "groups" key containing an array where each item has:
1. "groupName": A short, descriptive name (1-3 words)
2. "tabIds": Array of tab IDs that belong to this group

Example response format:
{{
  "groups": [
    {{
      "groupName": "News",
      "tabIds": [123, 124, 125]
    }},
    {{
      "groupName": "Shopping",
      "tabIds": [126, 127]
    }}
  ]
}}"""


def parse_grouping_response(text: str) -> ParseResult:
    """
    Parse the classifier reply into group proposals.

    Args:
        text: Raw reply text

    Returns:
        Parsed(groups) if the reply is a JSON object whose "groups" list
        holds {groupName, tabIds} entries, otherwise ParseError(reason)
    """
    cleaned = _CODE_FENCE.sub("", (text or "").strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        return ParseError(reason=f"Classifier response is not valid JSON: {e}")

    if not isinstance(data, dict) or not isinstance(data.get("groups"), list):
        return ParseError(reason='Classifier response has no "groups" array')

    try:
        groups = [GroupProposal.model_validate(entry) for entry in data["groups"]]
    except ValidationError as e:
        return ParseError(reason=f"Classifier response has a malformed group: {e.errors()[0]['msg']}")

    return Parsed(groups=groups)


class TabOrganizer:
    """
    Groups and ungroups the current window's tabs.

    Key Design Decisions:
    - Tab ids in proposals are checked against the tabs read at the start
      of the run; unknown or stale ids are dropped silently
    - A proposal whose title matches an existing group is merged into it
    - Proposals are applied one after another, in reply order
    - The group holding the active tab stays expanded, the others collapse
    - Nothing is rolled back if a mutation fails part way through

    Attributes:
        browser: Host whose tab groups are changed
        classifier: Inference endpoint producing the grouping
    """

    def __init__(self, browser: BrowserHost, classifier: InferenceClient):
        self.browser = browser
        self.classifier = classifier

    async def organize_tabs(self) -> OrganizeResult:
        """
        Classify the current window's tabs and apply the resulting groups.

        Returns:
            OrganizeResult with the number of tabs considered and the
            number of groups proposed
        """
        tabs = await self._read_tabs()
        if tabs is None:
            return OrganizeResult(success=False, error="Failed to read tabs")

        valid_tabs = [tab for tab in tabs if tab.url]
        if not valid_tabs:
            return OrganizeResult(success=True, grouped_tabs=0, groups=0)

        eligible_ids = {tab.id for tab in valid_tabs if tab.id is not None}
        window_id = valid_tabs[0].window_id

        try:
            active_tab = await self.browser.active_tab()
            active_id = active_tab.id if active_tab else None

            descriptors = [describe_tab(tab) for tab in valid_tabs]
            reply = await self.classifier.classify(
                build_classification_prompt(descriptors), json_mode=True
            )
        except Exception as e:
            logger.error(f"Tab classification failed: {e}")
            return OrganizeResult(success=False, error=str(e))

        parsed = parse_grouping_response(reply)
        match parsed:
            case ParseError(reason=reason):
                logger.warning(f"Unusable classifier response: {reason}")
                return OrganizeResult(success=False, error=reason)
            case Parsed(groups=proposals):
                pass

        applied = 0
        try:
            for proposal in proposals:
                if await self._apply_proposal(proposal, eligible_ids, window_id, active_id):
                    applied += 1
        except Exception as e:
            logger.error(f"Organizing tabs failed after {applied} groups: {e}")
            return OrganizeResult(success=False, error=str(e))

        logger.info(
            f"Organized {len(valid_tabs)} tabs: {len(proposals)} groups proposed, {applied} applied"
        )
        return OrganizeResult(success=True, grouped_tabs=len(valid_tabs), groups=len(proposals))

    async def _read_tabs(self) -> Optional[list[BrowserTab]]:
        try:
            return await self.browser.query_tabs(current_window=True)
        except Exception as e:
            logger.error(f"Failed to query tabs: {e}")
            return None

    async def _apply_proposal(
        self,
        proposal: GroupProposal,
        eligible_ids: set[int],
        window_id: int,
        active_id: Optional[int],
    ) -> bool:
        """
        Apply one proposal to the window's tab groups.

        Returns:
            False if no proposed id survived filtering, True otherwise
        """
        tab_ids = [tab_id for tab_id in proposal.tab_ids if tab_id in eligible_ids]
        if not tab_ids:
            logger.debug(f"Skipping group '{proposal.group_name}': no known tabs")
            return False

        groups = await self.browser.query_tab_groups(window_id=window_id)
        existing = next((g for g in groups if g.title == proposal.group_name), None)

        if existing is not None:
            group_id = await self.browser.group_tabs(tab_ids, group_id=existing.id)
        else:
            group_id = await self.browser.group_tabs(tab_ids, window_id=window_id)
            await self.browser.update_group(
                group_id, title=proposal.group_name, color=NEW_GROUP_COLOR
            )

        contains_active = active_id is not None and active_id in tab_ids
        await self.browser.update_group(group_id, collapsed=not contains_active)
        return True

    async def ungroup_all(self) -> UngroupResult:
        """
        Remove every tab group in the current window.

        Returns:
            UngroupResult with the number of groups processed
        """
        try:
            window_id = await self.browser.get_current_window_id()
            groups = await self.browser.query_tab_groups(window_id=window_id)
            for group in groups:
                tabs = await self.browser.query_tabs(group_id=group.id)
                tab_ids = [tab.id for tab in tabs if tab.id is not None]
                if tab_ids:
                    await self.browser.ungroup_tabs(tab_ids)
        except Exception as e:
            logger.error(f"Failed to ungroup tabs: {e}")
            return UngroupResult(success=False, error=str(e))

        logger.info(f"Ungrouped {len(groups)} tab groups")
        return UngroupResult(success=True, groups_ungrouped=len(groups))
