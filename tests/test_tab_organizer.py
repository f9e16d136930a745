"""
Unit tests for AI tab organization.

Tests:
- Grouping, merging and collapsing on a five-tab window
- Idempotent re-runs
- Filtering of unknown tab ids
- Unusable classifier replies
- Partial failures
- Ungrouping
"""

import json

import pytest

from tabpilot.agents import InferenceError, TabOrganizer
from tabpilot.agents.models import GroupProposal, Parsed, ParseError, TabDescriptor
from tabpilot.agents.tab_organizer import (
    build_classification_prompt,
    describe_tab,
    parse_grouping_response,
)
from tabpilot.browser import TAB_GROUP_NONE, BrowserTab, TabGroupColor


def group_layout(browser) -> dict[str, list[int]]:
    """Group title -> sorted member tab ids."""
    layout = {}
    for group in browser.groups.values():
        layout[group.title] = sorted(t.id for t in browser.tabs.values() if t.group_id == group.id)
    return layout


def group_by_title(browser, title):
    return next(g for g in browser.groups.values() if g.title == title)


class TestOrganizeTabs:
    """Tests for TabOrganizer.organize_tabs()."""

    @pytest.mark.asyncio
    async def test_five_tabs_two_groups(self, five_tab_browser, a_and_c_classifier):
        organizer = TabOrganizer(five_tab_browser, a_and_c_classifier)

        result = await organizer.organize_tabs()

        assert result.success
        assert result.grouped_tabs == 5
        assert result.groups == 2
        assert group_layout(five_tab_browser) == {"A": [1, 2], "C": [4, 5]}
        assert five_tab_browser.tabs[3].group_id == TAB_GROUP_NONE
        assert all(g.color is TabGroupColor.GREEN for g in five_tab_browser.groups.values())

    @pytest.mark.asyncio
    async def test_active_group_expanded_others_collapsed(self, five_tab_browser, a_and_c_classifier):
        await TabOrganizer(five_tab_browser, a_and_c_classifier).organize_tabs()

        assert not group_by_title(five_tab_browser, "A").collapsed
        assert group_by_title(five_tab_browser, "C").collapsed

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, five_tab_browser, a_and_c_classifier):
        organizer = TabOrganizer(five_tab_browser, a_and_c_classifier)

        await organizer.organize_tabs()
        first_ids = {g.title: g.id for g in five_tab_browser.groups.values()}
        result = await organizer.organize_tabs()

        assert result.success
        assert len(five_tab_browser.groups) == 2
        assert {g.title: g.id for g in five_tab_browser.groups.values()} == first_ids
        assert group_layout(five_tab_browser) == {"A": [1, 2], "C": [4, 5]}

    @pytest.mark.asyncio
    async def test_prompt_lists_tabs_in_json_mode(self, five_tab_browser, a_and_c_classifier):
        await TabOrganizer(five_tab_browser, a_and_c_classifier).organize_tabs()

        a_and_c_classifier.classify.assert_awaited_once()
        args, kwargs = a_and_c_classifier.classify.await_args
        assert kwargs == {"json_mode": True}
        prompt = args[0]
        assert '"hostname": "c.com"' in prompt
        assert '"groupName"' in prompt

    @pytest.mark.asyncio
    async def test_unknown_tab_ids_dropped(self, five_tab_browser, classifier_for):
        classifier = classifier_for([
            {"groupName": "A", "tabIds": [1, 2, 999]},
            {"groupName": "Ghosts", "tabIds": [998, 999]},
        ])

        result = await TabOrganizer(five_tab_browser, classifier).organize_tabs()

        assert result.success
        assert result.groups == 2
        assert group_layout(five_tab_browser) == {"A": [1, 2]}

    @pytest.mark.asyncio
    async def test_other_window_tabs_not_eligible(self, five_tab_browser, classifier_for):
        five_tab_browser.open_tab("https://a.com/elsewhere", "A elsewhere", window_id=2, tab_id=6)
        classifier = classifier_for([{"groupName": "A", "tabIds": [1, 2, 6]}])

        result = await TabOrganizer(five_tab_browser, classifier).organize_tabs()

        assert result.grouped_tabs == 5
        assert group_layout(five_tab_browser) == {"A": [1, 2]}
        assert five_tab_browser.tabs[6].group_id == TAB_GROUP_NONE

    @pytest.mark.asyncio
    async def test_merges_into_user_group(self, five_tab_browser, a_and_c_classifier):
        group_id = await five_tab_browser.group_tabs([1], window_id=1)
        await five_tab_browser.update_group(group_id, title="A", color=TabGroupColor.BLUE)

        await TabOrganizer(five_tab_browser, a_and_c_classifier).organize_tabs()

        group = five_tab_browser.groups[group_id]
        assert group.color is TabGroupColor.BLUE
        assert group_layout(five_tab_browser)["A"] == [1, 2]
        assert sum(1 for g in five_tab_browser.groups.values() if g.title == "A") == 1

    @pytest.mark.asyncio
    async def test_invalid_json_changes_nothing(self, five_tab_browser, classifier_for):
        classifier = classifier_for([])
        classifier.classify.return_value = "I think these tabs are about letters."

        result = await TabOrganizer(five_tab_browser, classifier).organize_tabs()

        assert not result.success
        assert "not valid JSON" in result.error
        assert five_tab_browser.groups == {}

    @pytest.mark.asyncio
    async def test_missing_groups_key_changes_nothing(self, five_tab_browser, classifier_for):
        classifier = classifier_for([])
        classifier.classify.return_value = json.dumps({"clusters": []})

        result = await TabOrganizer(five_tab_browser, classifier).organize_tabs()

        assert not result.success
        assert five_tab_browser.groups == {}

    @pytest.mark.asyncio
    async def test_no_tabs_with_url(self, browser, classifier_for):
        browser.open_tab(None, "Loading")
        classifier = classifier_for([])

        result = await TabOrganizer(browser, classifier).organize_tabs()

        assert result.success
        assert (result.grouped_tabs, result.groups) == (0, 0)
        classifier.classify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_inference_error(self, five_tab_browser, classifier_for):
        classifier = classifier_for([])
        classifier.classify.side_effect = InferenceError("OpenAI API error: rate limited")

        result = await TabOrganizer(five_tab_browser, classifier).organize_tabs()

        assert not result.success
        assert result.error == "OpenAI API error: rate limited"
        assert five_tab_browser.groups == {}

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_applied_groups(self, five_tab_browser, a_and_c_classifier):
        original_update = five_tab_browser.update_group

        async def failing_update(group_id, **changes):
            if changes.get("title") == "C":
                raise RuntimeError("Group no longer exists")
            return await original_update(group_id, **changes)

        five_tab_browser.update_group = failing_update

        result = await TabOrganizer(five_tab_browser, a_and_c_classifier).organize_tabs()

        assert not result.success
        assert result.error == "Group no longer exists"
        assert group_layout(five_tab_browser)["A"] == [1, 2]

    @pytest.mark.asyncio
    async def test_query_failure(self, five_tab_browser, a_and_c_classifier):
        async def broken_query(**_):
            raise RuntimeError("tabs permission denied")

        five_tab_browser.query_tabs = broken_query

        result = await TabOrganizer(five_tab_browser, a_and_c_classifier).organize_tabs()

        assert not result.success
        assert result.error == "Failed to read tabs"


class TestUngroupAll:
    """Tests for TabOrganizer.ungroup_all()."""

    @pytest.mark.asyncio
    async def test_ungroups_current_window(self, five_tab_browser, a_and_c_classifier):
        organizer = TabOrganizer(five_tab_browser, a_and_c_classifier)
        await organizer.organize_tabs()

        result = await organizer.ungroup_all()

        assert result.success
        assert result.groups_ungrouped == 2
        assert five_tab_browser.groups == {}
        assert all(t.group_id == TAB_GROUP_NONE for t in five_tab_browser.tabs.values())

    @pytest.mark.asyncio
    async def test_nothing_to_ungroup(self, five_tab_browser, a_and_c_classifier):
        result = await TabOrganizer(five_tab_browser, a_and_c_classifier).ungroup_all()

        assert result.success
        assert result.groups_ungrouped == 0

    @pytest.mark.asyncio
    async def test_ungroup_failure(self, five_tab_browser, a_and_c_classifier):
        organizer = TabOrganizer(five_tab_browser, a_and_c_classifier)
        await organizer.organize_tabs()

        async def broken_ungroup(tab_ids):
            raise RuntimeError("tabGroups permission denied")

        five_tab_browser.ungroup_tabs = broken_ungroup

        result = await organizer.ungroup_all()

        assert not result.success
        assert result.error == "tabGroups permission denied"


class TestDescribeTab:
    """Tests for describe_tab()."""

    def test_hostname(self):
        tab = BrowserTab(id=1, index=0, title="Docs", url="https://Docs.Python.org/3/")

        assert describe_tab(tab) == TabDescriptor(
            id=1, title="Docs", url="https://Docs.Python.org/3/", hostname="docs.python.org"
        )

    def test_unparseable_url_falls_back_to_scheme(self):
        tab = BrowserTab(id=2, index=0, title="Odd", url="foo")

        assert describe_tab(tab).hostname == "foo://"

    def test_broken_host_falls_back_to_scheme(self):
        tab = BrowserTab(id=3, index=0, title="Odd", url="http://[::1")

        assert describe_tab(tab).hostname == "http://"


class TestParseGroupingResponse:
    """Tests for parse_grouping_response()."""

    def test_valid_reply(self):
        reply = json.dumps({"groups": [{"groupName": "News", "tabIds": [1, 2]}]})

        assert parse_grouping_response(reply) == Parsed(
            groups=[GroupProposal(group_name="News", tab_ids=[1, 2])]
        )

    def test_code_fence_stripped(self):
        reply = '```json\n{"groups": [{"groupName": "News", "tabIds": [1]}]}\n```'

        result = parse_grouping_response(reply)

        assert isinstance(result, Parsed)
        assert result.groups[0].group_name == "News"

    def test_numeric_strings_coerced(self):
        result = parse_grouping_response('{"groups": [{"groupName": "News", "tabIds": ["7"]}]}')

        assert result.groups[0].tab_ids == [7]

    @pytest.mark.parametrize("reply", [
        "",
        "[]",
        '{"groups": {"groupName": "News"}}',
        '{"groups": [{"groupName": "", "tabIds": [1]}]}',
        '{"groups": [{"groupName": "News"}]}',
        '{"groups": [{"groupName": "News", "tabIds": ["seven"]}]}',
    ])
    def test_unusable_replies(self, reply):
        assert isinstance(parse_grouping_response(reply), ParseError)

    def test_prompt_embeds_descriptors(self):
        prompt = build_classification_prompt([
            TabDescriptor(id=5, title="C one", url="https://c.com/one", hostname="c.com"),
        ])

        assert '"id": 5' in prompt
        assert "3-7 meaningful groups" in prompt
