"""
Example demonstrating AI tab organization and context synchronization.

This example shows:
1. Opening tabs on different topics in an in-memory browser
2. Building the context list offered to the assistant
3. Keeping the list in sync while tabs open and close
4. Organizing the tabs into named groups with the configured model
5. Re-running the organizer (tabs land in the same groups)
6. Ungrouping everything again
"""

import asyncio
import time

from tabpilot.access import HostAccessManager
from tabpilot.agents import ProviderManager, TabOrganizer, get_inference_client
from tabpilot.agents.providers import MissingApiKey, ProviderNotFound
from tabpilot.browser import BookmarkNode, HistoryItem, InMemoryBrowser
from tabpilot.config import get_settings, setup_logging
from tabpilot.context import ContextAggregator
from tabpilot.storage import JsonFileStore
from tabpilot.sync import TabsSyncController


def print_groups(browser: InMemoryBrowser) -> None:
    for group in browser.groups.values():
        members = [t.title for t in browser.tabs.values() if t.group_id == group.id]
        state = "collapsed" if group.collapsed else "expanded"
        print(f"  [{group.title}] ({state})")
        for title in members:
            print(f"    - {title}")


async def main():
    """Run tab organization example."""

    settings = get_settings()
    setup_logging(settings.log_level)

    storage = JsonFileStore(settings.storage_path)
    providers = ProviderManager(storage)
    await providers.load_provider_keys()
    try:
        classifier = get_inference_client(settings, providers)
    except (MissingApiKey, ProviderNotFound) as e:
        print(f"ERROR: {e} (set AI_TOKEN in .env file)")
        return

    print("=" * 80)
    print("Tab Organization Example")
    print("=" * 80)
    print()

    now_ms = time.time() * 1000
    browser = InMemoryBrowser(
        bookmarks=[
            BookmarkNode(id="1", title="Bookmarks Bar", children=[
                BookmarkNode(id="2", title="Python Docs", url="https://docs.python.org/3/"),
                BookmarkNode(id="3", title="Hacker News", url="https://news.ycombinator.com/"),
            ]),
        ],
        history=[
            HistoryItem(id="1", url="https://realpython.com/async-io-python/",
                        title="Async IO in Python", last_visit_time=now_ms - 3_600_000),
        ],
    )
    browser.open_tab("https://docs.python.org/3/library/asyncio.html", "asyncio - Asynchronous I/O", active=True)
    browser.open_tab("https://peps.python.org/pep-0492/", "PEP 492 - Coroutines with async and await syntax")
    browser.open_tab("https://www.bbc.com/news", "BBC News - Home")
    browser.open_tab("https://www.reuters.com/world/", "World News | Reuters")
    browser.open_tab("https://www.amazon.com/dp/B0C1234567", "Mechanical Keyboard - Amazon.com")
    browser.open_tab("https://www.ebay.com/itm/1234", "Vintage Keycaps | eBay")
    browser.page_contents[1] = "asyncio is a library to write concurrent code using the async/await syntax."

    # =========================================================================
    # Phase 1: Context list
    # =========================================================================
    print("-" * 80)
    print("PHASE 1: Context list offered to the assistant")
    print("-" * 80)
    aggregator = ContextAggregator(
        browser,
        bookmark_limit=settings.bookmark_limit,
        access_manager=HostAccessManager(storage),
    )
    for ctx in await aggregator.aggregate():
        print(f"  {ctx.id:<14} {ctx.type.value:<9} {ctx.label}")
    history = await aggregator.get_history_context(
        max_results=settings.history_max_results, days=settings.history_days
    )
    for ctx in history:
        print(f"  {ctx.id:<14} {ctx.type.value:<9} {ctx.label}")
    print()

    # =========================================================================
    # Phase 2: Sync
    # =========================================================================
    print("-" * 80)
    print("PHASE 2: Keeping the list in sync")
    print("-" * 80)
    selected = [ctx for ctx in await aggregator.aggregate() if ctx.id == "tab-6"]

    def on_update(contexts):
        print(f"✓ Rebuilt: {len(contexts)} items")

    def on_remove(context_id):
        print(f"✓ Removed from selection: {context_id}")
        selected[:] = [ctx for ctx in selected if ctx.id != context_id]

    sync = TabsSyncController(
        browser,
        aggregator,
        on_contexts_update=on_update,
        on_context_remove=on_remove,
        get_selected_contexts=lambda: list(selected),
        debounce_ms=settings.sync_debounce_ms,
    )
    sync.start()
    await sync.wait_idle()
    browser.open_tab("https://github.com/python/cpython", "python/cpython - GitHub")
    browser.close_tab(6)
    await asyncio.sleep(settings.sync_debounce_ms / 1000 + 0.1)
    await sync.wait_idle()
    sync.stop()
    print()

    # =========================================================================
    # Phase 3: Organize twice
    # =========================================================================
    organizer = TabOrganizer(browser, classifier)
    for run in (1, 2):
        print("-" * 80)
        print(f"PHASE 3.{run}: Organizing tabs")
        print("-" * 80)
        result = await organizer.organize_tabs()
        print(f"✓ success={result.success} tabs={result.grouped_tabs} groups={result.groups}")
        if result.error:
            print(f"✗ {result.error}")
        print_groups(browser)
        print()

    # =========================================================================
    # Phase 4: Ungroup
    # =========================================================================
    print("-" * 80)
    print("PHASE 4: Ungrouping")
    print("-" * 80)
    result = await organizer.ungroup_all()
    print(f"✓ Ungrouped {result.groups_ungrouped} groups")
    await classifier.close()


if __name__ == "__main__":
    asyncio.run(main())
