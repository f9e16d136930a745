"""
Keeps the available context list in sync with browser tab events.

The controller listens to tab lifecycle notifications and rebuilds the
aggregated context list with a debounce, so a burst of events results in
one rebuild. Selected context items belonging to a closed tab are
removed right away, without waiting for the rebuild.
"""

import inspect
from typing import Any, Callable, Optional, Union

from tabpilot.browser.base import BrowserHost
from tabpilot.browser.models import TabChangeInfo, TabEvent
from tabpilot.config import get_logger
from tabpilot.context.aggregator import ContextAggregator
from tabpilot.context.models import ContextItem, source_tab_id
from tabpilot.sync.scheduler import SingleSlotScheduler

logger = get_logger(__name__)

ContextsCallback = Callable[[list[ContextItem]], Any]
RemoveCallback = Callable[[str], Any]
SelectionGetter = Callable[[], list[ContextItem]]


class TabsSyncController:
    """
    Debounced context rebuilds driven by tab lifecycle events.

    States:
    - idle: no rebuild scheduled
    - pending-rebuild: exactly one rebuild scheduled on the scheduler

    At most one rebuild runs at a time. A rebuild requested while another
    is running is folded into a single trailing run, so results are
    delivered in request order.

    Attributes:
        browser: Host whose tab events are observed
        aggregator: Builds the context list on every rebuild
        debounce_delay: Quiet period in seconds before a rebuild fires
        scheduler: Single-slot scheduler holding the pending rebuild
    """

    def __init__(
        self,
        browser: BrowserHost,
        aggregator: ContextAggregator,
        on_contexts_update: ContextsCallback,
        on_context_remove: RemoveCallback,
        get_selected_contexts: SelectionGetter,
        debounce_ms: int = 300,
    ):
        """
        Initialize the controller.

        Args:
            browser: Host whose tab events are observed
            aggregator: Builds the context list on every rebuild
            on_contexts_update: Receives every successfully rebuilt list
            on_context_remove: Receives the id of a selected item whose tab closed;
                called synchronously from the event handler, a returned
                awaitable is run in the background
            get_selected_contexts: Returns the caller's current selection
            debounce_ms: Quiet period before a rebuild fires (default: 300)
        """
        self.browser = browser
        self.aggregator = aggregator
        self.on_contexts_update = on_contexts_update
        self.on_context_remove = on_context_remove
        self.get_selected_contexts = get_selected_contexts
        self.debounce_delay = debounce_ms / 1000
        self.scheduler = SingleSlotScheduler()
        self.rebuilds_completed = 0
        self._initialized = False
        self._running = False
        self._rebuilding = False
        self._rerun_requested = False
        self._listeners = {
            TabEvent.ACTIVATED: self.handle_tab_activated,
            TabEvent.CREATED: self.handle_tab_created,
            TabEvent.REMOVED: self.handle_tab_removed,
            TabEvent.UPDATED: self.handle_tab_updated,
        }

    @property
    def rebuild_pending(self) -> bool:
        return self.scheduler.pending

    def start(self) -> None:
        """
        Attach listeners; the first start also loads contexts immediately.

        Must be called from within a running event loop.
        """
        if self._running:
            return

        if not self._initialized:
            self._initialized = True
            self.rebuild_contexts(immediate=True)

        for event, listener in self._listeners.items():
            self.browser.add_listener(event, listener)
        self._running = True
        logger.debug("Tab sync started")

    def stop(self) -> None:
        """Cancel the pending rebuild and detach all listeners."""
        self.scheduler.cancel()
        self._rerun_requested = False
        for event, listener in self._listeners.items():
            self.browser.remove_listener(event, listener)
        self._running = False
        logger.debug("Tab sync stopped")

    async def wait_idle(self) -> None:
        """Wait for every rebuild that has already started to finish."""
        await self.scheduler.drain()

    def rebuild_contexts(self, immediate: bool = False) -> None:
        """Schedule a debounced rebuild, or run one right away."""
        self.scheduler.cancel()
        if immediate:
            self.scheduler.run_now(self._rebuild)
        else:
            self.scheduler.schedule(self.debounce_delay, self._rebuild)

    async def _rebuild(self) -> None:
        if self._rebuilding:
            self._rerun_requested = True
            return

        self._rebuilding = True
        try:
            while True:
                self._rerun_requested = False
                await self._rebuild_once()
                if not self._rerun_requested:
                    break
        finally:
            self._rebuilding = False

    async def _rebuild_once(self) -> None:
        try:
            contexts = await self.aggregator.aggregate()
            result = self.on_contexts_update(contexts)
            if inspect.isawaitable(result):
                await result
            self.rebuilds_completed += 1
            logger.info(f"Contexts updated: {len(contexts)} items")
        except Exception as e:
            logger.error(f"Failed to rebuild contexts: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Tab event handlers
    # ------------------------------------------------------------------

    def handle_tab_activated(self, tab_id: int, window_id: Optional[int] = None) -> None:
        """The current tab changed; the page item must follow it."""
        self.rebuild_contexts()

    def handle_tab_created(self, tab: Any = None) -> None:
        self.rebuild_contexts()

    def handle_tab_removed(self, tab_id: int, *_: Any) -> None:
        """Drop selected items of the closed tab now, then rebuild."""
        try:
            selected = self.get_selected_contexts()
        except Exception as e:
            logger.error(f"Failed to read selected contexts: {e}")
            selected = []

        for ctx in selected:
            if source_tab_id(ctx.id) == tab_id:
                logger.info(f"Removing context for closed tab: {tab_id}")
                self._remove_context(ctx.id)

        self.rebuild_contexts()

    def _remove_context(self, context_id: str) -> None:
        try:
            result = self.on_context_remove(context_id)
        except Exception as e:
            logger.error(f"Failed to remove context {context_id}: {e}")
            return
        if inspect.isawaitable(result):
            self.scheduler.spawn(result)

    def handle_tab_updated(
        self,
        tab_id: int,
        change_info: Union[TabChangeInfo, dict],
        tab: Any = None,
    ) -> None:
        """Rebuild only for title, URL or load-complete changes."""
        if isinstance(change_info, dict):
            change_info = TabChangeInfo.model_validate(change_info)
        if change_info.is_meaningful():
            self.rebuild_contexts()
