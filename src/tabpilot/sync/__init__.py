"""
Synchronization of the context list with browser tab events.
"""

from tabpilot.sync.controller import TabsSyncController
from tabpilot.sync.scheduler import SingleSlotScheduler

__all__ = ["SingleSlotScheduler", "TabsSyncController"]
