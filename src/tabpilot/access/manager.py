"""
Host access policy holder.

The policy is persisted in a KeyValueStore and re-read on every check so
that an update made elsewhere (the settings page, another process) takes
effect immediately.
"""

import json
from importlib import resources
from typing import Any, Optional

from pydantic import ValidationError

from tabpilot.access.matcher import is_allowed
from tabpilot.access.models import AccessDecision, HostAccessConfig
from tabpilot.config import get_logger
from tabpilot.storage import KeyValueStore

logger = get_logger(__name__)

STORAGE_KEY = "hostAccessConfig"
DEFAULT_CONFIG_RESOURCE = "host-access-config.json"


def load_packaged_default() -> HostAccessConfig:
    """Load the default policy document shipped with the package."""
    text = resources.files("tabpilot.data").joinpath(DEFAULT_CONFIG_RESOURCE).read_text(encoding="utf-8")
    return HostAccessConfig.model_validate(json.loads(text))


class HostAccessManager:
    """
    Loads, saves and applies the host access policy.

    Lookup order on every access:
    1. The value stored under ``hostAccessConfig``
    2. The packaged default document
    3. A hardcoded include-all policy

    Attributes:
        storage: Backend holding the persisted policy
        config: Last policy loaded or saved (value of record)
    """

    def __init__(self, storage: KeyValueStore, default_loader=load_packaged_default):
        """
        Initialize the manager.

        Args:
            storage: Backend holding the persisted policy
            default_loader: Callable returning the packaged default policy
        """
        self.storage = storage
        self.default_loader = default_loader
        self.config = HostAccessConfig()

    async def load_config(self) -> HostAccessConfig:
        """Re-read the policy, falling back as described on the class."""
        try:
            stored = await self.storage.get(STORAGE_KEY)
            if stored:
                self.config = HostAccessConfig.model_validate(stored)
                return self.config
        except ValidationError as e:
            logger.warning(f"Stored host access config is malformed, ignoring it: {e}")
        except Exception as e:
            logger.warning(f"Failed to load host access config from storage: {e}")

        try:
            self.config = self.default_loader()
        except Exception as e:
            logger.error(f"Failed to load default host access config: {e}")
            self.config = HostAccessConfig()
        return self.config

    async def save_config(self, config: HostAccessConfig) -> None:
        """Persist a policy, then make it the value of record."""
        await self.storage.set(STORAGE_KEY, config.model_dump(mode="json"))
        self.config = config
        logger.info(f"Saved host access config (mode={config.mode.value})")

    async def get_config(self) -> HostAccessConfig:
        """Get the current policy."""
        return await self.load_config()

    async def update_config(self, **updates: Any) -> HostAccessConfig:
        """
        Merge field updates into the current policy and save it.

        Args:
            **updates: Any of mode, whitelist, blocklist

        Returns:
            The saved policy

        Raises:
            ValidationError: If the merged policy is invalid
        """
        current = await self.load_config()
        merged = HostAccessConfig.model_validate({**current.model_dump(), **updates})
        await self.save_config(merged)
        return merged

    async def is_host_allowed(self, url: Optional[str]) -> AccessDecision:
        """Check a URL against the freshly loaded policy."""
        config = await self.load_config()
        return is_allowed(url or "", config)
