"""
Persistent key-value storage backends.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from tabpilot.config import get_logger

logger = get_logger(__name__)


class KeyValueStore(ABC):
    """Abstract interface for persisted extension state."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Get a stored value.

        Args:
            key: Storage key

        Returns:
            The JSON-compatible value, or None if the key is unset
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """
        Store a JSON-compatible value under a key.

        Args:
            key: Storage key
            value: Value to store
        """
        pass


class InMemoryStore(KeyValueStore):
    """Store that keeps values in a dict for the life of the process."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self.data: dict[str, Any] = dict(initial or {})

    async def get(self, key: str) -> Optional[Any]:
        return self.data.get(key)

    async def set(self, key: str, value: Any) -> None:
        self.data[key] = value


class JsonFileStore(KeyValueStore):
    """Store that persists every key in a single JSON document on disk.

    The document is re-read on every get so that writes made by another
    process are picked up.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable storage file {self.path}: {e}")
            return {}

    async def get(self, key: str) -> Optional[Any]:
        return self._read().get(key)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            data = self._read()
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
