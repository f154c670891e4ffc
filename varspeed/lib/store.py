"""In-memory store of finished election runs.

Results live only as long as the server process; nothing is written to disk.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Any

from varspeed.config import Settings, get_settings
from varspeed.lib.exceptions import ElectionNotFoundError
from varspeed.lib.models import ElectionResult

logger = logging.getLogger(__name__)


class ElectionStore:
    """
    Bounded store of recent election results.

    Oldest results are evicted once ``history_limit`` is reached.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._results: OrderedDict[str, ElectionResult] = OrderedDict()
        self._lock = asyncio.Lock()

    async def save(self, result: ElectionResult) -> None:
        """Store or replace a result."""
        async with self._lock:
            self._results[result.election_id] = result
            self._results.move_to_end(result.election_id)
            while len(self._results) > self.settings.history_limit:
                evicted, _ = self._results.popitem(last=False)
                logger.debug(f"Evicted election {evicted}")

    async def get(self, election_id: str) -> ElectionResult:
        """
        Get a result by id.

        Raises:
            ElectionNotFoundError: If the election is unknown or evicted
        """
        async with self._lock:
            result = self._results.get(election_id)
        if result is None:
            raise ElectionNotFoundError(election_id)
        return result

    async def list_ids(self) -> list[str]:
        async with self._lock:
            return list(self._results.keys())

    async def clear(self) -> None:
        async with self._lock:
            self._results.clear()

    def get_stats(self) -> dict[str, Any]:
        return {
            "stored_elections": len(self._results),
            "history_limit": self.settings.history_limit,
        }


# =============================================================================
# Module-level store instance
# =============================================================================


_default_store: ElectionStore | None = None


async def get_election_store() -> ElectionStore:
    """Get the default store instance."""
    global _default_store
    if _default_store is None:
        _default_store = ElectionStore()
    return _default_store


async def close_election_store() -> None:
    """Drop the default store."""
    global _default_store
    if _default_store:
        await _default_store.clear()
        _default_store = None
