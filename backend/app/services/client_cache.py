import asyncio
import logging
from collections.abc import Callable
from typing import Any

log = logging.getLogger(__name__)


class RegionClientCache:
    """
    Process-wide map of region code -> initialized upstream client.

    Read-mostly after the first request per region. Two concurrent first
    requests for the same region may both build a client; the first one stored
    wins and the other is closed, so the cache never holds more than one client
    per region.
    """

    def __init__(self, factory: Callable[[str], Any]):
        self._factory = factory
        self._clients: dict[str, Any] = {}

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, region: str) -> bool:
        return region.upper() in self._clients

    async def get(self, region: str) -> Any:
        key = region.upper()
        client = self._clients.get(key)
        if client is not None:
            return client

        created = await asyncio.to_thread(self._factory, key)
        client = self._clients.setdefault(key, created)
        if client is not created:
            log.debug("discarding duplicate client for region %s", key)
            _close_quietly(created)
        else:
            log.info("initialized upstream client for region %s", key)
        return client

    def close(self) -> None:
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            _close_quietly(client)


def _close_quietly(client: Any) -> None:
    close = getattr(client, "close", None)
    if not callable(close):
        return
    try:
        close()
    except Exception as exc:
        log.warning("failed to close upstream client: %s", exc)
