import asyncio
import threading
import time

from backend.app.services.client_cache import RegionClientCache


class FakeClient:
    def __init__(self, region):
        self.region = region
        self.closed = False

    def close(self):
        self.closed = True


def test_client_created_once_per_region():
    created = []

    def factory(region):
        client = FakeClient(region)
        created.append(client)
        return client

    cache = RegionClientCache(factory)

    async def scenario():
        first = await cache.get("kr")
        second = await cache.get("KR")
        other = await cache.get("US")
        return first, second, other

    first, second, other = asyncio.run(scenario())

    assert first is second
    assert first.region == "KR"
    assert other.region == "US"
    assert len(created) == 2
    assert len(cache) == 2
    assert "kr" in cache


def test_concurrent_first_requests_keep_one_client():
    created = []
    lock = threading.Lock()

    def slow_factory(region):
        time.sleep(0.05)
        client = FakeClient(region)
        with lock:
            created.append(client)
        return client

    cache = RegionClientCache(slow_factory)

    async def scenario():
        return await asyncio.gather(cache.get("JP"), cache.get("JP"))

    first, second = asyncio.run(scenario())

    assert first is second
    assert len(cache) == 1
    assert len(created) == 2
    discarded = [client for client in created if client is not first]
    assert len(discarded) == 1
    assert discarded[0].closed is True
    assert first.closed is False


def test_close_releases_every_client():
    cache = RegionClientCache(FakeClient)

    async def scenario():
        return [await cache.get("US"), await cache.get("GB")]

    clients = asyncio.run(scenario())

    cache.close()

    assert len(cache) == 0
    assert all(client.closed for client in clients)
