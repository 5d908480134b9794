"""
Tests for the generic cluster state sources.

Verifies that:
- PollingClusterSource wraps backend failures into ClusterReadError
- WatchingClusterSource keeps only the latest snapshot
- `changed` fires only when the node set actually changes
- Stale or missing snapshots fall back to a fresh fetch
- The watch stream is restarted after it fails
"""

import asyncio

import pytest

from fip_core.sources import PollingClusterSource, WatchingClusterSource
from fip_protocols import ClusterReadError, ClusterStateSource, Node, NodeHealth


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def healthy(node_id: str) -> Node:
    return Node(id=node_id, health=NodeHealth.HEALTHY)


async def wait_until(predicate, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


async def never_yields():
    await asyncio.Event().wait()
    yield []


class TestPollingClusterSource:
    @pytest.mark.asyncio
    async def test_returns_fetched_nodes(self):
        async def fetch():
            return [healthy("1")]

        source = PollingClusterSource(fetch)

        assert isinstance(source, ClusterStateSource)
        assert await source.current_nodes() == [healthy("1")]

    @pytest.mark.asyncio
    async def test_backend_failure_is_cluster_read_error(self):
        async def fetch():
            raise RuntimeError("apiserver down")

        source = PollingClusterSource(fetch)

        with pytest.raises(ClusterReadError):
            await source.current_nodes()


class TestWatchingSnapshot:
    @pytest.mark.asyncio
    async def test_latest_snapshot_wins(self):
        source = WatchingClusterSource(never_yields)

        source.publish([healthy("1")])
        source.publish([healthy("1"), healthy("2")])

        assert await source.current_nodes() == [healthy("1"), healthy("2")]

    @pytest.mark.asyncio
    async def test_changed_only_on_real_change(self):
        source = WatchingClusterSource(never_yields)

        source.publish([healthy("1"), healthy("2")])
        assert source.changed.is_set()
        source.changed.clear()

        source.publish([healthy("2"), healthy("1")])
        assert not source.changed.is_set()

        source.publish([healthy("1"), Node(id="2", health=NodeHealth.UNHEALTHY)])
        assert source.changed.is_set()

    @pytest.mark.asyncio
    async def test_no_snapshot_without_fetch_is_an_error(self):
        source = WatchingClusterSource(never_yields)

        with pytest.raises(ClusterReadError):
            await source.current_nodes()

    @pytest.mark.asyncio
    async def test_stale_snapshot_without_fetch_is_an_error(self):
        clock = FakeClock()
        source = WatchingClusterSource(never_yields, max_staleness=30.0, clock=clock)
        source.publish([healthy("1")])

        clock.now += 31.0

        with pytest.raises(ClusterReadError):
            await source.current_nodes()

    @pytest.mark.asyncio
    async def test_stale_snapshot_is_refreshed_by_fetch(self):
        clock = FakeClock()
        fetched = []

        async def fetch():
            fetched.append(clock.now)
            return [healthy("2")]

        source = WatchingClusterSource(never_yields, fetch=fetch, max_staleness=30.0, clock=clock)
        source.publish([healthy("1")])

        assert await source.current_nodes() == [healthy("1")]
        clock.now += 31.0
        assert await source.current_nodes() == [healthy("2")]
        assert fetched == [1031.0]
        assert source.latest.nodes == (healthy("2"),)

    @pytest.mark.asyncio
    async def test_fetch_failure_is_cluster_read_error(self):
        async def fetch():
            raise ConnectionError("refused")

        source = WatchingClusterSource(never_yields, fetch=fetch)

        with pytest.raises(ClusterReadError):
            await source.current_nodes()


class TestWatchingStream:
    @pytest.mark.asyncio
    async def test_consumes_stream_in_background(self):
        async def stream():
            yield [healthy("1")]
            yield [healthy("1"), healthy("2")]
            await asyncio.Event().wait()

        async with WatchingClusterSource(stream) as source:
            await wait_until(lambda: source.latest is not None and len(source.latest.nodes) == 2)

        assert source.changed.is_set()

    @pytest.mark.asyncio
    async def test_failed_stream_is_restarted(self):
        calls = []

        async def stream():
            calls.append(1)
            if len(calls) == 1:
                raise ConnectionError("watch broke")
            yield [healthy("1")]
            await asyncio.Event().wait()

        async with WatchingClusterSource(stream, restart_delay=0.0) as source:
            await wait_until(lambda: source.latest is not None)

        assert len(calls) == 2
        assert source.latest.nodes == (healthy("1"),)
