"""
Generic cluster state sources.

Two ClusterStateSource implementations that adapt any backend:

- PollingClusterSource: every current_nodes() call is a fresh pull.
- WatchingClusterSource: a background task consumes a restartable stream
  of snapshots and keeps only the latest one. Superseded snapshots are
  dropped, never queued. A `changed` event lets the reconciler run an
  out-of-band cycle when membership or health changes.

Both convert backend failures into ClusterReadError so the reconciler
can skip the cycle instead of crashing.
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable

from fip_protocols import ClusterReadError, ClusterSnapshot, Node

logger = logging.getLogger(__name__)

NodeFetcher = Callable[[], Awaitable[list[Node]]]
SnapshotStreamFactory = Callable[[], AsyncIterator[list[Node]]]


class PollingClusterSource:
    """
    Pull-based source: calls `fetch` on every read.

    Example:
        source = PollingClusterSource(kube.list_nodes)
        nodes = await source.current_nodes()
    """

    def __init__(self, fetch: NodeFetcher) -> None:
        self._fetch = fetch

    async def current_nodes(self) -> list[Node]:
        try:
            return list(await self._fetch())
        except ClusterReadError:
            raise
        except Exception as e:
            raise ClusterReadError(f"Cluster read failed: {e}") from e


class WatchingClusterSource:
    """
    Watch-based source holding the latest known snapshot.

    The stream factory is called again whenever the stream ends or fails,
    after `restart_delay` seconds. If the latest snapshot is older than
    `max_staleness` and a `fetch` fallback is given, current_nodes() pulls
    a fresh snapshot instead of serving stale data.

    Use as an async context manager to run the background consumer:

        async with WatchingClusterSource(kube.snapshots, fetch=kube.list_nodes) as source:
            await source.changed.wait()
            nodes = await source.current_nodes()
    """

    def __init__(
        self,
        stream_factory: SnapshotStreamFactory,
        fetch: NodeFetcher | None = None,
        max_staleness: float | None = None,
        restart_delay: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._stream_factory = stream_factory
        self._fetch = fetch
        self._max_staleness = max_staleness
        self._restart_delay = restart_delay
        self._clock = clock
        self._latest: ClusterSnapshot | None = None
        self._task: asyncio.Task | None = None
        self.changed = asyncio.Event()

    @property
    def latest(self) -> ClusterSnapshot | None:
        """Most recent snapshot, or None before the first one arrives."""
        return self._latest

    async def __aenter__(self) -> "WatchingClusterSource":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    def start(self) -> None:
        """Start consuming the snapshot stream in the background."""
        if self._task is None:
            self._task = asyncio.create_task(self._consume())

    async def stop(self) -> None:
        """Cancel the background consumer."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def current_nodes(self) -> list[Node]:
        snapshot = self._latest
        if snapshot is not None and not self._is_stale(snapshot):
            return list(snapshot.nodes)

        if self._fetch is not None:
            try:
                nodes = await self._fetch()
            except Exception as e:
                raise ClusterReadError(f"Cluster resync failed: {e}") from e
            self.publish(nodes)
            return list(nodes)

        if snapshot is None:
            raise ClusterReadError("No cluster snapshot received yet")
        raise ClusterReadError(
            f"Latest cluster snapshot is {self._clock() - snapshot.observed_at:.1f}s old"
        )

    def publish(self, nodes: list[Node]) -> None:
        """
        Replace the latest snapshot (last write wins).

        Sets `changed` when the node set differs from the previous one.
        """
        previous = self._latest
        snapshot = ClusterSnapshot(nodes=tuple(nodes), observed_at=self._clock())
        self._latest = snapshot
        if previous is None or _node_key(previous.nodes) != _node_key(snapshot.nodes):
            self.changed.set()

    def _is_stale(self, snapshot: ClusterSnapshot) -> bool:
        if self._max_staleness is None:
            return False
        return self._clock() - snapshot.observed_at > self._max_staleness

    async def _consume(self) -> None:
        while True:
            try:
                async for nodes in self._stream_factory():
                    self.publish(nodes)
                logger.info("Cluster watch stream ended, restarting")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Cluster watch failed: {e}. Restarting in {self._restart_delay}s")
            await asyncio.sleep(self._restart_delay)


def _node_key(nodes: tuple[Node, ...]) -> list[Node]:
    return sorted(nodes, key=lambda n: n.id)
