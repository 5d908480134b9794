"""
Kubernetes node source backed by kr8s.

KubeNodeSource lists nodes for pull-based reconciliation and produces a
snapshot stream from the node watch for WatchingClusterSource. Each watch
event is applied to a local map keyed by node name, and the full node set
is yielded after every event.

Uses kr8s async API:
- kr8s.asyncio.get("nodes"): async iterator over Node objects
- kr8s.asyncio.watch("nodes"): async iterator of (event_type, Node)
"""

import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import kr8s.asyncio

from fip_kube.convert import EligibilityRules, node_from_kube
from fip_protocols import ClusterReadError, Node

logger = logging.getLogger(__name__)

WATCH_EVENTS = ("ADDED", "MODIFIED", "DELETED")


def _raw(obj: Any) -> dict[str, Any]:
    """Raw dict of a kr8s object (plain dicts pass through)."""
    return obj.raw if hasattr(obj, "raw") else obj


class KubeNodeSource:
    """
    Reads cluster nodes from the Kubernetes API.

    Attributes:
        rules: Eligibility rules applied during conversion

    Example:
        kube = KubeNodeSource(EligibilityRules(exclude_label="fip/exclude"))
        nodes = await kube.list_nodes()

        async with WatchingClusterSource(kube.snapshots, fetch=kube.list_nodes) as source:
            ...
    """

    def __init__(
        self,
        rules: EligibilityRules | None = None,
        lister: Callable[..., AsyncIterator[Any]] | None = None,
        watcher: Callable[..., AsyncIterator[tuple[str, Any]]] | None = None,
    ) -> None:
        """
        Initialize the source.

        Args:
            rules: Eligibility rules (defaults to EligibilityRules())
            lister: Replacement for kr8s.asyncio.get (tests)
            watcher: Replacement for kr8s.asyncio.watch (tests)
        """
        self.rules = rules or EligibilityRules()
        self._list = lister or kr8s.asyncio.get
        self._watch = watcher or kr8s.asyncio.watch

    def _convert(self, objs: list[dict[str, Any]]) -> list[Node]:
        nodes = [node_from_kube(raw, self.rules) for raw in objs]
        return [n for n in nodes if n is not None]

    async def list_nodes(self) -> list[Node]:
        """
        List and convert all nodes.

        Raises:
            ClusterReadError: If the Kubernetes API call fails.
        """
        try:
            objs = [_raw(obj) async for obj in self._list("nodes")]
        except Exception as e:
            raise ClusterReadError(f"Listing Kubernetes nodes failed: {e}") from e
        return self._convert(objs)

    async def snapshots(self) -> AsyncIterator[list[Node]]:
        """
        Yield the full node set after the initial list and every watch event.

        The stream ends or raises when the watch breaks; the caller
        restarts it by calling snapshots() again.
        """
        known: dict[str, dict[str, Any]] = {}
        async for obj in self._list("nodes"):
            raw = _raw(obj)
            known[raw["metadata"]["name"]] = raw
        yield self._convert(list(known.values()))

        async for event, obj in self._watch("nodes"):
            if event not in WATCH_EVENTS:
                continue
            raw = _raw(obj)
            name = raw["metadata"]["name"]
            if event == "DELETED":
                known.pop(name, None)
            else:
                known[name] = raw
            logger.debug(f"Node {name!r} event {event}")
            yield self._convert(list(known.values()))
