"""
Wiring of a complete controller from Settings.

Uses lazy imports so that fip-core itself does not import the Hetzner,
Kubernetes or Redis packages until a controller is actually built.
"""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from fip_core.config import Settings
from fip_core.leader import InMemoryLeaseStore, LeaderCoordinator
from fip_core.reconciler import Reconciler
from fip_core.sources import PollingClusterSource, WatchingClusterSource
from fip_protocols import ApiError, ClusterStateSource, ConfigurationError, LeaseStore

if TYPE_CHECKING:
    from fip_hcloud import HCloudClient
    from fip_kube import KubeNodeSource


@dataclass
class Controller:
    """
    A wired controller and the resources it owns.

    Attributes:
        reconciler: The control loop
        source: Cluster state source used by the reconciler
        cloud: Hetzner Cloud client (owns an httpx client)
        kube: Kubernetes node reader behind the source
        redis_client: Redis connection of the lease store, if any
    """

    reconciler: Reconciler
    source: ClusterStateSource
    cloud: "HCloudClient"
    kube: "KubeNodeSource"
    redis_client: Any | None = None

    async def run(self) -> None:
        """Run the reconciler until shutdown, then close all resources."""
        try:
            if isinstance(self.source, WatchingClusterSource):
                async with self.source:
                    await self.reconciler.run()
            else:
                await self.reconciler.run()
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        await self.cloud.http.aclose()
        if self.redis_client is not None:
            await self.redis_client.aclose()


def create_lease_store(redis_url: str | None) -> tuple[LeaseStore, Any | None]:
    """
    Create the lease store: Redis when a URL is configured, else in-memory.

    Returns:
        Tuple of (store, redis client or None)
    """
    if not redis_url:
        return InMemoryLeaseStore(), None

    import redis.asyncio as redis

    from fip_core.leader.redis_store import RedisLeaseStore

    client = redis.Redis.from_url(redis_url, decode_responses=True)
    return RedisLeaseStore(client), client


async def build_controller(
    settings: Settings,
    cloud: "HCloudClient | None" = None,
    kube: "KubeNodeSource | None" = None,
) -> Controller:
    """
    Build a controller from settings.

    Configured floating IP references (ids or addresses) are resolved to
    provider ids with one API lookup each.

    Args:
        settings: Loaded Settings
        cloud: Optional pre-built Hetzner client (tests)
        kube: Optional pre-built Kubernetes node reader (tests)

    Raises:
        ConfigurationError: If the token is missing or a floating IP
            cannot be resolved.
    """
    from fip_hcloud import create_hcloud_client
    from fip_kube import EligibilityRules, KubeNodeSource

    if cloud is None:
        if settings.hcloud_token is None:
            raise ConfigurationError("No Hetzner Cloud token configured (set FIP_HCLOUD_TOKEN)")
        cloud = create_hcloud_client(
            token=settings.hcloud_token.get_secret_value(),
            endpoint=settings.hcloud_endpoint,
            timeout=settings.call_timeout_seconds,
        )

    try:
        floating_ips = tuple([await cloud.resolve(ref) for ref in settings.floating_ips])
    except ApiError as e:
        await cloud.http.aclose()
        raise ConfigurationError(f"Cannot resolve configured floating IPs: {e}") from e

    if kube is None:
        kube = KubeNodeSource(
            EligibilityRules(
                exclude_label=settings.exclude_label,
                node_selector=dict(settings.node_selector),
            )
        )

    trigger = None
    if settings.watch:
        source = WatchingClusterSource(
            kube.snapshots,
            fetch=kube.list_nodes,
            max_staleness=settings.max_staleness_seconds,
        )
        trigger = source.changed
    else:
        source = PollingClusterSource(kube.list_nodes)

    store, redis_client = create_lease_store(settings.redis_url)
    coordinator = LeaderCoordinator(
        store,
        identity=settings.identity,
        lease_name=settings.lease_name,
        lease_duration=settings.lease_duration_seconds,
        renew_interval=settings.renew_interval,
        timeout=settings.call_timeout_seconds,
    )

    reconciler = Reconciler(
        source=source,
        cloud=cloud,
        coordinator=coordinator,
        config=replace(settings.reconciler_config(), floating_ips=floating_ips),
        trigger=trigger,
    )
    return Controller(
        reconciler=reconciler,
        source=source,
        cloud=cloud,
        kube=kube,
        redis_client=redis_client,
    )
