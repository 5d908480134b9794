"""
Leader election for controller replicas.

Exports:
    LeaderCoordinator: Lease acquisition and renewal for one replica
    InMemoryLeaseStore: Process-local store (single replica, tests)
    RedisLeaseStore: Redis store with a Lua compare-and-swap script
"""

from fip_core.leader.coordinator import LeaderCoordinator
from fip_core.leader.memory import InMemoryLeaseStore


def __getattr__(name: str):
    """Lazy import for RedisLeaseStore so redis loads only when used."""
    if name == "RedisLeaseStore":
        from fip_core.leader.redis_store import RedisLeaseStore

        return RedisLeaseStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["LeaderCoordinator", "InMemoryLeaseStore", "RedisLeaseStore"]
