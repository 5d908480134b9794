"""In-memory lease store for single-replica deployments and tests."""

import asyncio

from fip_protocols import LeaseError, LeaseState


class InMemoryLeaseStore:
    """
    Process-local LeaseStore with compare-and-swap semantics.

    Share one instance between several LeaderCoordinator objects to
    simulate multiple replicas competing for the same lease. Setting
    `available` to False simulates a partition from the backend: every
    call raises LeaseError.

    Example:
        store = InMemoryLeaseStore()
        a = LeaderCoordinator(store, identity="replica-a")
        b = LeaderCoordinator(store, identity="replica-b")
        await a.try_acquire_or_renew()  # True
        await b.try_acquire_or_renew()  # False
    """

    def __init__(self) -> None:
        self._leases: dict[str, LeaseState] = {}
        self._lock = asyncio.Lock()
        self.available = True

    async def read(self, name: str) -> LeaseState | None:
        self._check_available()
        return self._leases.get(name)

    async def compare_and_swap(
        self,
        name: str,
        expected: LeaseState | None,
        new: LeaseState | None,
    ) -> bool:
        self._check_available()
        async with self._lock:
            if self._leases.get(name) != expected:
                return False
            if new is None:
                self._leases.pop(name, None)
            else:
                self._leases[name] = new
            return True

    def _check_available(self) -> None:
        if not self.available:
            raise LeaseError("Lease store unavailable")
