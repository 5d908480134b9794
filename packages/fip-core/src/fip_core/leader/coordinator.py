"""
Leader coordinator: lease-based mutual exclusion between replicas.

Several controller replicas may observe and decide concurrently, but only
the lease holder may reassign a floating IP. The lease is an explicit
LeaseState value exchanged with a LeaseStore by compare-and-swap:

- absent or expired lease: take it over with term + 1
- lease held by us: renew with the same term
- lease held by someone else and still valid: not leader

The coordinator fails closed. A store error, a timeout or a lost CAS race
all answer "not leader". It keeps no cached "am I leader" flag for callers
to trust; the reconciler asks fresh before every mutation.
"""

import asyncio
import logging
import time
from collections.abc import Callable

from fip_core import metrics
from fip_protocols import LeaseError, LeaseState, LeaseStore

logger = logging.getLogger(__name__)


class LeaderCoordinator:
    """
    Acquires and renews a named lease on behalf of one replica.

    Example:
        coordinator = LeaderCoordinator(store, identity="replica-a", lease_duration=15.0)
        if await coordinator.try_acquire_or_renew():
            await cloud.assign(ip, node)
    """

    def __init__(
        self,
        store: LeaseStore,
        identity: str,
        lease_name: str = "fip-controller",
        lease_duration: float = 15.0,
        renew_interval: float | None = None,
        timeout: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            store: Shared coordination backend
            identity: Unique identity of this replica
            lease_name: Name of the lease in the store
            lease_duration: Seconds a lease stays valid without renewal
            renew_interval: Seconds between background renewals
                (default: a third of lease_duration)
            timeout: Deadline for one acquire/renew round trip
            clock: Wall-clock source shared by all replicas
        """
        if renew_interval is None:
            renew_interval = lease_duration / 3
        if renew_interval >= lease_duration:
            raise ValueError("renew_interval must be smaller than lease_duration")

        self.store = store
        self.identity = identity
        self.lease_name = lease_name
        self.lease_duration = lease_duration
        self.renew_interval = renew_interval
        self.timeout = timeout
        self._clock = clock
        self._last_term: int | None = None
        self._lock = asyncio.Lock()

    async def try_acquire_or_renew(self) -> bool:
        """
        Acquire the lease if free, renew it if ours.

        Concurrent calls (keep_alive and the reconciler) run one at a
        time, so each CAS compares against a lease this replica read after
        its own previous write.

        Returns:
            True if this replica holds the lease after the call.
        """
        try:
            async with self._lock:
                held = await asyncio.wait_for(self._acquire_or_renew(), timeout=self.timeout)
        except (LeaseError, asyncio.TimeoutError) as e:
            logger.warning(f"Lease check failed, assuming not leader: {e!r}")
            held = False

        if not held and self._last_term is not None:
            logger.warning(f"Lost leadership of {self.lease_name!r} (term {self._last_term})")
            self._last_term = None
        metrics.set_leader(held)
        return held

    async def _acquire_or_renew(self) -> bool:
        now = self._clock()
        current = await self.store.read(self.lease_name)

        if current is not None and not current.is_expired(now):
            if current.holder != self.identity:
                return False
            term = current.term
        else:
            term = (current.term if current is not None else 0) + 1

        new = LeaseState(
            holder=self.identity,
            expires_at=now + self.lease_duration,
            term=term,
        )
        if not await self.store.compare_and_swap(self.lease_name, current, new):
            return False

        if self._last_term != term:
            logger.info(f"Acquired leadership of {self.lease_name!r} (term {term})")
        self._last_term = term
        return True

    async def release(self) -> None:
        """
        Give up the lease if we hold it.

        The lease is marked expired rather than deleted so that the next
        holder continues the term sequence.
        """
        try:
            async with self._lock:
                current = await asyncio.wait_for(
                    self.store.read(self.lease_name), timeout=self.timeout
                )
                if current is None or current.holder != self.identity:
                    return
                released = LeaseState(holder=self.identity, expires_at=0.0, term=current.term)
                await asyncio.wait_for(
                    self.store.compare_and_swap(self.lease_name, current, released),
                    timeout=self.timeout,
                )
            logger.info(f"Released leadership of {self.lease_name!r} (term {current.term})")
        except (LeaseError, asyncio.TimeoutError) as e:
            logger.warning(f"Lease release failed: {e!r}")
        finally:
            self._last_term = None
            metrics.set_leader(False)

    async def keep_alive(self, shutdown: asyncio.Event) -> None:
        """
        Renew the lease every renew_interval until shutdown is set.

        Keeps leadership warm between reconciliation cycles. Callers that
        mutate still check try_acquire_or_renew() themselves.
        """
        while not shutdown.is_set():
            await self.try_acquire_or_renew()
            try:
                await asyncio.wait_for(shutdown.wait(), timeout=self.renew_interval)
            except asyncio.TimeoutError:
                pass
