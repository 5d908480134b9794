"""
Lease store protocol.

A LeaseStore holds one LeaseState per lease name and mutates it only by
compare-and-swap. Read-then-write without the expected value is never
offered, so two replicas cannot both believe they won the same lease.
"""

from typing import Protocol, runtime_checkable

from fip_protocols.types import LeaseState


@runtime_checkable
class LeaseStore(Protocol):
    """Protocol for coordination backends with conditional writes."""

    async def read(self, name: str) -> LeaseState | None:
        """
        Read the current lease value.

        Returns:
            The stored LeaseState, or None if no lease exists.

        Raises:
            LeaseError: If the backend is unreachable.
        """
        ...

    async def compare_and_swap(
        self,
        name: str,
        expected: LeaseState | None,
        new: LeaseState | None,
    ) -> bool:
        """
        Atomically replace `expected` with `new`.

        Args:
            name: Lease name.
            expected: Value the caller last read (None = no lease stored).
            new: Replacement value (None = delete the lease).

        Returns:
            True if the stored value equalled `expected` and was replaced.

        Raises:
            LeaseError: If the backend is unreachable.
        """
        ...
