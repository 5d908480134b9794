"""
Cloud IP client protocol.

The CloudIPClient wraps the two provider calls the controller needs. Both
are single remote calls with no retries of their own; retry policy lives
in the reconciler.
"""

from typing import Protocol, runtime_checkable

from fip_protocols.types import FloatingIPId, NodeId


@runtime_checkable
class CloudIPClient(Protocol):
    """
    Protocol for floating IP providers.

    Example:
        current = await client.get_assignment("1234")
        if current != "42":
            await client.assign("1234", "42")
    """

    async def get_assignment(self, ip_id: FloatingIPId) -> NodeId | None:
        """
        Read which node currently holds the floating IP.

        Returns:
            The node id, or None if the IP is unassigned.

        Raises:
            ApiError: With kind RateLimited, Unauthorized, NotFound,
                Transient or Unknown.
        """
        ...

    async def assign(self, ip_id: FloatingIPId, node_id: NodeId) -> None:
        """
        Point the floating IP at a node.

        Idempotent: assigning to the node that already holds the IP is a
        successful no-op.

        Raises:
            ApiError: Same taxonomy as get_assignment().
        """
        ...
