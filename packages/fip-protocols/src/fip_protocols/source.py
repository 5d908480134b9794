"""
Cluster state source protocol.

A ClusterStateSource supplies the current set of candidate nodes with
their health and eligibility. It may be backed by a pull (a fresh API list
per call) or by a watch stream (the latest snapshot seen so far). The
reconciler cannot tell the two apart.
"""

from typing import Protocol, runtime_checkable

from fip_protocols.types import Node


@runtime_checkable
class ClusterStateSource(Protocol):
    """
    Protocol for cluster membership and health providers.

    Implementations must be side-effect free and return a best-effort
    snapshot. On a transient failure they raise ClusterReadError, which
    the reconciler treats as "skip this cycle".
    """

    async def current_nodes(self) -> list[Node]:
        """
        Return the latest known node set.

        Returns:
            List of Node objects. Order carries no meaning.

        Raises:
            ClusterReadError: If no usable snapshot is available.
        """
        ...
