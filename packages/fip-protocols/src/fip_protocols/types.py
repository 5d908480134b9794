"""
Generic types for the floating IP controller.

This module defines the data model shared by every package: cluster nodes
as seen by a cluster state source, floating IPs as seen by a cloud client,
and the lease value exchanged with a coordination backend.

Types are plain dataclasses. Node and LeaseState are frozen so that a
snapshot handed to the decider cannot be mutated behind its back.
"""

from dataclasses import dataclass, field
from enum import Enum


# Type aliases for common patterns
NodeId = str
"""Provider-assigned node identifier, stable across reconciliation cycles."""

FloatingIPId = str
"""Provider resource id of a floating IP."""


class NodeHealth(str, Enum):
    """Health signal reported for a node by a cluster state source."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Node:
    """
    A candidate target for the floating IP.

    The controller never creates or deletes nodes. It only reads them from
    a ClusterStateSource each cycle.

    Attributes:
        id: Provider node id (e.g. the Hetzner server id "4711").
        address: Network address of the node, used in logs and status output.
        health: Health signal. UNKNOWN is treated as unhealthy.
        eligible: False when the node is excluded externally (cordoned,
            exclusion label, selector mismatch) regardless of health.
        name: Orchestrator-side name (e.g. Kubernetes node name).
    """

    id: NodeId
    address: str = ""
    health: NodeHealth = NodeHealth.UNKNOWN
    eligible: bool = True
    name: str = ""

    @property
    def is_candidate(self) -> bool:
        """True when the node may receive the floating IP."""
        return self.eligible and self.health is NodeHealth.HEALTHY


@dataclass
class FloatingIP:
    """
    A floating IP reconciled by the controller.

    Attributes:
        id: Provider resource id.
        address: The IP address itself, when known.
        current: Node currently holding the IP (None if unassigned/unknown).
        desired: Node the decider selected in the latest cycle.
    """

    id: FloatingIPId
    address: str | None = None
    current: NodeId | None = None
    desired: NodeId | None = None


@dataclass(frozen=True)
class LeaseState:
    """
    Leader lease value stored in the coordination backend.

    Attributes:
        holder: Identity of the replica holding the lease.
        expires_at: Wall-clock expiry (seconds since epoch).
        term: Fencing token. Incremented every time the holder changes.
    """

    holder: str
    expires_at: float
    term: int = 0

    def is_expired(self, now: float) -> bool:
        """Check whether the lease has lapsed at time `now`."""
        return now >= self.expires_at

    def to_dict(self) -> dict[str, str]:
        """Serialize to a flat string mapping (for key-value stores)."""
        return {
            "holder": self.holder,
            "expires_at": repr(self.expires_at),
            "term": str(self.term),
        }

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "LeaseState":
        """Inverse of to_dict()."""
        return cls(
            holder=data["holder"],
            expires_at=float(data["expires_at"]),
            term=int(data["term"]),
        )


@dataclass(frozen=True)
class ClusterSnapshot:
    """
    A point-in-time view of the cluster as delivered by a watch stream.

    Attributes:
        nodes: All nodes known at observation time.
        observed_at: Monotonic timestamp of the observation.
    """

    nodes: tuple[Node, ...] = field(default_factory=tuple)
    observed_at: float = 0.0
