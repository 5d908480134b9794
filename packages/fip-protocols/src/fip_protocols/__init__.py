"""
Protocol definitions for the floating IP controller.

This package provides the data model, the Protocol interfaces and the
error taxonomy shared by the controller core and its backends. It has
zero dependencies on other fip-* packages.

Key protocols:
- ClusterStateSource: Interface for node membership/health providers
- CloudIPClient: Interface for floating IP providers
- LeaseStore: Interface for compare-and-swap coordination backends

Key types:
- Node, NodeHealth, NodeId: Cluster node model
- FloatingIP, FloatingIPId: Floating IP model
- LeaseState: Leader lease value
- ClusterSnapshot: Timestamped node set from a watch stream
"""

from fip_protocols.cloud import CloudIPClient
from fip_protocols.errors import (
    ApiError,
    ApiErrorKind,
    ClusterReadError,
    ConfigurationError,
    FipControllerError,
    LeaseError,
)
from fip_protocols.lease import LeaseStore
from fip_protocols.source import ClusterStateSource
from fip_protocols.types import (
    ClusterSnapshot,
    FloatingIP,
    FloatingIPId,
    LeaseState,
    Node,
    NodeHealth,
    NodeId,
)

__all__ = [
    # Protocols
    "ClusterStateSource",
    "CloudIPClient",
    "LeaseStore",
    # Data types
    "Node",
    "NodeHealth",
    "NodeId",
    "FloatingIP",
    "FloatingIPId",
    "LeaseState",
    "ClusterSnapshot",
    # Errors
    "FipControllerError",
    "ConfigurationError",
    "ClusterReadError",
    "LeaseError",
    "ApiError",
    "ApiErrorKind",
]
