"""
Floating IP Controller Core

Provider-independent parts of the floating IP controller:

- Decider: Pure choice of the node that should hold a floating IP
- Reconciler: Observe/decide/reassign control loop with retry backoff
- Leader election: Lease-based mutual exclusion between replicas
- Cluster sources: Polling and watching adapters for any node backend
- Configuration and CLI infrastructure: pydantic-settings and Typer
"""

__version__ = "0.1.0"

from fip_core.config import ReconcilerConfig, Settings, load_settings
from fip_core.decider import Decision, candidates, decide, explain
from fip_core.leader import InMemoryLeaseStore, LeaderCoordinator
from fip_core.reconciler import (
    CycleAction,
    PendingRetry,
    ReconciliationCycle,
    Reconciler,
)
from fip_core.retry import RetryConfig
from fip_core.sources import PollingClusterSource, WatchingClusterSource

__all__ = [
    "__version__",
    # Decider
    "decide",
    "explain",
    "candidates",
    "Decision",
    # Reconciler
    "Reconciler",
    "ReconciliationCycle",
    "CycleAction",
    "PendingRetry",
    "RetryConfig",
    # Leader election
    "LeaderCoordinator",
    "InMemoryLeaseStore",
    # Cluster sources
    "PollingClusterSource",
    "WatchingClusterSource",
    # Configuration
    "Settings",
    "ReconcilerConfig",
    "load_settings",
]
