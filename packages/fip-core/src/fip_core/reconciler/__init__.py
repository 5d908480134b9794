"""
Reconciler module: the floating IP control loop.

Exports:
    Reconciler: Daemon class running observe-decide-act cycles
    ReconciliationCycle: Decision record emitted once per cycle
    CycleAction: What a cycle did
    CyclePhase: Phases of the cycle state machine
    PendingRetry: Retry state carried across ticks
    RetryIntent: Call a pending retry repeats
"""

from fip_core.reconciler.loop import Reconciler
from fip_core.reconciler.types import (
    CycleAction,
    CyclePhase,
    PendingRetry,
    ReconciliationCycle,
    RetryIntent,
)

__all__ = [
    "Reconciler",
    "ReconciliationCycle",
    "CycleAction",
    "CyclePhase",
    "PendingRetry",
    "RetryIntent",
]
