"""
Cycle types for the reconciler.

This module defines the data structures for one reconciliation cycle:
- CyclePhase: Phases of the per-cycle state machine
- CycleAction: What a cycle ended up doing
- RetryIntent: Which call a pending retry will repeat
- ReconciliationCycle: Ephemeral record emitted once per cycle
- PendingRetry: Retry state carried across ticks

Per project patterns:
- Use str enum for easy JSON serialization
- Dataclass with to_dict() for logging
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from fip_protocols import FloatingIPId, Node, NodeId


class CyclePhase(str, Enum):
    """Phases of a reconciliation cycle, in order."""

    IDLE = "idle"
    OBSERVING = "observing"
    DECIDING = "deciding"
    COMPARING = "comparing"
    NOOP = "noop"
    REASSIGNING = "reassigning"


class CycleAction(str, Enum):
    """Outcome recorded for a cycle."""

    NONE = "none"
    REASSIGN = "reassign"
    RETRY_SCHEDULED = "retry-scheduled"
    SKIPPED = "skipped"
    OBSERVE_ONLY = "observe-only"
    ABANDONED = "abandoned"


class RetryIntent(str, Enum):
    """Call a pending retry will repeat."""

    OBSERVE = "observe"
    ASSIGN = "assign"


@dataclass
class ReconciliationCycle:
    """
    One observe-decide-act pass for one floating IP.

    Not persisted. Lives for the duration of the cycle and is emitted as
    the cycle's decision record.

    Attributes:
        ip_id: Floating IP being reconciled
        started_at: Wall-clock start of the cycle
        phase: Last phase reached
        action: What the cycle did
        nodes: Cluster snapshot used for the decision
        observed: Assignment read from the cloud
        desired: Target computed by the decider
        reason: Decider explanation
        attempt: Retry number (0 for a fresh cycle)
        error: Error message if the cycle failed
        finished_at: Wall-clock end of the cycle
    """

    ip_id: FloatingIPId
    started_at: datetime = field(default_factory=datetime.now)
    phase: CyclePhase = CyclePhase.IDLE
    action: CycleAction = CycleAction.NONE
    nodes: tuple[Node, ...] = ()
    observed: NodeId | None = None
    desired: NodeId | None = None
    reason: str = ""
    attempt: int = 0
    error: str | None = None
    finished_at: datetime | None = None

    @property
    def candidate_count(self) -> int:
        """Healthy and eligible nodes in the snapshot."""
        return sum(1 for n in self.nodes if n.is_candidate)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a flat dict for structured logging."""
        return {
            "floating_ip": self.ip_id,
            "phase": self.phase.value,
            "action": self.action.value,
            "node_count": len(self.nodes),
            "candidate_count": self.candidate_count,
            "observed": self.observed,
            "desired": self.desired,
            "reason": self.reason,
            "attempt": self.attempt,
            "error": self.error,
        }

    def summary(self) -> str:
        """One-line description for log messages."""
        text = (
            f"{self.ip_id}: {self.action.value} "
            f"(observed={self.observed}, desired={self.desired}, "
            f"nodes={len(self.nodes)}, candidates={self.candidate_count}"
        )
        if self.attempt:
            text += f", attempt={self.attempt}"
        text += ")"
        if self.reason:
            text += f" {self.reason}"
        if self.error:
            text += f": {self.error}"
        return text


@dataclass
class PendingRetry:
    """
    Retry state for a floating IP, carried across ticks.

    Attributes:
        intent: Which call to repeat
        attempt: Retry number of the next attempt (1-based)
        next_attempt_at: Clock time when the retry becomes due
        target: Desired node for ASSIGN retries (not re-decided)
        observed: Assignment observed when the intent was formed
    """

    intent: RetryIntent
    attempt: int
    next_attempt_at: float
    target: NodeId | None = None
    observed: NodeId | None = None

    def is_due(self, now: float) -> bool:
        """True when the retry may run at time `now`."""
        return now >= self.next_attempt_at
