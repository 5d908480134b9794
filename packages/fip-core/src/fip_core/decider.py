"""
Assignment decider: which node should hold the floating IP.

The decider is a pure function of the observed node set and the observed
current assignment. It keeps no state between calls, so it is recomputed
from scratch every cycle and self-corrects after restarts or missed
cycles.

Policy:
1. Candidates are nodes that are eligible AND healthy. UNKNOWN health is
   treated as unhealthy.
2. If there is no candidate, keep whatever is assigned now. A stale IP
   beats no IP, so the decider never asks for a proactive deassignment.
3. If the current target is still a candidate, keep it (sticky). This
   avoids churn when several nodes are healthy at once.
4. Otherwise pick the smallest candidate id in a total order, so that
   independent replicas deciding concurrently agree on the same node.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from fip_protocols import Node, NodeId


@dataclass(frozen=True)
class Decision:
    """
    Outcome of a decision with a human-readable reason.

    Attributes:
        target: Node the floating IP should point at (None = no target).
        reason: Short explanation for the decision record.
        candidates: Ids of the healthy and eligible nodes, in order.
    """

    target: NodeId | None
    reason: str
    candidates: tuple[NodeId, ...] = ()


def node_order_key(node_id: NodeId) -> tuple[int, int, str]:
    """
    Total order over node ids.

    Numeric ids (Hetzner server ids) compare numerically and sort before
    non-numeric ids, which compare lexicographically.
    """
    if node_id.isascii() and node_id.isdecimal():
        return (0, int(node_id), node_id)
    return (1, 0, node_id)


def candidates(nodes: Iterable[Node]) -> list[NodeId]:
    """Return ids of healthy and eligible nodes in deterministic order."""
    ids = {node.id for node in nodes if node.is_candidate}
    return sorted(ids, key=node_order_key)


def explain(nodes: Iterable[Node], current: NodeId | None) -> Decision:
    """
    Decide the target and say why.

    Args:
        nodes: Latest observed node set.
        current: Node currently holding the IP, if known.

    Returns:
        Decision with target, reason and candidate list.
    """
    eligible = candidates(nodes)

    if not eligible:
        if current is None:
            return Decision(None, "no healthy eligible node")
        return Decision(current, "no healthy eligible node, keeping current")

    if current is not None and current in eligible:
        return Decision(current, "current target is healthy and eligible", tuple(eligible))

    if current is None:
        reason = "unassigned, picking first candidate"
    else:
        reason = f"current target {current} is unhealthy or ineligible"
    return Decision(eligible[0], reason, tuple(eligible))


def decide(nodes: Iterable[Node], current: NodeId | None) -> NodeId | None:
    """
    Map (nodes, current assignment) to the desired target node.

    Returns:
        The node id the floating IP should be assigned to. Equal to
        `current` when no change is needed or no candidate exists.
    """
    return explain(nodes, current).target
