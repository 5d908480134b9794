"""Prometheus metrics for the floating IP controller."""

from prometheus_client import Counter, Gauge

# Reconciliation cycle metrics
CYCLES = Counter(
    "fip_controller_cycles_total",
    "Reconciliation cycles by resulting action",
    ["floating_ip", "action"],
)

REASSIGNMENTS = Counter(
    "fip_controller_reassignments_total",
    "Floating IP reassignment attempts by outcome",
    ["floating_ip", "outcome"],  # "success", "retry", "abandoned"
)

API_ERRORS = Counter(
    "fip_controller_api_errors_total",
    "Cloud API errors by kind",
    ["kind"],
)

CLUSTER_READ_FAILURES = Counter(
    "fip_controller_cluster_read_failures_total",
    "Failed cluster snapshot reads",
)

# Leadership and cluster status
IS_LEADER = Gauge(
    "fip_controller_is_leader",
    "Whether this replica held the lease at its last check (1) or not (0)",
)

CANDIDATE_NODES = Gauge(
    "fip_controller_candidate_nodes",
    "Healthy and eligible nodes in the latest snapshot",
)


def record_cycle(floating_ip: str, action: str) -> None:
    """Record a finished cycle."""
    CYCLES.labels(floating_ip=floating_ip, action=action).inc()


def record_reassignment(floating_ip: str, outcome: str) -> None:
    """Record a reassignment attempt outcome."""
    REASSIGNMENTS.labels(floating_ip=floating_ip, outcome=outcome).inc()


def record_api_error(kind: str) -> None:
    """Record a cloud API error."""
    API_ERRORS.labels(kind=kind).inc()


def record_cluster_read_failure() -> None:
    """Record a failed cluster read."""
    CLUSTER_READ_FAILURES.inc()


def set_leader(is_leader: bool) -> None:
    """Set leadership status."""
    IS_LEADER.set(1 if is_leader else 0)


def set_candidate_nodes(count: int) -> None:
    """Set number of candidate nodes."""
    CANDIDATE_NODES.set(count)
