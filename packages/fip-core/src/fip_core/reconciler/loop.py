"""
Reconciler daemon keeping floating IPs on healthy nodes.

This module implements the control loop that:
- Observes the cluster snapshot and the live cloud assignment
- Decides the target node with the pure decider
- Reassigns the floating IP when desired != observed, as lease holder only
- Retries rate-limited and transient cloud failures with capped backoff
- Emits one decision record per cycle
- Handles graceful shutdown on SIGINT/SIGTERM

Retries are explicit PendingRetry values carried across ticks, not
sleeps inside a cycle. The loop wakes at the earliest of: the next
regular tick, the next due retry, a debounced watch trigger, shutdown.

Only one tick runs at a time. Triggers that arrive during a tick collapse
into a single follow-up tick.
"""

import asyncio
import contextlib
import functools
import logging
import signal
import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TypeVar

from fip_core import metrics
from fip_core.config import ReconcilerConfig
from fip_core.decider import explain
from fip_core.leader import LeaderCoordinator
from fip_core.reconciler.types import (
    CycleAction,
    CyclePhase,
    PendingRetry,
    ReconciliationCycle,
    RetryIntent,
)
from fip_protocols import (
    ApiError,
    ApiErrorKind,
    CloudIPClient,
    ClusterReadError,
    ClusterStateSource,
    FloatingIPId,
    NodeId,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Reconciler:
    """
    Long-running control loop for a static set of floating IPs.

    Each floating IP is reconciled independently. The reconciler works
    with any ClusterStateSource and CloudIPClient implementation.

    Example:
        reconciler = Reconciler(
            source=PollingClusterSource(kube.list_nodes),
            cloud=HCloudClient(http=http),
            coordinator=LeaderCoordinator(InMemoryLeaseStore(), identity="replica-a"),
            config=ReconcilerConfig(floating_ips=("1234",)),
        )
        await reconciler.run()  # Runs until SIGINT/SIGTERM
    """

    def __init__(
        self,
        source: ClusterStateSource,
        cloud: CloudIPClient,
        coordinator: LeaderCoordinator,
        config: ReconcilerConfig,
        trigger: asyncio.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the reconciler.

        Args:
            source: Cluster membership and health provider
            cloud: Floating IP provider client
            coordinator: Lease coordinator gating reassignments
            config: Immutable reconciler configuration
            trigger: Event set by a watching source on cluster changes
            clock: Monotonic clock used for scheduling
        """
        self.source = source
        self.cloud = cloud
        self.coordinator = coordinator
        self.config = config
        self.trigger = trigger
        self._clock = clock

        self._shutdown = asyncio.Event()
        self._lock = asyncio.Lock()
        self._pending: dict[FloatingIPId, PendingRetry] = {}
        self._baseline: dict[FloatingIPId, NodeId | None] = {}
        self._next_tick_at = clock()

    # -------------------------------------------------------------------------
    # Daemon loop
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        """
        Run the control loop until shutdown.

        Registers SIGINT and SIGTERM handlers, keeps the lease renewed in
        the background and releases it on exit.
        """
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, functools.partial(self._handle_signal, sig))

        logger.info(
            f"Reconciler starting for {', '.join(self.config.floating_ips)} "
            f"(interval: {self.config.poll_interval_seconds}s, "
            f"identity: {self.coordinator.identity})"
        )

        keeper = asyncio.create_task(self.coordinator.keep_alive(self._shutdown))
        try:
            while not self._shutdown.is_set():
                triggered = await self._wait_for_wakeup()
                if self._shutdown.is_set():
                    break
                if triggered:
                    await self._debounce()
                    if self._shutdown.is_set():
                        break
                await self.tick(force=triggered)
        finally:
            keeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await keeper
            await self.coordinator.release()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)

        logger.info("Reconciler stopped")

    def request_shutdown(self) -> None:
        """Stop after the in-flight call. No new retry will start."""
        self._shutdown.set()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown.is_set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signal by setting shutdown event."""
        logger.info(f"Received {sig.name}, shutting down...")
        self._shutdown.set()

    def next_wakeup(self) -> float:
        """Clock time of the next regular tick or due retry."""
        due = [p.next_attempt_at for p in self._pending.values()]
        return min([self._next_tick_at, *due])

    async def _wait_for_wakeup(self) -> bool:
        """
        Wait until something is due.

        Returns:
            True if woken by the cluster change trigger.
        """
        timeout = max(0.0, self.next_wakeup() - self._clock())
        waiters = [asyncio.create_task(self._shutdown.wait())]
        if self.trigger is not None:
            waiters.append(asyncio.create_task(self.trigger.wait()))

        try:
            await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()
            await asyncio.gather(*waiters, return_exceptions=True)

        return self.trigger is not None and self.trigger.is_set()

    async def _debounce(self) -> None:
        """Let a burst of change events settle, then consume the trigger."""
        if self.config.debounce_seconds > 0:
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self.config.debounce_seconds)
            except asyncio.TimeoutError:
                pass
        if self.trigger is not None:
            self.trigger.clear()

    # -------------------------------------------------------------------------
    # Ticks
    # -------------------------------------------------------------------------

    async def tick(self, force: bool = False) -> list[ReconciliationCycle]:
        """
        Run everything that is due.

        Pending retries that are due resume their intent. IPs without a
        pending retry get a fresh cycle when the regular tick is due or
        `force` is set. Serialized by a lock: never two ticks at once.

        Returns:
            The cycles that ran, one per floating IP processed.
        """
        async with self._lock:
            now = self._clock()
            regular = force or now >= self._next_tick_at
            cycles = []

            for ip_id in self.config.floating_ips:
                pending = self._pending.get(ip_id)
                if pending is not None:
                    if not pending.is_due(now):
                        continue
                    cycle = await self._guarded(ip_id, self.resume(ip_id))
                elif regular:
                    cycle = await self._guarded(ip_id, self.reconcile(ip_id))
                else:
                    continue
                cycles.append(cycle)

            if regular:
                self._next_tick_at = self._clock() + self.config.poll_interval_seconds
            return cycles

    async def _guarded(
        self, ip_id: FloatingIPId, work: Awaitable[ReconciliationCycle]
    ) -> ReconciliationCycle:
        """Run a cycle; unexpected errors abandon it instead of the loop."""
        try:
            return await work
        except Exception as e:
            logger.exception(f"Cycle for {ip_id} failed unexpectedly")
            self._pending.pop(ip_id, None)
            cycle = ReconciliationCycle(ip_id=ip_id, action=CycleAction.ABANDONED, error=repr(e))
            return self._finish(cycle)

    # -------------------------------------------------------------------------
    # Cycle state machine
    # -------------------------------------------------------------------------

    async def reconcile(self, ip_id: FloatingIPId) -> ReconciliationCycle:
        """
        Run one fresh cycle: observe, decide, compare, maybe reassign.

        Any pending retry for the IP is discarded.
        """
        self._pending.pop(ip_id, None)
        cycle = ReconciliationCycle(ip_id=ip_id)
        return await self._observe(cycle)

    async def resume(self, ip_id: FloatingIPId) -> ReconciliationCycle:
        """Continue the pending retry for an IP with the same intent."""
        pending = self._pending[ip_id]
        cycle = ReconciliationCycle(ip_id=ip_id, attempt=pending.attempt)

        if self._shutdown.is_set():
            self._pending.pop(ip_id, None)
            cycle.action = CycleAction.ABANDONED
            cycle.error = "shutdown requested"
            return self._finish(cycle)

        if pending.intent is RetryIntent.OBSERVE:
            return await self._observe(cycle)

        cycle.phase = CyclePhase.REASSIGNING
        cycle.observed = pending.observed
        cycle.desired = pending.target
        cycle.reason = "retrying reassignment"
        return await self._reassign(cycle)

    async def _observe(self, cycle: ReconciliationCycle) -> ReconciliationCycle:
        cycle.phase = CyclePhase.OBSERVING
        try:
            nodes = await self._cluster_call(self.source.current_nodes())
        except ClusterReadError as e:
            metrics.record_cluster_read_failure()
            self._pending.pop(cycle.ip_id, None)
            cycle.action = CycleAction.SKIPPED
            cycle.error = str(e)
            return self._finish(cycle)
        cycle.nodes = tuple(nodes)
        metrics.set_candidate_nodes(cycle.candidate_count)

        try:
            observed = await self._cloud_call(self.cloud.get_assignment(cycle.ip_id))
        except ApiError as e:
            return self._handle_api_error(cycle, e, RetryIntent.OBSERVE)
        cycle.observed = observed
        self._pending.pop(cycle.ip_id, None)

        baseline = self._baseline.get(cycle.ip_id)
        if cycle.ip_id in self._baseline and baseline != observed:
            logger.warning(
                f"{cycle.ip_id}: assignment changed outside this controller "
                f"(expected {baseline}, observed {observed})"
            )
        self._baseline[cycle.ip_id] = observed

        cycle.phase = CyclePhase.DECIDING
        decision = explain(cycle.nodes, observed)
        cycle.desired = decision.target
        cycle.reason = decision.reason

        cycle.phase = CyclePhase.COMPARING
        if cycle.desired == cycle.observed:
            cycle.phase = CyclePhase.NOOP
            cycle.action = CycleAction.NONE
            return self._finish(cycle)

        cycle.phase = CyclePhase.REASSIGNING
        return await self._reassign(cycle)

    async def _reassign(self, cycle: ReconciliationCycle) -> ReconciliationCycle:
        target = cycle.desired
        # Fresh lease check before every mutation, never cached
        if not await self.coordinator.try_acquire_or_renew():
            # Unknown outcome of any earlier attempt; the next leader re-reads
            self._pending.pop(cycle.ip_id, None)
            cycle.action = CycleAction.OBSERVE_ONLY
            return self._finish(cycle)

        try:
            await self._cloud_call(self.cloud.assign(cycle.ip_id, target))
        except ApiError as e:
            return self._handle_api_error(cycle, e, RetryIntent.ASSIGN)

        self._pending.pop(cycle.ip_id, None)
        self._baseline[cycle.ip_id] = target
        metrics.record_reassignment(cycle.ip_id, "success")
        cycle.action = CycleAction.REASSIGN
        return self._finish(cycle)

    def _handle_api_error(
        self, cycle: ReconciliationCycle, error: ApiError, intent: RetryIntent
    ) -> ReconciliationCycle:
        metrics.record_api_error(error.kind.value)
        cycle.error = str(error)
        retry = self.config.retry

        if error.retryable and retry.should_retry(cycle.attempt):
            delay = retry.delay_for(cycle.attempt, error.retry_after)
            self._pending[cycle.ip_id] = PendingRetry(
                intent=intent,
                attempt=cycle.attempt + 1,
                next_attempt_at=self._clock() + delay,
                target=cycle.desired,
                observed=cycle.observed,
            )
            if intent is RetryIntent.ASSIGN:
                metrics.record_reassignment(cycle.ip_id, "retry")
            cycle.action = CycleAction.RETRY_SCHEDULED
            cycle.reason = f"{intent.value} retry in {delay:.1f}s"
            return self._finish(cycle)

        self._pending.pop(cycle.ip_id, None)
        if intent is RetryIntent.ASSIGN:
            metrics.record_reassignment(cycle.ip_id, "abandoned")
        cycle.action = CycleAction.ABANDONED
        if error.retryable:
            cycle.reason = f"retry budget of {retry.max_attempts} exhausted"
        elif error.kind in (ApiErrorKind.UNAUTHORIZED, ApiErrorKind.NOT_FOUND):
            cycle.reason = "check floating IP id and API token"
        return self._finish(cycle)

    def _finish(self, cycle: ReconciliationCycle) -> ReconciliationCycle:
        """Close the cycle and emit its decision record."""
        cycle.finished_at = datetime.now()
        metrics.record_cycle(cycle.ip_id, cycle.action.value)

        if cycle.action is CycleAction.ABANDONED:
            level = logging.ERROR
        elif cycle.action in (CycleAction.SKIPPED, CycleAction.RETRY_SCHEDULED):
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(level, cycle.summary(), extra={"cycle": cycle.to_dict()})
        return cycle

    # -------------------------------------------------------------------------
    # Deadlines on external calls
    # -------------------------------------------------------------------------

    async def _cluster_call(self, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.config.call_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise ClusterReadError(
                f"Cluster read timed out after {self.config.call_timeout_seconds}s"
            ) from e

    async def _cloud_call(self, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.config.call_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise ApiError(
                ApiErrorKind.TRANSIENT,
                f"Cloud call timed out after {self.config.call_timeout_seconds}s",
            ) from e

    def last_known_assignment(self, ip_id: FloatingIPId) -> NodeId | None:
        """Assignment observed or set by the latest cycle for the IP."""
        return self._baseline.get(ip_id)

    def pending_retry(self, ip_id: FloatingIPId) -> PendingRetry | None:
        """The pending retry for an IP, if any."""
        return self._pending.get(ip_id)
