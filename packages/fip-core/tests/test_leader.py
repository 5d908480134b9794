"""
Tests for lease-based leader election.

Several LeaderCoordinator objects share one InMemoryLeaseStore to play
competing replicas. A fake wall clock drives lease expiry.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from fip_core.leader import InMemoryLeaseStore, LeaderCoordinator
from fip_core.leader.redis_store import LEASE_CAS_SCRIPT, RedisLeaseStore
from fip_protocols import LeaseError, LeaseState, LeaseStore


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryLeaseStore()


def replica(store, clock, identity: str, **kwargs) -> LeaderCoordinator:
    return LeaderCoordinator(store, identity=identity, lease_duration=15.0, clock=clock, **kwargs)


class TestAcquireAndRenew:
    @pytest.mark.asyncio
    async def test_first_replica_acquires_term_one(self, store, clock):
        a = replica(store, clock, "a")

        assert await a.try_acquire_or_renew()

        assert await store.read("fip-controller") == LeaseState("a", clock.now + 15.0, term=1)

    @pytest.mark.asyncio
    async def test_renewal_keeps_term_and_extends_expiry(self, store, clock):
        a = replica(store, clock, "a")
        await a.try_acquire_or_renew()

        clock.now += 5.0
        assert await a.try_acquire_or_renew()

        lease = await store.read("fip-controller")
        assert lease.term == 1
        assert lease.expires_at == clock.now + 15.0

    @pytest.mark.asyncio
    async def test_at_most_one_leader(self, store, clock):
        a = replica(store, clock, "a")
        b = replica(store, clock, "b")

        assert await a.try_acquire_or_renew()
        assert not await b.try_acquire_or_renew()
        assert await a.try_acquire_or_renew()

    @pytest.mark.asyncio
    async def test_expired_lease_is_taken_over_with_new_term(self, store, clock):
        a = replica(store, clock, "a")
        b = replica(store, clock, "b")
        await a.try_acquire_or_renew()

        clock.now += 15.0
        assert await b.try_acquire_or_renew()

        lease = await store.read("fip-controller")
        assert lease.holder == "b"
        assert lease.term == 2
        assert not await a.try_acquire_or_renew()

    @pytest.mark.asyncio
    async def test_concurrent_renewals_by_holder_both_succeed(self, clock):
        class YieldingStore(InMemoryLeaseStore):
            async def read(self, name):
                await asyncio.sleep(0)
                return await super().read(name)

        store = YieldingStore()
        a = replica(store, clock, "a")
        assert await a.try_acquire_or_renew()

        results = await asyncio.gather(a.try_acquire_or_renew(), a.try_acquire_or_renew())

        assert results == [True, True]
        assert (await store.read("fip-controller")) == LeaseState("a", clock.now + 15.0, term=1)

    @pytest.mark.asyncio
    async def test_independent_lease_names(self, store, clock):
        a = replica(store, clock, "a", lease_name="edge")
        b = replica(store, clock, "b", lease_name="internal")

        assert await a.try_acquire_or_renew()
        assert await b.try_acquire_or_renew()

    def test_renew_interval_must_be_shorter_than_lease(self, store):
        with pytest.raises(ValueError):
            LeaderCoordinator(store, identity="a", lease_duration=10.0, renew_interval=10.0)


class TestFailClosed:
    @pytest.mark.asyncio
    async def test_unavailable_store_means_not_leader(self, store, clock):
        a = replica(store, clock, "a")
        assert await a.try_acquire_or_renew()

        store.available = False

        assert not await a.try_acquire_or_renew()

    @pytest.mark.asyncio
    async def test_slow_store_times_out(self, clock):
        slow = MagicMock()

        async def hang(name):
            await asyncio.Event().wait()

        slow.read = hang
        a = LeaderCoordinator(slow, identity="a", clock=clock, timeout=0.01)

        assert not await a.try_acquire_or_renew()

    @pytest.mark.asyncio
    async def test_lost_compare_and_swap_race(self, clock):
        racing = MagicMock()
        racing.read = AsyncMock(return_value=None)
        racing.compare_and_swap = AsyncMock(return_value=False)
        a = LeaderCoordinator(racing, identity="a", clock=clock)

        assert not await a.try_acquire_or_renew()


class TestRelease:
    @pytest.mark.asyncio
    async def test_release_lets_another_replica_take_over_immediately(self, store, clock):
        a = replica(store, clock, "a")
        b = replica(store, clock, "b")
        await a.try_acquire_or_renew()

        await a.release()

        assert (await store.read("fip-controller")).expires_at == 0.0
        assert await b.try_acquire_or_renew()
        assert (await store.read("fip-controller")).term == 2

    @pytest.mark.asyncio
    async def test_release_by_non_holder_is_a_noop(self, store, clock):
        a = replica(store, clock, "a")
        b = replica(store, clock, "b")
        await a.try_acquire_or_renew()

        await b.release()

        assert (await store.read("fip-controller")).holder == "a"
        assert not await b.try_acquire_or_renew()

    @pytest.mark.asyncio
    async def test_release_survives_unavailable_store(self, store, clock):
        a = replica(store, clock, "a")
        await a.try_acquire_or_renew()
        store.available = False

        await a.release()


class TestKeepAlive:
    @pytest.mark.asyncio
    async def test_keep_alive_renews_until_shutdown(self, store):
        a = LeaderCoordinator(store, identity="a", lease_duration=1.0, renew_interval=0.01)
        shutdown = asyncio.Event()

        task = asyncio.create_task(a.keep_alive(shutdown))
        await asyncio.sleep(0.05)
        shutdown.set()
        await asyncio.wait_for(task, timeout=1.0)

        assert (await store.read("fip-controller")).holder == "a"


class TestRedisLeaseStore:
    def make_store(self, script_result=1):
        client = MagicMock()
        script = AsyncMock(return_value=script_result)
        client.register_script = MagicMock(return_value=script)
        client.hgetall = AsyncMock(return_value={})
        return RedisLeaseStore(client), client, script

    def test_is_lease_store(self):
        store, client, _ = self.make_store()

        assert isinstance(store, LeaseStore)
        client.register_script.assert_called_once_with(LEASE_CAS_SCRIPT)

    @pytest.mark.asyncio
    async def test_read_missing_lease(self):
        store, client, _ = self.make_store()

        assert await store.read("fip-controller") is None
        client.hgetall.assert_awaited_once_with("fip:lease:fip-controller")

    @pytest.mark.asyncio
    async def test_read_decodes_hash(self):
        store, client, _ = self.make_store()
        client.hgetall.return_value = {"holder": "a", "expires_at": "1000015.5", "term": "3"}

        assert await store.read("fip-controller") == LeaseState("a", 1000015.5, 3)

    @pytest.mark.asyncio
    async def test_read_malformed_hash_is_lease_error(self):
        store, client, _ = self.make_store()
        client.hgetall.return_value = {"holder": "a"}

        with pytest.raises(LeaseError):
            await store.read("fip-controller")

    @pytest.mark.asyncio
    async def test_compare_and_swap_arguments(self):
        store, _, script = self.make_store()
        expected = LeaseState("a", 100.0, 1)
        new = LeaseState("b", 115.0, 2)

        assert await store.compare_and_swap("fip-controller", expected, new)

        script.assert_awaited_once_with(
            keys=["fip:lease:fip-controller"],
            args=["1", "a", "100.0", "1", "1", "b", "115.0", "2", str(24 * 60 * 60 * 1000)],
        )

    @pytest.mark.asyncio
    async def test_compare_and_swap_on_absent_lease(self):
        store, _, script = self.make_store(script_result=0)

        assert not await store.compare_and_swap("fip-controller", None, LeaseState("a", 1.0, 1))
        assert script.await_args.kwargs["args"][:4] == ["0", "", "", ""]

    @pytest.mark.asyncio
    async def test_connection_failure_is_lease_error(self):
        store, client, script = self.make_store()
        client.hgetall.side_effect = RedisConnectionError("refused")
        script.side_effect = RedisConnectionError("refused")

        with pytest.raises(LeaseError):
            await store.read("fip-controller")
        with pytest.raises(LeaseError):
            await store.compare_and_swap("fip-controller", None, None)

    @pytest.mark.asyncio
    async def test_drives_coordinator(self, clock):
        store, client, script = self.make_store(script_result=1)
        a = LeaderCoordinator(store, identity="a", clock=clock)

        assert await a.try_acquire_or_renew()
        assert script.await_args.kwargs["args"][4:8] == ["1", "a", repr(clock.now + 15.0), "1"]
