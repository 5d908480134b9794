"""
Redis-backed lease store using a Lua compare-and-swap script.

Each lease is a hash with holder, expires_at and term fields. The Lua
script compares all three fields against the caller's expected value and
writes the replacement only on an exact match, so the check and the write
are atomic on the Redis server.

The key carries a long PX TTL purely for garbage collection. Lease expiry
itself is decided by the expires_at field, which keeps the term counter
alive across releases and expiries.
"""

import redis.asyncio as redis
from redis.exceptions import RedisError

from fip_protocols import LeaseError, LeaseState

# Lua script for atomic lease compare-and-swap
# KEYS[1] = lease key (e.g., "fip:lease:fip-controller")
# ARGV[1] = "1" if a lease is expected to exist, "0" otherwise
# ARGV[2..4] = expected holder, expires_at, term
# ARGV[5] = "1" to write the new lease, "0" to delete it
# ARGV[6..8] = new holder, expires_at, term
# ARGV[9] = key TTL (milliseconds)
# Returns: 1 if swapped, 0 if the stored value did not match
LEASE_CAS_SCRIPT = """
local key = KEYS[1]
local cur = redis.call('HMGET', key, 'holder', 'expires_at', 'term')
local exists = cur[1] ~= false

if ARGV[1] == '1' then
    if not exists then
        return 0
    end
    if cur[1] ~= ARGV[2] or cur[2] ~= ARGV[3] or cur[3] ~= ARGV[4] then
        return 0
    end
elseif exists then
    return 0
end

if ARGV[5] == '1' then
    redis.call('HSET', key, 'holder', ARGV[6], 'expires_at', ARGV[7], 'term', ARGV[8])
    redis.call('PEXPIRE', key, ARGV[9])
else
    redis.call('DEL', key)
end
return 1
"""

DEFAULT_KEY_TTL_SECONDS = 24 * 60 * 60


def _lease_args(lease: LeaseState | None) -> list[str]:
    if lease is None:
        return ["0", "", "", ""]
    data = lease.to_dict()
    return ["1", data["holder"], data["expires_at"], data["term"]]


class RedisLeaseStore:
    """
    LeaseStore backed by Redis.

    The client must be created with decode_responses=True.

    Example:
        import redis.asyncio as redis

        client = redis.Redis.from_url("redis://localhost:6379", decode_responses=True)
        store = RedisLeaseStore(client)
        coordinator = LeaderCoordinator(store, identity="replica-a")
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        key_prefix: str = "fip:lease:",
        key_ttl_seconds: int = DEFAULT_KEY_TTL_SECONDS,
    ) -> None:
        self._redis = redis_client
        self._prefix = key_prefix
        self._key_ttl_ms = key_ttl_seconds * 1000
        self._script = redis_client.register_script(LEASE_CAS_SCRIPT)

    def _key(self, name: str) -> str:
        return f"{self._prefix}{name}"

    async def read(self, name: str) -> LeaseState | None:
        try:
            data = await self._redis.hgetall(self._key(name))
        except (RedisError, OSError) as e:
            raise LeaseError(f"Lease read failed: {e}") from e

        if not data:
            return None
        try:
            return LeaseState.from_dict(data)
        except (KeyError, ValueError) as e:
            raise LeaseError(f"Malformed lease {name!r}: {data}") from e

    async def compare_and_swap(
        self,
        name: str,
        expected: LeaseState | None,
        new: LeaseState | None,
    ) -> bool:
        args = _lease_args(expected) + _lease_args(new) + [str(self._key_ttl_ms)]
        try:
            result = await self._script(keys=[self._key(name)], args=args)
        except (RedisError, OSError) as e:
            raise LeaseError(f"Lease compare-and-swap failed: {e}") from e
        return int(result) == 1
