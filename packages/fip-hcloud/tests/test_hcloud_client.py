"""
Tests for the Hetzner Cloud floating IP client.

These tests verify the HCloudClient correctly:
- Reads the current assignment and converts server ids to str NodeIds
- Posts assign actions with an int server id
- Treats a conflicting assign that already holds the target as success
- Maps HTTP and transport failures onto ApiErrorKind
- Honors Retry-After on rate limiting
- Resolves floating IP addresses across paginated listings
"""

import json
import time

import httpx
import pytest
from httpx import Request, Response

from fip_hcloud import HCloudClient, create_hcloud_client
from fip_protocols import ApiError, ApiErrorKind, CloudIPClient


class MockTransport(httpx.AsyncBaseTransport):
    """Mock transport returning queued responses per (method, path)."""

    def __init__(self, responses: dict[tuple[str, str], list[dict] | dict]):
        """
        Initialize with mapping of (method, path) to response data.

        Args:
            responses: Each value is a dict with 'status_code', 'json' and
                optional 'headers' keys, or a list of such dicts served
                in order (the last one repeats).
        """
        self._responses = {
            key: value if isinstance(value, list) else [value]
            for key, value in responses.items()
        }
        self.requests: list[Request] = []

    async def handle_async_request(self, request: Request) -> Response:
        self.requests.append(request)
        queue = self._responses.get((request.method, request.url.path))
        if not queue:
            return Response(status_code=404, json={"error": {"code": "not_found"}}, request=request)
        resp_data = queue.pop(0) if len(queue) > 1 else queue[0]
        return Response(
            status_code=resp_data.get("status_code", 200),
            json=resp_data.get("json", {}),
            headers=resp_data.get("headers"),
            request=request,
        )


class RaisingTransport(httpx.AsyncBaseTransport):
    """Transport failing every request with the given exception."""

    def __init__(self, exc: Exception):
        self._exc = exc

    async def handle_async_request(self, request: Request) -> Response:
        raise self._exc


def make_client(transport: httpx.AsyncBaseTransport) -> HCloudClient:
    http = httpx.AsyncClient(transport=transport, base_url="https://api.hetzner.cloud/v1")
    return HCloudClient(http=http)


def floating_ip(ip_id: int = 4711, server: int | None = 42, ip: str = "203.0.113.7") -> dict:
    return {"floating_ip": {"id": ip_id, "ip": ip, "type": "ipv4", "server": server}}


ASSIGN_PATH = "/v1/floating_ips/4711/actions/assign"
GET_PATH = "/v1/floating_ips/4711"


class TestProtocolCompliance:
    def test_hcloud_client_is_cloud_ip_client(self):
        """HCloudClient should pass isinstance check for CloudIPClient."""
        client = make_client(MockTransport({}))
        assert isinstance(client, CloudIPClient)

    def test_factory_sets_bearer_token(self):
        client = create_hcloud_client(token="secret-token")
        assert client.http.headers["Authorization"] == "Bearer secret-token"
        assert str(client.http.base_url).startswith("https://api.hetzner.cloud/v1")


class TestGetAssignment:
    @pytest.mark.asyncio
    async def test_returns_server_id_as_string(self):
        client = make_client(MockTransport({("GET", GET_PATH): {"json": floating_ip(server=42)}}))

        assert await client.get_assignment("4711") == "42"

    @pytest.mark.asyncio
    async def test_unassigned_returns_none(self):
        client = make_client(MockTransport({("GET", GET_PATH): {"json": floating_ip(server=None)}}))

        assert await client.get_assignment("4711") is None

    @pytest.mark.asyncio
    async def test_malformed_payload_is_unknown_error(self):
        client = make_client(MockTransport({("GET", GET_PATH): {"json": {"unexpected": True}}}))

        with pytest.raises(ApiError) as exc_info:
            await client.get_assignment("4711")
        assert exc_info.value.kind is ApiErrorKind.UNKNOWN


class TestAssign:
    @pytest.mark.asyncio
    async def test_posts_int_server_id(self):
        transport = MockTransport(
            {
                ("POST", ASSIGN_PATH): {
                    "status_code": 201,
                    "json": {"action": {"id": 1, "command": "assign_floating_ip", "status": "running"}},
                }
            }
        )
        client = make_client(transport)

        await client.assign("4711", "43")

        request = transport.requests[-1]
        assert request.method == "POST"
        assert request.url.path == ASSIGN_PATH
        assert json.loads(request.content) == {"server": 43}

    @pytest.mark.asyncio
    async def test_invalid_server_id_fails_without_request(self):
        transport = MockTransport({})
        client = make_client(transport)

        with pytest.raises(ApiError) as exc_info:
            await client.assign("4711", "worker-a")

        assert exc_info.value.kind is ApiErrorKind.UNKNOWN
        assert transport.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("node_id", ["²", "١٢", "4²"])
    async def test_non_ascii_digit_server_id_fails_without_request(self, node_id):
        transport = MockTransport({})
        client = make_client(transport)

        with pytest.raises(ApiError) as exc_info:
            await client.assign("4711", node_id)

        assert exc_info.value.kind is ApiErrorKind.UNKNOWN
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_conflict_when_already_on_target_is_success(self):
        transport = MockTransport(
            {
                ("POST", ASSIGN_PATH): {
                    "status_code": 409,
                    "json": {"error": {"code": "conflict", "message": "already assigned"}},
                },
                ("GET", GET_PATH): {"json": floating_ip(server=43)},
            }
        )
        client = make_client(transport)

        await client.assign("4711", "43")

        assert [r.method for r in transport.requests] == ["POST", "GET"]

    @pytest.mark.asyncio
    async def test_conflict_when_elsewhere_raises(self):
        transport = MockTransport(
            {
                ("POST", ASSIGN_PATH): {
                    "status_code": 409,
                    "json": {"error": {"code": "conflict", "message": "conflict"}},
                },
                ("GET", GET_PATH): {"json": floating_ip(server=42)},
            }
        )
        client = make_client(transport)

        with pytest.raises(ApiError) as exc_info:
            await client.assign("4711", "43")
        assert exc_info.value.status_code == 409


class TestErrorMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status_code,code,kind",
        [
            (401, "unauthorized", ApiErrorKind.UNAUTHORIZED),
            (403, "forbidden", ApiErrorKind.UNAUTHORIZED),
            (404, "not_found", ApiErrorKind.NOT_FOUND),
            (429, "rate_limit_exceeded", ApiErrorKind.RATE_LIMITED),
            (503, "unavailable", ApiErrorKind.TRANSIENT),
            (423, "locked", ApiErrorKind.TRANSIENT),
            (400, "invalid_input", ApiErrorKind.UNKNOWN),
        ],
    )
    async def test_status_maps_to_kind(self, status_code, code, kind):
        transport = MockTransport(
            {("GET", GET_PATH): {"status_code": status_code, "json": {"error": {"code": code, "message": "x"}}}}
        )
        client = make_client(transport)

        with pytest.raises(ApiError) as exc_info:
            await client.get_assignment("4711")

        assert exc_info.value.kind is kind
        assert exc_info.value.status_code == status_code
        assert exc_info.value.retryable == kind.retryable

    @pytest.mark.asyncio
    async def test_retry_after_header_is_honored(self):
        transport = MockTransport(
            {
                ("GET", GET_PATH): {
                    "status_code": 429,
                    "json": {"error": {"code": "rate_limit_exceeded", "message": "slow down"}},
                    "headers": {"Retry-After": "7"},
                }
            }
        )
        client = make_client(transport)

        with pytest.raises(ApiError) as exc_info:
            await client.get_assignment("4711")

        assert exc_info.value.retry_after == 7.0

    @pytest.mark.asyncio
    async def test_ratelimit_reset_header_is_used_without_retry_after(self):
        reset = int(time.time()) + 30
        transport = MockTransport(
            {
                ("GET", GET_PATH): {
                    "status_code": 429,
                    "json": {"error": {"code": "rate_limit_exceeded", "message": "slow down"}},
                    "headers": {"RateLimit-Reset": str(reset)},
                }
            }
        )
        client = make_client(transport)

        with pytest.raises(ApiError) as exc_info:
            await client.get_assignment("4711")

        assert 0 < exc_info.value.retry_after <= 30

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self):
        client = make_client(RaisingTransport(httpx.ReadTimeout("timed out")))

        with pytest.raises(ApiError) as exc_info:
            await client.get_assignment("4711")
        assert exc_info.value.kind is ApiErrorKind.TRANSIENT

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self):
        client = make_client(RaisingTransport(httpx.ConnectError("refused")))

        with pytest.raises(ApiError) as exc_info:
            await client.assign("4711", "43")
        assert exc_info.value.kind is ApiErrorKind.TRANSIENT


class TestResolve:
    @pytest.mark.asyncio
    async def test_numeric_reference_passes_through(self):
        transport = MockTransport({})
        client = make_client(transport)

        assert await client.resolve("4711") == "4711"
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_address_found_on_second_page(self):
        transport = MockTransport(
            {
                ("GET", "/v1/floating_ips"): [
                    {
                        "json": {
                            "floating_ips": [{"id": 1, "ip": "198.51.100.1", "server": None}],
                            "meta": {"pagination": {"page": 1, "next_page": 2}},
                        }
                    },
                    {
                        "json": {
                            "floating_ips": [{"id": 2, "ip": "203.0.113.7", "server": 42}],
                            "meta": {"pagination": {"page": 2, "next_page": None}},
                        }
                    },
                ]
            }
        )
        client = make_client(transport)

        assert await client.resolve("203.0.113.7") == "2"
        assert [r.url.params["page"] for r in transport.requests] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_ipv6_address_matches_network(self):
        transport = MockTransport(
            {
                ("GET", "/v1/floating_ips"): {
                    "json": {"floating_ips": [{"id": 9, "ip": "2001:db8:1::/64", "type": "ipv6"}]}
                }
            }
        )
        client = make_client(transport)

        assert await client.resolve("2001:db8:1::1") == "9"

    @pytest.mark.asyncio
    async def test_unknown_address_is_not_found(self):
        transport = MockTransport(
            {("GET", "/v1/floating_ips"): {"json": {"floating_ips": []}}}
        )
        client = make_client(transport)

        with pytest.raises(ApiError) as exc_info:
            await client.resolve("192.0.2.1")
        assert exc_info.value.kind is ApiErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_non_ascii_digits_are_not_an_id(self):
        transport = MockTransport({})
        client = make_client(transport)

        with pytest.raises(ApiError) as exc_info:
            await client.resolve("²")
        assert exc_info.value.kind is ApiErrorKind.NOT_FOUND
        assert transport.requests == []
