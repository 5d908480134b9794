"""
Hetzner Cloud floating IP client.

This module provides the HCloudClient class implementing CloudIPClient
against the Hetzner Cloud API.

HCloudClient receives an injected httpx.AsyncClient with base_url set to
the API endpoint and the bearer token in its headers. Every method is a
single remote call without retries of its own; failures surface as
ApiError with a kind from the controller's taxonomy.

Hetzner Cloud API Documentation:
- https://docs.hetzner.cloud/#floating-ips
- https://docs.hetzner.cloud/#floating-ip-actions-assign-a-floating-ip-to-a-server
"""

import ipaddress
import logging
import time
from dataclasses import dataclass

import httpx
from pydantic import ValidationError

from fip_hcloud.types import (
    ActionResponse,
    AssignFloatingIPRequest,
    ErrorResponse,
    FloatingIPResponse,
    FloatingIPsResponse,
    HCloudFloatingIP,
)
from fip_protocols import ApiError, ApiErrorKind, FloatingIPId, NodeId

logger = logging.getLogger(__name__)

# Status codes Hetzner uses for "the request conflicts with current state"
CONFLICT_STATUSES = (409, 422)

# "locked": another action is running on the resource, retry later
TRANSIENT_ERROR_CODES = ("locked", "unavailable", "timeout", "service_error")


@dataclass
class HCloudClient:
    """
    Hetzner Cloud API client with injected httpx client.

    Attributes:
        http: Pre-configured httpx.AsyncClient with base_url set to the
            API endpoint and an Authorization header.

    Example:
        async with httpx.AsyncClient(
            base_url="https://api.hetzner.cloud/v1",
            headers={"Authorization": f"Bearer {token}"},
        ) as http:
            client = HCloudClient(http=http)
            server = await client.get_assignment("4711")
    """

    http: httpx.AsyncClient

    async def get_floating_ip(self, ip_id: FloatingIPId) -> HCloudFloatingIP:
        """
        Get a floating IP by id.

        Calls GET /floating_ips/{id}.

        Raises:
            ApiError: On HTTP, transport or payload errors.
        """
        response = await self._request("GET", f"/floating_ips/{ip_id}")
        return _parse(FloatingIPResponse, response).floating_ip

    async def get_assignment(self, ip_id: FloatingIPId) -> NodeId | None:
        """
        Get the server currently holding the floating IP.

        Returns:
            Server id as a string, or None if unassigned.

        Note:
            Server ids are converted from int (API) to str (NodeId).
        """
        floating_ip = await self.get_floating_ip(ip_id)
        if floating_ip.server is None:
            return None
        return str(floating_ip.server)

    async def assign(self, ip_id: FloatingIPId, node_id: NodeId) -> None:
        """
        Assign the floating IP to a server.

        Calls POST /floating_ips/{id}/actions/assign with {"server": id}.

        Idempotent: when Hetzner rejects the request as conflicting, the
        assignment is re-read and "already on the target" is a success.

        Raises:
            ApiError: On failure. Non-numeric node ids raise
                ApiError(UNKNOWN) without a remote call.

        Note:
            Returns when the API accepts the action. Does not wait for
            the action to finish.
        """
        if not (node_id.isascii() and node_id.isdecimal()):
            raise ApiError(ApiErrorKind.UNKNOWN, f"Invalid Hetzner server id {node_id!r}")

        body = AssignFloatingIPRequest(server=int(node_id))
        try:
            response = await self._request(
                "POST",
                f"/floating_ips/{ip_id}/actions/assign",
                json=body.model_dump(),
            )
        except ApiError as e:
            if e.status_code not in CONFLICT_STATUSES:
                raise
            if await self.get_assignment(ip_id) == node_id:
                logger.info(f"Floating IP {ip_id} already assigned to server {node_id}")
                return
            raise

        try:
            action = ActionResponse.model_validate(response.json()).action
            logger.info(
                f"Floating IP {ip_id} assignment to server {node_id} accepted "
                f"(action {action.id}, {action.status})"
            )
        except (ValueError, ValidationError):
            logger.info(f"Floating IP {ip_id} assignment to server {node_id} accepted")

    async def list_floating_ips(self) -> list[HCloudFloatingIP]:
        """
        List all floating IPs in the project, following pagination.

        Calls GET /floating_ips?page=N until next_page is null.
        """
        floating_ips: list[HCloudFloatingIP] = []
        page: int | None = 1
        while page is not None:
            response = await self._request(
                "GET", "/floating_ips", params={"page": page, "per_page": 50}
            )
            data = _parse(FloatingIPsResponse, response)
            floating_ips.extend(data.floating_ips)
            page = data.meta.pagination.next_page
        return floating_ips

    async def resolve(self, ref: str) -> FloatingIPId:
        """
        Resolve a configured floating IP reference to its provider id.

        Args:
            ref: Numeric id, or the IP address itself. IPv6 floating IPs
                match on any address inside their network.

        Raises:
            ApiError: NOT_FOUND when no floating IP matches the address.
        """
        if ref.isascii() and ref.isdecimal():
            return ref

        try:
            wanted = ipaddress.ip_address(ref)
        except ValueError as e:
            raise ApiError(ApiErrorKind.NOT_FOUND, f"Not a floating IP id or address: {ref!r}") from e

        for floating_ip in await self.list_floating_ips():
            network = ipaddress.ip_network(floating_ip.ip, strict=False)
            if wanted in network:
                return str(floating_ip.id)
        raise ApiError(ApiErrorKind.NOT_FOUND, f"No floating IP with address {ref}")

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.http.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ApiError(ApiErrorKind.TRANSIENT, f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            raise ApiError(ApiErrorKind.TRANSIENT, f"{method} {path} failed: {e}") from e

        if response.is_success:
            return response
        raise _error_from_response(method, path, response)


def _parse(model, response: httpx.Response):
    try:
        return model.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        raise ApiError(
            ApiErrorKind.UNKNOWN,
            f"Malformed response from {response.request.url.path}: {e}",
            status_code=response.status_code,
        ) from e


def _error_from_response(method: str, path: str, response: httpx.Response) -> ApiError:
    """Map a failed response onto ApiError."""
    code = ""
    message = response.reason_phrase
    try:
        body = ErrorResponse.model_validate(response.json())
        code = body.error.code
        message = body.error.message or message
    except (ValueError, ValidationError):
        pass

    kind = ApiErrorKind.from_status(response.status_code)
    if kind is ApiErrorKind.UNKNOWN and code in TRANSIENT_ERROR_CODES:
        kind = ApiErrorKind.TRANSIENT

    retry_after = _retry_after(response) if kind is ApiErrorKind.RATE_LIMITED else None
    label = f" [{code}]" if code else ""
    return ApiError(
        kind,
        f"{method} {path} returned {response.status_code}{label}: {message}",
        status_code=response.status_code,
        retry_after=retry_after,
    )


def _retry_after(response: httpx.Response) -> float | None:
    """
    Seconds to wait according to the response headers.

    Reads Retry-After (seconds), falling back to Hetzner's RateLimit-Reset
    (unix timestamp).
    """
    retry_after = response.headers.get("Retry-After")
    if retry_after is not None:
        try:
            return max(0.0, float(retry_after))
        except ValueError:
            pass

    reset = response.headers.get("RateLimit-Reset")
    if reset is not None:
        try:
            return max(0.0, float(reset) - time.time())
        except ValueError:
            pass
    return None
