"""
Hetzner Cloud Pydantic response types.

This module provides Pydantic models for parsing responses from the
Hetzner Cloud floating IP API. These are API response types for external
data validation. Internal types (FloatingIP, Node) are dataclasses in
fip_protocols.

Notes:
- Server ids are ints in the API but NodeId is str in the controller
- `server` is null for an unassigned floating IP
- List endpoints are paginated under meta.pagination
"""

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Floating IP Response Types
# =============================================================================
# Based on: https://docs.hetzner.cloud/#floating-ips


class HCloudFloatingIP(BaseModel):
    """
    Floating IP object.

    Only the fields the controller uses are declared; the rest of the
    payload is ignored.
    """

    model_config = ConfigDict(extra="ignore")

    id: int
    ip: str
    type: str = "ipv4"  # "ipv4" or "ipv6"
    server: int | None = None
    name: str = ""
    labels: dict[str, str] = Field(default_factory=dict)


class FloatingIPResponse(BaseModel):
    """
    Response from GET /floating_ips/{id}.

    Example response:
    {
        "floating_ip": {"id": 4711, "ip": "131.232.99.1", "type": "ipv4", "server": 42}
    }
    """

    floating_ip: HCloudFloatingIP


class Pagination(BaseModel):
    """Pagination block of list responses."""

    page: int = 1
    per_page: int = 25
    next_page: int | None = None
    last_page: int | None = None
    total_entries: int | None = None


class Meta(BaseModel):
    """The 'meta' field of list responses."""

    pagination: Pagination = Field(default_factory=Pagination)


class FloatingIPsResponse(BaseModel):
    """
    Response from GET /floating_ips.

    Example response:
    {
        "floating_ips": [{"id": 4711, "ip": "131.232.99.1", "server": 42}],
        "meta": {"pagination": {"page": 1, "next_page": null}}
    }
    """

    floating_ips: list[HCloudFloatingIP]
    meta: Meta = Field(default_factory=Meta)


# =============================================================================
# Action Types
# =============================================================================


class AssignFloatingIPRequest(BaseModel):
    """Body of POST /floating_ips/{id}/actions/assign."""

    server: int


class HCloudAction(BaseModel):
    """Asynchronous action started by a mutating call."""

    model_config = ConfigDict(extra="ignore")

    id: int
    command: str = ""
    status: str = ""  # "running", "success", "error"


class ActionResponse(BaseModel):
    """Response wrapping a single action."""

    action: HCloudAction


# =============================================================================
# Error Types
# =============================================================================


class HCloudErrorBody(BaseModel):
    """Inner error object."""

    model_config = ConfigDict(extra="ignore")

    code: str = ""  # e.g. "not_found", "rate_limit_exceeded", "conflict", "locked"
    message: str = ""


class ErrorResponse(BaseModel):
    """
    Error payload of any failed request.

    Example response:
    {"error": {"code": "not_found", "message": "floating_ip with ID '1' not found"}}
    """

    error: HCloudErrorBody
