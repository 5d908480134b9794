"""
Hetzner Cloud backend for the floating IP controller.

This package provides the Hetzner-specific implementation of the
CloudIPClient protocol defined in fip-protocols. It includes:

- HCloudClient: Floating IP client over the Hetzner Cloud API (CloudIPClient)
- Pydantic response types for the floating IP endpoints
- Factory function for wiring
"""

from fip_hcloud.client import HCloudClient
from fip_hcloud.factory import DEFAULT_ENDPOINT, create_hcloud_client
from fip_hcloud.types import (
    ActionResponse,
    AssignFloatingIPRequest,
    ErrorResponse,
    FloatingIPResponse,
    FloatingIPsResponse,
    HCloudFloatingIP,
)

__all__ = [
    # Client
    "HCloudClient",
    # Factory
    "create_hcloud_client",
    "DEFAULT_ENDPOINT",
    # Response types
    "HCloudFloatingIP",
    "FloatingIPResponse",
    "FloatingIPsResponse",
    "AssignFloatingIPRequest",
    "ActionResponse",
    "ErrorResponse",
]
