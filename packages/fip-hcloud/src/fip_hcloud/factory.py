"""
Factory function for creating HCloudClient instances.

This module lets fip-core wire a Hetzner client without knowing how the
underlying httpx client is configured.
"""

import httpx

from fip_hcloud.client import HCloudClient

DEFAULT_ENDPOINT = "https://api.hetzner.cloud/v1"


def create_hcloud_client(
    token: str,
    endpoint: str = DEFAULT_ENDPOINT,
    timeout: float = 10.0,
    http: httpx.AsyncClient | None = None,
) -> HCloudClient:
    """
    Create a Hetzner Cloud floating IP client.

    Args:
        token: Hetzner Cloud API token (read/write project token)
        endpoint: API base URL
        timeout: Per-request timeout in seconds
        http: Optional pre-configured httpx client. If None, a new client
            is created with the bearer token and timeout.

    Returns:
        HCloudClient ready for use. The caller owns the httpx client and
        should close it with `await client.http.aclose()`.

    Example:
        client = create_hcloud_client(token=os.environ["FIP_HCLOUD_TOKEN"])
        current = await client.get_assignment("4711")
    """
    if http is None:
        http = httpx.AsyncClient(
            base_url=endpoint,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
        )
    return HCloudClient(http=http)
