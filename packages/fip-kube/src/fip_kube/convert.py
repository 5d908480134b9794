"""
Conversion of Kubernetes Node objects into controller Nodes.

Works on the raw object dict (kr8s `obj.raw`), so it has no dependency on
kr8s object classes.

Rules:
- Node id comes from spec.providerID with the provider prefix stripped
  (e.g. "hcloud://4711" -> "4711"). Nodes of another provider are skipped.
- Health is the Ready condition: "True" -> healthy, "False" -> unhealthy,
  anything else (including missing) -> unknown.
- A node is ineligible when cordoned (spec.unschedulable), when it
  carries the exclusion label with value "true", or when it does not
  match the node selector.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from fip_protocols import Node, NodeHealth

logger = logging.getLogger(__name__)

HCLOUD_PROVIDER_PREFIX = "hcloud://"
DEFAULT_EXCLUDE_LABEL = "fip-controller.io/exclude"

# Preference order for the node address shown in logs and status output
ADDRESS_TYPES = ("ExternalIP", "InternalIP", "Hostname")


@dataclass(frozen=True)
class EligibilityRules:
    """
    External eligibility policy applied to every node.

    Attributes:
        exclude_label: Label key that excludes a node when set to "true"
        node_selector: Labels a node must carry to be eligible
        provider_prefix: providerID prefix of nodes the cloud can target
    """

    exclude_label: str = DEFAULT_EXCLUDE_LABEL
    node_selector: dict[str, str] = field(default_factory=dict)
    provider_prefix: str = HCLOUD_PROVIDER_PREFIX


def node_id_from_provider_id(provider_id: str | None, prefix: str = HCLOUD_PROVIDER_PREFIX) -> str | None:
    """Extract the provider node id, or None if it is not a usable id."""
    if not provider_id or not provider_id.startswith(prefix):
        return None
    node_id = provider_id[len(prefix):]
    return node_id or None


def ready_health(conditions: list[dict[str, Any]] | None) -> NodeHealth:
    """Map the Ready condition to NodeHealth."""
    for condition in conditions or []:
        if condition.get("type") != "Ready":
            continue
        status = condition.get("status")
        if status == "True":
            return NodeHealth.HEALTHY
        if status == "False":
            return NodeHealth.UNHEALTHY
        return NodeHealth.UNKNOWN
    return NodeHealth.UNKNOWN


def is_eligible(raw: dict[str, Any], rules: EligibilityRules) -> bool:
    """Apply cordon, exclusion label and selector rules."""
    spec = raw.get("spec") or {}
    labels = (raw.get("metadata") or {}).get("labels") or {}

    if spec.get("unschedulable", False):
        return False
    if str(labels.get(rules.exclude_label, "")).lower() == "true":
        return False
    return all(labels.get(key) == value for key, value in rules.node_selector.items())


def preferred_address(raw: dict[str, Any]) -> str:
    addresses = (raw.get("status") or {}).get("addresses") or []
    by_type = {a.get("type"): a.get("address", "") for a in addresses}
    for address_type in ADDRESS_TYPES:
        if by_type.get(address_type):
            return by_type[address_type]
    return ""


def node_from_kube(raw: dict[str, Any], rules: EligibilityRules | None = None) -> Node | None:
    """
    Convert a raw Kubernetes Node dict.

    Returns:
        Node, or None when the node has no providerID for this cloud.
    """
    rules = rules or EligibilityRules()
    name = (raw.get("metadata") or {}).get("name", "")
    provider_id = (raw.get("spec") or {}).get("providerID")

    node_id = node_id_from_provider_id(provider_id, rules.provider_prefix)
    if node_id is None:
        logger.warning(f"Skipping node {name!r}: unusable providerID {provider_id!r}")
        return None

    return Node(
        id=node_id,
        address=preferred_address(raw),
        health=ready_health((raw.get("status") or {}).get("conditions")),
        eligible=is_eligible(raw, rules),
        name=name,
    )
