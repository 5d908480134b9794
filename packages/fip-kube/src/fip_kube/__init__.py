"""
Kubernetes backend for the floating IP controller.

This package provides the Kubernetes implementation of cluster state
observation:

- KubeNodeSource: Node listing and watch snapshots via kr8s
- EligibilityRules: Cordon, exclusion label and selector policy
- node_from_kube: Raw Kubernetes Node dict -> controller Node
"""

from fip_kube.convert import (
    DEFAULT_EXCLUDE_LABEL,
    HCLOUD_PROVIDER_PREFIX,
    EligibilityRules,
    node_from_kube,
    node_id_from_provider_id,
    ready_health,
)
from fip_kube.source import KubeNodeSource

__all__ = [
    "KubeNodeSource",
    "EligibilityRules",
    "node_from_kube",
    "node_id_from_provider_id",
    "ready_health",
    "DEFAULT_EXCLUDE_LABEL",
    "HCLOUD_PROVIDER_PREFIX",
]
