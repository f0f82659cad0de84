# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/k8s/objects.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from odigosctl.errors import BuildError

CLUSTER_SCOPED_KINDS = frozenset(
    {
        "Namespace",
        "ClusterRole",
        "ClusterRoleBinding",
        "CustomResourceDefinition",
        "MutatingWebhookConfiguration",
        "ValidatingWebhookConfiguration",
        "PodSecurityPolicy",
        "PriorityClass",
    }
)

# Ownership markers stamped on every object the installer writes.
SYSTEM_OBJECT_LABEL = "odigos.io/system-object"
CONFIG_VERSION_LABEL = "odigos.io/config-version"


@dataclass(frozen=True)
class ObjectRef:
    """Identity of a cluster object: (kind, namespace, name)."""

    kind: str
    namespace: Optional[str]
    name: str
    api_version: str = field(default="v1", compare=False)

    @property
    def cluster_scoped(self) -> bool:
        return self.namespace is None

    @classmethod
    def from_manifest(cls, obj: Dict[str, Any]) -> "ObjectRef":
        if not isinstance(obj, dict):
            raise BuildError(f"manifest must be a mapping, got {type(obj).__name__}")
        kind = obj.get("kind")
        api_version = obj.get("apiVersion")
        meta = obj.get("metadata") or {}
        name = meta.get("name")
        if not kind or not api_version or not name:
            raise BuildError(
                f"manifest is missing kind/apiVersion/metadata.name: {kind!r} {name!r}"
            )
        namespace = None if kind in CLUSTER_SCOPED_KINDS else meta.get("namespace")
        if kind not in CLUSTER_SCOPED_KINDS and not namespace:
            raise BuildError(f"namespaced {kind} '{name}' has no metadata.namespace")
        return cls(kind=kind, namespace=namespace, name=name, api_version=api_version)

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"


def labels_of(obj: Dict[str, Any]) -> Dict[str, str]:
    return (obj.get("metadata") or {}).get("labels") or {}
