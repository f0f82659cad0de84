# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/components/common.py
from __future__ import annotations

from typing import Dict, Optional

OWN_TELEMETRY_CONFIG_MAP = "odigos-own-telemetry-otel-config"


def image_name(prefix: Optional[str], name: str, version: str) -> str:
    """``prefix/name:version``, or ``name:version`` without a registry prefix."""
    if prefix:
        return f"{prefix.rstrip('/')}/{name}:{version}"
    return f"{name}:{version}"


def metadata(name: str, namespace: Optional[str] = None, labels: Optional[Dict[str, str]] = None) -> dict:
    meta: dict = {"name": name}
    if namespace:
        meta["namespace"] = namespace
    if labels:
        meta["labels"] = dict(labels)
    return meta


def service_account(name: str, namespace: str) -> dict:
    return {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": metadata(name, namespace),
    }


def cluster_role_binding(name: str, namespace: str, service_account_name: str, role: str) -> dict:
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "ClusterRoleBinding",
        "metadata": metadata(name),
        "subjects": [
            {"kind": "ServiceAccount", "name": service_account_name, "namespace": namespace}
        ],
        "roleRef": {
            "apiGroup": "rbac.authorization.k8s.io",
            "kind": "ClusterRole",
            "name": role,
        },
    }


def role_binding(name: str, namespace: str, service_account_name: str, role: str) -> dict:
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "RoleBinding",
        "metadata": metadata(name, namespace),
        "subjects": [
            {"kind": "ServiceAccount", "name": service_account_name, "namespace": namespace}
        ],
        "roleRef": {
            "apiGroup": "rbac.authorization.k8s.io",
            "kind": "Role",
            "name": role,
        },
    }


def rule(api_groups, resources, verbs, resource_names=None) -> dict:
    r = {"apiGroups": list(api_groups), "resources": list(resources), "verbs": list(verbs)}
    if resource_names:
        r["resourceNames"] = list(resource_names)
    return r


READ = ("get", "list", "watch")

PSP_RULE = rule(["policy"], ["podsecuritypolicies"], ["use"], resource_names=["privileged"])

# coordination leases used for controller leader election
LEADER_ELECTION_RULES = [
    rule([""], ["configmaps"], ["get", "list", "watch", "create", "update", "patch", "delete"]),
    rule(["coordination.k8s.io"], ["leases"], ["get", "list", "watch", "create", "update", "patch", "delete"]),
    rule([""], ["events"], ["create", "patch"]),
]
