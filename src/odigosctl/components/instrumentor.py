# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/components/instrumentor.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List

from odigosctl.components.common import (
    LEADER_ELECTION_RULES,
    OWN_TELEMETRY_CONFIG_MAP,
    PSP_RULE,
    READ,
    cluster_role_binding,
    image_name,
    metadata,
    role_binding,
    rule,
    service_account,
)
from odigosctl.install.component import ResourceInstaller
from odigosctl.k8s.objects import ObjectRef

INSTRUMENTOR_NAME = "odigos-instrumentor"
INSTRUMENTOR_APP_LABEL = "odigos-instrumentor"
LEADER_ELECTION_ROLE = "odigos-instrumentor-leader-election"


def new_instrumentor_service_account(ns: str) -> dict:
    return service_account(INSTRUMENTOR_NAME, ns)


def new_instrumentor_leader_election_role(ns: str) -> dict:
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "Role",
        "metadata": metadata(LEADER_ELECTION_ROLE, ns),
        "rules": list(LEADER_ELECTION_RULES),
    }


def new_instrumentor_leader_election_role_binding(ns: str) -> dict:
    return role_binding(LEADER_ELECTION_ROLE, ns, INSTRUMENTOR_NAME, LEADER_ELECTION_ROLE)


def new_instrumentor_cluster_role(psp: bool) -> dict:
    rules = [
        rule([""], ["namespaces", "pods", "nodes"], READ),
        rule(["apps"], ["deployments", "statefulsets", "daemonsets"], READ + ("patch", "update")),
        rule(["apps"], ["deployments/status", "statefulsets/status", "daemonsets/status"], ["get"]),
        rule(
            ["odigos.io"],
            ["instrumentedapplications", "odigosconfigurations", "destinations", "collectorsgroups"],
            ["create", "delete", "get", "list", "patch", "update", "watch"],
        ),
        rule(["odigos.io"], ["instrumentedapplications/status"], ["get", "patch", "update"]),
    ]
    if psp:
        rules.append(PSP_RULE)
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "ClusterRole",
        "metadata": metadata(INSTRUMENTOR_NAME),
        "rules": rules,
    }


def new_instrumentor_cluster_role_binding(ns: str) -> dict:
    return cluster_role_binding(INSTRUMENTOR_NAME, ns, INSTRUMENTOR_NAME, INSTRUMENTOR_NAME)


def new_instrumentor_deployment(ns: str, version: str, image_prefix: str, image: str) -> dict:
    app_labels = {"app.kubernetes.io/name": INSTRUMENTOR_APP_LABEL}
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": metadata(INSTRUMENTOR_NAME, ns, app_labels),
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": dict(app_labels)},
            "template": {
                "metadata": {
                    "labels": dict(app_labels),
                    "annotations": {"kubectl.kubernetes.io/default-container": "manager"},
                },
                "spec": {
                    "containers": [
                        {
                            "name": "manager",
                            "image": image_name(image_prefix, image, version),
                            "args": [
                                "--health-probe-bind-address=:8081",
                                "--metrics-bind-address=127.0.0.1:8080",
                                "--leader-elect",
                            ],
                            "env": [
                                {
                                    "name": "CURRENT_NS",
                                    "valueFrom": {"fieldRef": {"fieldPath": "metadata.namespace"}},
                                }
                            ],
                            "envFrom": [{"configMapRef": {"name": OWN_TELEMETRY_CONFIG_MAP}}],
                            "resources": {
                                "limits": {"cpu": "500m", "memory": "512Mi"},
                                "requests": {"cpu": "10m", "memory": "64Mi"},
                            },
                            "livenessProbe": {
                                "httpGet": {"path": "/healthz", "port": 8081},
                                "initialDelaySeconds": 15,
                                "periodSeconds": 20,
                            },
                            "readinessProbe": {
                                "httpGet": {"path": "/readyz", "port": 8081},
                                "initialDelaySeconds": 5,
                                "periodSeconds": 10,
                            },
                            "securityContext": {"allowPrivilegeEscalation": False},
                        }
                    ],
                    "serviceAccountName": INSTRUMENTOR_NAME,
                    "terminationGracePeriodSeconds": 10,
                    "securityContext": {"runAsNonRoot": True},
                },
            },
        },
    }


@dataclass
class InstrumentorInstaller(ResourceInstaller):
    """Controller that injects instrumentation into workloads."""

    name = "instrumentor"
    supports_upgrade = True

    def build(self) -> List[dict]:
        cfg = self.config
        return [
            new_instrumentor_service_account(cfg.namespace),
            new_instrumentor_leader_election_role(cfg.namespace),
            new_instrumentor_leader_election_role_binding(cfg.namespace),
            new_instrumentor_cluster_role(cfg.features.psp),
            new_instrumentor_cluster_role_binding(cfg.namespace),
            new_instrumentor_deployment(cfg.namespace, cfg.version, cfg.image_prefix, cfg.images.instrumentor),
        ]

    def retired_objects(self, previous_version: str) -> List[ObjectRef]:
        # releases before ownership labels used an unprefixed controller name;
        # label-based pruning cannot find those objects
        if previous_version == self.config.version:
            return []
        ns = self.config.namespace
        return [
            ObjectRef("Deployment", ns, "instrumentor", api_version="apps/v1"),
            ObjectRef("ClusterRoleBinding", None, "instrumentor", api_version="rbac.authorization.k8s.io/v1"),
            ObjectRef("ClusterRole", None, "instrumentor", api_version="rbac.authorization.k8s.io/v1"),
            ObjectRef("ServiceAccount", ns, "instrumentor", api_version="v1"),
        ]
