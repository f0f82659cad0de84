# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from odigosctl.components.common import (
    LEADER_ELECTION_RULES,
    OWN_TELEMETRY_CONFIG_MAP,
    READ,
    image_name,
    metadata,
    role_binding,
    rule,
    service_account,
)
from odigosctl.install.component import ResourceInstaller

AUTOSCALER_NAME = "odigos-autoscaler"


def new_autoscaler_service_account(ns: str) -> dict:
    return service_account(AUTOSCALER_NAME, ns)


def new_autoscaler_role(ns: str) -> dict:
    rules = [
        rule([""], ["configmaps", "services"], READ + ("create", "delete", "patch", "update")),
        rule(["apps"], ["deployments", "daemonsets"], READ + ("create", "delete", "patch", "update")),
        rule(["odigos.io"], ["collectorsgroups", "collectorsgroups/status", "destinations"], READ + ("patch", "update")),
    ] + list(LEADER_ELECTION_RULES)
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "Role",
        "metadata": metadata(AUTOSCALER_NAME, ns),
        "rules": rules,
    }


def new_autoscaler_role_binding(ns: str) -> dict:
    return role_binding(AUTOSCALER_NAME, ns, AUTOSCALER_NAME, AUTOSCALER_NAME)


def new_autoscaler_deployment(ns: str, version: str, image_prefix: str, image: str) -> dict:
    app_labels = {"app.kubernetes.io/name": AUTOSCALER_NAME}
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": metadata(AUTOSCALER_NAME, ns, app_labels),
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": dict(app_labels)},
            "template": {
                "metadata": {"labels": dict(app_labels)},
                "spec": {
                    "containers": [
                        {
                            "name": "manager",
                            "image": image_name(image_prefix, image, version),
                            "args": ["--leader-elect"],
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
                            "securityContext": {"allowPrivilegeEscalation": False},
                        }
                    ],
                    "serviceAccountName": AUTOSCALER_NAME,
                    "terminationGracePeriodSeconds": 10,
                },
            },
        },
    }


@dataclass
class AutoscalerInstaller(ResourceInstaller):
    name = "autoscaler"

    def build(self) -> List[dict]:
        cfg = self.config
        return [
            new_autoscaler_service_account(cfg.namespace),
            new_autoscaler_role(cfg.namespace),
            new_autoscaler_role_binding(cfg.namespace),
            new_autoscaler_deployment(cfg.namespace, cfg.version, cfg.image_prefix, cfg.images.autoscaler),
        ]
