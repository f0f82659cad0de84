# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/components/odiglet.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List

from odigosctl.components.common import (
    OWN_TELEMETRY_CONFIG_MAP,
    PSP_RULE,
    READ,
    cluster_role_binding,
    image_name,
    metadata,
    rule,
    service_account,
)
from odigosctl.install.component import ResourceInstaller

ODIGLET_SERVICE_ACCOUNT = "odiglet"
ODIGLET_DAEMON_SET = "odiglet"
ODIGLET_APP_LABEL = "odiglet"
ODIGLET_CONTAINER = "odiglet"


def new_odiglet_service_account(ns: str) -> dict:
    return service_account(ODIGLET_SERVICE_ACCOUNT, ns)


def new_odiglet_cluster_role(psp: bool) -> dict:
    rules = [
        rule([""], ["pods"], READ),
        rule([""], ["pods/status"], ["get"]),
        rule([""], ["nodes"], READ),
        rule(["apps"], ["replicasets"], READ),
        rule(["apps"], ["deployments"], READ),
        rule(["apps"], ["deployments/status"], ["get"]),
        rule(["apps"], ["statefulsets"], READ),
        rule(["apps"], ["statefulsets/status"], ["get"]),
        rule(["apps"], ["daemonsets"], READ),
        rule(["apps"], ["daemonsets/status"], ["get"]),
        rule(
            ["odigos.io"],
            ["instrumentedapplications"],
            ["create", "get", "list", "patch", "update", "watch"],
        ),
        rule([""], ["namespaces"], READ),
    ]
    if psp:
        rules.append(PSP_RULE)

    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "ClusterRole",
        "metadata": metadata("odiglet"),
        "rules": rules,
    }


def new_odiglet_cluster_role_binding(ns: str) -> dict:
    return cluster_role_binding("odiglet", ns, ODIGLET_SERVICE_ACCOUNT, "odiglet")


def _host_path_volume(name: str, path: str) -> dict:
    return {"name": name, "hostPath": {"path": path}}


def new_odiglet_daemon_set(ns: str, version: str, image_prefix: str, image: str) -> dict:
    app_labels = {"app": ODIGLET_APP_LABEL}
    return {
        "apiVersion": "apps/v1",
        "kind": "DaemonSet",
        "metadata": metadata(ODIGLET_DAEMON_SET, ns),
        "spec": {
            "selector": {"matchLabels": dict(app_labels)},
            "template": {
                "metadata": {"labels": dict(app_labels)},
                "spec": {
                    "nodeSelector": {"kubernetes.io/os": "linux"},
                    "tolerations": [
                        {
                            "key": "node.kubernetes.io/os",
                            "operator": "Equal",
                            "value": "windows",
                            "effect": "NoSchedule",
                        }
                    ],
                    "volumes": [
                        _host_path_volume("run-dir", "/run"),
                        _host_path_volume("var-dir", "/var"),
                        _host_path_volume("odigos", "/var/odigos"),
                        _host_path_volume("kernel-debug", "/sys/kernel/debug"),
                    ],
                    "containers": [
                        {
                            "name": ODIGLET_CONTAINER,
                            "image": image_name(image_prefix, image, version),
                            "env": [
                                {
                                    "name": "NODE_NAME",
                                    "valueFrom": {"fieldRef": {"fieldPath": "spec.nodeName"}},
                                },
                                {
                                    "name": "NODE_IP",
                                    "valueFrom": {"fieldRef": {"fieldPath": "status.hostIP"}},
                                },
                            ],
                            "envFrom": [{"configMapRef": {"name": OWN_TELEMETRY_CONFIG_MAP}}],
                            "volumeMounts": [
                                {"name": "run-dir", "mountPath": "/run", "mountPropagation": "Bidirectional"},
                                {"name": "var-dir", "mountPath": "/var", "mountPropagation": "Bidirectional"},
                                {"name": "odigos", "mountPath": "/var/odigos", "mountPropagation": "Bidirectional"},
                                {"name": "kernel-debug", "mountPath": "/sys/kernel/debug"},
                            ],
                            "imagePullPolicy": "IfNotPresent",
                            "securityContext": {
                                "privileged": True,
                                "capabilities": {"add": ["SYS_PTRACE"]},
                            },
                        }
                    ],
                    "dnsPolicy": "ClusterFirstWithHostNet",
                    "serviceAccountName": ODIGLET_SERVICE_ACCOUNT,
                    "hostNetwork": True,
                    "hostPID": True,
                },
            },
        },
    }


@dataclass
class OdigletInstaller(ResourceInstaller):
    """Node agent: one privileged pod per linux node."""

    name = "odiglet"

    def build(self) -> List[dict]:
        cfg = self.config
        return [
            new_odiglet_service_account(cfg.namespace),
            new_odiglet_cluster_role(cfg.features.psp),
            new_odiglet_cluster_role_binding(cfg.namespace),
            new_odiglet_daemon_set(cfg.namespace, cfg.version, cfg.image_prefix, cfg.images.odiglet),
        ]
