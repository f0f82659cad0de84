# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/components/own_telemetry.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List

from odigosctl.components.common import OWN_TELEMETRY_CONFIG_MAP, metadata
from odigosctl.errors import BuildError
from odigosctl.install.component import ResourceInstaller


def new_own_telemetry_config_map(ns: str, enabled: bool, endpoint: str | None) -> dict:
    """
    Environment shared by every control-plane workload (mounted with envFrom),
    so it has to exist before the workloads that reference it.
    """
    if enabled and not endpoint:
        raise BuildError("own telemetry is enabled but no endpoint is configured")

    data = {"OTEL_TRACES_EXPORTER": "otlp" if enabled else "none"}
    if enabled:
        data["OTEL_EXPORTER_OTLP_ENDPOINT"] = endpoint
        data["OTEL_EXPORTER_OTLP_PROTOCOL"] = "grpc"

    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": metadata(OWN_TELEMETRY_CONFIG_MAP, ns),
        "data": data,
    }


@dataclass
class OwnTelemetryInstaller(ResourceInstaller):
    name = "own-telemetry"

    def build(self) -> List[dict]:
        features = self.config.features
        return [
            new_own_telemetry_config_map(
                self.config.namespace,
                features.own_telemetry,
                features.own_telemetry_endpoint,
            )
        ]
