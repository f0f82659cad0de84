# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/install/registry.py


from __future__ import annotations
from typing import List, Sequence

from odigosctl.config.models import InstallConfig
from odigosctl.install.component import ComponentInstaller
from odigosctl.components.namespace import NamespaceInstaller
from odigosctl.components.own_telemetry import OwnTelemetryInstaller
from odigosctl.components.instrumentor import InstrumentorInstaller
from odigosctl.components.odiglet import OdigletInstaller
from odigosctl.components.autoscaler import AutoscalerInstaller


def build_components(config: InstallConfig) -> List[ComponentInstaller]:
    """
    Every product component in fixed dependency order. The namespace comes
    first and the shared telemetry ConfigMap precedes the workloads that load
    it with envFrom.
    """
    components: List[ComponentInstaller] = [
        NamespaceInstaller(config),
        OwnTelemetryInstaller(config),
        InstrumentorInstaller(config),
        OdigletInstaller(config),
    ]

    if config.features.autoscaler:
        components.append(AutoscalerInstaller(config))

    return components


def installed_components(config: InstallConfig, names: Sequence[str]) -> List[ComponentInstaller]:
    """
    Components to remove for an installation whose ledger lists *names*.
    Feature flags in *config* are ignored: a component installed under an
    older config is still removed after its flag was turned off. Without a
    recorded list every product component is returned.
    """
    features = config.features.model_copy(update={"autoscaler": True})
    every = build_components(config.model_copy(update={"features": features}))
    if not names:
        return every
    wanted = set(names)
    return [c for c in every if c.name in wanted]
