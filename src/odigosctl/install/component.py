# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/install/component.py
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Protocol, Sequence, runtime_checkable

from odigosctl.config.models import InstallConfig
from odigosctl.errors import BuildError, RegistryError
from odigosctl.install.apply import ApplyStats, ObjectApplier
from odigosctl.k8s.objects import ObjectRef


@runtime_checkable
class ComponentInstaller(Protocol):
    """
    Capability set every product component exposes to the engine.

    ``upgrade`` is only called when ``supports_upgrade`` is true.
    """

    name: str
    supports_upgrade: bool

    def desired_objects(self) -> List[Dict[str, Any]]: ...

    def install_from_scratch(self, applier: ObjectApplier) -> ApplyStats: ...

    def upgrade(self, applier: ObjectApplier, previous_version: str) -> ApplyStats: ...

    def uninstall(self, applier: ObjectApplier) -> List[ObjectRef]: ...


@dataclass
class ResourceInstaller(ABC):
    """
    Declarative component: subclasses only implement ``build()``, returning
    the manifests produced by their builder functions.
    """

    config: InstallConfig

    name: ClassVar[str] = ""
    supports_upgrade: ClassVar[bool] = False

    # ------------------------
    # Builders
    # ------------------------

    @abstractmethod
    def build(self) -> List[Dict[str, Any]]:
        """Component-specific manifests, in apply order."""

    def desired_objects(self) -> List[Dict[str, Any]]:
        try:
            objects = list(self.build())
        except BuildError:
            raise
        except Exception as exc:
            raise BuildError(f"{self.name}: building desired objects failed: {exc}") from exc

        for obj in objects:
            ObjectRef.from_manifest(obj)
        return objects

    def retired_objects(self, previous_version: str) -> List[ObjectRef]:
        """Objects older releases created that the current one no longer ships."""
        return []

    # ------------------------
    # Lifecycle
    # ------------------------

    def install_from_scratch(self, applier: ObjectApplier) -> ApplyStats:
        return applier.apply_all(self.name, self.desired_objects())

    def upgrade(self, applier: ObjectApplier, previous_version: str) -> ApplyStats:
        retired = self.retired_objects(previous_version)
        if retired:
            applier.delete_all(self.name, retired)
        return self.install_from_scratch(applier)

    def uninstall(self, applier: ObjectApplier) -> List[ObjectRef]:
        refs = [ObjectRef.from_manifest(obj) for obj in reversed(self.desired_objects())]
        return applier.delete_all(self.name, refs)


def validate_registry(components: Sequence[ComponentInstaller]) -> None:
    """Names must be non-empty and unique; order is taken as given."""
    if not components:
        raise RegistryError("no components to install")
    seen = set()
    for component in components:
        name = getattr(component, "name", None)
        if not name:
            raise RegistryError(f"component {component!r} has no name")
        if name in seen:
            raise RegistryError(f"component name '{name}' is registered twice")
        seen.add(name)
