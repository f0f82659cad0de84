# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from odigosctl.components.common import metadata
from odigosctl.install.component import ResourceInstaller


def new_namespace(name: str) -> dict:
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": metadata(name),
    }


@dataclass
class NamespaceInstaller(ResourceInstaller):
    """Installation namespace; every namespaced component and the ledger live here."""

    name = "namespace"

    def build(self) -> List[dict]:
        return [new_namespace(self.config.namespace)]
