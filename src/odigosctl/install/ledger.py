# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/install/ledger.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from odigosctl.errors import ClusterError, ConflictError, LedgerReadError, NotFoundError
from odigosctl.k8s.client import ClusterClient
from odigosctl.k8s.objects import ObjectRef

log = logging.getLogger("odigosctl")

LEDGER_NAME = "odigos-deployment"

VERSION_KEY = "version"
CONFIG_VERSION_KEY = "configVersion"
COMPONENTS_KEY = "installedComponents"


@dataclass(frozen=True)
class LedgerEntry:
    version: Optional[str] = None
    config_version: int = 0
    installed_components: List[str] = field(default_factory=list)
    found: bool = False
    resource_version: Optional[str] = field(default=None, compare=False)


class VersionLedger:
    """
    Last successfully applied product version, kept in one ConfigMap in the
    installation namespace. The config version is bumped on every write and
    guards against two installer runs racing each other.
    """

    def __init__(self, client: ClusterClient, namespace: str, name: str = LEDGER_NAME):
        self.client = client
        self.namespace = namespace
        self.name = name

    @property
    def ref(self) -> ObjectRef:
        return ObjectRef(kind="ConfigMap", namespace=self.namespace, name=self.name, api_version="v1")

    def read(self) -> LedgerEntry:
        try:
            live = self.client.get(self.ref)
        except ClusterError as exc:
            raise LedgerReadError(f"cannot read {self.ref}: {exc}") from exc

        if live is None:
            return LedgerEntry()
        return self._parse(live)

    def _parse(self, live: dict) -> LedgerEntry:
        data = live.get("data") or {}
        try:
            config_version = int(data.get(CONFIG_VERSION_KEY, "0"))
            components = json.loads(data.get(COMPONENTS_KEY, "[]"))
        except ValueError as exc:
            raise LedgerReadError(f"{self.ref} is malformed: {exc}") from exc
        if not isinstance(components, list):
            raise LedgerReadError(f"{self.ref} is malformed: {COMPONENTS_KEY} is not a list")

        return LedgerEntry(
            version=data.get(VERSION_KEY) or None,
            config_version=config_version,
            installed_components=[str(c) for c in components],
            found=True,
            resource_version=(live.get("metadata") or {}).get("resourceVersion"),
        )

    def write(
        self,
        version: str,
        expected_config_version: Optional[int],
        installed_components: Optional[List[str]] = None,
    ) -> LedgerEntry:
        """
        Record *version*. ``expected_config_version`` is the config version
        observed when the transaction started, None when no ledger existed.
        """
        current = self.read()
        observed = current.config_version if current.found else None
        if observed != expected_config_version:
            raise ConflictError(
                f"{self.ref} was modified concurrently: expected config version "
                f"{expected_config_version}, found {observed}"
            )

        new_config_version = (expected_config_version or 0) + 1
        body = {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {"name": self.name, "namespace": self.namespace},
            "data": {
                VERSION_KEY: version,
                CONFIG_VERSION_KEY: str(new_config_version),
                COMPONENTS_KEY: json.dumps(list(installed_components or [])),
            },
        }

        if current.found:
            # the API server rejects the write if someone updated it since our read
            body["metadata"]["resourceVersion"] = current.resource_version
            self.client.update(body)
        else:
            self.client.create(body)

        log.info("Ledger %s set to version=%s configVersion=%d", self.ref, version, new_config_version)
        return LedgerEntry(
            version=version,
            config_version=new_config_version,
            installed_components=list(installed_components or []),
            found=True,
        )

    def delete(self) -> bool:
        try:
            self.client.delete(self.ref)
        except NotFoundError:
            return False
        return True
