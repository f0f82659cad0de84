# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/install/apply.py
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from odigosctl.errors import ApplyError, ClusterError, NotFoundError, UninstallError
from odigosctl.install.diff import changed_fields, merge_for_update
from odigosctl.k8s.client import ClusterClient
from odigosctl.k8s.objects import CONFIG_VERSION_LABEL, SYSTEM_OBJECT_LABEL, ObjectRef
from odigosctl.observers.dispatcher import EventBus
from odigosctl.observers.events import ObjectApplied, ObjectDeleted, new_ctx
from odigosctl.utils.execution import ExecutionContext

log = logging.getLogger("odigosctl")

CREATED = "CREATED"
UPDATED = "UPDATED"
UNCHANGED = "UNCHANGED"


@dataclass
class ApplyStats:
    created: List[ObjectRef] = field(default_factory=list)
    updated: List[ObjectRef] = field(default_factory=list)
    unchanged: List[ObjectRef] = field(default_factory=list)

    def record(self, ref: ObjectRef, action: str) -> None:
        {CREATED: self.created, UPDATED: self.updated, UNCHANGED: self.unchanged}[action].append(ref)

    def extend(self, other: "ApplyStats") -> None:
        self.created.extend(other.created)
        self.updated.extend(other.updated)
        self.unchanged.extend(other.unchanged)

    @property
    def writes(self) -> int:
        return len(self.created) + len(self.updated)


def stamp(obj: Dict[str, Any], generation: int) -> Dict[str, Any]:
    """Return a copy of *obj* carrying the ownership labels."""
    out = copy.deepcopy(obj)
    labels = out.setdefault("metadata", {}).setdefault("labels", {})
    labels[SYSTEM_OBJECT_LABEL] = "true"
    labels[CONFIG_VERSION_LABEL] = str(generation)
    return out


class ObjectApplier:
    """
    Applies desired objects for one transaction.

    One instance is shared by every component of the transaction; the
    generation is the config version stamped on every object written.
    """

    def __init__(
        self,
        *,
        client: ClusterClient,
        generation: int,
        ctx: Optional[ExecutionContext] = None,
        bus: Optional[EventBus] = None,
        run_ctx: Optional[dict] = None,
    ):
        self.client = client
        self.generation = generation
        self.ctx = ctx or ExecutionContext()
        self.bus = bus or EventBus()
        self.run_ctx = run_ctx or new_ctx(namespace="", context=None)

    @property
    def dry_run(self) -> bool:
        return self.ctx.dry_run

    def apply(self, component: str, obj: Dict[str, Any]) -> str:
        self.ctx.check()

        ref = ObjectRef.from_manifest(obj)
        desired = stamp(obj, self.generation)

        try:
            live = self.client.get(ref)
            if live is None:
                action, changed = CREATED, []
                if not self.dry_run:
                    self.client.create(desired)
            else:
                changed = changed_fields(desired, live)
                if not changed:
                    action = UNCHANGED
                else:
                    action = UPDATED
                    if not self.dry_run:
                        self.client.update(merge_for_update(desired, live))
        except ClusterError as exc:
            raise ApplyError(component, ref, exc) from exc

        log.debug("%s %s %s %s", component, action, ref, ",".join(changed))
        self.bus.emit(
            ObjectApplied(
                component=component,
                ref=str(ref),
                action=action,
                changed=changed,
                dry_run=self.dry_run,
                **self.run_ctx,
            )
        )
        return action

    def apply_all(self, component: str, objects: Iterable[Dict[str, Any]]) -> ApplyStats:
        stats = ApplyStats()
        for obj in objects:
            action = self.apply(component, obj)
            stats.record(ObjectRef.from_manifest(obj), action)
        return stats

    def delete(self, component: str, ref: ObjectRef) -> bool:
        """Delete one object. Returns False when it was already absent."""
        self.ctx.check()
        if self.dry_run:
            present = self.client.get(ref) is not None
            self._emit_deleted(component, ref, "DELETED" if present else "ABSENT")
            return present
        try:
            self.client.delete(ref)
        except NotFoundError:
            self._emit_deleted(component, ref, "ABSENT")
            return False
        self._emit_deleted(component, ref, "DELETED")
        return True

    def delete_all(self, component: str, refs: Iterable[ObjectRef]) -> List[ObjectRef]:
        """
        Best-effort removal: every ref is attempted, failures are collected and
        raised together as UninstallError once all refs were tried.
        """
        deleted: List[ObjectRef] = []
        failures: List[Tuple[ObjectRef, Exception]] = []
        for ref in refs:
            try:
                if self.delete(component, ref):
                    deleted.append(ref)
            except ClusterError as exc:
                log.warning("%s: could not delete %s: %s", component, ref, exc)
                self._emit_deleted(component, ref, "FAILED", error=str(exc))
                failures.append((ref, exc))
        if failures:
            raise UninstallError(component, failures, deleted)
        return deleted

    def _emit_deleted(self, component: str, ref: ObjectRef, status: str, error: Optional[str] = None) -> None:
        self.bus.emit(
            ObjectDeleted(component=component, ref=str(ref), status=status, error=error, **self.run_ctx)
        )
