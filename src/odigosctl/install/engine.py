# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/install/engine.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from odigosctl.errors import ClusterError, InstallError, TransactionCancelled, UninstallError
from odigosctl.install.apply import ApplyStats, ObjectApplier
from odigosctl.install.component import ComponentInstaller, validate_registry
from odigosctl.install.ledger import LedgerEntry, VersionLedger
from odigosctl.k8s.client import ClusterClient
from odigosctl.k8s.objects import CONFIG_VERSION_LABEL, SYSTEM_OBJECT_LABEL, ObjectRef, labels_of
from odigosctl.observers.dispatcher import EventBus
from odigosctl.observers.events import (
    new_ctx,
    TransactionStarted,
    TransactionSummary,
    ComponentStarted,
    ComponentSucceeded,
    ComponentFailed,
    ComponentSkipped,
    StaleObjectsPruned,
    LedgerWritten,
    UninstallSummary,
)
from odigosctl.utils.execution import ExecutionContext

log = logging.getLogger("odigosctl")

OK = "OK"
FAILED = "FAILED"
SKIPPED = "SKIPPED"

PRUNE_STAGE = "prune"
LEDGER_STAGE = "ledger"


@dataclass
class ComponentOutcome:
    name: str
    status: str                 # "OK" | "FAILED" | "SKIPPED"
    mode: str                   # "install" | "upgrade" | "uninstall"
    stats: Optional[ApplyStats] = None
    error: Optional[str] = None


@dataclass
class TransactionResult:
    target_version: str
    previous: LedgerEntry
    generation: int
    dry_run: bool = False
    outcomes: List[ComponentOutcome] = field(default_factory=list)
    pruned: List[ObjectRef] = field(default_factory=list)
    ledger: Optional[LedgerEntry] = None
    ledger_written: bool = False
    failed_component: Optional[str] = None
    failed_stage: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def previous_version(self) -> Optional[str]:
        return self.previous.version if self.previous.found else None

    @property
    def applied(self) -> List[str]:
        return [o.name for o in self.outcomes if o.status == OK]

    @property
    def partial(self) -> bool:
        """Some components were applied but the ledger was left unchanged."""
        return not self.ok and bool(self.applied)

    @property
    def stats(self) -> ApplyStats:
        total = ApplyStats()
        for o in self.outcomes:
            if o.stats:
                total.extend(o.stats)
        return total

    def summary(self) -> str:
        if self.ok:
            s = self.stats
            return (
                f"version {self.target_version} applied: created={len(s.created)} "
                f"updated={len(s.updated)} unchanged={len(s.unchanged)} pruned={len(self.pruned)}"
            )
        where = self.failed_component or self.failed_stage
        msg = f"{where} failed: {self.error}"
        if self.partial:
            msg += (
                f" (applied before failure: {', '.join(self.applied)}; installed version"
                f" still {self.previous_version or 'none'}; re-run to converge)"
            )
        return msg


@dataclass
class UninstallReport:
    outcomes: List[ComponentOutcome] = field(default_factory=list)
    deleted: List[ObjectRef] = field(default_factory=list)
    failures: List[Tuple[str, Optional[ObjectRef], str]] = field(default_factory=list)
    ledger_removed: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures


def next_generation(previous: LedgerEntry, target_version: str, components: Sequence[str]) -> int:
    """
    Config version stamped on objects by this transaction. It only stays put
    when version and component set are exactly what the ledger already holds,
    which keeps an unchanged re-run free of writes.
    """
    if not previous.found:
        return 1
    unchanged = (
        previous.config_version > 0
        and previous.version == target_version
        and list(previous.installed_components) == list(components)
    )
    if unchanged:
        return previous.config_version
    return previous.config_version + 1


class InstallEngine:
    """
    Drives one install/upgrade or uninstall transaction over an ordered list
    of component installers.

    - components run strictly in the given order, never reordered
    - the first failing component stops the run; nothing is rolled back
    - the ledger is written only after every component and the prune step succeeded
    """

    def __init__(
        self,
        *,
        client: ClusterClient,
        ledger: VersionLedger,
        bus: Optional[EventBus] = None,
        ctx: Optional[ExecutionContext] = None,
        kube_context: Optional[str] = None,
        run_id: Optional[str] = None,
    ):
        self.client = client
        self.ledger = ledger
        self.bus = bus or EventBus()
        self.ctx = ctx or ExecutionContext()
        self.kube_context = kube_context
        self.run_id = run_id

    @property
    def namespace(self) -> str:
        return self.ledger.namespace

    def _run_ctx(self) -> dict:
        return new_ctx(namespace=self.namespace, context=self.kube_context, run_id=self.run_id)

    # ------------------------------------------------------------
    # Install / upgrade
    # ------------------------------------------------------------
    def install(self, components: Sequence[ComponentInstaller], target_version: str) -> TransactionResult:
        components = list(components)
        validate_registry(components)
        names = [c.name for c in components]

        previous = self.ledger.read()
        generation = next_generation(previous, target_version, names)
        has_prior = previous.found and previous.version is not None

        run_ctx = self._run_ctx()
        applier = ObjectApplier(
            client=self.client, generation=generation, ctx=self.ctx, bus=self.bus, run_ctx=run_ctx
        )
        result = TransactionResult(
            target_version=target_version,
            previous=previous,
            generation=generation,
            dry_run=self.ctx.dry_run,
        )

        log.info(
            "Transaction start: %s -> %s (generation %d, components=%s)",
            previous.version if has_prior else "none", target_version, generation, names,
        )
        self.bus.emit(
            TransactionStarted(
                target_version=target_version,
                previous_version=previous.version if has_prior else None,
                generation=generation,
                components=names,
                dry_run=self.ctx.dry_run,
                **run_ctx,
            )
        )

        for index, component in enumerate(components):
            mode = "upgrade" if has_prior and component.supports_upgrade else "install"
            self.bus.emit(ComponentStarted(name=component.name, mode=mode, **run_ctx))
            t0 = time.time()
            try:
                if mode == "upgrade":
                    stats = component.upgrade(applier, previous.version)
                else:
                    stats = component.install_from_scratch(applier)
            except Exception as e:
                log.error("Component %s failed: %s", component.name, e)
                result.outcomes.append(ComponentOutcome(component.name, FAILED, mode, error=str(e)))
                result.failed_component = component.name
                result.failed_stage = component.name
                result.error = e
                self.bus.emit(ComponentFailed(name=component.name, error=str(e), **run_ctx))

                for rest in components[index + 1:]:
                    result.outcomes.append(ComponentOutcome(rest.name, SKIPPED, mode))
                    self.bus.emit(
                        ComponentSkipped(name=rest.name, reason=f"{component.name} failed", **run_ctx)
                    )
                break

            duration_ms = int((time.time() - t0) * 1000)
            result.outcomes.append(ComponentOutcome(component.name, OK, mode, stats=stats))
            self.bus.emit(
                ComponentSucceeded(
                    name=component.name,
                    created=len(stats.created),
                    updated=len(stats.updated),
                    unchanged=len(stats.unchanged),
                    duration_ms=duration_ms,
                    **run_ctx,
                )
            )

        if result.ok:
            try:
                result.pruned = self._prune(components, applier, run_ctx)
            except InstallError as e:
                log.error("Pruning stale objects failed: %s", e)
                result.failed_stage = PRUNE_STAGE
                result.error = e

        if result.ok:
            self._record(result, names, run_ctx)

        self.bus.emit(
            TransactionSummary(
                ok=result.ok,
                applied=len(result.applied),
                failed_component=result.failed_component,
                ledger_written=result.ledger_written,
                error=str(result.error) if result.error else None,
                **run_ctx,
            )
        )
        log.info("Transaction %s: %s", "succeeded" if result.ok else "failed", result.summary())
        return result

    def _record(self, result: TransactionResult, names: List[str], run_ctx: dict) -> None:
        previous = result.previous
        if self.ctx.dry_run:
            result.ledger = previous
            return
        if previous.found and result.generation == previous.config_version:
            log.debug("Ledger already at %s, not rewriting", previous.version)
            result.ledger = previous
            return

        try:
            entry = self.ledger.write(
                result.target_version,
                previous.config_version if previous.found else None,
                names,
            )
        except InstallError as e:
            log.error("Writing the ledger failed: %s", e)
            result.failed_stage = LEDGER_STAGE
            result.error = e
            return

        result.ledger = entry
        result.ledger_written = True
        self.bus.emit(LedgerWritten(version=entry.version, config_version=entry.config_version, **run_ctx))

    # ------------------------------------------------------------
    # Stale objects
    # ------------------------------------------------------------
    def _owned_kinds(self, components: Sequence[ComponentInstaller]) -> Tuple[Dict[Tuple[str, str], bool], Set[ObjectRef]]:
        kinds: Dict[Tuple[str, str], bool] = {}
        desired: Set[ObjectRef] = set()
        for component in components:
            for obj in component.desired_objects():
                ref = ObjectRef.from_manifest(obj)
                desired.add(ref)
                kinds[(ref.api_version, ref.kind)] = ref.cluster_scoped
        return kinds, desired

    def _find_owned(self, components: Sequence[ComponentInstaller], keep) -> List[ObjectRef]:
        kinds, desired = self._owned_kinds(components)
        found: List[ObjectRef] = []
        for (api_version, kind), cluster_scoped in sorted(kinds.items()):
            self.ctx.check()
            namespace = None if cluster_scoped else self.namespace
            items = self.client.list_by_label(api_version, kind, namespace, {SYSTEM_OBJECT_LABEL: "true"})
            for item in items:
                ref = ObjectRef.from_manifest(item)
                if not keep(ref, labels_of(item), desired):
                    found.append(ref)
        return found

    def _prune(self, components: Sequence[ComponentInstaller], applier: ObjectApplier, run_ctx: dict) -> List[ObjectRef]:
        """Delete owned objects stamped with another generation and no longer desired."""
        current = str(applier.generation)

        def keep(ref, labels, desired):
            return labels.get(CONFIG_VERSION_LABEL) == current or ref in desired

        stale = self._find_owned(components, keep)
        if not stale:
            return []

        log.info("Pruning %d stale object(s)", len(stale))
        applier.delete_all(PRUNE_STAGE, stale)
        self.bus.emit(StaleObjectsPruned(generation=applier.generation, refs=[str(r) for r in stale], **run_ctx))
        return stale

    # ------------------------------------------------------------
    # Uninstall
    # ------------------------------------------------------------
    def uninstall(self, components: Sequence[ComponentInstaller]) -> UninstallReport:
        """
        Remove every component in reverse registry order. Best-effort: a
        failing object or component does not stop the others; all failures are
        reported. The ledger is removed only when nothing failed.
        """
        components = list(components)
        validate_registry(components)

        run_ctx = self._run_ctx()
        applier = ObjectApplier(client=self.client, generation=0, ctx=self.ctx, bus=self.bus, run_ctx=run_ctx)
        report = UninstallReport()
        cancelled = False

        for component in reversed(components):
            self.bus.emit(ComponentStarted(name=component.name, mode="uninstall", **run_ctx))
            try:
                report.deleted.extend(component.uninstall(applier))
            except UninstallError as e:
                report.deleted.extend(e.deleted)
                report.failures.extend((component.name, ref, str(exc)) for ref, exc in e.failures)
                report.outcomes.append(ComponentOutcome(component.name, FAILED, "uninstall", error=str(e)))
                self.bus.emit(ComponentFailed(name=component.name, error=str(e), **run_ctx))
                continue
            except Exception as e:
                report.failures.append((component.name, None, str(e)))
                report.outcomes.append(ComponentOutcome(component.name, FAILED, "uninstall", error=str(e)))
                self.bus.emit(ComponentFailed(name=component.name, error=str(e), **run_ctx))
                if isinstance(e, TransactionCancelled):
                    cancelled = True
                    break
                continue
            report.outcomes.append(ComponentOutcome(component.name, OK, "uninstall"))

        if not cancelled:
            self._sweep(components, applier, report)

        if report.ok and not self.ctx.dry_run:
            try:
                report.ledger_removed = self.ledger.delete()
            except ClusterError as e:
                log.error("Removing the ledger %s failed: %s", self.ledger.ref, e)
                report.failures.append(("ledger", self.ledger.ref, str(e)))

        self.bus.emit(
            UninstallSummary(ok=report.ok, deleted=len(report.deleted), failures=len(report.failures), **run_ctx)
        )
        log.info("Uninstall %s: deleted=%d failures=%d", "succeeded" if report.ok else "failed",
                 len(report.deleted), len(report.failures))
        return report

    def _sweep(self, components: Sequence[ComponentInstaller], applier: ObjectApplier, report: UninstallReport) -> None:
        """Remove owned objects left behind by older generations."""
        try:
            failed = {ref for _, ref, _ in report.failures if ref is not None}
            leftovers = self._find_owned(components, lambda ref, labels, desired: ref in failed)
            report.deleted.extend(applier.delete_all("sweep", leftovers))
        except UninstallError as e:
            report.deleted.extend(e.deleted)
            report.failures.extend(("sweep", ref, str(exc)) for ref, exc in e.failures)
        except InstallError as e:
            report.failures.append(("sweep", None, str(e)))
