# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str                 # ISO timestamp
    run_id: str             # correlates all events in a single invocation
    namespace: str          # product installation namespace
    context: Optional[str]  # kube-context

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(namespace: str, context: Optional[str], run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "namespace": namespace,
        "context": context,
    }


# ---------------------------------------------------------------------
# Transaction lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class TransactionStarted(BaseEvent):
    target_version: str
    previous_version: Optional[str]
    generation: int
    components: List[str] = field(default_factory=list)
    dry_run: bool = False

@dataclass(frozen=True)
class TransactionSummary(BaseEvent):
    ok: bool
    applied: int
    failed_component: Optional[str] = None
    ledger_written: bool = False
    error: Optional[str] = None


# ---------------------------------------------------------------------
# Component lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ComponentStarted(BaseEvent):
    name: str
    mode: str           # "install" | "upgrade" | "uninstall"

@dataclass(frozen=True)
class ComponentSucceeded(BaseEvent):
    name: str
    created: int
    updated: int
    unchanged: int
    duration_ms: int

@dataclass(frozen=True)
class ComponentFailed(BaseEvent):
    name: str
    error: str

@dataclass(frozen=True)
class ComponentSkipped(BaseEvent):
    name: str
    reason: str


# ---------------------------------------------------------------------
# Object level
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ObjectApplied(BaseEvent):
    component: str
    ref: str
    action: str         # "CREATED" | "UPDATED" | "UNCHANGED"
    changed: List[str] = field(default_factory=list)
    dry_run: bool = False

@dataclass(frozen=True)
class ObjectDeleted(BaseEvent):
    component: str
    ref: str
    status: str         # "DELETED" | "ABSENT" | "FAILED"
    error: Optional[str] = None


# ---------------------------------------------------------------------
# Ledger, pruning and uninstall
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class StaleObjectsPruned(BaseEvent):
    generation: int
    refs: List[str] = field(default_factory=list)

@dataclass(frozen=True)
class LedgerWritten(BaseEvent):
    version: str
    config_version: int

@dataclass(frozen=True)
class UninstallSummary(BaseEvent):
    ok: bool
    deleted: int
    failures: int
