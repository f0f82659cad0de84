# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/errors.py
from __future__ import annotations

from typing import List, Optional, Tuple


class InstallError(RuntimeError):
    """Base class for install/upgrade/uninstall failures."""


class BuildError(InstallError):
    """Desired-object construction failed. Never retried."""


class RegistryError(InstallError):
    """The component registry is malformed (empty or duplicate names)."""


class TransactionCancelled(InstallError):
    """The caller cancelled the transaction or its deadline passed."""


# ---------------------------------------------------------------------
# Cluster client taxonomy
# ---------------------------------------------------------------------
class ClusterError(InstallError):
    """A cluster API call failed."""

    reason = "Unknown"

    def __init__(self, message: str, *, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NotFoundError(ClusterError):
    reason = "NotFound"


class ConflictError(ClusterError):
    """Optimistic-concurrency collision. Safe to re-run the whole transaction."""

    reason = "Conflict"


class ForbiddenError(ClusterError):
    reason = "Forbidden"


class TransportError(ClusterError):
    reason = "Transport"


# ---------------------------------------------------------------------
# Engine level
# ---------------------------------------------------------------------
class ApplyError(InstallError):
    """A single cluster write was rejected."""

    def __init__(self, component: str, ref, cause: Exception):
        self.component = component
        self.ref = ref
        self.cause = cause
        super().__init__(f"{component}: failed to apply {ref}: {cause}")

    @property
    def retryable(self) -> bool:
        return isinstance(self.cause, ConflictError)


class UninstallError(InstallError):
    """One or more deletions failed during a best-effort uninstall."""

    def __init__(
        self,
        component: str,
        failures: List[Tuple[object, Exception]],
        deleted: Optional[List[object]] = None,
    ):
        self.component = component
        self.failures = failures
        self.deleted = deleted or []
        details = "; ".join(f"{ref}: {exc}" for ref, exc in failures)
        super().__init__(
            f"{component}: {len(failures)} object(s) could not be removed: {details}"
        )


class LedgerReadError(InstallError):
    """The installation ledger could not be read (transport, permission, corrupt data)."""
