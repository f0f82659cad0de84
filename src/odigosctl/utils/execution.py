# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from odigosctl.errors import TransactionCancelled


@dataclass(frozen=True)
class ExecutionContext:
    """
    Controls how a transaction talks to the cluster.

    dry_run: report what would change without writing
    cancel: set from another thread to abort at the next object boundary
    deadline: absolute time.monotonic() value after which the run aborts
    """

    dry_run: bool = False
    cancel: threading.Event = field(default_factory=threading.Event, compare=False)
    deadline: Optional[float] = None

    @classmethod
    def with_timeout(cls, seconds: float, *, dry_run: bool = False) -> "ExecutionContext":
        return cls(dry_run=dry_run, deadline=time.monotonic() + seconds)

    @property
    def cancelled(self) -> bool:
        if self.cancel.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check(self) -> None:
        if self.cancel.is_set():
            raise TransactionCancelled("transaction cancelled by caller")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise TransactionCancelled("transaction deadline exceeded")
