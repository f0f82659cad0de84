from __future__ import annotations
import logging
from .events import BaseEvent


class LoggerObserver:
    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        etype = event.__class__.__name__
        msg = ", ".join(f"{k}={v}" for k, v in d.items() if k not in ("ts",))

        if etype in ("ComponentFailed", "TransactionSummary") and not d.get("ok", False):
            self.logger.error("[EVENT] %s: %s", etype, msg)
        else:
            self.logger.info("[EVENT] %s: %s", etype, msg)
