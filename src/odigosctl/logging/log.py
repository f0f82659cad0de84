# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/odigosctl/logging/log.py

from __future__ import annotations

import logging
import os
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

LOG_DIR_ENV = "ODIGOSCTL_LOG_DIR"

# libraries that log every HTTP round trip at DEBUG
_NOISY = ("kubernetes", "urllib3")


def log_dir(base_dir: Path | None = None) -> Path:
    """Explicit *base_dir*, else $ODIGOSCTL_LOG_DIR, else ~/.odigosctl/logs."""
    if base_dir is not None:
        return base_dir
    env = os.environ.get(LOG_DIR_ENV)
    if env:
        return Path(env)
    return Path.home() / ".odigosctl" / "logs"


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "odigosctl",
    verbose: bool = False,
) -> tuple[logging.Logger, str, Path]:
    """
    Initializes:
      - full trace log file for the run (every object decision at DEBUG)
      - stderr handler at INFO (DEBUG with --debug); stdout stays free for
        command output such as ``status --json``
      - returns run_id so events and log lines of one run can be joined
    """
    run_id = str(uuid.uuid4())

    directory = log_dir(base_dir)
    directory.mkdir(parents=True, exist_ok=True)

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = directory / f"{name}-{ts}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = False

    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(module)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(logging.Formatter("%(levelname)-7s %(message)s"))

    logger.addHandler(fh)
    logger.addHandler(ch)

    for noisy in _NOISY:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info("odigosctl run %s, full log: %s", run_id, log_path)
    return logger, run_id, log_path
