# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/config/loader.py

import logging
import os
import yaml
from pathlib import Path
from typing import Optional
from .models import InstallConfig

log = logging.getLogger("odigosctl")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _find_overrides_file(config_path: Path) -> Path | None:
    """
    Locate overrides.yaml using this priority:

    1. ODIGOSCTL_OVERRIDES_FILE environment variable (explicit override)
    2. overrides.yaml in the same directory as the install config
    """
    env = os.environ.get("ODIGOSCTL_OVERRIDES_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("ODIGOSCTL_OVERRIDES_FILE=%s does not exist, skipping", env)
        return None

    p = config_path.parent / "overrides.yaml"
    if p.is_file():
        return p

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    data = yaml.safe_load(expanded) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def load_config(path: Optional[str | Path] = None, overrides: Optional[dict] = None) -> InstallConfig:
    """
    Build the InstallConfig for one invocation.

    Sources, lowest to highest precedence:
      1. the YAML file at *path* (optional)
      2. ``overrides.yaml`` next to it, or ``ODIGOSCTL_OVERRIDES_FILE``
      3. *overrides*, typically CLI flags; None/"" values are ignored

    ``${ENV_VAR}`` placeholders in either file are expanded at load time.
    """
    data: dict = {}
    if path is not None:
        path = Path(path)
        data = _load_yaml(path)

        overrides_path = _find_overrides_file(path)
        if overrides_path:
            log.debug("Merging overrides from %s", overrides_path)
            _deep_merge(data, _load_yaml(overrides_path))

    if overrides:
        _deep_merge(data, overrides)

    return InstallConfig.model_validate(data)
