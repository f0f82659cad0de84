# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/install/diff.py
"""
Desired-vs-live comparison restricted to the fields the installer owns.

Every kind maps to a field mask (dotted paths). Only those paths take part in
the comparison and in the update merge; everything else on the live object
(status, resourceVersion, uid, managedFields, server defaults, labels added by
other controllers) is left untouched.
"""
from __future__ import annotations

import copy
from typing import Any, Dict, List, Tuple

METADATA_MAPS: Tuple[str, ...] = ("metadata.labels", "metadata.annotations")

OWNED_FIELDS: Dict[str, Tuple[str, ...]] = {
    "Namespace": METADATA_MAPS,
    "ServiceAccount": METADATA_MAPS + ("automountServiceAccountToken", "imagePullSecrets"),
    "ConfigMap": METADATA_MAPS + ("data", "binaryData"),
    "Secret": METADATA_MAPS + ("type", "data", "stringData"),
    "ClusterRole": METADATA_MAPS + ("rules", "aggregationRule"),
    "Role": METADATA_MAPS + ("rules",),
    "ClusterRoleBinding": METADATA_MAPS + ("subjects", "roleRef"),
    "RoleBinding": METADATA_MAPS + ("subjects", "roleRef"),
    "DaemonSet": METADATA_MAPS + ("spec",),
    "Deployment": METADATA_MAPS + ("spec",),
    "StatefulSet": METADATA_MAPS + ("spec",),
    "Service": METADATA_MAPS + ("spec",),
    "MutatingWebhookConfiguration": METADATA_MAPS + ("webhooks",),
    "ValidatingWebhookConfiguration": METADATA_MAPS + ("webhooks",),
}

_WORKLOAD_MAPS = (
    "spec.selector.matchLabels",
    "spec.template.metadata.labels",
    "spec.template.spec.nodeSelector",
)

# Owned maps that must carry exactly the desired keys. Everywhere else extra
# live keys are tolerated as server defaults; here they are leftovers of an
# older desired state. Secret.stringData is write-only and lands in data, so a
# Secret written through stringData has no exact map.
EXACT_MAPS: Dict[str, Tuple[str, ...]] = {
    "ConfigMap": ("data", "binaryData"),
    "Secret": ("data",),
    "DaemonSet": _WORKLOAD_MAPS,
    "Deployment": _WORKLOAD_MAPS,
    "StatefulSet": _WORKLOAD_MAPS,
    "Service": ("spec.selector",),
}

_UNOWNED_TOP_LEVEL = {"apiVersion", "kind", "metadata", "status"}

_MISSING = object()


def owned_fields(desired: Dict[str, Any]) -> Tuple[str, ...]:
    kind = desired.get("kind", "")
    if kind in OWNED_FIELDS:
        return OWNED_FIELDS[kind]
    # unknown kinds own their whole body
    body = tuple(sorted(k for k in desired if k not in _UNOWNED_TOP_LEVEL))
    return METADATA_MAPS + body


def _lookup(obj: Dict[str, Any], path: str) -> Any:
    cur: Any = obj
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return _MISSING
        cur = cur[part]
    return cur


def _assign(obj: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    cur = obj
    for part in parts[:-1]:
        nxt = cur.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[part] = nxt
        cur = nxt
    cur[parts[-1]] = value


def _is_empty(value: Any) -> bool:
    # the API server drops empty/false values marked omitempty
    return value is None or value is False or value == "" or value == {} or value == []


def is_subset(desired: Any, live: Any) -> bool:
    """
    Structural match: every key in a desired mapping must match in live,
    lists must match element-wise with the same length, scalars must be equal.
    """
    if isinstance(desired, dict):
        if live is _MISSING or live is None:
            return all(_is_empty(v) for v in desired.values())
        if not isinstance(live, dict):
            return False
        for key, value in desired.items():
            if key not in live:
                if _is_empty(value):
                    continue
                return False
            if not is_subset(value, live[key]):
                return False
        return True

    if isinstance(desired, list):
        if live is _MISSING or live is None:
            return not desired
        if not isinstance(live, list) or len(desired) != len(live):
            return False
        return all(is_subset(d, l) for d, l in zip(desired, live))

    if live is _MISSING:
        return _is_empty(desired)
    return desired == live


def exact_maps(desired: Dict[str, Any]) -> Tuple[str, ...]:
    if desired.get("kind") == "Secret" and desired.get("stringData"):
        return ()
    return EXACT_MAPS.get(desired.get("kind", ""), ())


def _map_keys(value: Any) -> set:
    return set(value) if isinstance(value, dict) else set()


def _owner(path: str, owned: Tuple[str, ...]) -> str:
    for o in owned:
        if path == o or path.startswith(o + "."):
            return o
    return path


def changed_fields(desired: Dict[str, Any], live: Dict[str, Any]) -> List[str]:
    """Owned paths whose live value does not match the desired one."""
    owned = owned_fields(desired)
    changed = []
    for path in owned:
        want = _lookup(desired, path)
        if want is _MISSING:
            continue
        if not is_subset(want, _lookup(live, path)):
            changed.append(path)

    # a key dropped from desired still sits in live
    for path in exact_maps(desired):
        if _map_keys(_lookup(desired, path)) != _map_keys(_lookup(live, path)):
            owner = _owner(path, owned)
            if owner not in changed:
                changed.append(owner)
    return changed


def matches(desired: Dict[str, Any], live: Dict[str, Any]) -> bool:
    return not changed_fields(desired, live)


def _remove(obj: Dict[str, Any], path: str) -> None:
    parts = path.split(".")
    cur: Any = obj
    for part in parts[:-1]:
        if not isinstance(cur, dict) or part not in cur:
            return
        cur = cur[part]
    if isinstance(cur, dict):
        cur.pop(parts[-1], None)


def merge_for_update(desired: Dict[str, Any], live: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the update body: the live object with every owned path taken from
    desired. Metadata label/annotation maps are merged key by key so foreign
    entries survive; other owned paths are replaced. Exact maps that desired
    no longer has are dropped.
    """
    merged = copy.deepcopy(live)
    merged["apiVersion"] = desired["apiVersion"]
    merged["kind"] = desired["kind"]

    for path in owned_fields(desired):
        want = _lookup(desired, path)
        if want is _MISSING:
            continue
        if path in METADATA_MAPS:
            current = _lookup(merged, path)
            combined = dict(current) if isinstance(current, dict) else {}
            combined.update(want or {})
            _assign(merged, path, combined)
        else:
            _assign(merged, path, copy.deepcopy(want))

    for path in exact_maps(desired):
        if _lookup(desired, path) is _MISSING:
            _remove(merged, path)
    return merged
