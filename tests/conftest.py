import copy
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import pytest

from odigosctl.config.models import InstallConfig
from odigosctl.errors import ConflictError, NotFoundError
from odigosctl.install.ledger import LEDGER_NAME
from odigosctl.k8s.objects import ObjectRef


@dataclass
class Call:
    op: str
    ref: ObjectRef


class FakeCluster:
    """
    In-memory ClusterClient. Records every call and can fail specific
    (op, kind, name) combinations a number of times.
    """

    def __init__(self):
        self.objects: Dict[ObjectRef, dict] = {}
        self.calls: List[Call] = []
        self._failures: Dict[Tuple[str, str, str], Tuple[Exception, int]] = {}
        self._rv = 0
        self.on_call = None

    # ---- test helpers ----

    def fail(self, op: str, kind: str, name: str, exc: Exception, times: int = 10**6) -> None:
        self._failures[(op, kind, name)] = (exc, times)

    def seed(self, obj: dict) -> dict:
        ref = ObjectRef.from_manifest(obj)
        stored = copy.deepcopy(obj)
        self._rv += 1
        stored.setdefault("metadata", {})["resourceVersion"] = str(self._rv)
        self.objects[ref] = stored
        return stored

    def find(self, kind: str, name: str) -> Optional[dict]:
        for ref, obj in self.objects.items():
            if ref.kind == kind and ref.name == name:
                return obj
        return None

    def ops(self, *ops: str, include_ledger: bool = False) -> List[Call]:
        return [
            c for c in self.calls
            if c.op in ops and (include_ledger or c.ref.name != LEDGER_NAME)
        ]

    def writes(self, include_ledger: bool = False) -> List[Call]:
        return self.ops("create", "update", include_ledger=include_ledger)

    def touched(self, kind: str) -> List[Call]:
        return [c for c in self.calls if c.ref.kind == kind]

    def reset_calls(self) -> None:
        self.calls.clear()

    # ---- ClusterClient ----

    def _record(self, op: str, ref: ObjectRef) -> None:
        self.calls.append(Call(op, ref))
        if self.on_call:
            self.on_call(op, ref)
        key = (op, ref.kind, ref.name)
        if key in self._failures:
            exc, times = self._failures[key]
            if times > 0:
                self._failures[key] = (exc, times - 1)
                raise exc

    def get(self, ref):
        self._record("get", ref)
        obj = self.objects.get(ref)
        return copy.deepcopy(obj) if obj is not None else None

    def create(self, obj):
        ref = ObjectRef.from_manifest(obj)
        self._record("create", ref)
        if ref in self.objects:
            raise ConflictError(f'{ref.kind} "{ref.name}" already exists', status=409)
        return copy.deepcopy(self.seed(obj))

    def update(self, obj):
        ref = ObjectRef.from_manifest(obj)
        self._record("update", ref)
        live = self.objects.get(ref)
        if live is None:
            raise NotFoundError(f'{ref.kind} "{ref.name}" not found', status=404)
        sent_rv = (obj.get("metadata") or {}).get("resourceVersion")
        if sent_rv is not None and sent_rv != live["metadata"].get("resourceVersion"):
            raise ConflictError(
                f'Operation cannot be fulfilled on {ref.kind} "{ref.name}": '
                "the object has been modified; please apply your changes to the latest version",
                status=409,
            )
        stored = copy.deepcopy(obj)
        # status is a subresource; the main endpoint ignores it
        if "status" in live:
            stored["status"] = copy.deepcopy(live["status"])
        return copy.deepcopy(self.seed(stored))

    def delete(self, ref):
        self._record("delete", ref)
        if ref not in self.objects:
            raise NotFoundError(f'{ref.kind} "{ref.name}" not found', status=404)
        del self.objects[ref]

    def list_by_label(self, api_version, kind, namespace, selector):
        self._record("list", ObjectRef(kind, namespace, "*", api_version=api_version))
        out = []
        for ref, obj in self.objects.items():
            if ref.kind != kind:
                continue
            if namespace is not None and ref.namespace != namespace:
                continue
            labels = (obj.get("metadata") or {}).get("labels") or {}
            if all(labels.get(k) == v for k, v in selector.items()):
                out.append(copy.deepcopy(obj))
        return out


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)

    def kinds(self):
        return [e.__class__.__name__ for e in self.events]


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def capture():
    return Capture()


@pytest.fixture
def install_config():
    return InstallConfig(namespace="odigos-system", version="1.2.0")
