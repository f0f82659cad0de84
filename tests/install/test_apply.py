import pytest

from odigosctl.errors import ApplyError, ForbiddenError, TransactionCancelled, UninstallError
from odigosctl.install.apply import CREATED, UNCHANGED, UPDATED, ObjectApplier, stamp
from odigosctl.k8s.objects import CONFIG_VERSION_LABEL, SYSTEM_OBJECT_LABEL, ObjectRef
from odigosctl.observers.dispatcher import EventBus
from odigosctl.observers.events import ObjectApplied, ObjectDeleted
from odigosctl.utils.execution import ExecutionContext


def _cm(name="settings", data=None):
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": name, "namespace": "odigos-system"},
        "data": data if data is not None else {"A": "1"},
    }


def test_stamp_adds_labels_without_touching_input():
    obj = _cm()
    stamped = stamp(obj, 3)
    assert stamped["metadata"]["labels"] == {SYSTEM_OBJECT_LABEL: "true", CONFIG_VERSION_LABEL: "3"}
    assert "labels" not in obj["metadata"]


def test_create_then_unchanged_then_update(cluster):
    applier = ObjectApplier(client=cluster, generation=1)

    assert applier.apply("c", _cm()) == CREATED
    assert applier.apply("c", _cm()) == UNCHANGED
    assert applier.apply("c", _cm(data={"A": "2"})) == UPDATED

    assert cluster.find("ConfigMap", "settings")["data"] == {"A": "2"}
    assert len(cluster.ops("create")) == 1
    assert len(cluster.ops("update")) == 1


def test_new_generation_rewrites_labels_only(cluster):
    ObjectApplier(client=cluster, generation=1).apply("c", _cm())
    action = ObjectApplier(client=cluster, generation=2).apply("c", _cm())

    assert action == UPDATED
    labels = cluster.find("ConfigMap", "settings")["metadata"]["labels"]
    assert labels[CONFIG_VERSION_LABEL] == "2"


def test_rejected_write_carries_component_and_object(cluster):
    cluster.fail("create", "ConfigMap", "settings", ForbiddenError("denied", status=403))

    with pytest.raises(ApplyError) as err:
        ObjectApplier(client=cluster, generation=1).apply("own-telemetry", _cm())

    assert err.value.component == "own-telemetry"
    assert err.value.ref == ObjectRef("ConfigMap", "odigos-system", "settings")
    assert isinstance(err.value.cause, ForbiddenError)
    assert "own-telemetry" in str(err.value)


def test_dry_run_emits_but_never_writes(cluster):
    class Capture:
        def __init__(self): self.events = []
        def notify(self, ev): self.events.append(ev)

    cap = Capture()
    applier = ObjectApplier(
        client=cluster, generation=1, ctx=ExecutionContext(dry_run=True), bus=EventBus([cap])
    )

    assert applier.apply("c", _cm()) == CREATED
    assert cluster.writes() == []
    ev = cap.events[0]
    assert isinstance(ev, ObjectApplied)
    assert ev.dry_run and ev.action == CREATED


def test_cancelled_context_refuses_to_apply(cluster):
    ctx = ExecutionContext()
    ctx.cancel.set()

    with pytest.raises(TransactionCancelled):
        ObjectApplier(client=cluster, generation=1, ctx=ctx).apply("c", _cm())
    assert cluster.calls == []


def test_delete_reports_absent_objects(cluster):
    applier = ObjectApplier(client=cluster, generation=1)
    applier.apply("c", _cm())
    ref = ObjectRef("ConfigMap", "odigos-system", "settings")

    assert applier.delete("c", ref) is True
    assert applier.delete("c", ref) is False


def test_delete_all_attempts_every_object(cluster, capture):
    applier = ObjectApplier(client=cluster, generation=1, bus=EventBus([capture]))
    for name in ("a", "b", "c"):
        applier.apply("c", _cm(name))
    cluster.fail("delete", "ConfigMap", "a", ForbiddenError("denied", status=403))
    refs = [ObjectRef("ConfigMap", "odigos-system", n) for n in ("a", "b", "c")]

    with pytest.raises(UninstallError) as err:
        applier.delete_all("settings", refs)

    assert [ref for ref, _ in err.value.failures] == [refs[0]]
    assert err.value.deleted == refs[1:]
    statuses = [e.status for e in capture.events if isinstance(e, ObjectDeleted)]
    assert statuses == ["FAILED", "DELETED", "DELETED"]


def test_removed_data_key_is_applied(cluster):
    applier = ObjectApplier(client=cluster, generation=1)
    applier.apply("c", _cm(data={"A": "1", "B": "2"}))

    assert applier.apply("c", _cm(data={"A": "1"})) == UPDATED
    assert cluster.find("ConfigMap", "settings")["data"] == {"A": "1"}
    assert applier.apply("c", _cm(data={"A": "1"})) == UNCHANGED
