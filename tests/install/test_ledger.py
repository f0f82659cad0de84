import pytest

from odigosctl.errors import ConflictError, ForbiddenError, LedgerReadError
from odigosctl.install.ledger import LEDGER_NAME, LedgerEntry, VersionLedger

NS = "odigos-system"


def _raw(data):
    return {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": LEDGER_NAME, "namespace": NS}, "data": data}


def test_missing_ledger_reads_as_not_installed(cluster):
    assert VersionLedger(cluster, NS).read() == LedgerEntry()


def test_first_write_creates_config_map(cluster):
    entry = VersionLedger(cluster, NS).write("1.0.0", None, ["namespace", "odiglet"])

    assert entry == LedgerEntry("1.0.0", 1, ["namespace", "odiglet"], found=True)
    stored = cluster.find("ConfigMap", LEDGER_NAME)
    assert stored["data"] == {
        "version": "1.0.0",
        "configVersion": "1",
        "installedComponents": '["namespace", "odiglet"]',
    }


def test_write_bumps_config_version(cluster):
    ledger = VersionLedger(cluster, NS)
    ledger.write("1.0.0", None, ["odiglet"])
    ledger.write("1.1.0", 1, ["odiglet"])

    entry = ledger.read()
    assert entry.version == "1.1.0"
    assert entry.config_version == 2


def test_stale_expected_config_version_is_a_conflict(cluster):
    ledger = VersionLedger(cluster, NS)
    ledger.write("1.0.0", None, [])
    ledger.write("1.1.0", 1, [])

    with pytest.raises(ConflictError):
        ledger.write("1.2.0", 1, [])
    with pytest.raises(ConflictError):
        ledger.write("1.2.0", None, [])
    assert ledger.read().version == "1.1.0"


def test_resource_version_guards_the_update(cluster):
    ledger = VersionLedger(cluster, NS)
    ledger.write("1.0.0", None, [])

    def bump(op, ref):
        # someone touches the ConfigMap between our read and our update
        if op == "update":
            cluster.on_call = None
            cluster.seed(cluster.find("ConfigMap", LEDGER_NAME))

    cluster.on_call = bump
    with pytest.raises(ConflictError):
        ledger.write("1.1.0", 1, [])


def test_malformed_ledger_is_a_read_error(cluster):
    cluster.seed(_raw({"version": "1.0.0", "configVersion": "one"}))
    with pytest.raises(LedgerReadError):
        VersionLedger(cluster, NS).read()


def test_components_must_be_a_list(cluster):
    cluster.seed(_raw({"version": "1.0.0", "configVersion": "1", "installedComponents": '{"a": 1}'}))
    with pytest.raises(LedgerReadError):
        VersionLedger(cluster, NS).read()


def test_cluster_failure_is_a_read_error(cluster):
    cluster.fail("get", "ConfigMap", LEDGER_NAME, ForbiddenError("denied", status=403))
    with pytest.raises(LedgerReadError) as err:
        VersionLedger(cluster, NS).read()
    assert "denied" in str(err.value)


def test_delete(cluster):
    ledger = VersionLedger(cluster, NS)
    ledger.write("1.0.0", None, [])
    assert ledger.delete() is True
    assert ledger.delete() is False
    assert not ledger.read().found
