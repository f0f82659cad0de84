import json

import pytest
from typer.testing import CliRunner

from odigosctl.cli import app as cli
from odigosctl.errors import ForbiddenError
from odigosctl.install.ledger import LEDGER_NAME

runner = CliRunner()


@pytest.fixture
def wired(cluster, monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "make_client", lambda cfg: cluster)
    monkeypatch.setenv("ODIGOSCTL_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("ODIGOSCTL_OVERRIDES_FILE", raising=False)
    return cluster


def _run(*args, **kw):
    return runner.invoke(cli.app, list(args), **kw)


def test_install_applies_version(wired):
    result = _run("install", "--version", "1.2.0")

    assert result.exit_code == 0, result.output
    assert "version 1.2.0 applied" in result.output
    assert wired.find("DaemonSet", "odiglet") is not None
    assert wired.find("ConfigMap", LEDGER_NAME)["data"]["version"] == "1.2.0"


def test_install_requires_a_version(wired):
    result = _run("install")
    assert result.exit_code != 0
    assert wired.calls == []


def test_second_install_reports_no_changes(wired):
    _run("install", "--version", "1.2.0")
    wired.reset_calls()

    result = _run("install", "--version", "1.2.0")

    assert result.exit_code == 0
    assert "created=0 updated=0" in result.output
    assert wired.writes(include_ledger=True) == []


def test_failed_install_exits_non_zero(wired):
    wired.fail("create", "DaemonSet", "odiglet", ForbiddenError("daemonsets is forbidden", status=403))

    result = _run("install", "--version", "1.2.0", "--no-psp")

    assert result.exit_code == 1
    assert "odiglet failed" in result.output
    assert wired.find("ConfigMap", LEDGER_NAME) is None


def test_dry_run_install_writes_nothing(wired, tmp_path):
    result = _run("install", "--version", "1.2.0", "--dry-run")

    assert result.exit_code == 0
    assert "[dry-run]" in result.output
    assert wired.writes(include_ledger=True) == []
    assert list((tmp_path / "logs").glob("*.jsonl"))


def test_upgrade_needs_an_existing_installation(wired):
    result = _run("upgrade", "--version", "1.3.0")
    assert result.exit_code == 1
    assert "nothing installed" in result.output


def test_upgrade_moves_to_new_version(wired):
    _run("install", "--version", "1.2.0")

    result = _run("upgrade", "--version", "1.3.0")

    assert result.exit_code == 0, result.output
    assert "Upgrading 1.2.0 -> 1.3.0" in result.output
    image = wired.find("DaemonSet", "odiglet")["spec"]["template"]["spec"]["containers"][0]["image"]
    assert image == "keyval/odigos-odiglet:1.3.0"


def test_status_json(wired):
    _run("install", "--version", "1.2.0")

    result = _run("status", "--json")

    assert result.exit_code == 0
    data = json.loads(result.stdout.strip().splitlines()[-1])
    assert data["installed"] is True
    assert data["version"] == "1.2.0"
    assert data["configVersion"] == 1
    assert data["installedComponents"][0] == "namespace"


def test_status_when_not_installed(wired):
    result = _run("status")
    assert result.exit_code == 0
    assert "not installed" in result.output


def test_uninstall_removes_everything(wired):
    _run("install", "--version", "1.2.0")

    result = _run("uninstall", "--yes")

    assert result.exit_code == 0, result.output
    assert wired.objects == {}


def test_uninstall_asks_for_confirmation(wired):
    _run("install", "--version", "1.2.0")
    wired.reset_calls()

    result = _run("uninstall", input="n\n")

    assert result.exit_code != 0
    assert wired.ops("delete", include_ledger=True) == []


def test_uninstall_reports_failures(wired):
    _run("install", "--version", "1.2.0")
    wired.fail("delete", "ClusterRole", "odiglet", ForbiddenError("forbidden", status=403))

    result = _run("uninstall", "--yes")

    assert result.exit_code == 1
    assert "uninstall incomplete" in result.output
    assert wired.find("ConfigMap", LEDGER_NAME) is not None


def test_uninstall_reports_a_ledger_that_cannot_be_removed(wired):
    _run("install", "--version", "1.2.0")
    wired.fail("delete", "ConfigMap", LEDGER_NAME, ForbiddenError("forbidden", status=403))

    result = _run("uninstall", "--yes")

    assert result.exit_code == 1
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert "ledger" in result.output
    assert "uninstall incomplete" in result.output


def test_uninstall_removes_components_whose_flag_was_turned_off(wired, tmp_path):
    _run("install", "--version", "1.2.0")
    assert wired.find("Deployment", "odigos-autoscaler") is not None
    cfg = tmp_path / "odigos.yaml"
    cfg.write_text("features:\n  autoscaler: false\n")

    result = _run("uninstall", "--yes", "--config", str(cfg))

    assert result.exit_code == 0, result.output
    assert wired.objects == {}
