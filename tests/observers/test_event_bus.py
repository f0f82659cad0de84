import json
import logging

from odigosctl.observers.console import ConsoleObserver
from odigosctl.observers.dispatcher import EventBus
from odigosctl.observers.events import ComponentFailed, ObjectApplied, TransactionSummary, new_ctx
from odigosctl.observers.interface import Observer
from odigosctl.observers.jsonfile import JsonFileObserver
from odigosctl.observers.logger import LoggerObserver


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


class Exploding:
    def notify(self, ev):
        raise RuntimeError("observer bug")


def _ctx():
    return new_ctx(namespace="odigos-system", context="kind-dev", run_id="run-1")


def test_failing_observer_does_not_stop_delivery():
    cap = Capture()
    bus = EventBus([Exploding(), cap])
    bus.emit(ComponentFailed(name="odiglet", error="boom", **_ctx()))
    assert len(cap.events) == 1


def test_json_file_observer_appends_one_line_per_event(tmp_path):
    path = tmp_path / "events" / "run.jsonl"
    obs = JsonFileObserver(path)
    obs.notify(ComponentFailed(name="odiglet", error="boom", **_ctx()))
    obs.notify(TransactionSummary(ok=False, applied=1, failed_component="odiglet", **_ctx()))

    lines = [json.loads(line) for line in path.read_text().splitlines()]
    assert [l["type"] for l in lines] == ["ComponentFailed", "TransactionSummary"]
    assert lines[0]["run_id"] == "run-1"
    assert lines[1]["failed_component"] == "odiglet"


def test_logger_observer_levels(caplog):
    logger = logging.getLogger("odigosctl-test-events")
    obs = LoggerObserver(logger)

    with caplog.at_level(logging.INFO, logger="odigosctl-test-events"):
        obs.notify(ComponentFailed(name="odiglet", error="boom", **_ctx()))
        obs.notify(TransactionSummary(ok=True, applied=3, **_ctx()))

    assert [r.levelno for r in caplog.records] == [logging.ERROR, logging.INFO]
    assert "name=odiglet" in caplog.records[0].getMessage()


def test_console_hides_unchanged_objects_unless_verbose(capsys):
    ev = ObjectApplied(component="odiglet", ref="DaemonSet/odigos-system/odiglet", action="UNCHANGED", **_ctx())

    ConsoleObserver().notify(ev)
    assert capsys.readouterr().out == ""

    ConsoleObserver(verbose=True).notify(ev)
    out = capsys.readouterr().out
    assert "ObjectApplied" in out and "action=UNCHANGED" in out


def test_observers_added_later_receive_events():
    cap = Capture()
    bus = EventBus()
    bus.add(cap)
    bus.emit(ComponentFailed(name="odiglet", error="boom", **_ctx()))

    assert isinstance(cap, Observer)
    assert [e.name for e in cap.events] == ["odiglet"]


def test_json_file_sits_beside_the_run_log(tmp_path):
    obs = JsonFileObserver.beside(tmp_path / "odigosctl-20260101-000000-run-1.log")
    assert obs.path.name == "odigosctl-20260101-000000-run-1.jsonl"
