# src/odigosctl/observers/console.py
import typer

from .events import BaseEvent, ObjectApplied

_SKIP = ("ts", "run_id", "namespace", "context")


class ConsoleObserver:
    """Human readable one-liners. Unchanged objects are only shown when verbose."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, ObjectApplied) and event.action == "UNCHANGED" and not self.verbose:
            return
        d = event.dict()
        k = event.__class__.__name__
        typer.echo(f"[{d['ts']}] {k} ns={d['namespace']} data={{"
                   + ", ".join(f"{x}={y}" for x, y in d.items() if x not in _SKIP) + "}")
