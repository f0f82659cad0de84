# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/cli/app.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from kubernetes.config.config_exception import ConfigException
from pydantic import ValidationError

from odigosctl.config.loader import load_config
from odigosctl.config.models import InstallConfig
from odigosctl.errors import InstallError
from odigosctl.install.engine import InstallEngine
from odigosctl.install.ledger import VersionLedger
from odigosctl.install.registry import build_components, installed_components
from odigosctl.k8s.client import ClusterClient, KubernetesClusterClient
from odigosctl.logging.log import init_logging
from odigosctl.observers.console import ConsoleObserver
from odigosctl.observers.dispatcher import EventBus
from odigosctl.observers.jsonfile import JsonFileObserver
from odigosctl.observers.logger import LoggerObserver
from odigosctl.utils.execution import ExecutionContext


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Install, upgrade and remove the Odigos control plane")

ConfigOpt = typer.Option(None, "--config", "-c", help="Install config YAML")
NamespaceOpt = typer.Option(None, "--namespace", "-n", help="Installation namespace")
KubeconfigOpt = typer.Option(None, "--kubeconfig", help="Path to kubeconfig")
ContextOpt = typer.Option(None, "--context", help="Kubernetes context")
DebugOpt = typer.Option(False, "--debug", help="Verbose console output")


def make_client(cfg: InstallConfig) -> ClusterClient:
    return KubernetesClusterClient.from_kubeconfig(cfg.kubeconfig, cfg.kube_context)


def _connect(cfg: InstallConfig) -> ClusterClient:
    try:
        return make_client(cfg)
    except (ConfigException, InstallError) as e:
        typer.secho(f"[odigosctl] cannot reach the cluster: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


def _resolve_config(
    config: Optional[Path],
    *,
    namespace: Optional[str] = None,
    version: Optional[str] = None,
    image_prefix: Optional[str] = None,
    psp: Optional[bool] = None,
    kubeconfig: Optional[str] = None,
    kube_context: Optional[str] = None,
) -> InstallConfig:
    overrides: dict = {
        "namespace": namespace,
        "version": version,
        "image_prefix": image_prefix,
        "kubeconfig": kubeconfig,
        "kube_context": kube_context,
    }
    if psp is not None:
        overrides["features"] = {"psp": psp}
    try:
        return load_config(config, overrides)
    except (ValidationError, ValueError, OSError) as e:
        raise typer.BadParameter(str(e))


def _engine(
    cfg: InstallConfig,
    *,
    dry_run: bool = False,
    debug: bool = False,
    events: bool = False,
    timeout: Optional[float] = None,
) -> InstallEngine:
    logger, run_id, log_path = init_logging(verbose=debug)

    bus = EventBus([LoggerObserver(logger), JsonFileObserver.beside(log_path)])
    if events:
        bus.add(ConsoleObserver(verbose=debug))

    if timeout:
        ctx = ExecutionContext.with_timeout(timeout, dry_run=dry_run)
    else:
        ctx = ExecutionContext(dry_run=dry_run)

    client = _connect(cfg)
    return InstallEngine(
        client=client,
        ledger=VersionLedger(client, cfg.namespace),
        bus=bus,
        ctx=ctx,
        kube_context=cfg.kube_context,
        run_id=run_id,
    )


def _run_transaction(engine: InstallEngine, cfg: InstallConfig) -> None:
    try:
        result = engine.install(build_components(cfg), cfg.version)
    except InstallError as e:
        typer.secho(f"[odigosctl] {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    prefix = "[dry-run] " if result.dry_run else ""
    if result.ok:
        typer.secho(f"{prefix}{result.summary()}", fg=typer.colors.GREEN)
        return

    typer.secho(f"{prefix}{result.summary()}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def install(
    config: Optional[Path] = ConfigOpt,
    version: Optional[str] = typer.Option(None, "--version", help="Target product version"),
    namespace: Optional[str] = NamespaceOpt,
    image_prefix: Optional[str] = typer.Option(None, "--image-prefix", help="Registry prefix for images"),
    psp: Optional[bool] = typer.Option(None, "--psp/--no-psp", help="Grant use of the privileged PodSecurityPolicy"),
    kubeconfig: Optional[str] = KubeconfigOpt,
    context: Optional[str] = ContextOpt,
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would change without writing"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Abort after this many seconds"),
    events: bool = typer.Option(False, "--events", help="Print lifecycle events"),
    debug: bool = DebugOpt,
):
    """
    Install the control plane, or bring an existing installation to --version.
    Safe to re-run: unchanged objects are left alone.
    """
    cfg = _resolve_config(
        config,
        namespace=namespace,
        version=version,
        image_prefix=image_prefix,
        psp=psp,
        kubeconfig=kubeconfig,
        kube_context=context,
    )
    if not cfg.version:
        raise typer.BadParameter("a target version is required (--version or config file)")

    engine = _engine(cfg, dry_run=dry_run, debug=debug, events=events, timeout=timeout)
    _run_transaction(engine, cfg)


@app.command()
def upgrade(
    config: Optional[Path] = ConfigOpt,
    version: Optional[str] = typer.Option(None, "--version", help="Target product version"),
    namespace: Optional[str] = NamespaceOpt,
    image_prefix: Optional[str] = typer.Option(None, "--image-prefix", help="Registry prefix for images"),
    psp: Optional[bool] = typer.Option(None, "--psp/--no-psp"),
    kubeconfig: Optional[str] = KubeconfigOpt,
    context: Optional[str] = ContextOpt,
    dry_run: bool = typer.Option(False, "--dry-run"),
    timeout: Optional[float] = typer.Option(None, "--timeout"),
    events: bool = typer.Option(False, "--events"),
    debug: bool = DebugOpt,
):
    """Upgrade an existing installation. Fails when nothing is installed."""
    cfg = _resolve_config(
        config,
        namespace=namespace,
        version=version,
        image_prefix=image_prefix,
        psp=psp,
        kubeconfig=kubeconfig,
        kube_context=context,
    )
    if not cfg.version:
        raise typer.BadParameter("a target version is required (--version or config file)")

    engine = _engine(cfg, dry_run=dry_run, debug=debug, events=events, timeout=timeout)
    try:
        current = engine.ledger.read()
    except InstallError as e:
        typer.secho(f"[odigosctl] {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    if not current.found:
        typer.secho(
            f"[odigosctl] nothing installed in namespace {cfg.namespace}; use 'install'",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    typer.echo(f"Upgrading {current.version} -> {cfg.version}")
    _run_transaction(engine, cfg)


@app.command()
def uninstall(
    config: Optional[Path] = ConfigOpt,
    namespace: Optional[str] = NamespaceOpt,
    kubeconfig: Optional[str] = KubeconfigOpt,
    context: Optional[str] = ContextOpt,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    events: bool = typer.Option(False, "--events"),
    debug: bool = DebugOpt,
):
    """Remove every control-plane object. Continues past individual failures."""
    cfg = _resolve_config(config, namespace=namespace, kubeconfig=kubeconfig, kube_context=context)

    if not yes and not dry_run:
        typer.confirm(f"Remove Odigos from namespace {cfg.namespace}?", abort=True)

    engine = _engine(cfg, dry_run=dry_run, debug=debug, events=events)
    try:
        current = engine.ledger.read()
    except InstallError as e:
        typer.secho(f"[odigosctl] {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    # object names do not depend on the version, images do
    cfg = cfg.model_copy(update={"version": current.version or cfg.version or "unknown"})
    report = engine.uninstall(installed_components(cfg, current.installed_components))

    for component, ref, error in report.failures:
        typer.secho(f"  {component}: {ref or '-'}: {error}", fg=typer.colors.RED, err=True)
    if not report.ok:
        typer.secho(
            f"uninstall incomplete: {len(report.deleted)} removed, {len(report.failures)} failed",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    typer.secho(f"uninstalled: {len(report.deleted)} object(s) removed", fg=typer.colors.GREEN)


@app.command()
def status(
    config: Optional[Path] = ConfigOpt,
    namespace: Optional[str] = NamespaceOpt,
    kubeconfig: Optional[str] = KubeconfigOpt,
    context: Optional[str] = ContextOpt,
    as_json: bool = typer.Option(False, "--json", help="Machine readable output"),
):
    """Show the installed version recorded in the cluster."""
    cfg = _resolve_config(config, namespace=namespace, kubeconfig=kubeconfig, kube_context=context)
    ledger = VersionLedger(_connect(cfg), cfg.namespace)
    try:
        entry = ledger.read()
    except InstallError as e:
        typer.secho(f"[odigosctl] {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(
            json.dumps(
                {
                    "namespace": cfg.namespace,
                    "installed": entry.found,
                    "version": entry.version,
                    "configVersion": entry.config_version,
                    "installedComponents": entry.installed_components,
                }
            )
        )
        return

    if not entry.found:
        typer.echo(f"Odigos is not installed in namespace {cfg.namespace}")
        return
    typer.echo(f"namespace:   {cfg.namespace}")
    typer.echo(f"version:     {entry.version}")
    typer.echo(f"config:      {entry.config_version}")
    typer.echo(f"components:  {', '.join(entry.installed_components) or '-'}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
