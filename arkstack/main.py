"""
arkstack — CLI entrypoint.

Usage:
    arkstack --help
    arkstack check server
    arkstack install server --sudo-password-stdin
    arkstack unlock
    arkstack history
"""

from __future__ import annotations

import json
import os
import signal
import sys
from pathlib import Path

import click

from arkstack import __version__
from arkstack.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    level_from_flags,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="arkstack")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to arkstack.yml (default: auto-detect).",
)
@click.option(
    "--install-root",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory the server stack is installed into.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    install_root: str | None,
) -> None:
    """arkstack — install and update an ARK dedicated server stack."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["install_root"] = Path(install_root).expanduser() if install_root else None

    if ctx.obj["install_root"] is not None:
        from arkstack.core.context import set_install_root
        set_install_root(ctx.obj["install_root"])

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=level_from_flags(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
        quiet_third_party=not debug,
    )


def _load_settings(ctx: click.Context):
    from arkstack.core.config.loader import ConfigError, load_settings

    try:
        return load_settings(ctx.obj.get("config_path"), install_root=ctx.obj.get("install_root"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


def _make_service(ctx: click.Context):
    from arkstack.core.services.server_install import InstallService

    # Another arkstack process may own the lock; only ``unlock`` clears it.
    return InstallService(_load_settings(ctx), clear_stale_lock=False)


@cli.command()
@click.argument("target", default="server")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check(ctx: click.Context, target: str, as_json: bool) -> None:
    """Check whether TARGET can be installed now."""
    result = _make_service(ctx).check_requirements(target)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.success else 1)

    if not result.success:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if result.can_proceed:
        click.secho(f"✅ {result.message}", fg="green")
    else:
        click.secho(f"⚠️  {result.message}", fg="yellow")
        for name in result.missing_dependencies:
            click.echo(f"   • {name}")
        if result.requires_elevated_credential:
            click.echo()
            click.echo("   Re-run install with --sudo-password-stdin to install them.")


@cli.command()
@click.argument("target")
@click.option(
    "--sudo-password-stdin",
    is_flag=True,
    help="Read the sudo password from the first line of stdin.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output progress and result as JSON lines.")
@click.pass_context
def install(ctx: click.Context, target: str, sudo_password_stdin: bool, as_json: bool) -> None:
    """Install TARGET (server, steamcmd or proton)."""
    credential = None
    if sudo_password_stdin:
        credential = click.get_text_stream("stdin").readline().rstrip("\r\n") or None

    service = _make_service(ctx)
    quiet = ctx.obj.get("quiet", False)

    def on_progress(event) -> None:
        if as_json:
            click.echo(json.dumps(event.model_dump(exclude_none=True)))
        elif not quiet:
            click.echo(_format_progress(event))

    result = _install_with_interrupt(service, target, on_progress, credential)

    if as_json:
        click.echo(json.dumps(result.to_dict()))
    elif result.ok:
        click.secho(f"✅ {result.message}", fg="green", bold=True)
    else:
        click.secho(f"❌ {result.error}", fg="red", bold=True)

    sys.exit(0 if result.ok else 1)


def _install_with_interrupt(service, target: str, on_progress, credential: str | None):
    """Run the install; Ctrl-C cancels it when the target supports cancelling.

    Component installs cannot be cancelled, so Ctrl-C keeps its default
    behaviour for them.
    """
    from arkstack.core.services.server_install.orchestration.install_service import (
        CANCELLABLE_TARGETS,
        resolve_target,
    )

    name = service.validate_params(target).sanitized_target or target
    if resolve_target(name) not in CANCELLABLE_TARGETS:
        return service.install(target, on_progress, credential)

    def on_interrupt(signum, frame) -> None:
        click.secho("\nCancelling...", fg="yellow", err=True)
        service.cancel(name)

    previous = signal.signal(signal.SIGINT, on_interrupt)
    try:
        return service.install(target, on_progress, credential)
    finally:
        signal.signal(signal.SIGINT, previous)


@cli.command()
@click.pass_context
def unlock(ctx: click.Context) -> None:
    """Remove an install lock left behind by a crashed run."""
    from arkstack.core.services.server_install import InstallLock

    lock = InstallLock(_load_settings(ctx).lock_path)
    if lock.force_clear():
        click.secho(f"🔓 Removed install lock: {lock.path}", fg="green")
    else:
        click.echo("No install lock present.")


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--limit", "-n", default=20, show_default=True, help="Number of entries to show.")
@click.pass_context
def history(ctx: click.Context, as_json: bool, limit: int) -> None:
    """Show recent install runs."""
    from arkstack.core.persistence.audit import InstallHistory

    records = InstallHistory(_load_settings(ctx).history_path).read_recent(limit)

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
        return

    if not records:
        click.echo("No installs recorded yet.")
        return

    for r in records:
        color = "green" if r.status == "success" else "red"
        click.echo(f"{r.timestamp}  {r.target:<20} ", nl=False)
        click.secho(f"{r.status:<8}", fg=color, nl=False)
        detail = r.message if r.status == "success" else r.error.splitlines()[0] if r.error else ""
        if r.failed_phase:
            detail = f"[{r.failed_phase}] {detail}"
        click.echo(f" {r.duration_ms / 1000:.1f}s  {detail}")


def _format_progress(event) -> str:
    phase = getattr(event, "phase", None)
    if phase is not None:
        return f"[{phase}] {event.phase_percent:3d}% {event.message}"
    return f"{event.percent:3d}% {event.message}"


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
