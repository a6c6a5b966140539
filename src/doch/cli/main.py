"""Main Click CLI entry point for the doch command.

Provides the ``doch`` CLI group.  ``drift`` and ``check`` are the verbs
called from git hooks; ``status``, ``init`` and ``prune`` are for developers.

Entry point registered in pyproject.toml::

    [project.scripts]
    doch = "doch.cli.main:cli"

Usage examples::

    doch drift src/a.ts docs/a.md       # after a commit
    doch check docs/a.md                # before a push; exit 1 if stale
    doch status --json-output
    doch init --install-hooks
    doch prune --dry-run
"""

from __future__ import annotations

import json
import sys
from typing import Optional

import click

from doch import __version__
from doch.config import ConfigCache, DochConfig
from doch.detection.engine import DriftEngine
from doch.detection.report import STATUS_ORDER, StatusReport, StatusReporter
from doch.hooks.installer import init_repository
from doch.models.state import DocStatus

_STATUS_COLOURS = {
    "uptodate": "green",
    "outdated": "red",
    "nodocs": "yellow",
    "untracked": "yellow",
    "nosource": "magenta",
    "independent": "blue",
}


@click.group()
@click.version_option(version=__version__, prog_name="doch")
@click.option(
    "--project-root",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    envvar="DOCH_PROJECT_ROOT",
    help="Workspace root. Auto-detected from the current directory if not set.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override the configured log level.",
)
@click.pass_context
def cli(ctx: click.Context, project_root: Optional[str], log_level: Optional[str]) -> None:
    """doch -- keep documentation in sync with the source it describes."""
    ctx.ensure_object(dict)
    ctx.obj.setdefault("config_cache", ConfigCache())
    ctx.obj["project_root"] = project_root
    ctx.obj["log_level"] = log_level


# ---------------------------------------------------------------------------
# Hook verbs
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("files", nargs=-1)
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Exit with status 1 if any tracked path could not be resolved.",
)
@click.option(
    "--json-output",
    "output_json",
    is_flag=True,
    default=False,
    help="Output the result as JSON.",
)
@click.pass_context
def drift(ctx: click.Context, files: tuple[str, ...], strict: bool, output_json: bool) -> None:
    """Update documentation status for changed FILES.

    Each source or documentation file is mapped to its counterpart and its
    source is classified as uptodate, outdated or nodocs.  The state is
    saved once at the end.
    """
    config = _load_config(ctx)
    engine = DriftEngine(config)

    try:
        result = engine.drift(files)
    except OSError as exc:
        click.secho(f"ERROR: could not save drift state: {exc}", fg="red", err=True)
        sys.exit(1)

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        click.echo(
            f"Drift: updated {len(result.updated)} "
            f"entr{'y' if len(result.updated) == 1 else 'ies'} "
            f"({result.count(DocStatus.UPTODATE)} uptodate, "
            f"{result.count(DocStatus.OUTDATED)} outdated, "
            f"{result.count(DocStatus.NODOCS)} nodocs)"
        )
        for source, entry in result.updated.items():
            if entry.status != DocStatus.UPTODATE:
                status = entry.status.value if entry.status else "?"
                click.secho(f"  {status:9s} {source}", fg=_STATUS_COLOURS.get(status))
        for skip in result.skipped:
            click.secho(f"  skipped   {skip.path}: {skip.reason}", fg="yellow", err=True)

    if (strict or config.strict_drift) and result.has_skips:
        sys.exit(1)


@cli.command()
@click.argument("files", nargs=-1)
@click.option(
    "--exit-on-failure",
    is_flag=True,
    default=False,
    hidden=True,
    help="Accepted for compatibility; check always exits 1 on failure.",
)
@click.option(
    "--json-output",
    "output_json",
    is_flag=True,
    default=False,
    help="Output the result as JSON.",
)
@click.pass_context
def check(ctx: click.Context, files: tuple[str, ...], exit_on_failure: bool, output_json: bool) -> None:
    """Fail unless every FILE's source is recorded as uptodate.

    Documentation paths are resolved to their source file.  A file with no
    recorded status fails, as does any non-Markdown file doch does not track.
    Intended as the last command of a blocking hook.
    """
    config = _load_config(ctx)
    result = DriftEngine(config).check(files)

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        for failure in result.failures:
            click.secho(f"doch check: {failure.message}", fg="red", err=True)
        if result.ok:
            click.echo(f"Check: {len(result.passed)} file(s) up to date")

    if not result.ok:
        sys.exit(1)


# ---------------------------------------------------------------------------
# Developer commands
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--json-output",
    "output_json",
    is_flag=True,
    default=False,
    help="Output status as JSON instead of human-readable text.",
)
@click.pass_context
def status(ctx: click.Context, output_json: bool) -> None:
    """Show documentation status for every file in the workspace."""
    config = _load_config(ctx)
    report = StatusReporter(config).collect()

    if output_json:
        data = report.to_dict()
        data["project_root"] = config.project_root
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        _render_status_text(report, config)


@cli.command()
@click.option("--force", is_flag=True, default=False, help="Overwrite existing files.")
@click.option(
    "--install-hooks",
    is_flag=True,
    default=False,
    help="Also install the hook scripts into .git/hooks.",
)
@click.pass_context
def init(ctx: click.Context, force: bool, install_hooks: bool) -> None:
    """Create .doch/ with a default config and git hook scripts."""
    config = _load_config(ctx)
    try:
        summary = init_repository(config, force=force, install_hooks=install_hooks)
    except OSError as exc:
        click.secho(f"ERROR: could not initialise {config.metadata_path}: {exc}", fg="red", err=True)
        sys.exit(1)

    click.secho(f"Initialised doch in {summary['project_root']}", fg="green")
    for path in summary["created"]:
        click.echo(f"  created   {path}")
    for path in summary["installed"]:
        click.echo(f"  installed {path}")
    for path in summary["skipped"]:
        click.echo(f"  exists    {path}")
    if install_hooks and summary["git_hooks_dir"] is None:
        click.secho("  not a git repository: hooks were not installed", fg="yellow", err=True)


@cli.command()
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="List the entries that would be removed without changing anything.",
)
@click.pass_context
def prune(ctx: click.Context, dry_run: bool) -> None:
    """Remove recorded entries whose source file no longer exists."""
    config = _load_config(ctx)
    try:
        removed = DriftEngine(config).prune(dry_run=dry_run)
    except OSError as exc:
        click.secho(f"ERROR: could not save drift state: {exc}", fg="red", err=True)
        sys.exit(1)

    verb = "Would remove" if dry_run else "Removed"
    click.echo(f"{verb} {len(removed)} entr{'y' if len(removed) == 1 else 'ies'}")
    for path in removed:
        click.echo(f"  {path}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_config(ctx: click.Context) -> DochConfig:
    """Resolve the workspace config and apply the logging settings."""
    obj = ctx.ensure_object(dict)
    cache: ConfigCache = obj.setdefault("config_cache", ConfigCache())
    config = cache.get(obj.get("project_root"))
    config.configure_logging(obj.get("log_level"))
    return config


def _render_status_text(report: StatusReport, config: DochConfig) -> None:
    """Render a status report grouped by status."""
    click.secho("doch -- Documentation Status", fg="cyan", bold=True)
    click.secho("=" * 36, fg="cyan")
    click.echo(f"Project: {config.project_root}")
    click.echo(
        f"Sources: {', '.join(config.source_directories)} "
        f"({', '.join(config.file_extensions)}) -> {config.docs_directory}"
    )
    click.echo()

    if not report.items:
        click.secho("No tracked files found.", fg="yellow")
        return

    for status in STATUS_ORDER:
        items = report.by_status(status)
        if not items:
            continue
        colour = _STATUS_COLOURS.get(status.value)
        click.secho(f"{status.value} ({len(items)})", fg=colour, bold=True)
        for item in items:
            marker = " *" if item.changed_since_drift else ""
            click.echo(f"  {item.path}{marker}")
        click.echo()

    if any(item.changed_since_drift for item in report.items):
        click.echo("* modified since the last drift run")


if __name__ == "__main__":
    cli()
