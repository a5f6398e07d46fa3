# cli.py
from __future__ import annotations

import json
import signal
import subprocess
import sys
import threading
from pathlib import Path

import click

from adaptci.classifier import classify
from adaptci.concurrency import RunLock, group_name
from adaptci.conditions import skip_reason
from adaptci.config import load_config
from adaptci.context import detect_context
from adaptci.errors import ConfigError, ProbeError
from adaptci.git_facts.git import get_remote_url
from adaptci.model import EventKind
from adaptci.planner import plan as plan_graph
from adaptci.probe import probe
from adaptci.resolver import resolve
from adaptci.runner import execute
from adaptci.step_workflows.docker import image_tag
from adaptci.ui.console import Console, get_console, set_console

EVENTS = [e.value for e in EventKind]


def _repo_name(root: Path) -> str:
    try:
        url = get_remote_url("origin", cwd=root)
        return url.rstrip("/").split("/")[-1].removesuffix(".git")
    except (subprocess.CalledProcessError, FileNotFoundError):
        return root.resolve().name


def _parse_timeouts(ctx, param, values) -> dict[str, str]:
    out: dict[str, str] = {}
    for item in values:
        stage, sep, duration = item.partition("=")
        if not sep or not stage.strip() or not duration.strip():
            raise click.BadParameter(f"expected STAGE=DURATION, got {item!r}")
        out[stage.strip()] = duration.strip()
    return out


def _fail(ctx, title: str, e: Exception, suggestion: str | None = None) -> None:
    console = get_console()
    console.print_error(title, str(e), suggestion=suggestion)
    if ctx.obj.get("debug", False):
        import traceback
        traceback.print_exc()
    sys.exit(1)


def _prepare(ctx, root, *, config_path=None, overrides=None, event=None, branch=None, release=None):
    """Config, profile, context, graph and commands for `root`; exits 1 on user errors."""
    try:
        config = load_config(root, config_path, overrides=overrides)
        profile = classify(probe(root))
    except ConfigError as e:
        _fail(ctx, "Invalid configuration", e, suggestion="Check adaptci.toml / [tool.adaptci] and the CLI options.")
    except ProbeError as e:
        _fail(ctx, "Cannot read project", e)

    context = detect_context(root, event=event, branch=branch, release=release)
    graph = plan_graph(profile, context, config)
    commands = resolve(
        profile,
        image_tag=image_tag(Path(root).resolve().name, context.run_id),
        deploy_command=config.deploy_command,
        purge_caches=config.purges_caches(),
    )
    return config, profile, graph, commands


def _context_options(fn):
    fn = click.option("--release/--no-release", default=None,
                      help="Treat HEAD as a tagged release (default: detect from git)")(fn)
    fn = click.option("--branch", default=None, help="Branch name (default: current git branch)")(fn)
    fn = click.option("--event", type=click.Choice(EVENTS), default=None,
                      help="Triggering event (default: push)")(fn)
    return fn


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """AdaptCI: detect a project's stack and run the matching CI pipeline."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("root", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the profile as JSON")
@click.pass_context
def detect(ctx, root, as_json):
    """Detect and print the project profile."""
    console = get_console()
    try:
        profile = classify(probe(root))
    except ProbeError as e:
        _fail(ctx, "Cannot read project", e)

    if as_json:
        click.echo(json.dumps(profile.to_dict(), indent=2))
        return
    console.print_header("PROJECT")
    console.print_profile(profile)


@cli.command()
@click.argument("root", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False, path_type=Path),
              help="Configuration file (default: adaptci.toml if present)")
@_context_options
@click.pass_context
def plan(ctx, root, config_path, event, branch, release):
    """Print the stage plan without running anything."""
    console = get_console()
    _config, profile, graph, commands = _prepare(
        ctx, root, config_path=config_path, event=event, branch=branch, release=release,
    )
    console.print_header("PROJECT")
    console.print_profile(profile)
    skips = {st.name: skip_reason(st.skip_if, graph.profile, graph.context) for st in graph.stages}
    console.print_plan(graph, commands, skips)


@cli.command()
@click.argument("root", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.option("--workers", default=None, type=click.IntRange(min=1), help="Number of parallel stages")
@click.option("--timeout", "timeouts", multiple=True, callback=_parse_timeouts, metavar="STAGE=DURATION",
              help="Per-stage timeout, e.g. test=10m (repeatable)")
@click.option("--disable", multiple=True, metavar="STAGE", help="Disable a stage (repeatable)")
@click.option("--only", multiple=True, metavar="STAGE", help="Run only these stages; cleanup always runs (repeatable)")
@_context_options
@click.option("--report", "report_path", default=None, type=click.Path(dir_okay=False, path_type=Path),
              help="Write the JSON run report to this path")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False, path_type=Path),
              help="Configuration file (default: adaptci.toml if present)")
@click.option("--cancel-in-progress/--no-cancel-in-progress", default=None,
              help="Cancel a previous run of the same branch before starting")
@click.option("--quiet", is_flag=True, default=False, help="Only print the final summary")
@click.pass_context
def run(ctx, root, workers, timeouts, disable, only, event, branch, release, report_path, config_path,
        cancel_in_progress, quiet):
    """Detect, plan and execute the pipeline for ROOT."""
    console = get_console()
    console.quiet = quiet

    overrides = {
        "concurrency": workers,
        "timeouts": timeouts or None,
        "disabled_stages": list(disable) or None,
        "enabled_stages": list(only) or None,
        "cancel_in_progress": cancel_in_progress,
    }
    config, profile, graph, commands = _prepare(
        ctx, root, config_path=config_path, overrides=overrides, event=event, branch=branch, release=release,
    )

    cancel = threading.Event()
    interrupted = threading.Event()

    def _on_signal(signum, frame):
        interrupted.set()
        cancel.set()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _on_signal)

    lock = None
    if config.cancel_in_progress:
        lock = RunLock(Path(root) / config.state_dir, group_name(graph.context.branch))
        lock.acquire()

    try:
        console.print_run_started(
            repository=_repo_name(Path(root)),
            profile=profile,
            stage_count=len(graph.stages),
            run_id=graph.context.run_id,
        )
        report = execute(
            graph,
            commands,
            repo_root=root,
            max_workers=config.concurrency,
            cancel=cancel,
            env=config.env,
            output_tail=config.output_tail,
        )
        console.print_report(report)
        if report_path is not None:
            written = report.write_json(report_path)
            console.print_info(f"Report written to {written}")
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)
    finally:
        if lock is not None:
            lock.release()
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    if interrupted.is_set():
        console.print_info("\nInterrupted")
        sys.exit(130)
    sys.exit(report.exit_code)


if __name__ == "__main__":
    cli()
