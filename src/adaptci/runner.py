# runner.py
from __future__ import annotations

import os
import signal
import subprocess
import tempfile
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .conditions import skip_reason
from .dag import build_dag, topo_order
from .errors import StageCancelled, StageFailure, StageTimeout
from .finalizer import ResourceRegistry, finalize
from .model import (
    Attempt,
    CommandChain,
    CommandSet,
    Stage,
    StageGraph,
    StageResult,
    StageStatus,
)
from .report import RunReport
from .ui.console import get_console

TOOL_HINTS = {
    "npm": "Install Node.js (includes npm) or fix PATH.",
    "npx": "Install Node.js (includes npx) or fix PATH.",
    "node": "Install Node.js or fix PATH.",
    "pytest": "Install pytest (e.g., pip install pytest).",
    "flake8": "Install flake8 (e.g., pip install flake8).",
    "black": "Install black (e.g., pip install black).",
    "mypy": "Install mypy (e.g., pip install mypy).",
    "ruff": "Install ruff (e.g., pip install ruff).",
    "pip": "Install pip or fix PATH.",
    "pip-audit": "Install pip-audit (e.g., pip install pip-audit).",
    "docker": "Install Docker and ensure the daemon is running.",
    "docker-compose": "Install Docker Compose or use the `docker compose` plugin.",
    "python": "Install Python 3 or fix PATH (python).",
    "python3": "Install Python 3 or fix PATH (python3).",
}

EXIT_COMMAND_NOT_FOUND = 127
POLL_INTERVAL = 0.1


# ----------------------------------------------------------------------
# Process control
# ----------------------------------------------------------------------

@dataclass
class _Outcome:
    exit_code: Optional[int]
    output: str
    state: str  # "exited" | "timeout" | "cancelled"


def _kill(proc: subprocess.Popen) -> None:
    # commands run in their own session; take the whole process group down
    if os.name == "posix":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    else:
        proc.kill()


def _run_command(
    cmd: str,
    *,
    cwd: Path,
    env: Mapping[str, str],
    deadline: float,
    cancel: threading.Event,
) -> _Outcome:
    proc = subprocess.Popen(
        cmd,
        shell=True,
        cwd=str(cwd),
        env=dict(env),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        stdin=subprocess.DEVNULL,
        text=True,
        errors="replace",
        start_new_session=(os.name == "posix"),
    )
    while True:
        remaining = deadline - time.monotonic()
        try:
            out, _ = proc.communicate(timeout=max(0.0, min(POLL_INTERVAL, remaining)))
            return _Outcome(proc.returncode, out or "", "exited")
        except subprocess.TimeoutExpired:
            if cancel.is_set():
                state = "cancelled"
            elif time.monotonic() >= deadline:
                state = "timeout"
            else:
                continue
        _kill(proc)
        out, _ = proc.communicate()
        return _Outcome(None, out or "", state)


def _hint_for(cmd: str, exit_code: Optional[int]) -> Optional[str]:
    if exit_code != EXIT_COMMAND_NOT_FOUND:
        return None
    tool = cmd.split()[0] if cmd.split() else ""
    return TOOL_HINTS.get(tool)


# ----------------------------------------------------------------------
# Stage execution
# ----------------------------------------------------------------------

class _StageRun:
    """Mutable bookkeeping for a single stage attempt."""

    def __init__(self, stage: Stage, *, root: Path, env: Mapping[str, str], cancel: threading.Event,
                 registry: ResourceRegistry):
        self.stage = stage
        self.root = root
        self.env = dict(env, ADAPTCI_STAGE=stage.name)
        self.cancel = cancel
        self.registry = registry
        self.deadline = time.monotonic() + stage.timeout
        self.attempts: List[Attempt] = []
        self.output: List[str] = []

    def run_chain(self, chain: CommandChain) -> None:
        """
        Try candidates in order until one exits 0.

        Raises StageFailure when a mandatory chain is exhausted after at least
        one real candidate ran and failed, StageTimeout / StageCancelled when
        the stage deadline passes or the run is cancelled mid-command.
        """
        console = get_console()
        last_failed: Optional[Attempt] = None

        for cand in chain.candidates:
            if self.cancel.is_set():
                raise StageCancelled(stage=self.stage.name, step=chain.key, cmd=cand.run, exit_code=None)
            if cand.sentinel:
                if chain.mandatory and last_failed is not None:
                    raise StageFailure(
                        stage=self.stage.name,
                        step=chain.key,
                        cmd=last_failed.command,
                        exit_code=last_failed.exit_code,
                    )
                if last_failed is not None or chain.mandatory:
                    console.print_warning(f"[{self.stage.name}] {chain.key}: {cand.note or 'no command succeeded'}")
                self.output.append(f"{cand.note or ''}\n")
                return

            cwd = (self.root / (cand.cwd or ".")).resolve()
            if not cwd.is_dir():
                console.print_debug(f"[{self.stage.name}] {chain.key}: cwd not found: {cwd}")
                last_failed = Attempt(command=cand.run, exit_code=None, cwd=cand.cwd)
                self.attempts.append(last_failed)
                continue

            console.print_step(self.stage.name, chain.key, cand.run)
            outcome = _run_command(cand.run, cwd=cwd, env=self.env, deadline=self.deadline, cancel=self.cancel)
            attempt = Attempt(command=cand.run, exit_code=outcome.exit_code, cwd=cand.cwd)
            self.attempts.append(attempt)
            self.output.append(f"$ {cand.run}\n{outcome.output}")

            if outcome.state == "timeout":
                raise StageTimeout(
                    stage=self.stage.name, step=chain.key, cmd=cand.run,
                    exit_code=None, timeout=self.stage.timeout,
                )
            if outcome.exit_code == 0 and chain.release:
                self.registry.register_command(f"{chain.key}: {chain.release}", chain.release, cwd=cwd)
            # a command that finished after cancellation still ends the stage
            if outcome.state == "cancelled" or self.cancel.is_set():
                raise StageCancelled(stage=self.stage.name, step=chain.key, cmd=cand.run, exit_code=None)
            if outcome.exit_code == 0:
                return

            last_failed = attempt
            hint = _hint_for(cand.run, outcome.exit_code)
            console.print_debug(f"[{self.stage.name}] {chain.key}: `{cand.run}` exited {outcome.exit_code}")
            if hint:
                console.print_debug(f"Hint: {hint}")


def _tail(parts: List[str], limit: int) -> str:
    if limit <= 0:
        return ""
    return "".join(parts)[-limit:]


def run_stage(
    stage: Stage,
    commands: CommandSet,
    *,
    root: Path,
    env: Mapping[str, str],
    cancel: threading.Event,
    registry: ResourceRegistry,
    output_tail: int = 4000,
) -> StageResult:
    """Run every chain of every step of `stage` sequentially and return its terminal result."""
    console = get_console()
    console.print_stage_start(stage.name)
    started = time.monotonic()
    run = _StageRun(stage, root=root, env=env, cancel=cancel, registry=registry)

    status = StageStatus.SUCCESS
    reason = ""
    try:
        for step in stage.steps:
            for chain in commands.chains_for(step, stage.scope):
                run.run_chain(chain)
    except StageTimeout as e:
        status, reason = StageStatus.TIMED_OUT, str(e)
    except StageCancelled as e:
        status, reason = StageStatus.FAILURE, "cancelled"
        console.print_debug(str(e))
    except StageFailure as e:
        status, reason = StageStatus.FAILURE, str(e)
        console.print_failure(f"{stage.name}/{e.step}", str(e), e.exit_code, _hint_for(e.cmd, e.exit_code))

    result = StageResult(
        name=stage.name,
        status=status,
        policy=stage.failure_policy,
        output=_tail(run.output, output_tail),
        duration=time.monotonic() - started,
        reason=reason,
        attempts=tuple(run.attempts),
    )
    console.print_stage_result(result)
    return result


# ----------------------------------------------------------------------
# Scheduler
# ----------------------------------------------------------------------

def _skipped(stage: Stage, reason: str, *, upstream_failed: bool = False) -> StageResult:
    get_console().print_stage_skipped(stage.name, reason)
    return StageResult(
        name=stage.name,
        status=StageStatus.SKIPPED,
        policy=stage.failure_policy,
        reason=reason,
        upstream_failed=upstream_failed,
    )


def execute(
    graph: StageGraph,
    commands: CommandSet,
    *,
    repo_root: str | Path = ".",
    max_workers: int | None = None,
    cancel: threading.Event | None = None,
    registry: ResourceRegistry | None = None,
    env: Mapping[str, str] | None = None,
    output_tail: int = 4000,
) -> RunReport:
    """
    Execute a stage graph.

    Stages start as soon as their dependencies reach a terminal state and
    independent stages run in parallel on a thread pool. A stage whose
    dependencies include a fatal failure is skipped, which cascades.
    Always-run stages (cleanup) run exactly once after everything else,
    even when the run is cancelled; then every registered release action
    is invoked.

    Returns the RunReport; results are appended in completion order.
    """
    console = get_console()
    root = Path(repo_root).resolve()
    cancel = cancel or threading.Event()
    registry = registry or ResourceRegistry()
    report = RunReport(graph=graph)

    by_name = graph.by_name
    adj, indeg = build_dag(graph.stages)
    order = topo_order(graph.stages)
    deferred = [n for n in order if by_name[n].always_run]

    tmpdir = tempfile.mkdtemp(prefix=f"adaptci-{graph.context.run_id}-")
    registry.register_path(tmpdir)

    run_env = dict(os.environ)
    run_env.update(env or {})
    run_env.update({
        "CI": "true",
        "ADAPTCI_RUN_ID": graph.context.run_id,
        "ADAPTCI_TMPDIR": tmpdir,
    })

    if max_workers is None:
        c = os.cpu_count() or 2
        max_workers = max(1, c - 1)

    results: Dict[str, StageResult] = {}

    def record(result: StageResult) -> None:
        results[result.name] = result
        report.results.append(result)

    def decide(stage: Stage) -> Optional[StageResult]:
        # cancellation, then cascade, then declared skip conditions
        if cancel.is_set() and not stage.always_run:
            return _skipped(stage, "run cancelled")
        blockers = sorted(n for n in stage.needs if n in results and results[n].blocks_dependents)
        if blockers and not stage.always_run:
            return _skipped(stage, f"dependency failed: {', '.join(blockers)}", upstream_failed=True)
        reason = skip_reason(stage.skip_if, graph.profile, graph.context)
        if reason:
            return _skipped(stage, reason)
        return None

    def unlock(name: str, ready: List[str]) -> None:
        for nxt in sorted(adj[name], key=order.index):
            indeg[nxt] -= 1
            if indeg[nxt] == 0 and nxt not in deferred:
                ready.append(nxt)

    ready: List[str] = [n for n in order if indeg[n] == 0 and n not in deferred]
    in_flight: Dict[Future, str] = {}

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        while ready or in_flight:
            # schedule everything currently ready
            while ready:
                name = ready.pop(0)
                decided = decide(by_name[name])
                if decided is not None:
                    record(decided)
                    unlock(name, ready)
                    continue
                fut = pool.submit(
                    run_stage, by_name[name], commands,
                    root=root, env=run_env, cancel=cancel, registry=registry, output_tail=output_tail,
                )
                in_flight[fut] = name

            if not in_flight:
                break

            # wake periodically so signal handlers get a chance to run
            done, _ = wait(list(in_flight), timeout=0.5, return_when=FIRST_COMPLETED)
            for fut in done:
                name = in_flight.pop(fut)
                try:
                    result = fut.result()
                except Exception as e:
                    console.print_exception(e)
                    result = StageResult(
                        name=name,
                        status=StageStatus.FAILURE,
                        policy=by_name[name].failure_policy,
                        reason=f"internal error: {e}",
                    )
                record(result)
                unlock(name, ready)

    report.cancelled = cancel.is_set()

    # cleanup gets its own token: a cancelled run still cleans up
    for name in deferred:
        st = by_name[name]
        decided = decide(st)
        if decided is not None:
            record(decided)
            continue
        record(run_stage(
            st, commands,
            root=root, env=run_env, cancel=threading.Event(), registry=registry, output_tail=output_tail,
        ))

    report.cleanup_errors = [str(e) for e in finalize(registry)]
    return report
