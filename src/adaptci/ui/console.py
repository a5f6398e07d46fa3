"""Console output formatting utilities for AdaptCI."""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, Optional

from ..model import FailurePolicy, StageStatus

if TYPE_CHECKING:
    from ..model import CommandSet, ProjectProfile, StageGraph, StageResult
    from ..report import RunReport


FAILED = (StageStatus.FAILURE, StageStatus.TIMED_OUT)


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, quiet: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            quiet: If True, suppress per-stage progress lines
        """
        self.debug = debug
        self.quiet = quiet
        # stages report from worker threads; keep multi-line blocks together
        self._lock = threading.Lock()

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_run_started(
        self,
        repository: str,
        profile: "ProjectProfile",
        stage_count: int,
        run_id: str,
    ) -> None:
        """Print run start information."""
        print("\nRUN STARTED")
        print(f"Repository: {repository}")
        print(f"Run: {run_id}")
        print(f"Project: {profile.language.value}/{profile.subtype.value}")
        print(f"Stages: {stage_count}")
        print()

    def print_profile(self, profile: "ProjectProfile", indent: str = "") -> None:
        """Print a classified project profile."""
        caps = ", ".join(sorted(c.value for c in profile.capabilities)) or "none"
        print(f"{indent}Root: {profile.root}")
        print(f"{indent}Language: {profile.language.value}")
        print(f"{indent}Type: {profile.subtype.value}")
        print(f"{indent}Package manager: {profile.package_manager.value}")
        print(f"{indent}Capabilities: {caps}")
        for tier in profile.tiers:
            print(f"{indent}Tier {tier.root}:")
            self.print_profile(tier, indent=indent + "  ")

    def print_plan(
        self,
        graph: "StageGraph",
        commands: "CommandSet",
        skips: dict[str, Optional[str]],
    ) -> None:
        """Print the stage graph with skip decisions and resolved chains."""
        self.print_header("PLAN")
        for st in graph.stages:
            needs = ", ".join(sorted(st.needs)) or "-"
            reason = skips.get(st.name)
            status = f"skip ({reason})" if reason else "run"
            print(f"  {st.name} [{st.failure_policy.value}, {st.timeout:.0f}s] needs: {needs} -> {status}")
            if reason:
                continue
            for step in st.steps:
                for chain in commands.chains_for(step, st.scope):
                    flag = " (mandatory)" if chain.mandatory else ""
                    print(f"    {chain.key}{flag}")
                    for cand in chain.candidates:
                        where = f" (in {cand.cwd})" if cand.cwd else ""
                        print(f"      {'~' if cand.sentinel else '-'} {cand.run}{where}")

    def print_stage_start(self, name: str) -> None:
        """Print stage start message."""
        if not self.quiet:
            print(f"\nSTAGE STARTED: {name}")

    def print_step(self, stage: str, step: str, cmd: str) -> None:
        """Print command start message."""
        if not self.quiet:
            print(f"[{stage}] {step}: {cmd}")

    def print_stage_skipped(self, name: str, reason: str) -> None:
        """Print stage skipped message."""
        if not self.quiet:
            with self._lock:
                print(f"\nSTAGE SKIPPED: {name}")
                print(f"Reason: {reason}")

    def print_stage_result(self, result: "StageResult") -> None:
        """Print the terminal status of a stage that ran."""
        if self.quiet:
            return
        with self._lock:
            print(f"\nSTAGE {result.status.value.upper()}: {result.name} ({result.duration:.1f}s)")
            if result.reason:
                print(f"Reason: {result.reason}")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Stage or step name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
        """
        with self._lock:
            print(f"STEP FAILED: {name}")
            if exit_code is not None:
                print(f"Exit code: {exit_code}")
            if hint:
                print(f"Hint: {hint}")
            if self.debug:
                print(f"Error details: {reason}")

    def print_report(self, report: "RunReport") -> None:
        """Print final results summary in topological order."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for result in report.ordered():
            line = f"  {result.name}: {result.status.value.upper()}"
            if result.policy is FailurePolicy.TOLERATED and result.status in FAILED:
                line += " (tolerated)"
            if result.reason and result.status is StageStatus.SKIPPED:
                line += f" ({result.reason})"
            print(line)
        for result in report.ordered():
            if result.status in FAILED and result.output:
                self.print_header(f"{result.name} output (tail)")
                print(result.output.rstrip())
        print()
        print(f"Run {'FAILED' if report.exit_code else 'SUCCEEDED'}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_warning(self, message: str) -> None:
        """Print a warning that does not change the run outcome."""
        print(f"WARNING: {message}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
