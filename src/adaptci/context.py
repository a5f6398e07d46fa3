# context.py
from __future__ import annotations

import subprocess
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .git_facts.git import current_branch, head_commit_message, is_tagged_release
from .model import EventKind, RunContext
from .ui.console import get_console


def new_run_id() -> str:
    """Sortable, collision-resistant run id, e.g. 20261018T101500-3f2a9c1b."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    return f"{stamp}-{uuid.uuid4().hex[:8]}"


def detect_context(
    root: str | Path = ".",
    *,
    event: EventKind | str | None = None,
    branch: Optional[str] = None,
    release: Optional[bool] = None,
    commit_message: Optional[str] = None,
    run_id: Optional[str] = None,
) -> RunContext:
    """
    Build the RunContext for a run in `root`.

    Explicit arguments win. Anything left as None is read from git; outside
    a repository (or without git installed) the fact stays at its default.
    """
    console = get_console()

    def ask(fn, default):
        try:
            return fn(cwd=root)
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            console.print_debug(f"git: {fn.__name__} unavailable ({e.__class__.__name__})")
            return default

    if branch is None:
        branch = ask(current_branch, None)
    if release is None:
        release = ask(is_tagged_release, False)
    if commit_message is None:
        commit_message = ask(head_commit_message, "")

    return RunContext(
        event=EventKind(event) if event is not None else EventKind.PUSH,
        branch=branch,
        tagged_release=bool(release),
        commit_message=commit_message,
        run_id=run_id or new_run_id(),
    )
