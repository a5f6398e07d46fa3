# git.py
# Thin wrapper around the Git CLI used to derive run context.
# Nothing else in AdaptCI shells out to git; callers get plain strings back
# and decide themselves what a missing fact means.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional


def _git(args: list[str], cwd: Optional[str | Path] = None) -> str:
    """
    Execute a git command and return its stdout, stripped.

    Raises:
        subprocess.CalledProcessError: git exited non-zero (not a repo,
            detached HEAD for some queries, no such remote, ...)
        FileNotFoundError: git is not installed
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=str(cwd) if cwd is not None else None,
        text=True,
        stderr=subprocess.DEVNULL,  # callers treat failures as "fact unknown"
    )
    return out.strip()


def current_branch(cwd: Optional[str | Path] = None) -> Optional[str]:
    """
    Name of the checked-out branch.

    Returns None on a detached HEAD, where `rev-parse --abbrev-ref` prints
    the literal string "HEAD".
    """
    name = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)
    return None if name == "HEAD" else name


def head_commit_message(cwd: Optional[str | Path] = None) -> str:
    """Full message (subject and body) of the HEAD commit."""
    return _git(["log", "-1", "--format=%B"], cwd=cwd)


def is_tagged_release(cwd: Optional[str | Path] = None) -> bool:
    """
    True when HEAD is exactly at a tag.

    `git describe --exact-match` exits non-zero when no tag points at HEAD;
    that is an answer here, not an error.
    """
    try:
        _git(["describe", "--exact-match", "--tags", "HEAD"], cwd=cwd)
    except subprocess.CalledProcessError:
        return False
    return True


def get_remote_url(remote: str = "origin", cwd: Optional[str | Path] = None) -> str:
    """URL configured for `remote`."""
    return _git(["remote", "get-url", remote], cwd=cwd)
