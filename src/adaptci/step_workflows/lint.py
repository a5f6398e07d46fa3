# step_workflows/lint.py
from __future__ import annotations

from typing import List

from ..model import Command, CommandChain, Language, ProjectProfile, noop


# ---------------------------------------------------------------------
# Chain helper
# ---------------------------------------------------------------------

def lint_chain(
    step: str,
    profile: ProjectProfile,
    candidates: List[str],
    *,
    fallback: str,
    tier: str | None = None,
) -> CommandChain:
    """Create an optional analysis chain ending in a warning no-op."""
    cwd = profile.root if profile.root != "." else None
    return CommandChain(
        step=step,
        candidates=tuple(Command(run=c, cwd=cwd) for c in candidates) + (noop(fallback),),
        mandatory=False,
        tier=tier,
    )


# ---------------------------------------------------------------------
# Analysis chains (lint, format, typecheck, audit)
# ---------------------------------------------------------------------

def _js_chains(profile: ProjectProfile, tier: str | None) -> List[CommandChain]:
    scripts = profile.scripts

    lint: List[str] = []
    if "lint" in scripts:
        lint.append("npm run lint")
    lint.append("npx eslint .")

    fmt: List[str] = []
    if "format:check" in scripts:
        fmt.append("npm run format:check")
    fmt.append("npx prettier --check .")

    typecheck: List[str] = []
    if "tsconfig" in profile.tools:
        if "typecheck" in scripts:
            typecheck.append("npm run typecheck")
        typecheck.append("npx tsc --noEmit")

    return [
        lint_chain("lint", profile, lint, fallback="No linting configured", tier=tier),
        lint_chain("format", profile, fmt, fallback="No formatting configured", tier=tier),
        lint_chain("typecheck", profile, typecheck, fallback="No TypeScript configured", tier=tier),
        lint_chain("audit", profile, ["npm audit"], fallback="Vulnerabilities found but continuing", tier=tier),
    ]


def _py_chains(profile: ProjectProfile, tier: str | None) -> List[CommandChain]:
    lint = [
        "flake8 . --count --select=E9,F63,F7,F82 --show-source --statistics",
        "ruff check .",
    ]
    fmt = ["black --check --diff .", "ruff format --check ."]
    return [
        lint_chain("lint", profile, lint, fallback="No linting configured", tier=tier),
        lint_chain("format", profile, fmt, fallback="No formatting configured", tier=tier),
        lint_chain("typecheck", profile, ["mypy ."], fallback="Type checking completed with warnings", tier=tier),
        lint_chain("audit", profile, ["pip-audit", "safety check"], fallback="Vulnerabilities found but continuing", tier=tier),
    ]


def analysis_chains(profile: ProjectProfile, *, tier: str | None = None) -> List[CommandChain]:
    if profile.language is Language.JAVASCRIPT:
        return _js_chains(profile, tier)
    if profile.language is Language.PYTHON:
        return _py_chains(profile, tier)
    return [
        lint_chain(step, profile, [], fallback=f"No {step} configured", tier=tier)
        for step in ("lint", "format", "typecheck", "audit")
    ]


# ---------------------------------------------------------------------
# Scheduled dependency check
# ---------------------------------------------------------------------

def outdated_chain(profile: ProjectProfile, *, tier: str | None = None) -> CommandChain:
    """Report outdated dependencies. `npm outdated` exits 1 when it finds any; that stays a warning."""
    if profile.language is Language.JAVASCRIPT:
        runs = ["npm outdated"]
    elif profile.language is Language.PYTHON:
        runs = ["python -m pip list --outdated"]
    else:
        runs = []
    return lint_chain("outdated", profile, runs, fallback="Outdated dependencies found", tier=tier)
