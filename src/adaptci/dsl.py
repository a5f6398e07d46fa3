# src/adaptci/dsl.py
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .model import FailurePolicy, Stage
from .conditions import SkipCondition


# ---------------------------------------------------------------------
# Functional Stage helper
# ---------------------------------------------------------------------

def stage(
    name: str,
    *steps: str,  # allow: stage("test", "install", "test")
    needs: Optional[Iterable[str]] = None,
    skip_if: Optional[Sequence[SkipCondition]] = None,
    timeout: float = 900.0,
    tolerated: bool = False,
    always_run: bool = False,
    scope: Optional[str] = None,
) -> Stage:
    if not steps:
        raise ValueError(f"stage({name!r}) must have at least one step")
    if timeout <= 0:
        raise ValueError(f"stage({name!r}) timeout must be positive, got {timeout!r}")

    return Stage(
        name=name,
        steps=tuple(steps),
        needs=frozenset(needs or ()),
        skip_if=tuple(skip_if or ()),
        timeout=float(timeout),
        failure_policy=FailurePolicy.TOLERATED if tolerated else FailurePolicy.FATAL,
        always_run=always_run,
        scope=scope,
    )


# ---------------------------------------------------------------------
# Pipeline helper
# ---------------------------------------------------------------------

def pipeline(*stages: Stage) -> List[Stage]:
    """
    Pipeline definition helper:

        stages = pipeline(
            stage("analysis", "lint"),
            stage("test", "test", needs=["analysis"]),
        )
    """
    return list(stages)
