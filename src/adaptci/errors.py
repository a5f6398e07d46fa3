# errors.py
from __future__ import annotations

from dataclasses import dataclass, field


class AdaptCIError(Exception):
    """Base class for everything AdaptCI raises on purpose."""


@dataclass
class ProbeError(AdaptCIError):
    """The project tree could not be read. Aborts the run before planning."""
    path: str
    message: str

    def __str__(self) -> str:
        return f"cannot probe {self.path}: {self.message}"


@dataclass
class PlanningError(AdaptCIError):
    """
    The stage graph is malformed (duplicate names, unknown dependency, cycle).

    This is a defect in stage declarations, caught by tests; it is never an
    expected runtime condition.
    """
    message: str
    stages: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        if self.stages:
            return f"{self.message}: {self.stages}"
        return self.message


@dataclass
class ConfigError(AdaptCIError):
    source: str
    message: str

    def __str__(self) -> str:
        return f"invalid configuration ({self.source}): {self.message}"


@dataclass
class StageFailure(AdaptCIError):
    """A mandatory command chain was exhausted without a success."""
    stage: str
    step: str
    cmd: str
    exit_code: int | None

    def __str__(self) -> str:
        return f"[{self.stage}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"


@dataclass
class StageTimeout(StageFailure):
    timeout: float = 0.0

    def __str__(self) -> str:
        return f"[{self.stage}] step '{self.step}' timed out after {self.timeout:.0f}s: {self.cmd}"


@dataclass
class StageCancelled(StageFailure):
    def __str__(self) -> str:
        return f"[{self.stage}] step '{self.step}' cancelled: {self.cmd}"


@dataclass
class CleanupError(AdaptCIError):
    """A release action failed. Logged by the finalizer, never propagated."""
    resource: str
    message: str

    def __str__(self) -> str:
        return f"cleanup of {self.resource} failed: {self.message}"
