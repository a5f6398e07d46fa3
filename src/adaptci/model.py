# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Tuple

if TYPE_CHECKING:
    from .conditions import SkipCondition


class Language(str, Enum):
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    OTHER = "other"
    UNKNOWN = "unknown"


class Subtype(str, Enum):
    REACT = "react"
    VUE = "vue"
    NODE = "node"
    DJANGO = "django"
    PYTHON_WEB = "python-web"
    PYTHON = "python"
    FULLSTACK = "fullstack"
    GENERIC = "generic"


class Capability(str, Enum):
    HAS_FRONTEND = "has_frontend"
    HAS_BACKEND = "has_backend"
    HAS_DOCKER = "has_docker"
    HAS_TESTS = "has_tests"
    HAS_BUILD = "has_build"
    MULTI_TIER = "multi_tier"


class PackageManager(str, Enum):
    NPM = "npm"
    PIP = "pip"
    NONE = "none"


class FailurePolicy(str, Enum):
    FATAL = "fatal"
    TOLERATED = "tolerated"


class StageStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"


class EventKind(str, Enum):
    PUSH = "push"
    PULL_REQUEST = "pull_request"
    SCHEDULE = "schedule"
    MANUAL = "manual"
    RELEASE = "release"


@dataclass(frozen=True)
class ProjectProfile:
    """
    What the classifier knows about a project tree.

    `scripts` and `tools` carry the manifest details the resolver needs to
    pick commands; `tiers` holds the classified frontend/backend subtrees of
    a multi-tier project.
    """
    language: Language
    subtype: Subtype
    capabilities: frozenset[Capability] = frozenset()
    package_manager: PackageManager = PackageManager.NONE
    root: str = "."
    scripts: frozenset[str] = frozenset()
    tools: frozenset[str] = frozenset()
    tiers: Tuple["ProjectProfile", ...] = ()

    def __post_init__(self) -> None:
        if self.language is Language.UNKNOWN and (
            self.capabilities
            or self.subtype is not Subtype.GENERIC
            or self.package_manager is not PackageManager.NONE
            or self.tiers
        ):
            raise ValueError("unknown-language profile must be generic with no capabilities")

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def to_dict(self) -> dict:
        return {
            "root": self.root,
            "language": self.language.value,
            "subtype": self.subtype.value,
            "package_manager": self.package_manager.value,
            "capabilities": sorted(c.value for c in self.capabilities),
            "scripts": sorted(self.scripts),
            "tools": sorted(self.tools),
            "tiers": [t.to_dict() for t in self.tiers],
        }


@dataclass(frozen=True)
class Command:
    """A single shell command candidate inside a fallback chain."""
    run: str
    cwd: str | None = None
    sentinel: bool = False
    note: str | None = None


def noop(message: str) -> Command:
    """The always-succeeding terminal candidate of every chain."""
    return Command(run=f"echo {message!r}", sentinel=True, note=message)


@dataclass(frozen=True)
class CommandChain:
    """
    Ordered command alternatives for one logical step.

    Candidates are tried in order until one exits 0. The last candidate is
    always the no-op sentinel. `release` is a shell command that undoes
    whatever a successful candidate acquired (e.g. a built image).
    """
    step: str
    candidates: Tuple[Command, ...]
    mandatory: bool = False
    tier: str | None = None
    release: str | None = None

    def __post_init__(self) -> None:
        if not self.candidates or not self.candidates[-1].sentinel:
            raise ValueError(f"chain {self.key!r} must end with the no-op sentinel")

    @property
    def key(self) -> str:
        return f"{self.tier}:{self.step}" if self.tier else self.step

    @property
    def real_candidates(self) -> Tuple[Command, ...]:
        return tuple(c for c in self.candidates if not c.sentinel)


@dataclass(frozen=True)
class CommandSet:
    """Logical step key -> fallback chain."""
    chains: Tuple[CommandChain, ...] = ()

    def __iter__(self) -> Iterator[CommandChain]:
        return iter(self.chains)

    def __len__(self) -> int:
        return len(self.chains)

    def __contains__(self, key: object) -> bool:
        return any(c.key == key for c in self.chains)

    def __getitem__(self, key: str) -> CommandChain:
        for c in self.chains:
            if c.key == key:
                return c
        raise KeyError(key)

    def keys(self) -> List[str]:
        return [c.key for c in self.chains]

    def chains_for(self, step: str, scope: str | None = None) -> List[CommandChain]:
        """
        Chains for `step`: the root chain followed by the tier chains.

        `scope` narrows the selection to the root (".") or to one tier.
        """
        chains = [c for c in self.chains if c.step == step]
        if scope is None:
            return chains
        if scope == ".":
            return [c for c in chains if c.tier is None]
        return [c for c in chains if c.tier == scope]


@dataclass(frozen=True)
class RunContext:
    """Why and where a run happens."""
    event: EventKind = EventKind.PUSH
    branch: str | None = None
    tagged_release: bool = False
    commit_message: str = ""
    run_id: str = "local"

    def to_dict(self) -> dict:
        return {
            "event": self.event.value,
            "branch": self.branch,
            "tagged_release": self.tagged_release,
            "commit_message": self.commit_message,
            "run_id": self.run_id,
        }


@dataclass(frozen=True)
class Stage:
    """
    A node of the pipeline graph.

    `needs` lists stages that must reach a terminal state first. Only a
    fatal-policy dependency that failed blocks this stage. `scope` limits
    the stage to the root (".") or to one tier's chains; None runs all.
    """
    name: str
    steps: Tuple[str, ...]
    needs: frozenset[str] = frozenset()
    skip_if: Tuple["SkipCondition", ...] = ()
    timeout: float = 900.0
    failure_policy: FailurePolicy = FailurePolicy.FATAL
    always_run: bool = False
    scope: str | None = None


@dataclass(frozen=True)
class StageGraph:
    """Frozen stage graph plus the profile and context it was planned for."""
    stages: Tuple[Stage, ...]
    profile: ProjectProfile
    context: RunContext = field(default_factory=RunContext)

    @property
    def by_name(self) -> Dict[str, Stage]:
        return {s.name: s for s in self.stages}

    def __getitem__(self, name: str) -> Stage:
        return self.by_name[name]

    def names(self) -> List[str]:
        return [s.name for s in self.stages]


@dataclass(frozen=True)
class Attempt:
    command: str
    exit_code: Optional[int]
    cwd: str | None = None


@dataclass(frozen=True)
class StageResult:
    name: str
    status: StageStatus
    policy: FailurePolicy = FailurePolicy.FATAL
    output: str = ""
    duration: float = 0.0
    reason: str = ""
    attempts: Tuple[Attempt, ...] = ()
    upstream_failed: bool = False

    @property
    def blocks_dependents(self) -> bool:
        # skips caused by an upstream fatal failure cascade further down
        if self.upstream_failed:
            return True
        return self.policy is FailurePolicy.FATAL and self.status in (
            StageStatus.FAILURE,
            StageStatus.TIMED_OUT,
        )


# fixed pipeline topology, in declaration order
PIPELINE_STAGES = ("analysis", "dependencies", "test", "build", "containerize", "deploy", "cleanup")
