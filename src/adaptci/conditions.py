# conditions.py
# Declarative skip conditions. They are plain frozen values so that two plans
# of the same tree compare equal; the engine evaluates them once per run.
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from .model import Capability, EventKind, Language, ProjectProfile, RunContext


class SkipCondition:
    def evaluate(self, profile: ProjectProfile, context: RunContext) -> Optional[str]:
        """Return the skip reason, or None when the stage should run."""
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class RequiresCapability(SkipCondition):
    capability: Capability

    def evaluate(self, profile: ProjectProfile, context: RunContext) -> Optional[str]:
        if profile.has(self.capability):
            return None
        return f"project lacks {self.capability.value}"

    def describe(self) -> str:
        return f"unless {self.capability.value}"


@dataclass(frozen=True)
class RequiresKnownLanguage(SkipCondition):
    def evaluate(self, profile: ProjectProfile, context: RunContext) -> Optional[str]:
        if profile.language is Language.UNKNOWN:
            return "project type not recognized"
        return None

    def describe(self) -> str:
        return "if language unknown"


@dataclass(frozen=True)
class CommitMarker(SkipCondition):
    """Skip when the head commit message carries one of the markers."""
    markers: Tuple[str, ...] = ("[skip ci]", "[ci skip]")

    def evaluate(self, profile: ProjectProfile, context: RunContext) -> Optional[str]:
        message = context.commit_message or ""
        for marker in self.markers:
            if marker in message:
                return f"commit message contains {marker!r}"
        return None

    def describe(self) -> str:
        return f"if commit message contains {' or '.join(self.markers)}"


@dataclass(frozen=True)
class ReleaseGate(SkipCondition):
    """
    Run only on a designated branch AND for a release-like trigger (one of
    `events`, or a tagged release).
    """
    branches: Tuple[str, ...] = ("main", "master")
    events: Tuple[EventKind, ...] = (EventKind.RELEASE,)

    def evaluate(self, profile: ProjectProfile, context: RunContext) -> Optional[str]:
        if context.branch not in self.branches:
            return f"branch {context.branch!r} is not a deploy branch"
        if context.event not in self.events and not context.tagged_release:
            return f"event {context.event.value!r} is not a release"
        return None

    def describe(self) -> str:
        events = "/".join(e.value for e in self.events)
        return f"unless {events} on {'/'.join(self.branches)}"


@dataclass(frozen=True)
class TierRequiresCapability(SkipCondition):
    tier: str
    capability: Capability

    def evaluate(self, profile: ProjectProfile, context: RunContext) -> Optional[str]:
        for t in profile.tiers:
            if t.root == self.tier:
                return None if t.has(self.capability) else f"{self.tier} lacks {self.capability.value}"
        return f"no {self.tier} tier"

    def describe(self) -> str:
        return f"unless {self.tier} has {self.capability.value}"


@dataclass(frozen=True)
class OnEvent(SkipCondition):
    """Run only for the listed trigger events (e.g. the nightly schedule)."""
    events: Tuple[EventKind, ...] = (EventKind.SCHEDULE,)

    def evaluate(self, profile: ProjectProfile, context: RunContext) -> Optional[str]:
        if context.event in self.events:
            return None
        return f"only runs on {'/'.join(e.value for e in self.events)} events"

    def describe(self) -> str:
        return f"unless {'/'.join(e.value for e in self.events)}"


@dataclass(frozen=True)
class Disabled(SkipCondition):
    def evaluate(self, profile: ProjectProfile, context: RunContext) -> Optional[str]:
        return "disabled by configuration"

    def describe(self) -> str:
        return "disabled"


def skip_reason(conditions: Tuple[SkipCondition, ...], profile: ProjectProfile, context: RunContext) -> Optional[str]:
    for cond in conditions:
        reason = cond.evaluate(profile, context)
        if reason:
            return reason
    return None
