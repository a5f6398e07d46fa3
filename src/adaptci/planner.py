# planner.py
from __future__ import annotations

from typing import List, Optional, Tuple

from .conditions import (
    CommitMarker,
    Disabled,
    OnEvent,
    ReleaseGate,
    RequiresCapability,
    RequiresKnownLanguage,
    SkipCondition,
    TierRequiresCapability,
)
from .config import PipelineConfig
from .dag import validate
from .dsl import pipeline, stage
from .model import Capability, EventKind, ProjectProfile, RunContext, Stage, StageGraph

ANALYSIS_STEPS = ("install", "lint", "format", "typecheck", "audit")


def _skips(config: PipelineConfig, name: str, *conditions: SkipCondition) -> Tuple[SkipCondition, ...]:
    if config.is_disabled(name):
        return (Disabled(),) + conditions
    return conditions


def partition_name(tier: str) -> str:
    return f"test-{tier}"


def _test_partitions(config: PipelineConfig, profile: ProjectProfile) -> List[Stage]:
    # tiers test independently of each other; the root "test" stage keeps the root's own chains
    return [
        stage(
            partition_name(tier.root), "install", "test",
            needs=["analysis"],
            skip_if=_skips(config, "test", TierRequiresCapability(tier.root, Capability.HAS_TESTS)),
            timeout=config.timeout_for("test"),
            scope=tier.root,
        )
        for tier in profile.tiers
    ]


def pipeline_stages(config: PipelineConfig, profile: Optional[ProjectProfile] = None) -> List[Stage]:
    """
    The fixed topology, plus one test partition per tier:

        analysis -> test [+ test-<tier>...] -> build -> containerize -> deploy
        dependencies (scheduled runs only)
                                         \\-> cleanup (needs everything)
    """
    t = config.timeout_for
    partitions = _test_partitions(config, profile) if profile is not None else []
    tests = ["test"] + [p.name for p in partitions]

    stages = pipeline(
        stage(
            "analysis", *ANALYSIS_STEPS,
            skip_if=_skips(
                config, "analysis",
                RequiresKnownLanguage(),
                CommitMarker(tuple(config.skip_markers)),
            ),
            timeout=t("analysis"),
            tolerated=True,
        ),
        stage(
            "dependencies", "outdated",
            skip_if=_skips(config, "dependencies", RequiresKnownLanguage(), OnEvent((EventKind.SCHEDULE,))),
            timeout=t("dependencies"),
            tolerated=True,
        ),
        stage(
            "test", "install", "test",
            needs=["analysis"],
            skip_if=_skips(config, "test", RequiresCapability(Capability.HAS_TESTS)),
            timeout=t("test"),
            scope="." if partitions else None,
        ),
        *partitions,
        stage(
            "build", "install", "build",
            needs=tests,
            skip_if=_skips(config, "build", RequiresKnownLanguage()),
            timeout=t("build"),
        ),
        stage(
            "containerize", "image", "smoke",
            needs=["build"],
            skip_if=_skips(config, "containerize", RequiresCapability(Capability.HAS_DOCKER)),
            timeout=t("containerize"),
        ),
        stage(
            "deploy", "package", "deploy",
            needs=[*tests, "build", "containerize"],
            skip_if=_skips(
                config, "deploy",
                ReleaseGate(tuple(config.deploy_branches), tuple(config.deploy_events)),
            ),
            timeout=t("deploy"),
        ),
    )
    stages.append(
        stage(
            "cleanup", "cleanup",
            needs=[s.name for s in stages],
            timeout=t("cleanup"),
            tolerated=True,
            always_run=True,
        )
    )
    return stages


def plan(
    profile: ProjectProfile,
    context: Optional[RunContext] = None,
    config: Optional[PipelineConfig] = None,
) -> StageGraph:
    """
    Build the frozen stage graph for a profile.

    Raises PlanningError if the stage declarations are not a DAG or cleanup
    does not depend on every other stage.
    """
    config = config or PipelineConfig()
    stages = pipeline_stages(config, profile)
    validate(stages, sink="cleanup")
    return StageGraph(stages=tuple(stages), profile=profile, context=context or RunContext())
