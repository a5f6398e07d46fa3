# resolver.py
# Maps a classified profile to concrete command fallback chains. Nothing in
# here executes anything; the engine does.
from __future__ import annotations

from typing import List

from .model import Command, CommandChain, CommandSet, ProjectProfile, noop
from .step_workflows.build import build_chain, deploy_chain, package_chain
from .step_workflows.docker import DEFAULT_IMAGE_TAG, image_chain, smoke_chain
from .step_workflows.lint import analysis_chains, outdated_chain
from .step_workflows.test import install_chain, testing_chain

# logical steps every CommandSet resolves, in presentation order
LOGICAL_STEPS = (
    "install",
    "lint",
    "format",
    "typecheck",
    "audit",
    "outdated",
    "test",
    "build",
    "package",
    "image",
    "smoke",
    "deploy",
    "cleanup",
)

WORKSPACE_CACHES = (
    ".pytest_cache",
    ".mypy_cache",
    ".coverage",
    "htmlcov",
    ".tox",
    "node_modules/.cache",
)


def cleanup_chain(purge: bool = False) -> CommandChain:
    """Purge tool caches from the workspace. Only when asked: a local checkout keeps them."""
    runs = ("rm -rf " + " ".join(WORKSPACE_CACHES),) if purge else ()
    return CommandChain(
        step="cleanup",
        candidates=tuple(Command(run=r) for r in runs) + (noop("Workspace cleanup skipped"),),
    )


def _tier_chains(tier: ProjectProfile) -> List[CommandChain]:
    name = tier.root
    return [
        install_chain(tier, tier=name),
        *analysis_chains(tier, tier=name),
        outdated_chain(tier, tier=name),
        testing_chain(tier, tier=name),
        build_chain(tier, tier=name),
    ]


def resolve(
    profile: ProjectProfile,
    *,
    image_tag: str = DEFAULT_IMAGE_TAG,
    deploy_command: str | None = None,
    purge_caches: bool = False,
) -> CommandSet:
    """
    Build the fallback chain for every logical step of `profile`.

    Root chains come first, then the chains of each tier (keyed
    `<tier>:<step>` and run inside the tier directory). Every chain ends in
    the no-op sentinel, so resolution never fails.
    """
    chains: List[CommandChain] = [
        install_chain(profile),
        *analysis_chains(profile),
        outdated_chain(profile),
        testing_chain(profile),
        build_chain(profile),
        package_chain(profile),
        image_chain(profile, image_tag),
        smoke_chain(profile, image_tag),
        deploy_chain(deploy_command),
        cleanup_chain(purge_caches),
    ]
    for tier in profile.tiers:
        chains.extend(_tier_chains(tier))
    return CommandSet(chains=tuple(chains))
