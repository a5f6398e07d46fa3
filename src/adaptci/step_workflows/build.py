# step_workflows/build.py
from __future__ import annotations

from typing import List

from ..model import Command, CommandChain, Language, ProjectProfile, noop


def own_build(profile: ProjectProfile) -> bool:
    return bool(profile.tools & {"setup.py", "pyproject"})


def build_chain(profile: ProjectProfile, *, tier: str | None = None) -> CommandChain:
    cwd = profile.root if profile.root != "." else None
    runs: List[str] = []
    if profile.language is Language.JAVASCRIPT and "build" in profile.scripts:
        runs = ["npm run build"]
    elif profile.language is Language.PYTHON and own_build(profile):
        runs = ["python -m build"]

    return CommandChain(
        step="build",
        candidates=tuple(Command(run=r, cwd=cwd) for r in runs) + (noop("No build needed"),),
        mandatory=bool(runs),
        tier=tier,
    )


def package_chain(profile: ProjectProfile) -> CommandChain:
    """Publish step of a release. Optional, like the registry uploads it models."""
    if profile.language is Language.JAVASCRIPT:
        runs = ["npm publish"]
    elif profile.language is Language.PYTHON and own_build(profile):
        runs = ["python -m twine upload dist/*"]
    else:
        runs = []
    return CommandChain(
        step="package",
        candidates=tuple(Command(run=r) for r in runs) + (noop("Nothing to publish"),),
    )


def deploy_chain(command: str | None) -> CommandChain:
    candidates = (Command(run=command),) if command else ()
    return CommandChain(
        step="deploy",
        candidates=candidates + (noop("No deploy command configured"),),
        mandatory=bool(command),
    )
