# step_workflows/test.py
from __future__ import annotations

from typing import List

from ..model import Command, CommandChain, Language, ProjectProfile, Subtype, noop


def _cwd(profile: ProjectProfile) -> str | None:
    return profile.root if profile.root != "." else None


def install_chain(profile: ProjectProfile, *, tier: str | None = None) -> CommandChain:
    """
    Dependency installation. Optional: a project without a lockfile or
    requirements file still gets to run its other steps.
    """
    cwd = _cwd(profile)
    if profile.language is Language.JAVASCRIPT:
        runs = ["npm ci --prefer-offline --no-audit", "npm install"]
    elif profile.language is Language.PYTHON:
        runs = []
        if "requirements" in profile.tools:
            runs.append("python -m pip install -r requirements.txt")
        if "pyproject" in profile.tools or "setup.py" in profile.tools:
            runs.append("python -m pip install -e .")
    else:
        runs = []
    return CommandChain(
        step="install",
        candidates=tuple(Command(run=r, cwd=cwd) for r in runs) + (noop("No dependencies to install"),),
        tier=tier,
    )


def own_tests(profile: ProjectProfile) -> bool:
    # the root's own markers; has_tests may be rolled up from tiers
    return bool(profile.tools & {"pytest", "setup.cfg", "tests"})


def testing_chain(profile: ProjectProfile, *, tier: str | None = None) -> CommandChain:
    """
    Turn a classified profile into its test fallback chain.
    Mandatory only when the project actually declares tests.
    """
    cwd = _cwd(profile)
    runs: List[str] = []

    if profile.language is Language.JAVASCRIPT and "test" in profile.scripts:
        runs = [
            "npm test -- --coverage --watchAll=false",
            "npm run test:ci",
            "npm test",
        ]
    elif profile.language is Language.PYTHON and own_tests(profile):
        runs = [
            "pytest -v --cov=. --cov-report=xml -n auto",
            "python -m pytest",
        ]
        if profile.subtype is Subtype.DJANGO:
            runs.append("python manage.py test")

    return CommandChain(
        step="test",
        candidates=tuple(Command(run=r, cwd=cwd) for r in runs) + (noop("No tests configured"),),
        mandatory=bool(runs),
        tier=tier,
    )
