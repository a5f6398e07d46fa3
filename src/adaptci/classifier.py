# classifier.py
from __future__ import annotations

from typing import Optional, Set, Tuple

from .model import Capability, Language, PackageManager, ProjectProfile, Subtype
from .probe import ProbeFacts

PY_MANIFESTS = ("requirements.txt", "pyproject.toml", "setup.py")
OTHER_MANIFESTS = ("go.mod", "Cargo.toml", "pom.xml", "build.gradle")
DOCKER_FILES = ("Dockerfile", "docker-compose.yml", "docker-compose.yaml")

# precedence when several framework markers match: first wins
JS_FRAMEWORKS = (
    ("react", Subtype.REACT, Capability.HAS_FRONTEND),
    ("vue", Subtype.VUE, Capability.HAS_FRONTEND),
    ("express", Subtype.NODE, Capability.HAS_BACKEND),
)

# file name -> tool marker handed to the resolver
TOOL_FILES = {
    "tsconfig.json": "tsconfig",
    "mypy.ini": "mypy",
    "pytest.ini": "pytest",
    ".flake8": "flake8",
    "setup.cfg": "setup.cfg",
    "setup.py": "setup.py",
    "pyproject.toml": "pyproject",
    "requirements.txt": "requirements",
    "manage.py": "manage.py",
    "Dockerfile": "dockerfile",
    "docker-compose.yml": "compose",
    "docker-compose.yaml": "compose",
}


def _tools(facts: ProbeFacts) -> frozenset[str]:
    tools = {TOOL_FILES[f] for f in facts.files if f in TOOL_FILES}
    if facts.has_dir("tests"):
        tools.add("tests")
    return frozenset(tools)


def _classify_language(
    facts: ProbeFacts,
) -> Tuple[Language, Subtype, PackageManager, Set[Capability], frozenset[str]]:
    caps: Set[Capability] = set()

    if facts.has_file("package.json"):
        subtype = Subtype.NODE
        for marker, framework, cap in JS_FRAMEWORKS:
            if marker in facts.js_dependencies:
                subtype = framework
                caps.add(cap)
                break
        if "test" in facts.js_scripts:
            caps.add(Capability.HAS_TESTS)
        if "build" in facts.js_scripts:
            caps.add(Capability.HAS_BUILD)
        return Language.JAVASCRIPT, subtype, PackageManager.NPM, caps, facts.js_scripts

    if facts.has_file(*PY_MANIFESTS):
        if facts.has_file("manage.py"):
            subtype = Subtype.DJANGO
            caps.add(Capability.HAS_BACKEND)
        elif facts.py_markers:
            subtype = Subtype.PYTHON_WEB
            caps.add(Capability.HAS_BACKEND)
        else:
            subtype = Subtype.PYTHON
        if facts.has_file("pytest.ini", "setup.cfg") or facts.has_dir("tests"):
            caps.add(Capability.HAS_TESTS)
        if facts.has_file("setup.py", "pyproject.toml"):
            caps.add(Capability.HAS_BUILD)
        return Language.PYTHON, subtype, PackageManager.PIP, caps, frozenset()

    if facts.has_file(*OTHER_MANIFESTS):
        return Language.OTHER, Subtype.GENERIC, PackageManager.NONE, caps, frozenset()

    return Language.UNKNOWN, Subtype.GENERIC, PackageManager.NONE, caps, frozenset()


def _tier(facts: Optional[ProbeFacts]) -> Optional[ProjectProfile]:
    if facts is None:
        return None
    return classify(facts)


def classify(facts: ProbeFacts) -> ProjectProfile:
    """
    Derive the project profile from probe facts.

    Language and framework are decided first-match-wins; docker and
    frontend/backend tiers are layered on independently. A tree with no
    recognized manifest but docker or tier markers is `other`, so that
    `unknown` always means "nothing recognized at all".
    """
    language, subtype, manager, caps, scripts = _classify_language(facts)

    if facts.has_file(*DOCKER_FILES):
        caps.add(Capability.HAS_DOCKER)

    tiers: Tuple[ProjectProfile, ...] = ()
    if facts.has_dir("frontend") and facts.has_dir("backend"):
        subtype = Subtype.FULLSTACK
        caps.update({Capability.HAS_FRONTEND, Capability.HAS_BACKEND, Capability.MULTI_TIER})
        tiers = tuple(
            t for t in (_tier(facts.frontend), _tier(facts.backend))
            if t is not None and t.language is not Language.UNKNOWN
        )
        for t in tiers:
            caps.update(t.capabilities & {Capability.HAS_TESTS, Capability.HAS_BUILD})

    if language is Language.UNKNOWN and caps:
        language = Language.OTHER

    return ProjectProfile(
        language=language,
        subtype=subtype,
        capabilities=frozenset(caps),
        package_manager=manager,
        root=facts.root,
        scripts=scripts,
        tools=_tools(facts),
        tiers=tiers,
    )
