from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from adaptci.classifier import classify
from adaptci.model import Capability, Language, PackageManager, Subtype
from adaptci.probe import JS_MARKERS, MARKER_DIRS, MARKER_FILES, PY_WEB_MARKERS, ProbeFacts, probe

from conftest import EXPRESS_PACKAGE, REACT_PACKAGE


def _facts(**kw) -> ProbeFacts:
    for key in ("files", "dirs", "js_dependencies", "js_scripts", "py_markers"):
        if key in kw:
            kw[key] = frozenset(kw[key])
    return ProbeFacts(**kw)


def test_react_app_is_javascript_react_with_frontend_and_tests(make_project) -> None:
    profile = classify(probe(make_project({"package.json": REACT_PACKAGE})))

    assert profile.language is Language.JAVASCRIPT
    assert profile.subtype is Subtype.REACT
    assert profile.package_manager is PackageManager.NPM
    assert profile.has(Capability.HAS_FRONTEND)
    assert profile.has(Capability.HAS_TESTS)
    assert profile.has(Capability.HAS_BUILD)
    assert not profile.has(Capability.HAS_DOCKER)


def test_express_is_node_backend() -> None:
    profile = classify(_facts(files={"package.json"}, js_dependencies={"express"}))
    assert profile.subtype is Subtype.NODE
    assert profile.has(Capability.HAS_BACKEND)
    assert not profile.has(Capability.HAS_TESTS)


def test_first_framework_marker_wins() -> None:
    profile = classify(_facts(files={"package.json"}, js_dependencies={"vue", "react", "express"}))
    assert profile.subtype is Subtype.REACT
    assert not profile.has(Capability.HAS_BACKEND)


def test_django_wins_over_web_framework_markers() -> None:
    profile = classify(_facts(files={"requirements.txt", "manage.py"}, py_markers={"flask"}))
    assert profile.language is Language.PYTHON
    assert profile.subtype is Subtype.DJANGO
    assert profile.has(Capability.HAS_BACKEND)


def test_python_web_and_plain_python() -> None:
    web = classify(_facts(files={"pyproject.toml"}, py_markers={"fastapi"}, dirs={"tests"}))
    assert web.subtype is Subtype.PYTHON_WEB
    assert web.has(Capability.HAS_TESTS)
    assert web.has(Capability.HAS_BUILD)

    plain = classify(_facts(files={"requirements.txt"}))
    assert plain.subtype is Subtype.PYTHON
    assert plain.capabilities == frozenset()


def test_other_manifest_is_other_language() -> None:
    profile = classify(_facts(files={"go.mod", "Dockerfile"}))
    assert profile.language is Language.OTHER
    assert profile.capabilities == {Capability.HAS_DOCKER}


def test_empty_tree_is_unknown_and_bare() -> None:
    profile = classify(_facts())
    assert profile.language is Language.UNKNOWN
    assert profile.subtype is Subtype.GENERIC
    assert profile.capabilities == frozenset()


def test_fullstack_with_docker(make_project) -> None:
    root = make_project({
        "frontend/package.json": REACT_PACKAGE,
        "backend/package.json": EXPRESS_PACKAGE,
        "Dockerfile": "FROM node:20\n",
    })
    profile = classify(probe(root))

    assert profile.subtype is Subtype.FULLSTACK
    for cap in (Capability.HAS_FRONTEND, Capability.HAS_BACKEND, Capability.HAS_DOCKER, Capability.MULTI_TIER):
        assert profile.has(cap)
    # tests/build come from the tiers
    assert profile.has(Capability.HAS_TESTS)
    assert profile.has(Capability.HAS_BUILD)
    assert [t.root for t in profile.tiers] == ["frontend", "backend"]
    assert profile.tiers[0].subtype is Subtype.REACT
    assert profile.tiers[1].subtype is Subtype.NODE


def test_empty_tier_directories_are_dropped(make_project) -> None:
    profile = classify(probe(make_project({"frontend": None, "backend": None})))
    assert profile.subtype is Subtype.FULLSTACK
    assert profile.language is Language.OTHER
    assert profile.tiers == ()


_names = st.frozensets


@st.composite
def probe_facts(draw, depth: int = 1) -> ProbeFacts:
    dirs = draw(_names(st.sampled_from(MARKER_DIRS)))
    tiers = {}
    if depth > 0:
        for name in ("frontend", "backend"):
            if name in dirs and draw(st.booleans()):
                tiers[name] = draw(probe_facts(depth=0))
    return ProbeFacts(
        files=draw(_names(st.sampled_from(MARKER_FILES))),
        dirs=dirs,
        js_dependencies=draw(_names(st.sampled_from(JS_MARKERS))),
        js_scripts=draw(_names(st.sampled_from(("test", "build", "lint", "typecheck")))),
        py_markers=draw(_names(st.sampled_from(PY_WEB_MARKERS))),
        **tiers,
    )


@settings(max_examples=200)
@given(probe_facts())
def test_classify_is_deterministic(facts: ProbeFacts) -> None:
    assert classify(facts) == classify(facts)


@settings(max_examples=200)
@given(probe_facts())
def test_unknown_language_never_carries_capabilities(facts: ProbeFacts) -> None:
    profile = classify(facts)
    if profile.language is Language.UNKNOWN:
        assert profile.subtype is Subtype.GENERIC
        assert not profile.capabilities
    if profile.has(Capability.MULTI_TIER):
        assert profile.has(Capability.HAS_FRONTEND) and profile.has(Capability.HAS_BACKEND)
