# probe.py
# Read-only scan of a project tree. Everything the classifier decides on
# comes from the ProbeFacts produced here.
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ProbeError

MARKER_FILES = (
    "package.json",
    "requirements.txt",
    "pyproject.toml",
    "setup.py",
    "setup.cfg",
    "pytest.ini",
    "manage.py",
    "tsconfig.json",
    "mypy.ini",
    ".flake8",
    "Dockerfile",
    "docker-compose.yml",
    "docker-compose.yaml",
    "go.mod",
    "Cargo.toml",
    "pom.xml",
    "build.gradle",
)

MARKER_DIRS = ("tests", "frontend", "backend")

TIER_DIRS = ("frontend", "backend")

# dependency names the classifier cares about, in no particular order
JS_MARKERS = ("react", "vue", "express")
PY_WEB_MARKERS = ("flask", "fastapi")


@dataclass(frozen=True)
class ProbeFacts:
    root: str = "."
    files: frozenset[str] = frozenset()
    dirs: frozenset[str] = frozenset()
    js_dependencies: frozenset[str] = frozenset()
    js_scripts: frozenset[str] = frozenset()
    py_markers: frozenset[str] = frozenset()
    frontend: Optional["ProbeFacts"] = None
    backend: Optional["ProbeFacts"] = None

    def has_file(self, *names: str) -> bool:
        return any(n in self.files for n in names)

    def has_dir(self, *names: str) -> bool:
        return any(n in self.dirs for n in names)


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ProbeError(path=str(path), message=e.strerror or str(e)) from e


def _package_json_facts(text: str) -> tuple[frozenset[str], frozenset[str]]:
    """
    Return (dependency markers, script names) from package.json text.

    A manifest that is not valid JSON is still searched the way `grep -q`
    would: any marker substring counts, and `"test"` / `"build"` keys count
    as scripts.
    """
    try:
        data = json.loads(text)
    except ValueError:
        data = None

    if not isinstance(data, dict):
        deps = frozenset(m for m in JS_MARKERS if m in text)
        scripts = frozenset(s for s in ("test", "build", "lint") if f'"{s}"' in text)
        return deps, scripts

    names: set[str] = set()
    for section in ("dependencies", "devDependencies", "peerDependencies"):
        block = data.get(section)
        if isinstance(block, dict):
            names.update(str(k) for k in block)

    deps = frozenset(m for m in JS_MARKERS if m in names)
    scripts_block = data.get("scripts")
    scripts = frozenset(str(k) for k in scripts_block) if isinstance(scripts_block, dict) else frozenset()
    return deps, scripts


def _python_web_markers(base: Path, files: frozenset[str]) -> frozenset[str]:
    found: set[str] = set()
    for name in ("requirements.txt", "pyproject.toml"):
        if name not in files:
            continue
        text = _read_text(base / name).lower()
        found.update(m for m in PY_WEB_MARKERS if m in text)
    return frozenset(found)


def _scan(base: Path, rel: str, *, with_tiers: bool) -> ProbeFacts:
    try:
        entries = {p.name: p for p in base.iterdir()}
    except OSError as e:
        raise ProbeError(path=str(base), message=e.strerror or str(e)) from e

    files = frozenset(n for n in MARKER_FILES if n in entries and entries[n].is_file())
    dirs = frozenset(n for n in MARKER_DIRS if n in entries and entries[n].is_dir())

    js_deps: frozenset[str] = frozenset()
    js_scripts: frozenset[str] = frozenset()
    if "package.json" in files:
        js_deps, js_scripts = _package_json_facts(_read_text(base / "package.json"))

    frontend = backend = None
    if with_tiers:
        if "frontend" in dirs:
            frontend = _scan(base / "frontend", "frontend", with_tiers=False)
        if "backend" in dirs:
            backend = _scan(base / "backend", "backend", with_tiers=False)

    return ProbeFacts(
        root=rel,
        files=files,
        dirs=dirs,
        js_dependencies=js_deps,
        js_scripts=js_scripts,
        py_markers=_python_web_markers(base, files),
        frontend=frontend,
        backend=backend,
    )


def probe(root: str | Path) -> ProbeFacts:
    """
    Inspect a project root for marker files, directories and manifest
    contents. Raises ProbeError on I/O failures only.
    """
    base = Path(root).expanduser()
    if not base.exists():
        raise ProbeError(path=str(base), message="path not found")
    if not base.is_dir():
        raise ProbeError(path=str(base), message="not a directory")
    return _scan(base.resolve(), ".", with_tiers=True)
