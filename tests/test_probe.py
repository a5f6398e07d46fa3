from __future__ import annotations

import pytest

from adaptci.errors import ProbeError
from adaptci.probe import probe

from conftest import REACT_PACKAGE


def test_probe_collects_marker_files_and_dirs(make_project) -> None:
    root = make_project({
        "requirements.txt": "Flask==3.0\n",
        "pytest.ini": "[pytest]\n",
        "tests": None,
        "README.md": "hello",
    })
    facts = probe(root)

    assert facts.root == "."
    assert facts.files == {"requirements.txt", "pytest.ini"}
    assert facts.dirs == {"tests"}
    assert facts.py_markers == {"flask"}


def test_probe_reads_package_json_dependencies_and_scripts(make_project) -> None:
    facts = probe(make_project({"package.json": REACT_PACKAGE}))

    assert "react" in facts.js_dependencies
    assert facts.js_scripts == {"test", "build"}


def test_probe_falls_back_to_substring_search_on_broken_manifest(make_project) -> None:
    facts = probe(make_project({"package.json": '{"dependencies": {"vue": "3"}, "scripts": {"test": '}))

    assert facts.js_dependencies == {"vue"}
    assert "test" in facts.js_scripts


def test_probe_scans_tiers_one_level_deep(make_project) -> None:
    root = make_project({
        "frontend/package.json": REACT_PACKAGE,
        "backend/requirements.txt": "fastapi\n",
        "backend/tests": None,
        "Dockerfile": "FROM scratch\n",
    })
    facts = probe(root)

    assert facts.frontend is not None and facts.frontend.root == "frontend"
    assert facts.backend is not None and facts.backend.py_markers == {"fastapi"}
    assert facts.backend.dirs == {"tests"}
    assert facts.frontend.frontend is None


def test_probe_missing_root_raises(tmp_path) -> None:
    with pytest.raises(ProbeError, match="path not found"):
        probe(tmp_path / "nope")


def test_probe_file_root_raises(tmp_path) -> None:
    f = tmp_path / "file.txt"
    f.write_text("x")
    with pytest.raises(ProbeError, match="not a directory"):
        probe(f)


def test_probe_ignores_directories_named_like_marker_files(make_project) -> None:
    facts = probe(make_project({"package.json": None}))
    assert "package.json" not in facts.files
