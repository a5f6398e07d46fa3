from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Mapping

import pytest

from adaptci.ui.console import Console, set_console


@pytest.fixture(autouse=True)
def _console() -> None:
    set_console(Console(debug=True))


@pytest.fixture()
def make_project(tmp_path: Path) -> Callable[..., Path]:
    """
    Write a project tree under tmp_path. Keys are relative paths; a value
    of None creates a directory, a dict is dumped as JSON.
    """

    def _make(files: Mapping[str, object], name: str = "proj") -> Path:
        root = tmp_path / name
        root.mkdir()
        for rel, content in files.items():
            path = root / rel
            if content is None:
                path.mkdir(parents=True, exist_ok=True)
                continue
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, dict):
                content = json.dumps(content)
            path.write_text(str(content), encoding="utf-8")
        return root

    return _make


REACT_PACKAGE = {
    "name": "web",
    "dependencies": {"react": "^18.2.0", "react-dom": "^18.2.0"},
    "scripts": {"test": "react-scripts test", "build": "react-scripts build"},
}

EXPRESS_PACKAGE = {
    "name": "api",
    "dependencies": {"express": "^4.18.0"},
    "scripts": {"test": "jest"},
}
