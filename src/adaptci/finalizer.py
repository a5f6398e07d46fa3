# finalizer.py
from __future__ import annotations

import shutil
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

from .errors import CleanupError
from .ui.console import get_console


@dataclass(frozen=True)
class ReleaseAction:
    resource: str
    release: Callable[[], None]


class ResourceRegistry:
    """
    Run-scoped list of release actions.

    Parallel stages register into it independently, so every access goes
    through the lock. Actions run in reverse registration order.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._actions: List[ReleaseAction] = []
        self._released = False

    def register(self, resource: str, release: Callable[[], None]) -> None:
        with self._lock:
            if self._released:
                raise RuntimeError(f"registry already finalized; cannot register {resource!r}")
            self._actions.append(ReleaseAction(resource=resource, release=release))

    def register_command(self, resource: str, cmd: str, *, cwd: str | Path | None = None) -> None:
        """Register a shell command as the release action for `resource`."""
        def _run() -> None:
            proc = subprocess.run(
                cmd,
                shell=True,
                cwd=str(cwd) if cwd is not None else None,
                text=True,
                capture_output=True,
            )
            if proc.returncode != 0:
                detail = (proc.stderr or proc.stdout or "").strip().splitlines()
                raise RuntimeError(f"`{cmd}` exited {proc.returncode}" + (f": {detail[-1]}" if detail else ""))

        self.register(resource, _run)

    def register_path(self, path: str | Path) -> None:
        """Register a temp file or directory for removal."""
        p = Path(path)

        def _rm() -> None:
            if p.is_dir():
                shutil.rmtree(p)
            elif p.exists():
                p.unlink()

        self.register(str(p), _rm)

    def drain(self) -> List[ReleaseAction]:
        """Take every registered action (newest first) and close the registry."""
        with self._lock:
            actions = list(reversed(self._actions))
            self._actions.clear()
            self._released = True
        return actions


def finalize(registry: ResourceRegistry) -> List[CleanupError]:
    """
    Invoke every registered release action.

    Failures are reported on the console and returned, never raised: a
    failed cleanup does not change the outcome of the run.
    """
    console = get_console()
    errors: List[CleanupError] = []
    for action in registry.drain():
        try:
            action.release()
            console.print_debug(f"released {action.resource}")
        except Exception as e:
            err = CleanupError(resource=action.resource, message=str(e))
            errors.append(err)
            console.print_warning(str(err))
    return errors
