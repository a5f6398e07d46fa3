# concurrency.py
# cancel-in-progress: one live run per concurrency group (the branch).
from __future__ import annotations

import os
import re
import signal
from pathlib import Path
from typing import Optional

from .ui.console import get_console


def group_name(branch: Optional[str]) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "_", branch or "detached")


class RunLock:
    """
    PID file at `<state_dir>/<group>.pid`.

    `acquire()` sends SIGTERM to the run recorded there (if it is still
    alive) and records this process instead; `release()` removes the file
    only while it still names this process.
    """

    def __init__(self, state_dir: str | Path, group: str):
        self.path = Path(state_dir) / f"{group}.pid"
        self.pid = os.getpid()

    def _recorded(self) -> Optional[int]:
        try:
            return int(self.path.read_text(encoding="utf-8").strip())
        except FileNotFoundError:
            return None
        except ValueError:
            return None

    def acquire(self) -> Optional[int]:
        """Supersede the previous run of this group. Returns its PID if one was signalled."""
        console = get_console()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        previous = self._recorded()
        signalled = None
        if previous and previous != self.pid:
            try:
                os.kill(previous, signal.SIGTERM)
                signalled = previous
                console.print_info(f"Cancelled previous run (pid {previous}) in group {self.path.stem}")
            except ProcessLookupError:
                console.print_debug(f"stale pid file {self.path} (pid {previous} not running)")
            except PermissionError:
                console.print_warning(f"cannot signal pid {previous} recorded in {self.path}")
        self.path.write_text(f"{self.pid}\n", encoding="utf-8")
        return signalled

    def release(self) -> None:
        if self._recorded() == self.pid:
            self.path.unlink(missing_ok=True)
