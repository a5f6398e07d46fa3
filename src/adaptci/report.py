# report.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .dag import topo_order
from .model import FailurePolicy, StageGraph, StageResult, StageStatus

# -------------------- Schemas --------------------


class AttemptDoc(BaseModel):
    command: str
    exit_code: Optional[int]
    cwd: Optional[str] = None


class StageDoc(BaseModel):
    name: str
    status: StageStatus
    policy: str
    duration: float
    reason: str = ""
    output_tail: str = ""
    attempts: list[AttemptDoc] = Field(default_factory=list)


class RunReportDoc(BaseModel):
    run_id: str
    generated_at: datetime
    success: bool
    exit_code: int
    cancelled: bool
    profile: dict[str, Any]
    context: dict[str, Any]
    stages: list[StageDoc]
    cleanup_errors: list[str] = Field(default_factory=list)


# -------------------- Report --------------------


@dataclass
class RunReport:
    """
    Outcome of one run. `results` is in completion order; `ordered()`
    re-sorts it topologically for presentation.
    """
    graph: StageGraph
    results: List[StageResult] = field(default_factory=list)
    cancelled: bool = False
    cleanup_errors: List[str] = field(default_factory=list)

    def __getitem__(self, name: str) -> StageResult:
        for r in self.results:
            if r.name == name:
                return r
        raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        return any(r.name == name for r in self.results)

    def ordered(self) -> List[StageResult]:
        order = {name: i for i, name in enumerate(topo_order(self.graph.stages))}
        return sorted(self.results, key=lambda r: order.get(r.name, len(order)))

    def statuses(self) -> dict[str, StageStatus]:
        return {r.name: r.status for r in self.ordered()}

    @property
    def failed(self) -> List[StageResult]:
        return [
            r for r in self.ordered()
            if r.status in (StageStatus.FAILURE, StageStatus.TIMED_OUT) and r.policy is FailurePolicy.FATAL
        ]

    @property
    def exit_code(self) -> int:
        # non-zero iff a fatal-policy stage failed or timed out
        return 1 if self.failed else 0

    def to_doc(self) -> RunReportDoc:
        return RunReportDoc(
            run_id=self.graph.context.run_id,
            generated_at=datetime.now(timezone.utc),
            success=self.exit_code == 0,
            exit_code=self.exit_code,
            cancelled=self.cancelled,
            profile=self.graph.profile.to_dict(),
            context=self.graph.context.to_dict(),
            stages=[
                StageDoc(
                    name=r.name,
                    status=r.status,
                    policy=r.policy.value,
                    duration=round(r.duration, 3),
                    reason=r.reason,
                    output_tail=r.output if r.status in (StageStatus.FAILURE, StageStatus.TIMED_OUT) else "",
                    attempts=[AttemptDoc(command=a.command, exit_code=a.exit_code, cwd=a.cwd) for a in r.attempts],
                )
                for r in self.ordered()
            ],
            cleanup_errors=list(self.cleanup_errors),
        )

    def to_json(self) -> str:
        return self.to_doc().model_dump_json(indent=2)

    def write_json(self, path: str | Path) -> Path:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(self.to_json() + "\n", encoding="utf-8")
        return p
