from .classifier import classify
from .config import PipelineConfig, load_config
from .context import detect_context
from .dsl import pipeline, stage
from .model import (
    Capability,
    CommandChain,
    CommandSet,
    ProjectProfile,
    RunContext,
    StageGraph,
    StageResult,
    StageStatus,
)
from .planner import plan
from .probe import probe
from .report import RunReport
from .resolver import resolve
from .runner import execute

__all__ = [
    "probe", "classify", "resolve", "plan", "execute", "detect_context",
    "stage", "pipeline", "load_config", "PipelineConfig",
    "Capability", "CommandChain", "CommandSet", "ProjectProfile", "RunContext",
    "StageGraph", "StageResult", "StageStatus", "RunReport",
]
