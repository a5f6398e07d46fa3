# config.py
# Pipeline configuration. Precedence, lowest first:
#   defaults < [tool.adaptci] in pyproject.toml < adaptci.toml / --config
#   < ADAPTCI_* environment < CLI options
from __future__ import annotations

import os
import re
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigError
from .model import PIPELINE_STAGES, EventKind

DEFAULT_CONFIG_FILE = "adaptci.toml"
ENV_PREFIX = "ADAPTCI_"

# seconds, per stage
DEFAULT_TIMEOUTS = {
    "analysis": 15 * 60,
    "dependencies": 10 * 60,
    "test": 20 * 60,
    "build": 15 * 60,
    "containerize": 15 * 60,
    "deploy": 10 * 60,
    "cleanup": 5 * 60,
}

_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


def parse_duration(value: Any) -> float:
    """Seconds from `90`, `90.5`, `"90s"`, `"15m"`, `"1h"` or `"500ms"`."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        m = _DURATION.match(str(value))
        if not m:
            raise ValueError(f"invalid duration: {value!r}")
        seconds = float(m.group(1)) * _UNITS[m.group(2)]
    if seconds <= 0:
        raise ValueError(f"duration must be positive: {value!r}")
    return seconds


def _check_stage_names(names: List[str]) -> List[str]:
    unknown = sorted(set(names) - set(PIPELINE_STAGES))
    if unknown:
        raise ValueError(f"unknown stage(s) {unknown}; known stages: {list(PIPELINE_STAGES)}")
    return names


class PipelineConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    concurrency: Optional[int] = Field(default=None, ge=1)
    timeouts: Dict[str, float] = Field(default_factory=dict)
    enabled_stages: Optional[List[str]] = None
    disabled_stages: List[str] = Field(default_factory=list)
    deploy_branches: List[str] = Field(default_factory=lambda: ["main", "master"])
    deploy_events: List[EventKind] = Field(default_factory=lambda: [EventKind.RELEASE])
    deploy_command: Optional[str] = None
    skip_markers: List[str] = Field(default_factory=lambda: ["[skip ci]", "[ci skip]"])
    env: Dict[str, str] = Field(default_factory=dict)
    cancel_in_progress: bool = False
    state_dir: str = ".adaptci"
    output_tail: int = Field(default=4000, ge=0)
    # None: purge workspace caches only inside CI (CI=true)
    purge_caches: Optional[bool] = None

    @field_validator("timeouts", mode="before")
    @classmethod
    def _parse_timeouts(cls, value: Any) -> Dict[str, float]:
        if not isinstance(value, Mapping):
            raise ValueError("timeouts must be a table of stage = duration")
        _check_stage_names(list(value))
        return {str(k): parse_duration(v) for k, v in value.items()}

    @field_validator("enabled_stages", "disabled_stages")
    @classmethod
    def _known_stages(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return value
        return _check_stage_names(value)

    @field_validator("env", mode="before")
    @classmethod
    def _stringify_env(cls, value: Any) -> Dict[str, str]:
        # force values to str for env compatibility
        if not isinstance(value, Mapping):
            raise ValueError("env must be a table of NAME = value")
        return {str(k): str(v) for k, v in value.items()}

    @model_validator(mode="after")
    def _cleanup_always_runs(self) -> "PipelineConfig":
        if "cleanup" in self.disabled_stages:
            raise ValueError("the cleanup stage cannot be disabled")
        return self

    def timeout_for(self, stage: str) -> float:
        return self.timeouts.get(stage, DEFAULT_TIMEOUTS.get(stage, 15 * 60))

    def purges_caches(self, environ: Mapping[str, str] | None = None) -> bool:
        if self.purge_caches is not None:
            return self.purge_caches
        env = os.environ if environ is None else environ
        return env.get("CI", "").lower() == "true"

    def is_disabled(self, stage: str) -> bool:
        if stage == "cleanup":
            return False
        if stage in self.disabled_stages:
            return True
        return self.enabled_stages is not None and stage not in self.enabled_stages


def _load_toml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(source=str(path), message=f"invalid TOML: {e}") from e
    except OSError as e:
        raise ConfigError(source=str(path), message=f"unable to read: {e}") from e


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if environ.get(f"{ENV_PREFIX}CONCURRENCY", "").strip():
        out["concurrency"] = environ[f"{ENV_PREFIX}CONCURRENCY"].strip()
    if environ.get(f"{ENV_PREFIX}STATE_DIR", "").strip():
        out["state_dir"] = environ[f"{ENV_PREFIX}STATE_DIR"].strip()
    if environ.get(f"{ENV_PREFIX}DEPLOY_COMMAND", "").strip():
        out["deploy_command"] = environ[f"{ENV_PREFIX}DEPLOY_COMMAND"]
    return out


MERGED_TABLES = ("timeouts", "env")


def _merge(into: Dict[str, Any], layer: Mapping[str, Any]) -> None:
    for key, value in layer.items():
        if key in MERGED_TABLES and isinstance(value, Mapping) and isinstance(into.get(key), Mapping):
            into[key] = {**into[key], **value}
        else:
            into[key] = value


def load_config(
    root: str | Path = ".",
    config_path: str | Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> PipelineConfig:
    """
    Load the effective configuration for the project at `root`.

    `config_path` must exist when given; otherwise `<root>/adaptci.toml` is
    used if present. `overrides` (typically CLI options) win over everything;
    None values in it are ignored.
    """
    base = Path(root).expanduser()
    merged: Dict[str, Any] = {}

    pyproject = base / "pyproject.toml"
    if pyproject.is_file():
        section = _load_toml(pyproject).get("tool", {}).get("adaptci", {})
        if not isinstance(section, dict):
            raise ConfigError(source=str(pyproject), message="[tool.adaptci] must be a table")
        _merge(merged, section)

    if config_path is not None:
        path = Path(config_path).expanduser()
        if not path.is_file():
            raise ConfigError(source=str(path), message="config file not found")
        _merge(merged, _load_toml(path))
    elif (base / DEFAULT_CONFIG_FILE).is_file():
        _merge(merged, _load_toml(base / DEFAULT_CONFIG_FILE))

    _merge(merged, _env_overrides(os.environ if environ is None else environ))
    _merge(merged, {k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        return PipelineConfig.model_validate(merged)
    except ValidationError as e:
        source = str(config_path) if config_path is not None else str(base)
        raise ConfigError(source=source, message=str(e)) from e
