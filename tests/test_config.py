from __future__ import annotations

import pytest

from adaptci.config import DEFAULT_TIMEOUTS, PipelineConfig, load_config, parse_duration
from adaptci.errors import ConfigError
from adaptci.model import EventKind


@pytest.mark.parametrize(
    ("raw", "seconds"),
    [(90, 90.0), (1.5, 1.5), ("45", 45.0), ("30s", 30.0), ("15m", 900.0), ("1h", 3600.0), ("500ms", 0.5)],
)
def test_parse_duration(raw, seconds) -> None:
    assert parse_duration(raw) == seconds


@pytest.mark.parametrize("raw", ["", "abc", "10d", 0, -5, True])
def test_parse_duration_rejects_garbage(raw) -> None:
    with pytest.raises(ValueError):
        parse_duration(raw)


def test_defaults(tmp_path) -> None:
    config = load_config(tmp_path, environ={})

    assert config == PipelineConfig()
    assert config.timeout_for("test") == DEFAULT_TIMEOUTS["test"]
    assert config.deploy_branches == ["main", "master"]
    assert config.deploy_events == [EventKind.RELEASE]
    assert config.cancel_in_progress is False


def test_layers_override_in_order(tmp_path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        '[tool.adaptci]\nconcurrency = 2\ndeploy_command = "make deploy"\n'
        '[tool.adaptci.timeouts]\ntest = "5m"\nbuild = 60\n'
        '[tool.adaptci.env]\nA = "pyproject"\nB = 1\n'
    )
    (tmp_path / "adaptci.toml").write_text(
        'concurrency = 3\n[timeouts]\ntest = "7m"\n[env]\nA = "file"\n'
    )

    config = load_config(
        tmp_path,
        environ={"ADAPTCI_CONCURRENCY": "4", "ADAPTCI_STATE_DIR": "/var/adaptci"},
        overrides={"timeouts": {"build": "2m"}, "deploy_command": None},
    )

    assert config.concurrency == 4
    assert config.state_dir == "/var/adaptci"
    assert config.deploy_command == "make deploy"
    assert config.timeouts == {"test": 420.0, "build": 120.0}
    assert config.env == {"A": "file", "B": "1"}


def test_explicit_config_path_replaces_default_file(tmp_path) -> None:
    (tmp_path / "adaptci.toml").write_text("concurrency = 3\n")
    other = tmp_path / "ci.toml"
    other.write_text('disabled_stages = ["deploy"]\n')

    config = load_config(tmp_path, other, environ={})
    assert config.concurrency is None
    assert config.is_disabled("deploy")


def test_missing_explicit_config_is_an_error(tmp_path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path, tmp_path / "missing.toml", environ={})


def test_invalid_toml_is_an_error(tmp_path) -> None:
    (tmp_path / "adaptci.toml").write_text("concurrency = = 3\n")
    with pytest.raises(ConfigError, match="invalid TOML"):
        load_config(tmp_path, environ={})


@pytest.mark.parametrize(
    "body",
    [
        "concurrency = 0\n",
        "unknown_key = 1\n",
        '[timeouts]\nlint = "5m"\n',
        'disabled_stages = ["cleanup"]\n',
        'enabled_stages = ["nope"]\n',
    ],
)
def test_invalid_values_are_config_errors(tmp_path, body) -> None:
    (tmp_path / "adaptci.toml").write_text(body)
    with pytest.raises(ConfigError):
        load_config(tmp_path, environ={})


def test_enabled_stages_never_disable_cleanup() -> None:
    config = PipelineConfig(enabled_stages=["test"])
    assert not config.is_disabled("test")
    assert config.is_disabled("build")
    assert not config.is_disabled("cleanup")


def test_cache_purge_defaults_to_ci_environments() -> None:
    assert PipelineConfig().purges_caches(environ={"CI": "true"})
    assert not PipelineConfig().purges_caches(environ={})
    assert PipelineConfig(purge_caches=True).purges_caches(environ={})
    assert not PipelineConfig(purge_caches=False).purges_caches(environ={"CI": "true"})
