"""Tests for configuration loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from attocrew import config as config_module
from attocrew.config import CrewConfig, load_config, validate_config
from attocrew.errors import ConfigurationError

ENV_VARS = (
    "LLM_PROVIDER_KEY", "LLM_API_URL", "LLM_MODEL",
    "ATTOCREW_DB_PATH", "ATTOCREW_MAX_ITERATIONS", "ATTOCREW_DEBUG",
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(config_module, "get_user_config_dir", lambda: tmp_path / "home" / ".attocrew")


def _project(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    (root / ".attocrew").mkdir(parents=True)
    return root


class TestLoadConfig:
    def test_defaults(self, tmp_path: Path) -> None:
        cfg = load_config(working_dir=str(tmp_path))
        assert cfg.max_iterations == 10
        assert cfg.lock_ttl == 300.0
        assert cfg.api_key is None
        assert cfg.db_path == str(tmp_path / ".attocrew" / "crew.db")

    def test_project_yaml(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        (root / ".attocrew" / "config.yaml").write_text(
            "model: local-model\nmax_iterations: 4\nlock_ttl: 30\n", encoding="utf-8",
        )
        cfg = load_config(working_dir=str(root))
        assert cfg.model == "local-model"
        assert cfg.max_iterations == 4
        assert cfg.lock_ttl == 30

    def test_camel_case_json_aliases(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        (root / ".attocrew" / "config.json").write_text(
            json.dumps({"maxIterations": 7, "waitTimeout": 5}), encoding="utf-8",
        )
        cfg = load_config(working_dir=str(root))
        assert cfg.max_iterations == 7
        assert cfg.wait_timeout == 5

    def test_user_config_is_lowest_priority(self, tmp_path: Path) -> None:
        user_dir = tmp_path / "home" / ".attocrew"
        user_dir.mkdir(parents=True)
        (user_dir / "config.json").write_text(json.dumps({"model": "user", "temperature": 0.1}))
        root = _project(tmp_path)
        (root / ".attocrew" / "config.yaml").write_text("model: project\n", encoding="utf-8")
        cfg = load_config(working_dir=str(root))
        assert cfg.model == "project"
        assert cfg.temperature == 0.1

    def test_env_overrides_files(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        root = _project(tmp_path)
        (root / ".attocrew" / "config.yaml").write_text("model: project\n", encoding="utf-8")
        monkeypatch.setenv("LLM_MODEL", "env-model")
        monkeypatch.setenv("LLM_PROVIDER_KEY", "sk-test")
        monkeypatch.setenv("ATTOCREW_MAX_ITERATIONS", "3")
        monkeypatch.setenv("ATTOCREW_DEBUG", "true")
        cfg = load_config(working_dir=str(root))
        assert cfg.model == "env-model"
        assert cfg.api_key == "sk-test"
        assert cfg.max_iterations == 3
        assert cfg.debug is True

    def test_overrides_win(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_MODEL", "env-model")
        cfg = load_config(working_dir=str(tmp_path), overrides={"model": "explicit", "dbPath": ":memory:"})
        assert cfg.model == "explicit"
        assert cfg.db_path == ":memory:"

    def test_bad_env_integer(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ATTOCREW_MAX_ITERATIONS", "lots")
        with pytest.raises(ConfigurationError):
            load_config(working_dir=str(tmp_path))

    def test_malformed_yaml_is_ignored(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        (root / ".attocrew" / "config.yaml").write_text("model: [unclosed\n", encoding="utf-8")
        assert load_config(working_dir=str(root)).model == "gpt-4o"


class TestValidateConfig:
    @pytest.mark.parametrize(
        "field_values",
        [
            {"max_iterations": 0},
            {"lock_ttl": -1.0},
            {"lock_sweep_interval": 0.0},
            {"wait_poll_interval": 0.0},
        ],
    )
    def test_rejects(self, field_values: dict[str, float]) -> None:
        with pytest.raises(ConfigurationError):
            validate_config(CrewConfig(**field_values))

    def test_zero_ttl_allowed(self) -> None:
        validate_config(CrewConfig(lock_ttl=0.0))
