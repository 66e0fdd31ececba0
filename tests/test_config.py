import os
from pathlib import Path

import pytest

from ai_session_manager.core.utils.config import Settings, load_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in (
        "DOPPLER_PROJECT",
        "DOPPLER_CONFIG",
        "LOCK_TIMEOUT",
        "ANTHROPIC_BASE_URL",
        "DEFAULT_AI_ASSISTANT",
        "AI_ASSISTANT",
        "DEBUG",
    ):
        monkeypatch.delenv(key, raising=False)
    for key in list(os.environ):
        if key.startswith("SESSION_MANAGER_"):
            monkeypatch.delenv(key, raising=False)


def test_env_overrides(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text(f"sessions_dir = '{tmp_path / 'store'}'\nlock_timeout = 12\n")
    monkeypatch.setenv("SESSION_MANAGER_LOCK_TIMEOUT", "7")
    monkeypatch.setenv("SESSION_MANAGER_PROBE_BACKEND", "false")

    settings = load_settings(config_path)

    assert settings.lock_timeout == 7.0
    assert settings.probe_backend is False
    assert settings.sessions_dir == tmp_path / "store"
    assert isinstance(settings.sessions_dir, Path)


def test_legacy_environment_sits_beneath_file_values(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text("default_config = 'stg'\n")
    monkeypatch.setenv("DOPPLER_PROJECT", "alpha")
    monkeypatch.setenv("DOPPLER_CONFIG", "dev")
    monkeypatch.setenv("ANTHROPIC_BASE_URL", "https://backend.example")

    settings = load_settings(config_path)

    assert settings.default_project == "alpha"
    assert settings.default_config == "stg"
    assert settings.backend_url == "https://backend.example"


def test_debug_flag_raises_log_level(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text("")
    monkeypatch.setenv("DEBUG", "true")

    assert load_settings(config_path).log_level == "DEBUG"


def test_completion_command_string_is_split(tmp_path):
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        "completion-command = \"claude -p --model 'glm 4'\"\n"
        "system_prompt_flag = ''\n"
    )

    settings = load_settings(config_path)

    assert settings.completion_command == ("claude", "-p", "--model", "glm 4")
    assert settings.system_prompt_flag is None


def test_project_config_discovered_in_parent_directory(tmp_path, monkeypatch):
    project_root = tmp_path / "repo"
    nested_dir = project_root / "src" / "module"
    nested_dir.mkdir(parents=True)

    config_path = project_root / ".session-manager.toml"
    config_path.write_text("backend_name = 'parent-tree-backend'\n")

    monkeypatch.chdir(nested_dir)

    settings = load_settings()

    assert settings.backend_name == "parent-tree-backend"


def test_settings_expand_user_paths():
    settings = Settings(sessions_dir=Path("~/sessions-test"))

    assert settings.sessions_dir == Path.home() / "sessions-test"
    assert settings.completion_command == ("claude", "-p")


def test_unparseable_legacy_value_names_the_field(tmp_path, monkeypatch):
    monkeypatch.setenv("LOCK_TIMEOUT", "30s")

    with pytest.raises(ValueError, match="lock_timeout"):
        load_settings(tmp_path / "absent.toml")


def test_malformed_config_file_is_reported(tmp_path):
    config_path = tmp_path / "config.toml"
    config_path.write_text("sessions_dir = \n")

    with pytest.raises(ValueError, match="Malformed config file"):
        load_settings(config_path)
