from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from commandsite.core.config import Settings, load_settings, write_settings


def test_defaults() -> None:
    settings = Settings()
    assert settings.port == 8080
    assert settings.log_ext == ".log"
    assert settings.logs_to_keep == 0
    assert settings.log_commands is True


def test_config_file_then_overrides(tmp_path: Path) -> None:
    config_file = tmp_path / "commandsite.json"
    config_file.write_text('{"logs_to_keep": 5, "log_dir": "runs", "port": null}', encoding="utf-8")

    loaded = load_settings(config_file, log_dir="elsewhere", log_ext=None)

    assert loaded.logs_to_keep == 5
    assert loaded.log_dir == "elsewhere"
    assert loaded.log_ext == ".log"
    assert loaded.port == 8080


def test_missing_config_file_uses_defaults(tmp_path: Path) -> None:
    assert load_settings(tmp_path / "absent.json").logs_to_keep == 0


def test_environment_overrides_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COMMANDSITE_LOGS_TO_KEEP", "7")
    monkeypatch.setenv("COMMANDSITE_LOG_COMMANDS", "false")

    settings = load_settings()
    assert settings.logs_to_keep == 7
    assert settings.log_commands is False


def test_negative_retention_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(logs_to_keep=-1)


def test_write_settings_round_trips(tmp_path: Path) -> None:
    path = write_settings(Settings(logs_to_keep=2, readme="README.md"), tmp_path / "out" / "settings.json")

    loaded = load_settings(path)
    assert loaded.logs_to_keep == 2
    assert loaded.readme == "README.md"
