from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "commandsite"
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "INFO"
    log_dir: str = "commandsite_logs"
    log_ext: str = ".log"
    log_commands: bool = True
    # 0 keeps no run history at all.
    logs_to_keep: int = Field(default=0, ge=0)
    readme: str | None = None

    model_config = SettingsConfigDict(
        env_prefix="COMMANDSITE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def load_settings(config_file: str | Path | None = None, **overrides: Any) -> Settings:
    """Defaults and environment, then the JSON config file, then explicit overrides."""
    merged: dict[str, Any] = {}
    if config_file is not None:
        path = Path(config_file)
        if path.exists():
            with path.open("rb") as f:
                payload = orjson.loads(f.read())
            merged.update({key: value for key, value in payload.items() if value is not None})
    merged.update({key: value for key, value in overrides.items() if value is not None})
    return Settings(**merged)


def write_settings(settings: Settings, path: str | Path) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("wb") as f:
        f.write(orjson.dumps(settings.model_dump(mode="json"), option=orjson.OPT_INDENT_2))
    return target


settings = Settings()
