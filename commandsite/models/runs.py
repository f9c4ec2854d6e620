from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ExecutionResult(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    route_path: str
    params_used: dict[str, Any] = Field(default_factory=dict)
    arguments: list[str] = Field(default_factory=list)
    stdout: str = ""
    stderr: str = ""
    has_error: bool = False
    error_message: str | None = None
    stack_trace: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class RunLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    route_path: str
    run_id: str
    timestamp: datetime
    link: str


class RetentionPolicy(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    logs_to_keep: int = Field(default=0, ge=0)

    @property
    def writes_enabled(self) -> bool:
        return self.logs_to_keep > 0
