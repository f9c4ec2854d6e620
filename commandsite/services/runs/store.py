from __future__ import annotations

import re
import shutil
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import orjson
from pydantic import ValidationError

from commandsite.core.contracts import ContractValidator, SchemaValidationError
from commandsite.core.logging import logger
from commandsite.models.runs import ExecutionResult, RetentionPolicy, RunLogEntry

_RUN_ID = re.compile(r"\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}-\d{3}")
_RUN_ID_FORMAT = "%Y-%m-%d_%H-%M-%S"


class RunHistoryError(RuntimeError):
    def __init__(self, code: str, message: str, *, payload: dict | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.payload = payload or {}


def run_id_for(moment: datetime) -> str:
    """Sortable millisecond run id, e.g. ``2024-05-01_13-04-59-042``."""
    return f"{moment.strftime(_RUN_ID_FORMAT)}-{moment.microsecond // 1000:03d}"


def parse_run_id(run_id: str) -> datetime | None:
    if not _RUN_ID.fullmatch(run_id):
        return None
    stamp, _, millis = run_id.rpartition("-")
    try:
        moment = datetime.strptime(stamp, _RUN_ID_FORMAT)
    except ValueError:
        return None
    return moment.replace(microsecond=int(millis) * 1000, tzinfo=UTC)


class RunHistoryStore:
    """One file per command run under ``<log_dir>/<route>/``, pruned after every write."""

    def __init__(
        self,
        log_dir: str | Path,
        log_ext: str = ".log",
        *,
        validator: ContractValidator | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._log_dir = Path(log_dir)
        self._log_ext = log_ext if log_ext.startswith(".") else f".{log_ext}"
        self._validator = validator
        self._clock = clock or (lambda: datetime.now(UTC))
        self._run_file = re.compile(_RUN_ID.pattern + re.escape(self._log_ext))

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    @property
    def log_ext(self) -> str:
        return self._log_ext

    def route_dir(self, route_path: str) -> Path:
        parts = [part for part in route_path.split("/") if part]
        if any(part in {".", ".."} for part in parts):
            raise RunHistoryError("INVALID_ROUTE", f"invalid route path: {route_path}")
        return self._log_dir.joinpath(*parts)

    def record(self, route_path: str, result: ExecutionResult, retention: RetentionPolicy) -> Path | None:
        """Persist one run when retention allows it, then prune. Never raises."""
        written: Path | None = None
        if retention.writes_enabled:
            try:
                written = self._write(route_path, result)
            except (OSError, ValueError, RunHistoryError) as exc:
                logger.warning(
                    "run_log_write_failed",
                    route=route_path,
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                )
        try:
            self.prune(route_path, retention)
        except (OSError, RunHistoryError) as exc:
            logger.warning(
                "run_log_prune_failed",
                route=route_path,
                error_type=type(exc).__name__,
                error_message=str(exc),
            )
        return written

    def prune(self, route_path: str, retention: RetentionPolicy) -> None:
        route_dir = self.route_dir(route_path)
        if route_dir.is_dir():
            runs: list[Path] = []
            stray = 0
            for entry in route_dir.iterdir():
                if not entry.is_file():
                    continue
                if self._run_file.fullmatch(entry.name):
                    runs.append(entry)
                else:
                    entry.unlink()
                    stray += 1

            runs.sort(key=lambda path: (path.stat().st_mtime_ns, path.name), reverse=True)
            expired = runs[retention.logs_to_keep :]
            for path in expired:
                path.unlink()
            if stray or expired:
                logger.info("run_log_pruned", route=route_path, removed=len(expired), stray=stray)

            if not any(route_dir.iterdir()):
                route_dir.rmdir()

        if self._log_dir.is_dir() and not any(path.is_file() for path in self._log_dir.rglob("*")):
            shutil.rmtree(self._log_dir)

    def list_runs(self, route_path: str) -> list[RunLogEntry]:
        route_dir = self.route_dir(route_path)
        if not route_dir.is_dir():
            return []

        entries: list[RunLogEntry] = []
        for path in route_dir.iterdir():
            if not path.is_file() or not self._run_file.fullmatch(path.name):
                continue
            run_id = path.name[: -len(self._log_ext)]
            timestamp = parse_run_id(run_id)
            if timestamp is None:
                continue
            entries.append(
                RunLogEntry(
                    route_path=route_path,
                    run_id=run_id,
                    timestamp=timestamp,
                    link=f"{route_path}/runs/{run_id}",
                )
            )
        return sorted(entries, key=lambda entry: entry.run_id, reverse=True)

    def read_run(self, route_path: str, run_id: str) -> ExecutionResult | None:
        if not _RUN_ID.fullmatch(run_id):
            return None
        path = self.route_dir(route_path) / f"{run_id}{self._log_ext}"
        if not path.is_file():
            return None

        with path.open("rb") as f:
            raw = f.read()
        try:
            payload = orjson.loads(raw)
            if self._validator is not None:
                self._validator.validate_run_record(payload)
            return ExecutionResult.model_validate(payload)
        except (orjson.JSONDecodeError, SchemaValidationError, ValidationError) as exc:
            raise RunHistoryError(
                "RUN_LOG_CORRUPT",
                f"run log cannot be read: {path.name}",
                payload={"route_path": route_path, "run_id": run_id},
            ) from exc

    def _write(self, route_path: str, result: ExecutionResult) -> Path:
        payload = result.model_dump(mode="json")
        if self._validator is not None:
            self._validator.validate_run_record(payload)

        route_dir = self.route_dir(route_path)
        route_dir.mkdir(parents=True, exist_ok=True)
        path = route_dir / f"{run_id_for(self._clock())}{self._log_ext}"
        # Exclusive create: a same-millisecond collision is reported, not merged.
        with path.open("xb") as f:
            f.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
            f.write(b"\n")
        return path
