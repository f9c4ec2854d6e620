from __future__ import annotations

import io
import sys
import traceback
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from threading import Lock
from typing import Any, TextIO

import orjson

from commandsite.core.logging import logger
from commandsite.models.routes import CommandNode
from commandsite.models.runs import ExecutionResult
from commandsite.services.commands.arguments import bind

_capture: ContextVar[tuple[io.StringIO, io.StringIO] | None] = ContextVar(
    "commandsite_capture", default=None
)
_install_lock = Lock()
_active_captures = 0
_saved_streams: tuple[TextIO, TextIO] | None = None


class Console:
    """Output sink passed to commands that declare a keyword-only ``console`` parameter."""

    def __init__(self, out: io.StringIO, err: io.StringIO) -> None:
        self.out = out
        self.err = err

    def print(self, *values: Any, sep: str = " ", end: str = "\n", error: bool = False) -> None:
        target = self.err if error else self.out
        target.write(sep.join(str(value) for value in values) + end)


class _StreamRouter:
    """Stands in for sys.stdout/sys.stderr while captures are active.

    Writes go to the capture buffer of the current context, or to the original
    stream when the current context has none.
    """

    def __init__(self, fallback: TextIO, index: int) -> None:
        self._fallback = fallback
        self._index = index
        self.buffer = _BinaryRouter(fallback, index)

    def write(self, data: str) -> int:
        buffers = _capture.get()
        if buffers is None:
            return self._fallback.write(data)
        return buffers[self._index].write(data)

    def writelines(self, lines: Iterator[str]) -> None:
        for line in lines:
            self.write(line)

    def flush(self) -> None:
        if _capture.get() is None:
            self._fallback.flush()

    def isatty(self) -> bool:
        return _capture.get() is None and self._fallback.isatty()

    def __getattr__(self, name: str) -> Any:
        return getattr(self._fallback, name)


class _BinaryRouter:
    """Binary side of a routed stream; captured bytes are decoded into the text buffer."""

    def __init__(self, fallback: TextIO, index: int) -> None:
        self._fallback = fallback
        self._index = index

    def write(self, data: bytes) -> int:
        buffers = _capture.get()
        if buffers is None:
            return self._fallback.buffer.write(data)
        encoding = getattr(self._fallback, "encoding", None) or "utf-8"
        buffers[self._index].write(bytes(data).decode(encoding, errors="replace"))
        return len(data)

    def flush(self) -> None:
        if _capture.get() is None:
            self._fallback.buffer.flush()

    def __getattr__(self, name: str) -> Any:
        return getattr(self._fallback.buffer, name)


def _install_router() -> None:
    global _active_captures, _saved_streams
    with _install_lock:
        if _active_captures == 0:
            _saved_streams = (sys.stdout, sys.stderr)
            sys.stdout = _StreamRouter(sys.stdout, 0)
            sys.stderr = _StreamRouter(sys.stderr, 1)
        _active_captures += 1


def _uninstall_router() -> None:
    global _active_captures, _saved_streams
    with _install_lock:
        _active_captures -= 1
        if _active_captures == 0 and _saved_streams is not None:
            sys.stdout, sys.stderr = _saved_streams
            _saved_streams = None


@contextmanager
def capture_output() -> Iterator[tuple[io.StringIO, io.StringIO]]:
    """Collect stdout/stderr writes made in the current context.

    The process streams are put back once the last active capture exits,
    whatever way the block is left.
    """
    out, err = io.StringIO(), io.StringIO()
    _install_router()
    token = _capture.set((out, err))
    try:
        yield out, err
    finally:
        _capture.reset(token)
        _uninstall_router()


def execute(
    command: CommandNode,
    tokens: Sequence[str],
    params_used: Mapping[str, Any] | None = None,
) -> ExecutionResult:
    """Run one command synchronously with captured output.

    Exceptions raised while binding or running the command become an error
    result; output written before the failure is kept. There is no timeout.
    """
    arguments = list(tokens)
    timestamp = datetime.now(UTC)
    error: BaseException | None = None
    stack_trace: str | None = None

    with capture_output() as (out, err):
        try:
            args, kwargs = bind(command, arguments)
            if command.wants_console:
                kwargs["console"] = Console(out, err)
            value = command.handler(*args, **kwargs)
            if value is not None:
                out.write(render_value(value))
                out.write("\n")
        except (Exception, SystemExit) as exc:
            error = exc
            stack_trace = traceback.format_exc()

    result = ExecutionResult(
        route_path=command.path,
        params_used=dict(params_used or {}),
        arguments=arguments,
        stdout=out.getvalue(),
        stderr=err.getvalue(),
        has_error=error is not None,
        error_message=_error_message(error) if error is not None else None,
        stack_trace=stack_trace,
        timestamp=timestamp,
    )
    if error is None:
        logger.info("command_executed", route=command.path, arguments=len(arguments))
    else:
        logger.warning(
            "command_failed",
            route=command.path,
            error_type=type(error).__name__,
            error_message=result.error_message,
        )
    return result


def render_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return orjson.dumps(value, default=str, option=orjson.OPT_NON_STR_KEYS).decode("utf-8")
    except TypeError:
        return repr(value)


def _error_message(error: BaseException) -> str:
    message = str(error)
    return message or type(error).__name__
