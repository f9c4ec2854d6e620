from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from commandsite.models.routes import CommandNode, ParameterDefinition

_WHITESPACE = re.compile(r"\s+")
_TRUE_WORDS = {"true", "yes", "on", "1", "y", "t"}
_FALSE_WORDS = {"false", "no", "off", "0", "n", "f"}


class ArgumentBindingError(ValueError):
    """Raised when argument tokens cannot be bound to a command's parameters."""


def coerce(param_defs: Iterable[ParameterDefinition], submitted: Mapping[str, Any]) -> list[str]:
    """Turn a flat submission map into the token list a command invocation parses.

    Required values are emitted verbatim in declaration order. Once a required
    value is missing, the ones after it are emitted as ``--name=value`` so they
    still bind by name instead of sliding into the wrong position. A required
    value that itself starts with ``--`` is also emitted by name, so it can never
    be read back as a flag. Optional and unknown keys become ``--name=value``
    flags, whitespace removed, in submission order.
    """
    params = sorted(param_defs, key=lambda param: param.position)
    required = {param.name for param in params if param.required}

    positional: list[str] = []
    named: list[str] = []
    gap = False
    for param in params:
        if not param.required:
            continue
        if param.name not in submitted:
            gap = True
            continue
        value = _as_text(submitted[param.name])
        if gap or param.keyword_only or value.startswith("--"):
            named.append(f"--{param.name}={value}")
        else:
            positional.append(value)

    for key, value in submitted.items():
        if key in required:
            continue
        named.append(f"--{key}={_WHITESPACE.sub('', _as_text(value))}")

    return positional + named


def bind(command: CommandNode, tokens: Sequence[str]) -> tuple[list[Any], dict[str, Any]]:
    """Parse argument tokens into ``(args, kwargs)`` for ``command.handler``.

    Bare tokens fill positional parameters in declaration order and then spill
    into ``*args``; ``--name=value`` sets a parameter by name and a bare
    ``--name`` means ``true``. Values are converted by each parameter's value kind.
    """
    values: dict[str, Any] = {}
    rest: list[Any] = []
    extra: dict[str, Any] = {}
    free: list[str] = []

    for token in tokens:
        if not (token.startswith("--") and len(token) > 2):
            free.append(token)
            continue
        name, separator, raw = token[2:].partition("=")
        name = name.replace("-", "_")
        value = raw if separator else "true"
        param = command.parameter(name)
        if param is None:
            if not command.accepts_extra:
                raise ArgumentBindingError(f"unknown parameter: {name}")
            extra[name] = value
        elif param.variadic:
            rest.extend(_convert(param, value))
        elif value == "" and not param.required and param.declared_type.kind != "string":
            # blank optional field, keep the declared default
            continue
        else:
            values[name] = _convert(param, value)

    slots = [
        param
        for param in command.parameters
        if not param.variadic and not param.keyword_only and param.name not in values
    ]
    variadic = next((param for param in command.parameters if param.variadic), None)
    for token in free:
        if slots:
            param = slots.pop(0)
            values[param.name] = _convert(param, token)
        elif variadic is not None:
            rest.append(token)
        else:
            raise ArgumentBindingError(f"too many arguments for {command.name}: {token}")

    for param in command.parameters:
        if param.required and param.name not in values:
            raise ArgumentBindingError(f"missing required parameter: {param.name}")

    positional_params = [
        param for param in command.parameters if not param.variadic and not param.keyword_only
    ]
    if rest:
        last = len(positional_params)
    else:
        filled = [index for index, param in enumerate(positional_params) if param.name in values]
        last = filled[-1] + 1 if filled else 0

    args: list[Any] = []
    for param in positional_params[:last]:
        args.append(values.pop(param.name) if param.name in values else param.default)
    args.extend(rest)

    kwargs = {**values, **extra}
    return args, kwargs


def _convert(param: ParameterDefinition, raw: str) -> Any:
    kind = param.declared_type.kind
    if param.variadic or kind == "list":
        return [item.strip() for item in raw.split(",")] if raw else []
    if kind == "number":
        try:
            return int(raw)
        except ValueError:
            pass
        try:
            return float(raw)
        except ValueError:
            raise ArgumentBindingError(f"invalid number for {param.name}: {raw!r}") from None
    if kind == "boolean":
        lowered = raw.strip().lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        raise ArgumentBindingError(f"invalid boolean for {param.name}: {raw!r}")
    return raw


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_as_text(item) for item in value)
    return str(value)
