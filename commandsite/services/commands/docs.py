from __future__ import annotations

import inspect
import re
from collections.abc import Iterable

from commandsite.models.routes import CommandDoc, DeclaredType, ParamDoc, ValueKind

_TYPE_TOKEN = re.compile(r"\[([^\[\]]*)\]")
_PARAM_TAG = "@param"
_RETURN_TAGS = ("@return", "@returns")

_WIDGETS: dict[str, str] = {
    "string": "text",
    "text": "textarea",
    "integer": "number",
    "fixnum": "number",
    "number": "number",
    "float": "number",
    "range": "range",
    "tel": "tel",
    "telephone": "tel",
    "phone-number": "tel",
    "boolean": "checkbox",
    "checkbox": "checkbox",
    "url": "url",
    "email": "email",
    "file": "file",
    "path": "file",
    "image": "file",
    "color": "color",
    "password": "password",
    "date": "date",
    "datetime": "datetime",
    "datetime-local": "datetime-local",
    "month": "month",
    "week": "week",
    "time": "time",
    "timestamp": "time",
    "array": "array",
    "list": "array",
    "rest": "array",
    "textarea": "textarea",
}

_VALUE_KINDS: dict[str, ValueKind] = {
    "integer": "number",
    "fixnum": "number",
    "number": "number",
    "float": "number",
    "range": "number",
    "boolean": "boolean",
    "checkbox": "boolean",
    "array": "list",
    "list": "list",
    "rest": "list",
}

_STRING_WIDGETS = {
    "text",
    "textarea",
    "tel",
    "url",
    "email",
    "file",
    "color",
    "password",
    "date",
    "datetime",
    "datetime-local",
    "month",
    "week",
    "time",
}


def widget_for(documented_type: str | None) -> str:
    """Input widget for a documented type; unknown types pass through verbatim."""
    if not documented_type:
        return "text"
    return _WIDGETS.get(documented_type.strip().lower(), documented_type)


def value_kind_for(documented_type: str | None) -> ValueKind:
    if not documented_type or not documented_type.strip():
        return "absent"
    normalized = documented_type.strip().lower()
    if normalized in _VALUE_KINDS:
        return _VALUE_KINDS[normalized]
    if _WIDGETS.get(normalized) in _STRING_WIDGETS:
        return "string"
    return "passthrough"


def declared_type(documented_type: str | None) -> DeclaredType:
    raw = (documented_type or "").strip()
    return DeclaredType(raw=raw, kind=value_kind_for(raw), widget=widget_for(raw))


def module_doc(raw: str | None) -> str:
    """First paragraph of a namespace doc, joined onto one line."""
    text = inspect.cleandoc(str(raw)) if raw else ""
    paragraph = text.strip().split("\n\n", 1)[0]
    return " ".join(line.strip() for line in paragraph.splitlines() if line.strip())


def parse(raw_comment: str | None, param_names: Iterable[str] = ()) -> CommandDoc:
    """Split a command docstring into summary lines, parameter docs and return docs.

    Parameter lines carry a bracketed type next to the parameter name, in either
    ``name [Type] text`` or ``[Type] name text`` order, optionally behind an
    ``@param`` tag. Untagged lines only count when the name is one of
    ``param_names``. Lines that follow a parameter line without a tag of their own
    continue its text. Every name in ``param_names`` gets an entry; names without
    a matching line default to an empty type and text. Never raises.
    """
    names = tuple(param_names)
    text = inspect.cleandoc(str(raw_comment)) if raw_comment else ""

    summary: list[str] = []
    returns: list[str] = []
    param_lines: list[str] = []
    in_params = False

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if line.startswith(_PARAM_TAG):
            param_lines.append(line[len(_PARAM_TAG) :].strip())
            in_params = True
            continue
        if line.startswith(_RETURN_TAGS):
            tag = line.split(" ", 1)[0]
            returns.append(line[len(tag) :].strip())
            in_params = False
            continue
        if line.startswith("@"):
            in_params = False
            continue
        if _is_param_line(line, names):
            param_lines.append(line)
            in_params = True
            continue
        if in_params and line:
            param_lines[-1] = f"{param_lines[-1]} {line}"
            continue
        if not in_params:
            summary.append(line)

    params: dict[str, ParamDoc] = {}
    for name in names:
        line = next((line for line in param_lines if name in line.split()[:2]), None)
        params[name] = _param_doc(line, name) if line is not None else ParamDoc()
    for line in param_lines:
        name = _documented_name(line)
        if name and name not in params:
            params[name] = _param_doc(line, name)

    return CommandDoc(summary=_trim_blank_edges(summary), params=params, returns=returns)


def _is_param_line(line: str, names: tuple[str, ...]) -> bool:
    words = line.split()[:2]
    if len(words) < 2:
        return False
    first, second = words
    if _TYPE_TOKEN.fullmatch(first):
        return second in names
    if _TYPE_TOKEN.fullmatch(second):
        return first in names
    return False


def _documented_name(line: str) -> str | None:
    words = line.split()
    for word in words[:2]:
        if not _TYPE_TOKEN.fullmatch(word):
            return word
    return None


def _param_doc(line: str, name: str) -> ParamDoc:
    match = _TYPE_TOKEN.search(line)
    doc_type = match.group(1).strip() if match else ""
    remainder = _TYPE_TOKEN.sub("", line, count=1)
    remainder = re.sub(rf"(?<!\S){re.escape(name)}(?!\S)", "", remainder, count=1).strip()
    return ParamDoc(type=doc_type, text=remainder[:1].upper() + remainder[1:])


def _trim_blank_edges(lines: list[str]) -> list[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start]:
        start += 1
    while end > start and not lines[end - 1]:
        end -= 1
    return lines[start:end]
