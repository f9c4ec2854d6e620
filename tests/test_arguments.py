from __future__ import annotations

import pytest

from commandsite.models.routes import CommandNode, ParameterDefinition
from commandsite.services.commands.arguments import ArgumentBindingError, bind, coerce
from commandsite.services.commands.introspector import build_command, discover
from tests.fixtures import sample_commands


def _param(name: str, position: int, *, required: bool) -> ParameterDefinition:
    return ParameterDefinition(name=name, position=position, required=required)


ABC = [_param("a", 0, required=True), _param("b", 1, required=True), _param("c", 2, required=False)]


def _command(name: str) -> CommandNode:
    root = discover(sample_commands)
    return next(command for command in root.commands() if command.name == name)


def test_coerce_puts_required_values_first_then_flags() -> None:
    assert coerce(ABC, {"a": "1", "b": "2", "c": "x"}) == ["1", "2", "--c=x"]
    assert coerce(ABC, {"c": "x", "b": "2", "a": "1"}) == ["1", "2", "--c=x"]


def test_coerce_without_optional_values() -> None:
    assert coerce(ABC, {"a": "1", "b": "2"}) == ["1", "2"]
    assert coerce(ABC, {}) == []


def test_coerce_names_required_values_after_a_gap() -> None:
    assert coerce(ABC, {"b": "2"}) == ["--b=2"]


def test_coerce_keeps_required_values_verbatim_and_strips_flag_whitespace() -> None:
    tokens = coerce(ABC, {"a": "hello world", "b": " 2 ", "c": "x y\tz"})

    assert tokens == ["hello world", " 2 ", "--c=xyz"]


def test_coerce_turns_unknown_keys_into_flags() -> None:
    assert coerce(ABC, {"a": "1", "b": "2", "zzz": "9"}) == ["1", "2", "--zzz=9"]


def test_coerce_renders_lists_and_booleans() -> None:
    assert coerce(ABC, {"a": "1", "b": "2", "c": ["p", "q"]}) == ["1", "2", "--c=p,q"]
    assert coerce(ABC, {"a": "1", "b": "2", "c": True}) == ["1", "2", "--c=true"]


def test_bind_converts_documented_types() -> None:
    add = _command("add")

    assert bind(add, ["1", "2"]) == ([1, 2], {})
    assert bind(add, ["1.5", "2", "--verbose"]) == ([1.5, 2, True], {})
    assert bind(add, ["--b=4", "3", "--verbose=no"]) == ([3, 4, False], {})


def test_bind_skips_blank_optional_non_string_values() -> None:
    add = _command("add")

    assert bind(add, ["1", "2", "--verbose="]) == ([1, 2], {})


def test_bind_keeps_blank_string_values() -> None:
    echo = _command("echo_options")

    assert bind(echo, ["hi", "--test-option="]) == (["hi", ""], {})


def test_bind_fills_defaults_before_variadic_values() -> None:
    collect = _command("collect")

    assert bind(collect, ["a", "b", "c"]) == (["a", "b", "c"], {})
    assert bind(collect, ["--rest=b,c"]) == (["x", "b", "c"], {})
    assert bind(collect, []) == ([], {})


@pytest.mark.parametrize(
    ("name", "tokens", "message"),
    [
        ("greet", [], "missing required parameter: name"),
        ("greet", ["a", "b"], "too many arguments for greet: b"),
        ("greet", ["--nope=1"], "unknown parameter: nope"),
        ("add", ["x", "2"], "invalid number for a: 'x'"),
        ("add", ["1", "2", "--verbose=maybe"], "invalid boolean for verbose: 'maybe'"),
    ],
)
def test_bind_errors(name: str, tokens: list[str], message: str) -> None:
    with pytest.raises(ArgumentBindingError) as exc_info:
        bind(_command(name), tokens)
    assert str(exc_info.value) == message


def test_bind_passes_unknown_flags_to_keyword_catch_all() -> None:
    def configure(target, **options):
        return target, options

    command = build_command(configure, "configure", "/tools")

    assert command.accepts_extra is True
    assert bind(command, ["prod", "--retries=3", "--dry-run"]) == (
        ["prod"],
        {"retries": "3", "dry_run": "true"},
    )


def test_coerced_submission_binds_to_handler_arguments() -> None:
    echo = _command("echo_options")
    tokens = coerce(echo.parameters, {"test_arg": "hello", "test_option": "a b"})

    assert tokens == ["hello", "--test_option=ab"]
    assert bind(echo, tokens) == (["hello", "ab"], {})


def test_coerce_names_required_values_that_look_like_flags() -> None:
    assert coerce(ABC, {"a": "--x", "b": "2"}) == ["2", "--a=--x"]
    assert coerce(ABC, {"a": "--loud=yes", "b": "2", "c": "z"}) == ["2", "--a=--loud=yes", "--c=z"]


def test_flag_like_required_value_binds_to_its_own_parameter() -> None:
    greet = _command("greet")
    tokens = coerce(greet.parameters, {"name": "--loud"})

    assert tokens == ["--name=--loud"]
    assert bind(greet, tokens) == (["--loud"], {})

    echo = _command("echo_options")
    assert bind(echo, coerce(echo.parameters, {"test_arg": "--test_option=yes"})) == (
        ["--test_option=yes"],
        {},
    )
