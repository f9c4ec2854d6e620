from __future__ import annotations

import json
from pathlib import Path

from commandsite.cli import main
from commandsite.core.config import load_settings

ROOT = "tests.fixtures.sample_commands"


def _base_args(tmp_path: Path) -> list[str]:
    return ["--log-dir", str(tmp_path / "logs"), "--logs-to-keep", "2"]


def _read_json_output(capsys) -> dict:  # noqa: ANN001
    out = capsys.readouterr().out.strip()
    assert out
    return json.loads(out)


def test_cli_health(capsys) -> None:  # noqa: ANN001
    assert main(["health", "--output-json"]) == 0
    payload = _read_json_output(capsys)
    assert payload["status"] == "ok"
    assert payload["component"] == "commandsite-cli"


def test_cli_routes_lists_the_tree(tmp_path: Path, capsys) -> None:  # noqa: ANN001
    code = main(_base_args(tmp_path) + ["routes", "--output-json", ROOT])
    assert code == 0
    payload = _read_json_output(capsys)
    links = [route["link"] for route in payload["routes"]]
    assert payload["count"] == 10
    assert links[:3] == ["/sample_commands", "/sample_commands/greet", "/sample_commands/add"]

    assert main(_base_args(tmp_path) + ["routes", ROOT]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split() == ["module", "/sample_commands"]
    assert lines[-1].split() == ["page", "/help"]


def test_cli_run_and_inspect_history(tmp_path: Path, capsys) -> None:  # noqa: ANN001
    args = _base_args(tmp_path)

    assert main(args + ["run", ROOT, "greet", "Ada"]) == 0
    assert capsys.readouterr().out == "Hello Ada\n"

    assert main(args + ["runs", "list", ROOT, "/sample_commands/greet", "--output-json"]) == 0
    listing = _read_json_output(capsys)
    assert listing["route_path"] == "/sample_commands/greet"
    assert listing["count"] == 1
    run_id = listing["run_ids"][0]

    assert main(args + ["runs", "show", ROOT, "greet", run_id, "--output-json"]) == 0
    detail = _read_json_output(capsys)
    assert detail["stdout"] == "Hello Ada\n"
    assert detail["arguments"] == ["Ada"]
    assert detail["params_used"] == {}


def test_cli_run_passes_flags_after_separator(tmp_path: Path, capsys) -> None:  # noqa: ANN001
    code = main(_base_args(tmp_path) + ["run", "--output-json", ROOT, "add", "--", "2", "3", "--verbose"])
    assert code == 0
    payload = _read_json_output(capsys)
    assert payload["arguments"] == ["2", "3", "--verbose"]
    assert payload["stdout"] == "2 + 3\n5\n"


def test_cli_run_reports_command_errors(tmp_path: Path, capsys) -> None:  # noqa: ANN001
    code = main(_base_args(tmp_path) + ["--no-log-commands", "run", ROOT, "fail", "oops"])
    assert code == 1
    captured = capsys.readouterr()
    assert captured.out == "oops\n"
    assert "Check out this error!" in captured.err
    assert not (tmp_path / "logs").exists()


def test_cli_unknown_route_and_run(tmp_path: Path, capsys) -> None:  # noqa: ANN001
    assert main(_base_args(tmp_path) + ["run", "--output-json", ROOT, "missing"]) == 2
    assert _read_json_output(capsys)["error_code"] == "ROUTE_NOT_FOUND"

    assert main(_base_args(tmp_path) + ["runs", "show", ROOT, "greet", "2001-01-01_00-00-00-000", "--output-json"]) == 2
    assert _read_json_output(capsys)["error_code"] == "RUN_NOT_FOUND"


def test_cli_unresolvable_root(tmp_path: Path, capsys) -> None:  # noqa: ANN001
    code = main(_base_args(tmp_path) + ["routes", "--output-json", "tests.fixtures.nothing_here"])
    assert code == 2
    payload = _read_json_output(capsys)
    assert payload["error_code"] == "UNRESOLVABLE_NAMESPACE"
    assert payload["target"] == "tests.fixtures.nothing_here"


def test_cli_config_write(tmp_path: Path, capsys) -> None:  # noqa: ANN001
    target = tmp_path / "config" / "commandsite.json"

    code = main(["--logs-to-keep", "4", "--log-ext", ".txt", "config", "write", str(target), "--output-json"])
    assert code == 0
    assert _read_json_output(capsys)["written"] is True

    loaded = load_settings(target)
    assert loaded.logs_to_keep == 4
    assert loaded.log_ext == ".txt"


def test_cli_rejects_invalid_settings(capsys) -> None:  # noqa: ANN001
    code = main(["--logs-to-keep", "-1", "health", "--output-json"])
    assert code == 2
    payload = _read_json_output(capsys)
    assert payload["error_code"] == "INVALID_SETTINGS"
    assert [row["field"] for row in payload["errors"]] == ["logs_to_keep"]
