# SPDX-License-Identifier: MIT
"""End-to-end tests for the ``hexref`` command line."""

import csv
import io
import json
import sys
from pathlib import Path

import pytest

import cli.main as cli


@pytest.fixture(autouse=True)
def _quiet_logfire(monkeypatch):
    """Keep console telemetry out of captured output."""
    monkeypatch.setattr(cli, "init_logfire", lambda *args, **kwargs: None)
    monkeypatch.setattr(sys, "stdin", io.StringIO())


def _run(capsys, *argv: str) -> list[str]:
    cli.main(list(argv))
    return capsys.readouterr().out.strip().splitlines()


ALLOCATE = (
    "allocate",
    "--type",
    "M",
    "--date",
    "2024-01-15",
    "--jurisdiction",
    "CH-BL",
    "--secret",
    "s3cret",
)


def test_allocate_prints_reference(capsys) -> None:
    first = _run(capsys, *ALLOCATE)[-1]
    second = _run(capsys, *ALLOCATE)[-1]
    assert len(first) == 8
    assert first.endswith("M")
    assert first == second


def test_allocate_json_reports_reuse(capsys) -> None:
    first = json.loads("\n".join(_run(capsys, *ALLOCATE, "--json")))
    second = json.loads("\n".join(_run(capsys, *ALLOCATE, "--json")))
    assert first["reused"] is False
    assert second["reused"] is True
    assert second["id"] == first["id"]
    assert first["jurisdiction"] == "CH-BL"
    assert first["channel"] == "WEB"
    assert first["type"] == "M"
    assert "secret" not in first


def test_allocate_reads_secret_from_env(capsys, monkeypatch) -> None:
    flagged = _run(capsys, *ALLOCATE)[-1]
    monkeypatch.setenv("HEXREF_SECRET", "s3cret")
    from_env = _run(
        capsys,
        "allocate",
        "--type",
        "M",
        "--date",
        "2024-01-15",
        "--jurisdiction",
        "ch-bl",
    )[-1]
    assert from_env == flagged


def test_allocate_without_secret_fails(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["allocate", "--type", "M"])
    assert excinfo.value.code == 1
    captured = capsys.readouterr()
    assert "error: Allocation failed" in captured.err
    assert captured.out == ""


def test_allocate_rejects_unknown_type(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["allocate", "--type", "Z", "--secret", "s3cret"])
    assert excinfo.value.code == 1
    assert "error: Allocation failed" in capsys.readouterr().err


def test_history_lists_newest_first(capsys) -> None:
    assert _run(capsys, "history") == ["No references allocated yet."]
    first = _run(capsys, *ALLOCATE)[-1]
    second = _run(capsys, *ALLOCATE[:-3], "CH-GE", "--secret", "s3cret")[-1]
    lines = _run(capsys, "history")
    assert lines[0].split()[:3] == ["ID", "Type", "Date"]
    assert lines[1].startswith(second)
    assert lines[2].startswith(first)
    entries = json.loads("\n".join(_run(capsys, "history", "--json", "--limit", "1")))
    assert [entry["id"] for entry in entries] == [second]


def test_export_to_stdout(capsys) -> None:
    reference = _run(capsys, *ALLOCATE)[-1]
    lines = _run(capsys, "export", "--output-file", "-")
    rows = list(csv.reader(lines))
    assert rows[0] == ["id", "type", "date", "juridiction", "canal", "createdAt"]
    assert rows[1][:5] == [reference, "M", "2024-01-15", "CH-BL", "WEB"]
    assert rows[1][5].endswith("Z")


def test_export_to_file(capsys, tmp_path) -> None:
    _run(capsys, *ALLOCATE)
    target = tmp_path / "out" / "history.csv"
    assert _run(capsys, "export", "--output-file", str(target)) == [str(target)]
    text = target.read_text(encoding="utf-8")
    assert text.startswith('"id","type","date","juridiction","canal","createdAt"\n')
    assert not text.endswith("\n")


def test_export_default_name(capsys, tmp_path) -> None:
    [name] = _run(capsys, "export")
    assert name.startswith("hexref_history_")
    assert (tmp_path / name).read_text(encoding="utf-8").count("\n") == 0


def test_verify_reports_consistent_store(capsys) -> None:
    _run(capsys, *ALLOCATE)
    assert _run(capsys, "verify") == ["Store is consistent."]


def test_verify_flags_broken_store(capsys, tmp_path) -> None:
    store_dir = tmp_path / "store"
    store_dir.mkdir(parents=True, exist_ok=True)
    (store_dir / "store.json").write_text(
        json.dumps({"base_index": {"v1|M|2024-01-15||WEB": "1234567M"}}),
        encoding="utf-8",
    )
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["verify"])
    assert excinfo.value.code == 1
    assert "unknown reference" in capsys.readouterr().out


def test_corrupt_store_exits_with_error(capsys, tmp_path) -> None:
    store_dir = tmp_path / "store"
    store_dir.mkdir(parents=True, exist_ok=True)
    (store_dir / "store.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["history"])
    assert excinfo.value.code == 1
    assert "error: Command failed" in capsys.readouterr().err


def test_store_dir_flag_overrides_env(capsys, tmp_path) -> None:
    other = tmp_path / "other"
    _run(capsys, *ALLOCATE, "--store-dir", str(other))
    assert (other / "store.json").exists()
    assert not Path(tmp_path / "store" / "store.json").exists()


def test_version_flag(capsys) -> None:
    [line] = _run(capsys, "--version")
    assert line.startswith("hexref ")


def test_diagnostics_never_prints_secret(capsys, monkeypatch) -> None:
    monkeypatch.setenv("HEXREF_SECRET", "s3cret")
    output = "\n".join(_run(capsys, "--diagnostics"))
    assert "HEXREF_SECRET present" in output
    assert "s3cret" not in output


def test_missing_command_prints_help(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])
    assert excinfo.value.code == 1
    assert "usage: hexref" in capsys.readouterr().out


def test_configured_log_level_reaches_logfire(capsys, monkeypatch) -> None:
    levels: list[str] = []
    monkeypatch.setattr(
        cli, "init_logfire", lambda token, level: levels.append(level)
    )
    monkeypatch.setenv("HEXREF_LOG_LEVEL", "debug")
    _run(capsys, "history")
    _run(capsys, "history", "-q")
    assert levels == ["debug", "info"]


def test_history_limit_must_be_positive(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["history", "--limit", "-1"])
    assert excinfo.value.code == 2
    assert "must be at least 1" in capsys.readouterr().err
