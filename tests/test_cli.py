"""
Tests for the command line entry point (import/export subcommands).
"""

from __future__ import annotations

from pathlib import Path

import pytest

from jugglecards.__main__ import build_settings, main, parse_args
from jugglecards.core.csv_codec import CSV_COLUMNS

HEADER = ",".join(CSV_COLUMNS)


def test_parse_args_defaults() -> None:
    args = parse_args([])
    assert args.command is None
    assert args.verbose is False


def test_build_settings_overrides(tmp_path: Path) -> None:
    args = parse_args(["--db", str(tmp_path / "x.sqlite3"), "serve", "--port", "9999"])
    settings = build_settings(args)
    assert settings.store.path == tmp_path / "x.sqlite3"
    assert settings.web.port == 9999


def test_export_rejects_bad_balls() -> None:
    with pytest.raises(SystemExit):
        parse_args(["export", "--balls", "6"])


def test_import_then_export(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    store = tmp_path / "moves.sqlite3"
    source = tmp_path / "in.csv"
    source.write_text(f"{HEADER}\nShower,2,3,,,,\nFountain,,4,,,,\n", encoding="utf-8")

    assert main(["--db", str(store), "import", str(source)]) == 0
    assert "added=2" in capsys.readouterr().out

    assert main(["--db", str(store), "export", "--balls", "4"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == HEADER
    assert [line.split(",")[0] for line in lines[1:]] == ["Fountain"]

    target = tmp_path / "out.csv"
    assert main(["--db", str(store), "export", str(target)]) == 0
    assert target.read_text(encoding="utf-8").count("\n") == 3


def test_import_missing_file(tmp_path: Path) -> None:
    store = tmp_path / "moves.sqlite3"
    assert main(["--db", str(store), "import", str(tmp_path / "nope.csv")]) == 1
