from __future__ import annotations

import csv
import os
import stat
from pathlib import Path

import pytest

from iqfetch.errors import ReportWriteError
from iqfetch.report import csv_writer
from iqfetch.report.csv_writer import write_csv
from iqfetch.report.types import CSV_HEADERS, FlatRow

HEADER_LINE = "No.,Application,Organization,Policy,Format,Component,Threat,Policy/Action,Constraint Name,Condition,CVE"


def _row(app: str = "apid-1", constraint: str = "Medium risk CVSS score") -> FlatRow:
    return FlatRow(
        application=app,
        organization="personal",
        policy="Security-Medium",
        format="maven",
        component="comp-A",
        threat=7,
        policy_action="Security-7",
        constraint_name=constraint,
        condition="Severity >= 4 | Severity < 7",
    )


def _leftover_temp_files(directory: Path) -> list[Path]:
    return sorted(directory.glob(".tmp-*.csv"))


def test_writes_header_and_numbered_rows(tmp_path: Path) -> None:
    target = tmp_path / "out" / "report.csv"

    write_csv(target, [_row("a"), _row("b"), _row("c")])

    lines = target.read_text(encoding="utf-8").splitlines()
    assert lines[0] == HEADER_LINE
    assert len(lines) == 4
    with target.open(encoding="utf-8", newline="") as handle:
        records = list(csv.reader(handle))
    assert records[0] == list(CSV_HEADERS)
    assert [r[0] for r in records[1:]] == ["1", "2", "3"]
    assert [r[1] for r in records[1:]] == ["a", "b", "c"]
    assert records[1][9] == "Severity >= 4 | Severity < 7"
    assert _leftover_temp_files(target.parent) == []


def test_zero_rows_writes_header_only(tmp_path: Path) -> None:
    target = tmp_path / "empty.csv"

    write_csv(target, [])

    assert target.read_text(encoding="utf-8") == HEADER_LINE + "\n"


def test_fields_with_commas_are_quoted(tmp_path: Path) -> None:
    target = tmp_path / "quoted.csv"
    row = FlatRow("app", "Org, Inc.", "p", "maven", "c", 1, "Security-1", "n", "x | y")

    write_csv(target, [row])

    with target.open(encoding="utf-8", newline="") as handle:
        records = list(csv.reader(handle))
    assert records[1][2] == "Org, Inc."


def test_replaces_existing_file(tmp_path: Path) -> None:
    target = tmp_path / "report.csv"
    target.write_text("stale\n", encoding="utf-8")

    write_csv(target, [_row()])

    assert target.read_text(encoding="utf-8").startswith(HEADER_LINE)


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_sets_fixed_permissions(tmp_path: Path) -> None:
    target = tmp_path / "report.csv"

    write_csv(target, [_row()])

    assert stat.S_IMODE(target.stat().st_mode) == 0o644


def test_rename_failure_leaves_destination_untouched(tmp_path: Path, monkeypatch) -> None:
    target = tmp_path / "report.csv"
    target.write_text("previous\n", encoding="utf-8")

    def failing_replace(src, dst):
        raise OSError("rename refused")

    monkeypatch.setattr(csv_writer.os, "replace", failing_replace)

    with pytest.raises(ReportWriteError) as excinfo:
        write_csv(target, [_row()])

    assert excinfo.value.step == "atomic rename"
    assert target.read_text(encoding="utf-8") == "previous\n"
    assert _leftover_temp_files(tmp_path) == []


def test_fsync_failure_removes_temp_file(tmp_path: Path, monkeypatch) -> None:
    target = tmp_path / "report.csv"

    def failing_fsync(fd):
        raise OSError("disk gone")

    monkeypatch.setattr(csv_writer.os, "fsync", failing_fsync)

    with pytest.raises(ReportWriteError, match="fsync temp") as excinfo:
        write_csv(target, [_row()])

    assert isinstance(excinfo.value.__cause__, OSError)
    assert not target.exists()
    assert _leftover_temp_files(tmp_path) == []


def test_directory_creation_failure_names_step(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(ReportWriteError) as excinfo:
        write_csv(blocker / "report.csv", [_row()])

    assert excinfo.value.step == "prepare output dir"
