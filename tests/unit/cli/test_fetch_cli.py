"""Tests for the iqfetch CLI."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from typer.testing import CliRunner

from iqfetch import __version__, cli as cli_module
from iqfetch.cli import cli, default_report_filename
from iqfetch.client.types import (
    Application,
    Component,
    Constraint,
    Organization,
    ReportInfo,
    Violation,
    ViolationReport,
)
from iqfetch.errors import RemoteFetchError

runner = CliRunner()


class StubClient:
    instances: list[StubClient] = []

    def __init__(self, server_url, username, password, *, timeout=30.0, logger=None, fail=False):
        self.server_url = server_url
        self.username = username
        self.timeout = timeout
        self.fail = fail
        self.org_filters = []
        StubClient.instances.append(self)

    def get_applications(self, org_id=None):
        self.org_filters.append(org_id)
        if self.fail:
            raise RemoteFetchError("HTTP 401: Unauthorized", status_code=401)
        return [Application("aid-1", "apid-1", "org-1")]

    def get_organizations(self):
        return [Organization("org-1", "personal")]

    def get_latest_report_info(self, app_id):
        return ReportInfo("build", "https://iq.example.com/ui/links/application/apid-1/report/r1")

    def get_policy_violations(self, public_id, report_id):
        return ViolationReport(
            components=(
                Component("libX", "pypi", (Violation("Security-Medium", 7, (Constraint("c", ("a",)),)),)),
            )
        )


@pytest.fixture
def iq_env(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("IQ_SERVER_URL", "https://iq.example.com/api/v2")
    monkeypatch.setenv("IQ_USERNAME", "admin")
    monkeypatch.setenv("IQ_PASSWORD", "secret")
    monkeypatch.setenv("ORGANIZATION_ID", "")
    monkeypatch.setenv("IQ_OUTPUT_DIR", str(tmp_path / "reports"))
    StubClient.instances = []
    monkeypatch.setattr(cli_module, "IQClient", StubClient)
    return tmp_path


def _base_args(tmp_path: Path) -> list[str]:
    return [
        "fetch",
        "--env-file",
        str(tmp_path / "missing.env"),
        "--log-file",
        str(tmp_path / "app.log"),
    ]


def test_version_option() -> None:
    result = runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_fetch_writes_report(iq_env: Path) -> None:
    result = runner.invoke(cli, [*_base_args(iq_env), "--filename", "latest.csv"])

    assert result.exit_code == 0, result.output
    target = iq_env / "reports" / "latest.csv"
    assert "Wrote report:" in result.output
    assert target.exists()
    lines = target.read_text(encoding="utf-8").splitlines()
    assert lines[1] == "1,apid-1,personal,Security-Medium,pypi,libX,7,Security-7,c,a,"
    assert (iq_env / "app.log").exists()


def test_fetch_options_override_environment(iq_env: Path) -> None:
    out_dir = iq_env / "elsewhere"

    result = runner.invoke(
        cli,
        [
            *_base_args(iq_env),
            "--org-id",
            "org-9",
            "--output-dir",
            str(out_dir),
            "--filename",
            "r.csv",
            "--timeout",
            "5",
        ],
    )

    assert result.exit_code == 0, result.output
    assert (out_dir / "r.csv").exists()
    assert StubClient.instances[-1].org_filters == ["org-9"]


def test_fetch_reports_failure_with_exit_code_1(iq_env: Path, monkeypatch) -> None:
    monkeypatch.setattr(cli_module, "IQClient", lambda *a, **kw: StubClient(*a, fail=True, **kw))

    result = runner.invoke(cli, [*_base_args(iq_env), "--filename", "r.csv"])

    assert result.exit_code == 1
    assert "report generation failed" in result.output
    assert not (iq_env / "reports" / "r.csv").exists()


def test_fetch_missing_config_exits_1(iq_env: Path, monkeypatch) -> None:
    monkeypatch.delenv("IQ_PASSWORD")

    result = runner.invoke(cli, _base_args(iq_env))

    assert result.exit_code == 1
    assert "IQ_PASSWORD" in result.output


def test_default_report_filename_is_timestamped() -> None:
    assert default_report_filename(datetime(2024, 5, 1, 13, 45, 0)) == "2024-05-01_13-45-00.csv"
