"""Tests for the command-line entry point."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from gallery_sync import cli
from gallery_sync.config import CREDENTIAL_ENV_VARS

runner = CliRunner()


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(
        f"source:\n  kind: filesystem\n  root: {tmp_path / 'photos'}\n"
        f"catalogue:\n  path: {tmp_path / 'photos.json'}\n"
        f"projects:\n  root: {tmp_path / 'projects'}\n  output: {tmp_path / 'projects.json'}\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def _no_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_missing_credentials_exit_with_status_one(settings_file: Path, tmp_path: Path) -> None:
    (tmp_path / "photos").mkdir()

    result = runner.invoke(cli.app, ["run", "--settings", str(settings_file)])

    assert result.exit_code == 1
    assert "S3_BUCKET" in result.output
    assert not (tmp_path / "photos.json").exists()


def test_dry_run_needs_no_credentials(settings_file: Path, tmp_path: Path, make_image) -> None:
    (tmp_path / "photos").mkdir()
    (tmp_path / "photos" / "a.jpg").write_bytes(make_image())

    result = runner.invoke(cli.app, ["run", "--settings", str(settings_file), "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "[dry run] found=1 added=0" in result.output
    assert not (tmp_path / "photos.json").exists()


def test_missing_source_root_exits_with_status_one(settings_file: Path, tmp_path: Path) -> None:
    result = runner.invoke(
        cli.app,
        ["run", "--settings", str(settings_file), "--root", str(tmp_path / "nowhere"), "--dry-run"],
    )

    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_unknown_source_kind_exits_with_status_one(settings_file: Path) -> None:
    result = runner.invoke(cli.app, ["run", "--settings", str(settings_file), "--source", "dropbox", "--dry-run"])

    assert result.exit_code == 1
    assert "dropbox" in result.output


def test_run_with_fake_store(
    settings_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, fake_s3, make_image
) -> None:
    """Per-photo failures are reported but keep exit status zero."""

    for name, value in {
        "S3_ENDPOINT_URL": "https://s3.example.com",
        "S3_REGION": "auto",
        "S3_BUCKET": "gallery",
        "S3_ACCESS_KEY_ID": "AKIATEST",
        "S3_SECRET_ACCESS_KEY": "secret",
    }.items():
        monkeypatch.setenv(name, value)
    monkeypatch.setattr("gallery_sync.storage.build_s3_client", lambda credentials, style: fake_s3)
    (tmp_path / "photos").mkdir()
    (tmp_path / "photos" / "good.jpg").write_bytes(make_image())
    (tmp_path / "photos" / "bad.jpg").write_bytes(b"garbage")

    result = runner.invoke(cli.app, ["run", "--settings", str(settings_file)])

    assert result.exit_code == 0, result.output
    assert "found=2 added=1 skipped=1" in result.output
    assert "bad.jpg" in result.output
    catalogue = json.loads((tmp_path / "photos.json").read_text(encoding="utf-8"))
    assert [entry["filename"] for entry in catalogue] == ["good.jpg"]


def test_sync_projects_command(settings_file: Path, tmp_path: Path) -> None:
    project_dir = tmp_path / "projects" / "site"
    project_dir.mkdir(parents=True)
    (project_dir / "project.json").write_text('{"title": "Site", "year_last": 2025}', encoding="utf-8")

    result = runner.invoke(cli.app, ["sync-projects", "--settings", str(settings_file)])

    assert result.exit_code == 0, result.output
    assert "wrote 1 projects" in result.output
    assert json.loads((tmp_path / "projects.json").read_text(encoding="utf-8")) == [
        {"title": "Site", "year_last": 2025}
    ]
