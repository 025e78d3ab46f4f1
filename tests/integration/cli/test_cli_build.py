"""Integration tests for the build and check commands"""

import pytest
from typer.testing import CliRunner

from mdsite.cli.cli import app
from mdsite.config import Settings


@pytest.fixture(name="project")
def project_fixture(tmp_path, monkeypatch):
    """A project directory using the default content layout."""
    monkeypatch.chdir(tmp_path)
    for name in Settings.model_fields:
        monkeypatch.delenv(f"MDSITE_{name.upper()}", raising=False)
    posts = tmp_path / "content" / "posts"
    pages = tmp_path / "content" / "pages"
    posts.mkdir(parents=True)
    pages.mkdir(parents=True)
    (posts / "2024-01-15-hello-world.md").write_text("---\ntitle: Hello\n---\n# Hi\n")
    (pages / "index.md").write_text("---\ntitle: Home\n---\nWelcome\n")
    return tmp_path


def test_build_cmd_builds_site(project):
    """build writes one HTML file per document into the default web root."""
    result = CliRunner().invoke(app, ["build"])
    assert result.exit_code == 0, result.output
    assert (project / "wwwroot" / "post" / "2024" / "1" / "15" / "hello-world.html").exists()
    assert (project / "wwwroot" / "index.html").exists()
    assert "Build complete - 1 post(s), 1 page(s), 2 written, 0 failed" in result.output


def test_build_cmd_out_dir_override(project):
    result = CliRunner().invoke(app, ["build", "--out-dir", str(project / "dist")])
    assert result.exit_code == 0, result.output
    assert (project / "dist" / "index.html").exists()
    assert not (project / "wwwroot").exists()


def test_build_cmd_dry_run(project):
    result = CliRunner().invoke(app, ["build", "--dry-run"])
    assert result.exit_code == 0, result.output
    assert "0 written" in result.output
    assert not (project / "wwwroot").exists()


def test_build_cmd_reports_failures(project):
    (project / "content" / "posts" / "no-date.md").write_text("---\ntitle: X\n---\n")
    result = CliRunner().invoke(app, ["build"])
    assert result.exit_code == 1
    assert "failed:" in result.output
    assert "no-date.md" in result.output
    assert (project / "wwwroot" / "index.html").exists()


def test_check_cmd_lists_stale_documents(project):
    runner = CliRunner()
    result = runner.invoke(app, ["check"])
    assert result.exit_code == 0, result.output
    assert "2 of 2 document(s) need a rebuild" in result.output

    runner.invoke(app, ["build"])
    result = runner.invoke(app, ["check"])
    assert "0 of 2 document(s) need a rebuild" in result.output


def test_build_cmd_invalid_config(project):
    (project / "config.yaml").write_text("key: [unclosed\n")
    result = CliRunner().invoke(app, ["build"])
    assert result.exit_code == 1
    assert "Invalid config.yaml" in result.output
