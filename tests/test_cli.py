"""Tests for the CLI commands."""

import json
import shutil
from pathlib import Path

import pytest
from typer.testing import CliRunner

from docmigrate import __version__
from docmigrate.cli import app

runner = CliRunner()
FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def crate(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return Path(shutil.copytree(FIXTURES / "demo_crate", tmp_path / "demo_crate"))


class TestSyncCommand:
    """Tests for 'docmigrate sync'."""

    def test_extract_only(self, crate):
        result = runner.invoke(app, ["sync", str(crate)])
        assert result.exit_code == 0
        assert "Migration Report" in result.output
        assert (crate / "docs" / "lib" / "greet.md").exists()
        assert "omnidoc" not in (crate / "src" / "lib.rs").read_text(encoding="utf-8")

    def test_migrate(self, crate):
        result = runner.invoke(app, ["sync", str(crate), "--migrate"])
        assert result.exit_code == 0
        assert 'docs-path = "docs"' in (crate / "Cargo.toml").read_text(encoding="utf-8")
        assert (crate / "docs" / "lib.md").exists()
        assert (crate / "docs" / "lib" / "greet.md").exists()
        assert (crate / "docs" / "net" / "connect.md").exists()
        assert (crate / "docs" / "net" / "disconnect.md").read_text(encoding="utf-8") == ""

        lib = (crate / "src" / "lib.rs").read_text(encoding="utf-8")
        assert "#![doc = syncdoc::module_doc!()]" in lib
        assert "#[syncdoc::omnidoc]\npub fn greet" in lib

    def test_cut_only(self, crate):
        result = runner.invoke(app, ["sync", str(crate), "--cut"])
        assert result.exit_code == 0
        lib = (crate / "src" / "lib.rs").read_text(encoding="utf-8")
        assert "///" not in lib
        assert "omnidoc" not in lib
        assert not (crate / "docs" / "net" / "disconnect.md").exists()

    def test_short_flags(self, crate):
        result = runner.invoke(app, ["sync", str(crate), "-c", "-a", "-t"])
        assert result.exit_code == 0
        assert (crate / "docs" / "net" / "disconnect.md").exists()
        assert "#[syncdoc::omnidoc]" in (crate / "src" / "lib.rs").read_text(encoding="utf-8")

    def test_dry_run_writes_nothing(self, crate):
        manifest = (crate / "Cargo.toml").read_text(encoding="utf-8")
        lib = (crate / "src" / "lib.rs").read_text(encoding="utf-8")
        result = runner.invoke(app, ["sync", str(crate), "--migrate", "--dry-run"])
        assert result.exit_code == 0
        assert "would be written" in result.output
        assert not (crate / "docs").exists()
        assert (crate / "Cargo.toml").read_text(encoding="utf-8") == manifest
        assert (crate / "src" / "lib.rs").read_text(encoding="utf-8") == lib

    def test_explicit_docs_dir_is_inline(self, crate):
        result = runner.invoke(app, ["sync", str(crate), "-m", "--docs", "api"])
        assert result.exit_code == 0
        assert (crate / "api" / "lib.md").exists()
        lib = (crate / "src" / "lib.rs").read_text(encoding="utf-8")
        assert '#[syncdoc::omnidoc(path = "api")]' in lib
        assert "docs-path" not in (crate / "Cargo.toml").read_text(encoding="utf-8")

    def test_inline_paths(self, crate):
        result = runner.invoke(app, ["sync", str(crate), "-m", "--inline-paths"])
        assert result.exit_code == 0
        lib = (crate / "src" / "lib.rs").read_text(encoding="utf-8")
        assert '#[syncdoc::omnidoc(path = "docs")]' in lib

    def test_cfg_attr_from_manifest(self, crate):
        manifest = crate / "Cargo.toml"
        manifest.write_text(
            manifest.read_text(encoding="utf-8")
            + '\n[package.metadata.syncdoc]\ndocs-path = "docs"\ncfg-attr = "doc"\n',
            encoding="utf-8",
        )
        result = runner.invoke(app, ["sync", str(crate), "-m"])
        assert result.exit_code == 0
        lib = (crate / "src" / "lib.rs").read_text(encoding="utf-8")
        assert "#[cfg_attr(doc, syncdoc::omnidoc)]" in lib

    def test_report_file(self, crate, tmp_path):
        report_path = tmp_path / "report.json"
        result = runner.invoke(app, ["sync", str(crate), "-m", "--report", str(report_path)])
        assert result.exit_code == 0
        data = json.loads(report_path.read_text(encoding="utf-8"))
        assert data["summary"]["files_processed"] == 2
        assert data["summary"]["files_touched"] == 1

    def test_single_file(self, crate):
        result = runner.invoke(app, ["sync", str(crate / "src" / "net" / "mod.rs")])
        assert result.exit_code == 0
        assert (crate / "docs" / "net.md").exists()
        assert not (crate / "docs" / "lib.md").exists()

    def test_no_manifest_writes_inline(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        source = tmp_path / "standalone.rs"
        source.write_text("/// Docs.\npub fn f() {}\n", encoding="utf-8")
        result = runner.invoke(app, ["sync", str(source), "-m"])
        assert result.exit_code == 0
        assert "No Cargo.toml found" in result.output
        assert (tmp_path / "docs" / "f.md").read_text(encoding="utf-8") == "Docs."
        assert source.read_text(encoding="utf-8") == (
            '#[syncdoc::omnidoc(path = "docs")]\npub fn f() {}\n'
        )

    def test_missing_source(self, tmp_path):
        result = runner.invoke(app, ["sync", str(tmp_path / "nonexistent")])
        assert result.exit_code == 1

    def test_invalid_manifest(self, crate):
        (crate / "Cargo.toml").write_text("[package\n", encoding="utf-8")
        result = runner.invoke(app, ["sync", str(crate), "-m"])
        assert result.exit_code == 1
        assert "Invalid TOML" in result.output

    def test_parse_error_reported(self, crate):
        (crate / "src" / "broken.rs").write_text("fn main() {\n", encoding="utf-8")
        result = runner.invoke(app, ["sync", str(crate)])
        assert result.exit_code == 0
        assert "Errors" in result.output

    def test_no_rust_files(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "empty").mkdir()
        result = runner.invoke(app, ["sync", str(tmp_path / "empty")])
        assert result.exit_code == 0
        assert "No Rust files found" in result.output


class TestRestoreCommand:
    """Tests for 'docmigrate restore'."""

    def test_restore_after_migrate(self, crate):
        original = (crate / "src" / "lib.rs").read_text(encoding="utf-8")
        runner.invoke(app, ["sync", str(crate), "-m"])
        result = runner.invoke(app, ["restore", str(crate)])
        assert result.exit_code == 0
        assert (crate / "src" / "lib.rs").read_text(encoding="utf-8") == original

    def test_restore_dry_run(self, crate):
        runner.invoke(app, ["sync", str(crate), "-m"])
        migrated = (crate / "src" / "lib.rs").read_text(encoding="utf-8")
        result = runner.invoke(app, ["restore", str(crate), "--dry-run"])
        assert result.exit_code == 0
        assert (crate / "src" / "lib.rs").read_text(encoding="utf-8") == migrated

    def test_restore_never_touches_manifest(self, crate):
        manifest = (crate / "Cargo.toml").read_text(encoding="utf-8")
        result = runner.invoke(app, ["restore", str(crate)])
        assert result.exit_code == 0
        assert (crate / "Cargo.toml").read_text(encoding="utf-8") == manifest


class TestInitCommand:
    """Tests for 'docmigrate init'."""

    def test_creates_settings_file(self, tmp_path):
        result = runner.invoke(app, ["init", "--path", str(tmp_path)])
        assert result.exit_code == 0
        assert (tmp_path / "docmigrate.yaml").exists()

    def test_settings_are_used(self, crate):
        (crate.parent / "docmigrate.yaml").write_text(
            f"source: {crate.as_posix()}\ndocs: book\n", encoding="utf-8"
        )
        result = runner.invoke(app, ["sync"])
        assert result.exit_code == 0
        assert (crate / "book" / "lib.md").exists()


class TestVersionCommand:
    """Tests for 'docmigrate version'."""

    def test_shows_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_verbose_flag(self, crate):
        result = runner.invoke(app, ["-v", "sync", str(crate)])
        assert result.exit_code == 0
