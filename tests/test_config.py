"""Tests for Cargo.toml metadata and docmigrate.yaml settings."""

import pytest

from docmigrate.config import (
    DEFAULT_EXCLUDES,
    Config,
    Settings,
    find_manifest,
    load_config,
    read_cfg_attr,
    resolve_output_root,
)
from docmigrate.errors import ConfigError

PACKAGE = '[package]\nname = "demo"\nversion = "0.1.0"\n'


@pytest.fixture
def manifest(tmp_path):
    path = tmp_path / "Cargo.toml"
    path.write_text(PACKAGE, encoding="utf-8")
    return path


class TestFindManifest:
    """Tests for find_manifest()."""

    def test_walks_up(self, manifest):
        nested = manifest.parent / "src" / "net"
        nested.mkdir(parents=True)
        assert find_manifest(nested) == manifest

    def test_from_file(self, manifest):
        source = manifest.parent / "lib.rs"
        source.write_text("", encoding="utf-8")
        assert find_manifest(source) == manifest


class TestResolveOutputRoot:
    """Tests for resolve_output_root()."""

    def test_reads_docs_path(self, manifest):
        manifest.write_text(
            PACKAGE + '\n[package.metadata.syncdoc]\ndocs-path = "book/api"\n', encoding="utf-8"
        )
        assert resolve_output_root(manifest) == "book/api"

    def test_appends_section_when_missing(self, manifest):
        assert resolve_output_root(manifest) == "docs"
        text = manifest.read_text(encoding="utf-8")
        assert text.startswith(PACKAGE)
        assert text.endswith('[package.metadata.syncdoc]\ndocs-path = "docs"\n')

    def test_inserts_into_existing_section(self, manifest):
        manifest.write_text(
            PACKAGE + '\n[package.metadata.syncdoc]\ncfg-attr = "doc"\n', encoding="utf-8"
        )
        resolve_output_root(manifest)
        text = manifest.read_text(encoding="utf-8")
        assert '[package.metadata.syncdoc]\ndocs-path = "docs"\ncfg-attr = "doc"\n' in text
        assert text.count("[package.metadata.syncdoc]") == 1

    def test_persisted_only_once(self, manifest):
        resolve_output_root(manifest)
        first = manifest.read_text(encoding="utf-8")
        resolve_output_root(manifest)
        assert manifest.read_text(encoding="utf-8") == first

    def test_dry_run_leaves_manifest(self, manifest):
        assert resolve_output_root(manifest, dry_run=True) == "docs"
        assert manifest.read_text(encoding="utf-8") == PACKAGE

    def test_invalid_toml(self, manifest):
        manifest.write_text("[package\nname = ", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            resolve_output_root(manifest)

    def test_missing_manifest(self, tmp_path):
        with pytest.raises(ConfigError):
            resolve_output_root(tmp_path / "Cargo.toml")

    def test_non_string_docs_path(self, manifest):
        manifest.write_text(
            PACKAGE + "\n[package.metadata.syncdoc]\ndocs-path = 3\n", encoding="utf-8"
        )
        with pytest.raises(ConfigError):
            resolve_output_root(manifest)


class TestLoadConfig:
    """Tests for load_config() and Config."""

    def test_from_manifest(self, manifest):
        manifest.write_text(
            PACKAGE + '\n[package.metadata.syncdoc]\ndocs-path = "docs"\ncfg-attr = "doc"\n',
            encoding="utf-8",
        )
        config = load_config(manifest)
        assert config.from_manifest
        assert config.docs_path == "docs"
        assert config.output_dir == (manifest.parent / "docs").resolve()
        assert config.cfg_attr == "doc"
        assert config.manifest_dir == manifest.parent.resolve()

    def test_cfg_attr_absent(self, manifest):
        assert read_cfg_attr(manifest) is None

    def test_inline_relative_to_manifest(self, manifest):
        config = Config.inline("api", manifest=manifest)
        assert not config.from_manifest
        assert config.output_dir == (manifest.parent / "api").resolve()

    def test_inline_without_manifest(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = Config.inline("docs")
        assert config.output_dir == (tmp_path / "docs").resolve()
        assert config.manifest_dir is None


class TestSettings:
    """Tests for Settings loading and saving."""

    def test_defaults(self):
        settings = Settings()
        assert settings.source == "."
        assert settings.docs is None
        assert settings.exclude == DEFAULT_EXCLUDES
        assert settings.workers == 4

    def test_save_and_load(self, tmp_path):
        settings = Settings(source="crates/core", docs="api", workers=2, inline_paths=True)
        path = settings.save(tmp_path / "docmigrate.yaml")
        loaded = Settings.load(path)
        assert loaded.source == "crates/core"
        assert loaded.docs == "api"
        assert loaded.workers == 2
        assert loaded.inline_paths is True

    def test_missing_file(self, tmp_path):
        assert Settings.load(tmp_path / "nope.yaml").source == "."

    def test_invalid_yaml_falls_back(self, tmp_path):
        path = tmp_path / "docmigrate.yaml"
        path.write_text("source: [unclosed\n", encoding="utf-8")
        assert Settings.load(path).source == "."

    def test_partial_file(self, tmp_path):
        path = tmp_path / "docmigrate.yaml"
        path.write_text("docs: book\n", encoding="utf-8")
        loaded = Settings.load(path)
        assert loaded.docs == "book"
        assert loaded.exclude == DEFAULT_EXCLUDES
