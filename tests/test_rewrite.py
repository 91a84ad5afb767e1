"""Tests for stripping docs and injecting reference attributes."""

from pathlib import Path

from docmigrate.parser import parse_source
from docmigrate.rewrite import AnnotationStyle, indent_of, rewrite

FIXTURES = Path(__file__).parent / "fixtures"

FN_BODY = "pub fn add(a: i32, b: i32) -> i32 {\n    a + b\n}\n"
DOCUMENTED_FN = "/// first line\n/// second line\n" + FN_BODY


def migrate(source, strip=True, annotate=True, style=None):
    return rewrite(parse_source(source), "docs", strip, annotate, style or AnnotationStyle())


class TestStrip:
    """Tests for doc removal."""

    def test_removes_doc_lines(self):
        assert migrate(DOCUMENTED_FN, annotate=False) == FN_BODY

    def test_keeps_other_attributes(self):
        source = (
            "/// A point.\n"
            "#[derive(Debug, Clone)]\n"
            '#[serde(rename_all = "camelCase")]\n'
            "pub struct Point {\n"
            "    /// X.\n"
            "    pub x: f64,\n"
            "}\n"
        )
        assert migrate(source, annotate=False) == (
            "#[derive(Debug, Clone)]\n"
            '#[serde(rename_all = "camelCase")]\n'
            "pub struct Point {\n"
            "    pub x: f64,\n"
            "}\n"
        )

    def test_nested_item_keeps_indentation(self):
        source = "impl Foo {\n    /// Docs.\n    pub fn bar() {}\n}\n"
        assert migrate(source, annotate=False) == "impl Foo {\n    pub fn bar() {}\n}\n"

    def test_same_line_block_doc(self):
        assert migrate("/** Docs. */ pub fn f() {}\n", annotate=False) == "pub fn f() {}\n"

    def test_doc_expression_stripped(self):
        source = '#[doc = include_str!("../README.md")]\npub struct S;\n'
        assert migrate(source, annotate=False) == "pub struct S;\n"

    def test_enum_variants(self):
        source = (
            "pub enum E {\n    /// A.\n    A,\n"
            "    B {\n        /// Inner.\n        x: u8,\n    },\n}\n"
        )
        assert migrate(source, annotate=False) == (
            "pub enum E {\n    A,\n    B {\n        x: u8,\n    },\n}\n"
        )

    def test_plain_comments_survive(self):
        source = "// keep me\n/// drop me\npub fn f() {}\n"
        assert migrate(source, annotate=False) == "// keep me\npub fn f() {}\n"

    def test_opaque_items_keep_docs(self):
        source = (
            "/// Networking.\nmod net;\n"
            "/// A macro.\nmacro_rules! m { () => {} }\n"
            "pub fn f() {}\n"
        )
        assert migrate(source) == (
            "/// Networking.\nmod net;\n"
            "/// A macro.\nmacro_rules! m { () => {} }\n"
            "#[syncdoc::omnidoc]\npub fn f() {}\n"
        )

    def test_nested_use_keeps_docs(self):
        source = "mod m {\n    /// Re-export.\n    pub use x::y;\n    /// F.\n    fn f() {}\n}\n"
        assert migrate(source, annotate=False) == (
            "mod m {\n    /// Re-export.\n    pub use x::y;\n    fn f() {}\n}\n"
        )

    def test_input_tree_unchanged(self):
        parsed = parse_source(DOCUMENTED_FN)
        rewrite(parsed, "docs", strip=True, annotate=True)
        assert parsed.render() == DOCUMENTED_FN


class TestAnnotate:
    """Tests for reference injection."""

    def test_strip_and_annotate(self):
        assert migrate(DOCUMENTED_FN) == "#[syncdoc::omnidoc]\n" + FN_BODY

    def test_annotate_only_keeps_docs(self):
        assert migrate(DOCUMENTED_FN, strip=False) == "#[syncdoc::omnidoc]\n" + DOCUMENTED_FN

    def test_undocumented_items_annotated(self):
        assert migrate("pub fn f() {}\n") == "#[syncdoc::omnidoc]\npub fn f() {}\n"

    def test_only_top_level_items(self):
        source = "impl Foo {\n    /// Docs.\n    pub fn bar() {}\n}\n"
        assert migrate(source) == "#[syncdoc::omnidoc]\nimpl Foo {\n    pub fn bar() {}\n}\n"

    def test_use_and_macros_not_annotated(self):
        source = "use std::fmt;\nmacro_rules! m { () => {} }\n"
        assert migrate(source) == source

    def test_module_reference(self):
        source = "//! Crate docs.\n\n/// F.\npub fn f() {}\n"
        assert migrate(source) == (
            "#![doc = syncdoc::module_doc!()]\n\n#[syncdoc::omnidoc]\npub fn f() {}\n"
        )

    def test_no_module_reference_without_file_docs(self):
        assert "module_doc" not in migrate("#![allow(dead_code)]\npub fn f() {}\n")

    def test_idempotent(self):
        once = migrate(DOCUMENTED_FN)
        assert migrate(once) == once

    def test_idempotent_for_module_reference(self):
        once = migrate("//! Crate docs.\npub fn f() {}\n", strip=False)
        assert migrate(once, strip=False) == once

    def test_inline_path_by_default(self):
        text = rewrite(parse_source("pub fn f() {}\n"), "docs", strip=False, annotate=True)
        assert text == '#[syncdoc::omnidoc(path = "docs")]\npub fn f() {}\n'

    def test_neither_operation(self):
        assert rewrite(parse_source(DOCUMENTED_FN), "docs", strip=False, annotate=False) is None

    def test_calculator_fixture(self):
        path = FIXTURES / "calculator.rs"
        source = path.read_text(encoding="utf-8")
        text = migrate(source)
        assert "///" not in text
        assert "//!" not in text
        assert text.count("#[syncdoc::omnidoc]") == 6
        assert "#[derive(Debug, Default)]" in text
        assert "#[syncdoc::omnidoc]\nuse" not in text
        assert parse_source(text).render() == text


class TestAnnotationStyle:
    """Tests for AnnotationStyle."""

    def test_plain(self):
        style = AnnotationStyle()
        assert style.item_attribute() == "#[syncdoc::omnidoc]"
        assert style.module_attribute() == "#![doc = syncdoc::module_doc!()]"

    def test_inline_path(self):
        style = AnnotationStyle(docs_path="../docs")
        assert style.item_attribute() == '#[syncdoc::omnidoc(path = "../docs")]'
        assert style.module_attribute() == '#![doc = syncdoc::module_doc!(path = "../docs")]'

    def test_cfg_attr(self):
        style = AnnotationStyle(cfg_attr="doc")
        assert style.item_attribute() == "#[cfg_attr(doc, syncdoc::omnidoc)]"
        assert style.module_attribute() == "#![cfg_attr(doc, doc = syncdoc::module_doc!())]"

    def test_quotes_escaped(self):
        assert AnnotationStyle(docs_path='a"b').item_attribute() == (
            '#[syncdoc::omnidoc(path = "a\\"b")]'
        )


class TestIndentOf:
    def test_indent(self):
        assert indent_of("\n\n    ") == "    "
        assert indent_of("") == ""
        assert indent_of("// c\n\t") == "\t"
