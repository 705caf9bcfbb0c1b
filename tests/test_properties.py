"""Tests for linkinject.properties."""

import datetime

from linkinject.properties import MISSING, Document, load_document, lookup_property, parse_frontmatter, stringify


class TestDocument:
    def test_name_strips_folder_and_extension(self):
        assert Document(path="notes/daily/2025-01-01.md").name == "2025-01-01"

    def test_structural_only_for_markdown(self):
        assert Document(path="a.md").is_structural
        assert Document(path="A.MD").is_structural
        assert not Document(path="a.pdf").is_structural

    def test_has_metadata(self):
        assert Document(path="a.md", metadata={}).has_metadata
        assert not Document(path="a.md").has_metadata
        assert not Document(path="a.canvas", metadata={"x": 1}).has_metadata


class TestLookupProperty:
    def test_case_insensitive(self):
        doc = Document(path="a.md", metadata={"Today": "2025-01-01"})
        assert lookup_property(doc, "today") == "2025-01-01"
        assert lookup_property(doc, "TODAY") == "2025-01-01"

    def test_missing(self):
        doc = Document(path="a.md", metadata={"a": 1})
        assert lookup_property(doc, "b") is MISSING

    def test_falsy_values_are_found(self):
        doc = Document(path="a.md", metadata={"flag": False, "count": 0})
        assert lookup_property(doc, "flag") is False
        assert lookup_property(doc, "count") == 0


class TestStringify:
    def test_scalars(self):
        assert stringify("x") == "x"
        assert stringify(3) == "3"
        assert stringify(2.0) == "2"
        assert stringify(2.5) == "2.5"
        assert stringify(True) == "true"
        assert stringify(None) == "null"

    def test_list_joins_with_comma(self):
        assert stringify(["a", 1, False]) == "a,1,false"

    def test_mapping_is_json(self):
        assert stringify({"a": 1}) == '{"a": 1}'

    def test_date(self):
        assert stringify(datetime.date(2025, 1, 1)) == "2025-01-01"


class TestFrontmatter:
    def test_parse(self):
        text = "---\ntitle: Hello\ntags: [a, b]\n---\nbody"
        assert parse_frontmatter(text) == {"title": "Hello", "tags": ["a", "b"]}

    def test_no_frontmatter(self):
        assert parse_frontmatter("just text") is None

    def test_empty_frontmatter_is_present(self):
        assert parse_frontmatter("---\n---\nbody") == {}

    def test_unterminated_frontmatter(self):
        assert parse_frontmatter("---\ntitle: x\n") is None

    def test_load_document(self, tmp_path):
        note = tmp_path / "note.md"
        note.write_text("---\nproject: Apollo\n---\n# Note\n")
        doc = load_document(note)
        assert doc.metadata == {"project": "Apollo"}
        assert doc.name == "note"

    def test_load_non_markdown(self, tmp_path):
        other = tmp_path / "data.txt"
        other.write_text("---\na: 1\n---\n")
        assert load_document(other).metadata is None


class TestMalformedFrontmatter:
    def test_invalid_yaml_treated_as_no_metadata(self, caplog):
        assert parse_frontmatter("---\ntitle: [unclosed\n---\nbody") is None
        assert "Invalid frontmatter" in caplog.text

    def test_load_document_with_invalid_yaml(self, tmp_path):
        note = tmp_path / "n.md"
        note.write_text("---\ntitle: [unclosed\n---\n")
        assert load_document(note).metadata is None
