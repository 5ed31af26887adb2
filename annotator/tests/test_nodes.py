"""Tests for the content tree model."""

import copy

import pytest

from annotator.nodes import (
    NodeKind,
    children_of,
    coerce_node,
    format_path,
    get_at,
    is_section_like,
    iter_children,
    kind_of,
    make_marker,
    make_node,
    set_at,
    text_of,
    update_at,
)


class TestKinds:
    """Tests for kind inspection."""

    def test_known_kind(self):
        assert kind_of({"kind": "table"}) is NodeKind.TABLE

    def test_unknown_kind_is_opaque(self):
        assert kind_of({"kind": "Formula"}) is None

    def test_text_has_no_kind(self):
        assert kind_of("text") is None

    def test_only_sections_are_section_like(self):
        assert is_section_like({"kind": "section"})
        assert not is_section_like({"kind": "deepDive"})
        assert not is_section_like({"content": []})


class TestConstruction:
    """Tests for node builders."""

    def test_make_node_omits_empty_parts(self):
        assert make_node(NodeKind.PARAGRAPH) == {"kind": "paragraph"}

    def test_make_node_with_attributes(self):
        node = make_node(NodeKind.CALLOUT, "hi", type="info")
        assert node == {"kind": "callout", "attributes": {"type": "info"}, "content": "hi"}

    def test_marker_has_no_content(self):
        marker = make_marker("ann-1", "explain", "💡")
        assert marker == {
            "kind": "annotationMarker",
            "attributes": {"ref": "ann-1", "action": "explain", "label": "💡"},
        }
        assert text_of(marker) == ""


class TestTraversalHelpers:
    """Tests for children and text helpers."""

    def test_children_of_normalizes(self):
        assert children_of(None) == []
        assert children_of("x") == ["x"]
        original = ["a", "b"]
        result = children_of(original)
        assert result == original
        assert result is not original

    def test_iter_children_covers_content_and_attribute_content(self):
        node = {
            "kind": "genericElement",
            "attributes": {"content": {"kind": "em", "content": "aside"}},
            "content": ["text", {"kind": "strong", "content": "bold"}],
        }
        paths = [path for path, _ in iter_children(node)]
        assert paths == [("content", 0), ("content", 1), ("attributes", "content")]

    def test_text_of_concatenates(self, tutorial_tree):
        paragraph = tutorial_tree["content"][0]["content"][1]
        assert text_of(paragraph) == "A matrix is a linear map between vector spaces."


class TestPathAccess:
    """Tests for get_at / set_at."""

    def test_get_at(self, tutorial_tree):
        path = ("content", 0, "content", 0, "content")
        assert get_at(tutorial_tree, path) == "Linear maps"

    def test_get_at_missing_returns_default(self, tutorial_tree):
        assert get_at(tutorial_tree, ("content", 9), "missing") == "missing"
        assert get_at(tutorial_tree, ("nope",)) is None

    def test_format_path(self):
        assert format_path(("content", 0, "attributes", "rows")) == "content.0.attributes.rows"
        assert format_path(()) == "<root>"

    def test_set_at_copies_only_the_spine(self, tutorial_tree):
        before = copy.deepcopy(tutorial_tree)
        path = ("content", 0, "content", 0, "content")

        updated = set_at(tutorial_tree, path, "Linear transformations")

        assert tutorial_tree == before
        assert get_at(updated, path) == "Linear transformations"
        # Ancestors are new objects
        assert updated is not tutorial_tree
        assert updated["content"] is not tutorial_tree["content"]
        assert updated["content"][0] is not tutorial_tree["content"][0]
        # Siblings are shared
        assert updated["content"][1] is tutorial_tree["content"][1]
        assert updated["content"][0]["content"][2] is tutorial_tree["content"][0]["content"][2]

    def test_set_at_creates_missing_containers(self):
        assert set_at({}, ("attributes", "highlightRows"), [1]) == {"attributes": {"highlightRows": [1]}}

    def test_update_at(self):
        tree = {"attributes": {"rows": [1]}}
        updated = update_at(tree, ("attributes", "rows"), lambda rows: rows + [2])
        assert updated == {"attributes": {"rows": [1, 2]}}
        assert tree == {"attributes": {"rows": [1]}}


class TestCoerceNode:
    """Tests for renderer-form coercion."""

    def test_renderer_form(self):
        legacy = {
            "type": "Section",
            "children": [
                {"type": "p", "children": "Hello"},
                {"type": "Callout", "props": {"type": "info", "children": "Note"}},
            ],
        }
        assert coerce_node(legacy) == {
            "kind": "section",
            "content": [
                {"kind": "paragraph", "content": "Hello"},
                {"kind": "callout", "attributes": {"type": "info", "content": "Note"}},
            ],
        }

    @pytest.mark.parametrize("name,level", [("h1", 1), ("h2", 2), ("h3", 3), ("h4", 4)])
    def test_heading_level_is_kept(self, name, level):
        assert coerce_node({"type": name, "children": "Title"}) == {
            "kind": "heading",
            "attributes": {"level": level},
            "content": "Title",
        }

    def test_explicit_heading_level_wins(self):
        coerced = coerce_node({"type": "h2", "props": {"level": 5, "id": "intro"}, "children": "Intro"})
        assert coerced["attributes"] == {"level": 5, "id": "intro"}

    def test_unknown_renderer_names_are_kept(self):
        assert coerce_node({"type": "Formula", "children": "x = y"}) == {"kind": "Formula", "content": "x = y"}

    def test_native_form_is_unchanged(self, tutorial_tree):
        assert coerce_node(tutorial_tree) == tutorial_tree

    @pytest.mark.parametrize("value", ["text", 3, None])
    def test_scalars_pass_through(self, value):
        assert coerce_node(value) == value
