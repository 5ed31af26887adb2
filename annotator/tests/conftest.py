"""Shared fixtures for annotator tests."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def scenario_tree():
    """A single section holding one paragraph, with no top-level list."""
    return {
        "content": {
            "kind": "section",
            "content": [
                {"kind": "paragraph", "content": "Matrices map vectors to vectors."},
            ],
        },
    }


@pytest.fixture
def tutorial_tree():
    """A document envelope with headings, nested sections and mixed inline content."""
    return {
        "id": "matrices",
        "title": "Matrices",
        "content": [
            {
                "kind": "section",
                "content": [
                    {"kind": "heading", "attributes": {"level": 2}, "content": "Linear maps"},
                    {
                        "kind": "paragraph",
                        "content": [
                            "A matrix is a ",
                            {"kind": "strong", "content": "linear map"},
                            " between vector spaces.",
                        ],
                    },
                    {
                        "kind": "section",
                        "content": [
                            {"kind": "paragraph", "content": "Columns are images of basis vectors."},
                            {"kind": "paragraph", "content": "Rows pair with covectors."},
                        ],
                    },
                ],
            },
            {
                "kind": "section",
                "content": [
                    {"kind": "paragraph", "content": "Composition is multiplication."},
                ],
            },
        ],
    }


@pytest.fixture
def table_tree():
    return {
        "id": "ops",
        "title": "Operations",
        "content": [
            {
                "kind": "section",
                "content": [
                    {"kind": "paragraph", "content": "Common operations:"},
                    {
                        "kind": "table",
                        "attributes": {
                            "headers": ["Operation", "Effect"],
                            "rows": [
                                ["scale", "stretch"],
                                ["rotate", "turn"],
                                ["transpose", "swap rows and columns"],
                            ],
                        },
                    },
                ],
            },
        ],
    }


@pytest.fixture
def structured_tree():
    """Steps and a definition list inside one section."""
    return {
        "id": "recipes",
        "title": "Recipes",
        "content": [
            {
                "kind": "section",
                "content": [
                    {
                        "kind": "steps",
                        "attributes": {
                            "steps": [
                                "Write the vectors as columns",
                                {"title": "Multiply", "description": "Take each row times the column"},
                            ],
                        },
                    },
                    {
                        "kind": "definitionList",
                        "attributes": {
                            "items": [
                                {"term": "Kernel", "definition": "Vectors sent to zero"},
                                {"term": "Image", "definition": "Everything reachable"},
                            ],
                        },
                    },
                ],
            },
        ],
    }


@pytest.fixture
def payload():
    """A generated explanation callout."""
    return {
        "kind": "callout",
        "attributes": {"type": "info"},
        "content": [
            {"kind": "strong", "content": '💡 "vectors":'},
            " ",
            "Here vectors are the inputs and outputs of the map.",
        ],
    }


@pytest.fixture
def annotated_tree():
    """A tree that already carries one of each recognized annotation shape."""
    return {
        "id": "annotated",
        "title": "Annotated",
        "content": [
            {
                "kind": "section",
                "content": [
                    {"kind": "paragraph", "content": ["Eigenvalues", {"kind": "annotationMarker", "attributes": {"ref": "ann-1"}}, " scale."]},
                    {
                        "kind": "callout",
                        "attributes": {"type": "info"},
                        "content": [
                            {"kind": "strong", "content": '💡 "Eigenvalues":'},
                            " ",
                            "They say how much an eigenvector is stretched.",
                        ],
                    },
                    {
                        "kind": "callout",
                        "attributes": {"type": "tip"},
                        "content": "A plain tip, not an annotation.",
                    },
                ],
            },
            {
                "kind": "deepDive",
                "attributes": {"title": "Deep Dive: eigenvectors", "action": "branch"},
                "content": [
                    {"kind": "paragraph", "content": "Why they matter."},
                    {
                        "kind": "callout",
                        "attributes": {"type": "info"},
                        "content": [{"kind": "strong", "content": "💡 nested"}, " inside a deep dive"],
                    },
                ],
            },
            {"kind": "annotation", "attributes": {"trigger": "spectrum"}, "content": "The set of eigenvalues."},
            {"kind": "footnote", "attributes": {"id": "fn-1"}, "content": "See chapter 4."},
        ],
    }


@pytest.fixture
def nested_annotation_tree():
    """A deep dive whose generated content carries its own section."""
    return {
        "id": "spectra",
        "title": "Spectra",
        "content": [
            {
                "kind": "section",
                "content": [
                    {
                        "kind": "section",
                        "content": [
                            {"kind": "paragraph", "content": "Every square matrix has a spectrum."},
                            {
                                "kind": "deepDive",
                                "attributes": {"title": "Deep Dive: spectrum", "action": "branch"},
                                "content": [
                                    {
                                        "kind": "section",
                                        "content": [{"kind": "paragraph", "content": "eigen stuff"}],
                                    },
                                ],
                            },
                        ],
                    },
                ],
            },
        ],
    }


@pytest.fixture
def content_dir(tmp_path, tutorial_tree, table_tree):
    """A content directory with two tutorials."""
    directory = tmp_path / "content"
    directory.mkdir()
    (directory / "matrices.json").write_text(json.dumps(tutorial_tree), encoding="utf-8")
    (directory / "ops.json").write_text(json.dumps(table_tree), encoding="utf-8")
    return directory


@pytest.fixture
def mock_generator():
    """Collaborator whose generate() returns a fixed explanation."""
    generator = MagicMock()
    generator.generate = AsyncMock(return_value="It is a map that preserves sums and scaling.")
    generator.info = MagicMock(return_value={"provider": "mock", "model": "mock-1"})
    generator.close = AsyncMock()
    return generator
