"""
Content tree model - node kinds, text-bearing slots and path helpers.

A node is plain JSON data:

    {"kind": "paragraph", "attributes": {...}, "content": "text" | [...]}

Trees are never modified in place. ``set_at`` rebuilds only the spine of
dicts/lists between the root and the addressed slot; everything off the
path is shared with the input.
"""

from enum import Enum
from typing import Any, Callable, Iterator, Optional, Union

PathKey = Union[str, int]
Path = tuple[PathKey, ...]


class NodeKind(str, Enum):
    """Closed taxonomy of node kinds the engine understands."""
    SECTION = "section"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    TABLE = "table"
    DEFINITION_LIST = "definitionList"
    STEPS = "steps"
    CALLOUT = "callout"
    DEEP_DIVE = "deepDive"
    ASIDE = "annotation"
    FOOTNOTE = "footnote"
    MARKER = "annotationMarker"
    STRONG = "strong"
    EMPHASIS = "em"
    GENERIC = "genericElement"


class SlotKind(str, Enum):
    """Text-bearing slots, in the order the locator probes them."""
    CONTENT = "content"
    ATTRIBUTE_CONTENT = "attributes.content"
    STEP = "attributes.steps"
    STEP_TITLE = "attributes.steps.title"
    STEP_DESCRIPTION = "attributes.steps.description"
    TERM = "attributes.items.term"
    DEFINITION = "attributes.items.definition"
    CELL = "attributes.rows"
    HEADER = "attributes.headers"


# Attribute slots are only interpreted for the kinds that define them
KIND_SLOTS: dict[NodeKind, tuple[str, ...]] = {
    NodeKind.STEPS: ("steps",),
    NodeKind.DEFINITION_LIST: ("items",),
    NodeKind.TABLE: ("rows", "headers"),
}

SECTION_LIKE = frozenset({NodeKind.SECTION})

# Element names used by the tutorial renderer, mapped onto kinds
LEGACY_TYPES: dict[str, NodeKind] = {
    "Section": NodeKind.SECTION,
    "p": NodeKind.PARAGRAPH,
    "h1": NodeKind.HEADING,
    "h2": NodeKind.HEADING,
    "h3": NodeKind.HEADING,
    "h4": NodeKind.HEADING,
    "ComparisonTable": NodeKind.TABLE,
    "DefinitionList": NodeKind.DEFINITION_LIST,
    "Steps": NodeKind.STEPS,
    "Callout": NodeKind.CALLOUT,
    "DeepDive": NodeKind.DEEP_DIVE,
    "Annotation": NodeKind.ASIDE,
    "FootnoteAnnotation": NodeKind.FOOTNOTE,
    "AnnotationMarker": NodeKind.MARKER,
    "strong": NodeKind.STRONG,
    "em": NodeKind.EMPHASIS,
}

# Renderer heading elements carry their level in the name
HEADING_LEVELS = {"h1": 1, "h2": 2, "h3": 3, "h4": 4}

_KIND_VALUES = {kind.value: kind for kind in NodeKind}


def is_node(value: Any) -> bool:
    return isinstance(value, dict)


def kind_of(node: Any) -> Optional[NodeKind]:
    """Return the node's kind, or None for text, unknown or missing kinds."""
    if not is_node(node):
        return None
    return _KIND_VALUES.get(node.get("kind"))


def attributes_of(node: dict) -> dict:
    attributes = node.get("attributes")
    return attributes if isinstance(attributes, dict) else {}


def is_section_like(node: Any) -> bool:
    return kind_of(node) in SECTION_LIKE


def make_node(kind: Union[NodeKind, str], content: Any = None, **attributes) -> dict:
    """Build a node, omitting empty attributes and absent content."""
    node: dict = {"kind": kind.value if isinstance(kind, NodeKind) else kind}
    if attributes:
        node["attributes"] = attributes
    if content is not None:
        node["content"] = content
    return node


def make_section(children: list) -> dict:
    return make_node(NodeKind.SECTION, list(children))


def make_marker(ref: str, action: str = "", label: str = "") -> dict:
    """An inline marker: zero content, pointing at its annotation's source id."""
    attributes = {"ref": ref}
    if action:
        attributes["action"] = action
    if label:
        attributes["label"] = label
    return make_node(NodeKind.MARKER, **attributes)


def children_of(value: Any) -> list:
    """Normalize a content slot into a list of children."""
    if value is None:
        return []
    if isinstance(value, list):
        return list(value)
    return [value]


def iter_children(node: dict) -> Iterator[tuple[Path, Any]]:
    """Yield (relative path, child) for a node's content and attributes.content."""
    content = node.get("content")
    if isinstance(content, list):
        for i, child in enumerate(content):
            yield ("content", i), child
    elif is_node(content):
        yield ("content",), content

    props_content = attributes_of(node).get("content")
    if isinstance(props_content, list):
        for i, child in enumerate(props_content):
            yield ("attributes", "content", i), child
    elif is_node(props_content):
        yield ("attributes", "content"), props_content


def text_of(value: Any) -> str:
    """Concatenate all visible text under a value (markers contribute nothing)."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, list):
        return "".join(text_of(item) for item in value)
    if is_node(value):
        parts = [text_of(value.get("content"))]
        props_content = attributes_of(value).get("content")
        if props_content is not None:
            parts.append(text_of(props_content))
        return "".join(parts)
    return ""


# -------------------------------------------------------------------------
# Path access
# -------------------------------------------------------------------------

def format_path(path: Path) -> str:
    return ".".join(str(key) for key in path) or "<root>"


def get_at(root: Any, path: Path, default: Any = None) -> Any:
    """Read the value at ``path``; ``default`` if any step is missing."""
    current = root
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return default
            current = current[key]
        else:
            if not isinstance(current, dict) or key not in current:
                return default
            current = current[key]
    return current


def _shallow_copy(value: Any, key: PathKey) -> Any:
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict):
        return dict(value)
    # Missing intermediate containers are created on demand
    return [] if isinstance(key, int) else {}


def set_at(root: Any, path: Path, value: Any) -> Any:
    """Return a copy of ``root`` with ``value`` stored at ``path``.

    Every container along the path is shallow-copied; siblings are reused.
    """
    if not path:
        return value
    key, rest = path[0], path[1:]
    copy = _shallow_copy(root, key)
    child = copy[key] if _has_key(copy, key) else None
    copy[key] = set_at(child, rest, value) if rest else value
    return copy


def update_at(root: Any, path: Path, fn: Callable[[Any], Any]) -> Any:
    """Return a copy of ``root`` with the value at ``path`` replaced by ``fn(value)``."""
    return set_at(root, path, fn(get_at(root, path)))


def _has_key(container: Any, key: PathKey) -> bool:
    if isinstance(container, list):
        return isinstance(key, int) and -len(container) <= key < len(container)
    return key in container


# -------------------------------------------------------------------------
# Wire coercion
# -------------------------------------------------------------------------

def coerce_node(value: Any) -> Any:
    """Normalize a node tree to ``{kind, attributes, content}``.

    Accepts the renderer's ``{type, props, children}`` form as well; renderer
    element names are mapped to kinds via LEGACY_TYPES, anything else keeps
    its name as an opaque kind. ``h1``-``h4`` keep their level as
    ``attributes.level``. Text and numbers pass through unchanged.
    """
    if isinstance(value, list):
        return [coerce_node(item) for item in value]
    if not is_node(value):
        return value

    node = {key: item for key, item in value.items() if key not in ("type", "props", "children")}

    kind = value.get("kind")
    legacy_type = None
    if kind is None and "type" in value:
        legacy_type = value["type"]
        kind = LEGACY_TYPES[legacy_type].value if legacy_type in LEGACY_TYPES else legacy_type
    if kind is not None:
        node["kind"] = kind

    attributes = value.get("attributes")
    if attributes is None and isinstance(value.get("props"), dict):
        attributes = value["props"]
    if isinstance(attributes, dict):
        attributes = dict(attributes)
        if "children" in attributes and "content" not in attributes:
            attributes["content"] = attributes.pop("children")
        if "content" in attributes:
            attributes["content"] = coerce_node(attributes["content"])
        node["attributes"] = attributes

    if isinstance(legacy_type, str) and legacy_type in HEADING_LEVELS:
        heading_attributes = dict(node.get("attributes") or {})
        heading_attributes.setdefault("level", HEADING_LEVELS[legacy_type])
        node["attributes"] = heading_attributes

    content = value.get("content")
    if content is None and "children" in value:
        content = value["children"]
    if content is not None:
        node["content"] = coerce_node(content)

    return node
