"""
Insertion planner - splices an annotation and its inline marker into a tree.

Branches (reported through ``events``, never through exceptions):

- text not found          -> annotation appended as a trailing section
- match in table/list     -> row highlight on the table, no marker
- match in any other slot -> slot split around an inline marker

In the last two cases the annotation is then placed inside the nearest
enclosing section, right after the child holding the match. The root and
its top-level elements are never used as that section: a match with no
deeper section gets a new section spliced in after its top-level element.
A single node held directly in the root's content counts as top level too,
the same as element 0 of the list the first insertion promotes it to.
Sections inside an existing annotation are never used: the payload is
placed beside the outermost annotation.
"""

import random
import string
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Union

from shared.logging import get_logger

from .locator import Found, ValidationError, find_marker_spanning, locate
from .nodes import (
    Path,
    attributes_of,
    children_of,
    format_path,
    get_at,
    is_node,
    is_section_like,
    make_marker,
    make_section,
    set_at,
)
from .registry import is_annotation
from .structured import StructuredClaim, apply_highlight, claim

log = get_logger("annotator", "planner")


class Action(str, Enum):
    """What the reader asked for on the selected text."""
    EXPLAIN = "explain"
    BRANCH = "branch"
    ASK = "ask"


MARKER_LABELS = {
    Action.EXPLAIN: "💡",
    Action.BRANCH: "🌿",
    Action.ASK: "❓",
}


class Event(str, Enum):
    """Which branch of the planner fired."""
    MARKER_INSERTED = "marker-inserted"
    ROW_HIGHLIGHTED = "row-highlighted"
    HEADER_MATCHED = "header-matched"
    FALLBACK_APPENDED = "fallback-appended"
    OVERLAPS_ANNOTATION = "overlaps-annotation"
    ANNOTATION_PLACED = "annotation-placed"
    SECTION_SYNTHESIZED = "section-synthesized"


_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_annotation_id() -> str:
    """Generate an id like ``ann-1718000000000-k3x9qa``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=6))
    return f"ann-{int(time.time() * 1000)}-{suffix}"


def parse_action(action: Union[Action, str]) -> Action:
    try:
        return Action(action)
    except ValueError:
        raise ValidationError(
            f"Unknown action {action!r}; expected one of: "
            + ", ".join(a.value for a in Action)
        ) from None


@dataclass
class Annotation:
    """
    A generated payload node plus the identifiers that link it to its marker.

    ``id`` identifies the payload; ``source_id`` is what the inline marker
    references (defaults to ``id``).
    """
    payload: dict
    id: str = field(default_factory=new_annotation_id)
    source_id: Optional[str] = None
    action: Action = Action.EXPLAIN

    def __post_init__(self):
        if not is_node(self.payload) or not isinstance(self.payload.get("kind"), str):
            raise ValidationError("annotation payload must be a node with a 'kind'")
        if not self.id:
            raise ValidationError("annotation id must be non-empty")
        self.action = parse_action(self.action)
        if self.source_id is None:
            self.source_id = self.id

    def stamped(self, **extra) -> dict:
        """Copy of the payload tagged with the annotation's identifiers."""
        node = dict(self.payload)
        attributes = dict(attributes_of(self.payload))
        attributes.update(
            id=self.id,
            sourceId=self.source_id,
            action=self.action.value,
            **extra,
        )
        node["attributes"] = attributes
        return node

    def marker(self) -> dict:
        return make_marker(self.source_id, self.action.value, MARKER_LABELS[self.action])


@dataclass
class InsertionResult:
    """New tree plus the events describing which branches fired."""
    tree: Any
    events: list[Event]
    annotation_id: str
    found: Optional[Found] = None

    @property
    def placed_inline(self) -> bool:
        return Event.MARKER_INSERTED in self.events


def insert_annotation(
    root: dict,
    target: str,
    annotation: Union[Annotation, dict],
    action: Union[Action, str, None] = None,
) -> InsertionResult:
    """
    Insert an annotation for ``target`` into a copy of ``root``.

    Args:
        root: Document envelope or node whose ``content`` is the top level
        target: Non-empty text the reader selected
        annotation: Annotation, or a bare payload node to wrap in one
        action: Overrides the annotation's action when given

    Returns:
        InsertionResult; the input tree is never modified
    """
    if not isinstance(target, str) or not target:
        raise ValidationError("target text must be a non-empty string")
    if not is_node(root):
        raise ValidationError("tree root must be a mapping")

    if not isinstance(annotation, Annotation):
        annotation = Annotation(payload=annotation, action=action or Action.EXPLAIN)
    elif action is not None:
        annotation = replace(annotation, action=parse_action(action))

    found = locate(root, target)
    if found is None:
        return _fallback_append(root, target, annotation)

    log.debug(
        "annotator.planner.found",
        path=format_path(found.path),
        slot=found.slot.value,
        annotation_id=annotation.id,
    )

    events: list[Event] = []
    tree = root
    structured = claim(root, found)

    if structured is not None:
        tree = apply_highlight(tree, structured)
        events.append(Event.ROW_HIGHLIGHTED if structured.row is not None else Event.HEADER_MATCHED)
        payload = _structured_payload(annotation, structured)
    else:
        payload = annotation.stamped()

    tree, match_path, placement = _place(tree, found.path, payload)

    if structured is None:
        tree = _splice_marker(tree, match_path, target, annotation.marker())
        events.append(Event.MARKER_INSERTED)
        log.info(
            "annotator.planner.marker_inserted",
            path=format_path(match_path),
            ref=annotation.source_id,
        )

    events.append(placement)
    return InsertionResult(tree=tree, events=events, annotation_id=annotation.id, found=found)


def _structured_payload(annotation: Annotation, structured: StructuredClaim) -> dict:
    if structured.row is None:
        return annotation.stamped()
    return annotation.stamped(highlightRow=structured.row)


def _fallback_append(root: dict, target: str, annotation: Annotation) -> InsertionResult:
    events = []
    spanning = find_marker_spanning(root, target)
    if spanning is not None:
        events.append(Event.OVERLAPS_ANNOTATION)
        log.warning(
            "annotator.planner.overlaps_annotation",
            path=format_path(spanning),
            target=target[:40],
        )

    tree, _ = _insert_top_level(root, None, make_section([annotation.stamped()]))
    events.append(Event.FALLBACK_APPENDED)
    log.warning(
        "annotator.planner.fallback_appended",
        target=target[:40],
        annotation_id=annotation.id,
    )
    return InsertionResult(tree=tree, events=events, annotation_id=annotation.id)


# -------------------------------------------------------------------------
# Placement
# -------------------------------------------------------------------------

def _place(tree: dict, match_path: Path, payload: dict) -> tuple[dict, Path, Event]:
    """Place the payload; returns the tree, the (possibly shifted) match path and the event."""
    container_path = _find_container(tree, match_path)

    if container_path is not None:
        tree, promoted = _insert_in_container(tree, container_path, match_path, payload)
        log.info(
            "annotator.planner.annotation_placed",
            container=format_path(container_path),
        )
        return tree, _remap(match_path, promoted), Event.ANNOTATION_PLACED

    tree, promoted = _insert_top_level(tree, _top_level_index(tree, match_path), make_section([payload]))
    log.info(
        "annotator.planner.section_synthesized",
        after=format_path(match_path[:2]),
    )
    return tree, _remap(match_path, promoted), Event.SECTION_SYNTHESIZED


def _find_container(root: dict, match_path: Path) -> Optional[Path]:
    """
    Nearest section-like ancestor below the top level, walking up from the match.

    Sections inside an existing annotation are skipped: the walk starts above
    the outermost annotation on the path, so the new payload lands beside it.
    """
    top_depth = 2 if isinstance(root.get("content"), list) else 1
    start = len(match_path) - 1
    for i in range(1, len(match_path)):
        if is_annotation(get_at(root, match_path[:i])):
            start = i - 1
            break
    for i in range(start, top_depth, -1):
        prefix = match_path[:i]
        if is_section_like(get_at(root, prefix)):
            return prefix
    return None


def _insert_in_container(
    root: dict,
    container_path: Path,
    match_path: Path,
    payload: dict,
) -> tuple[dict, Optional[Path]]:
    container = get_at(root, container_path)
    content = container.get("content")
    children = children_of(content)

    depth = len(container_path)
    index = match_path[depth + 1] if len(match_path) > depth + 1 else None
    if isinstance(content, list) and match_path[depth] == "content" and isinstance(index, int):
        position = index + 1
    else:
        position = len(children)
    children.insert(position, payload)

    updated = dict(container)
    updated["content"] = children
    promoted = container_path + ("content",) if content is not None and not isinstance(content, list) else None
    return set_at(root, container_path, updated), promoted


def _top_level_index(root: dict, match_path: Path) -> Optional[int]:
    if isinstance(root.get("content"), list) and len(match_path) > 1 and isinstance(match_path[1], int):
        return match_path[1]
    return None


def _insert_top_level(root: dict, after: Optional[int], node: dict) -> tuple[dict, Optional[Path]]:
    """Insert ``node`` into the root's content after index ``after`` (or at the end)."""
    content = root.get("content")
    promoted = None
    if isinstance(content, list):
        children = list(content)
        children.insert(len(children) if after is None else after + 1, node)
    else:
        # A single node (or text) at the top level becomes the first of a sequence
        children = children_of(content) + [node]
        if content is not None:
            promoted = ("content",)
    updated = dict(root)
    updated["content"] = children
    return updated, promoted


def _remap(path: Path, promoted: Optional[Path]) -> Path:
    """Shift a path after a single value at ``promoted`` became element 0 of a list."""
    if promoted is None or path[:len(promoted)] != promoted:
        return path
    return promoted + (0,) + path[len(promoted):]


# -------------------------------------------------------------------------
# Inline marker
# -------------------------------------------------------------------------

def _splice_marker(root: dict, path: Path, target: str, marker: dict) -> dict:
    """Split the matched string into [text up to and including the match, marker, rest]."""
    text = get_at(root, path)
    end = text.index(target) + len(target)
    fragments = [text[:end], marker]
    if text[end:]:
        fragments.append(text[end:])

    if len(path) >= 2 and isinstance(path[-1], int) and path[-2] == "content":
        # Raw text inside a content sequence: splice the fragments in place
        parent_path, index = path[:-1], path[-1]
        sequence = get_at(root, parent_path)
        return set_at(root, parent_path, sequence[:index] + fragments + sequence[index + 1:])

    return set_at(root, path, fragments)
