"""
Text locator - finds the first slot containing a target string.

Depth-first, preorder, with a fixed slot priority at every node:

    1. content (string, or each element of the sequence, recursively)
    2. attributes.content
    3. attributes.steps        (steps nodes)
    4. attributes.items        (definition lists)
    5. attributes.rows         (tables)
    6. attributes.headers      (tables)

Matching is exact, case-sensitive substring containment inside a single
slot. Text split across sibling fragments is never joined.
"""

from dataclasses import dataclass
from typing import Any, Optional

from .nodes import (
    KIND_SLOTS,
    NodeKind,
    Path,
    SlotKind,
    attributes_of,
    is_node,
    iter_children,
    kind_of,
)


class ValidationError(ValueError):
    """Raised when an engine operation is called with malformed input."""
    pass


@dataclass(frozen=True)
class Found:
    """A located slot: where it is, what kind of slot, and its full text."""
    path: Path
    slot: SlotKind
    text: str


def locate(root: Any, target: str) -> Optional[Found]:
    """
    Find the first slot in document order whose text contains ``target``.

    Args:
        root: A node, a document envelope, or a sequence of nodes
        target: Non-empty text to search for

    Returns:
        Found for the first matching slot, or None if nothing matches
    """
    if not isinstance(target, str) or not target:
        raise ValidationError("target text must be a non-empty string")
    return _probe(root, (), SlotKind.CONTENT, target)


def _probe(value: Any, path: Path, slot: SlotKind, target: str) -> Optional[Found]:
    if isinstance(value, str):
        return Found(path, slot, value) if target in value else None
    if isinstance(value, list):
        for i, item in enumerate(value):
            found = _probe(item, path + (i,), slot, target)
            if found:
                return found
        return None
    if is_node(value):
        return _search_node(value, path, target)
    return None


def _search_node(node: dict, path: Path, target: str) -> Optional[Found]:
    found = _probe(node.get("content"), path + ("content",), SlotKind.CONTENT, target)
    if found:
        return found

    attributes = attributes_of(node)
    if "content" in attributes:
        found = _probe(
            attributes["content"],
            path + ("attributes", "content"),
            SlotKind.ATTRIBUTE_CONTENT,
            target,
        )
        if found:
            return found

    kind = kind_of(node)
    for name in KIND_SLOTS.get(kind, ()):
        probe = _SLOT_PROBES[name]
        found = probe(attributes.get(name), path + ("attributes", name), target)
        if found:
            return found

    return None


def _probe_steps(steps: Any, path: Path, target: str) -> Optional[Found]:
    if not isinstance(steps, list):
        return None
    for i, step in enumerate(steps):
        if isinstance(step, str):
            if target in step:
                return Found(path + (i,), SlotKind.STEP, step)
        elif is_node(step):
            for field, slot in (("title", SlotKind.STEP_TITLE), ("description", SlotKind.STEP_DESCRIPTION)):
                text = step.get(field)
                if isinstance(text, str) and target in text:
                    return Found(path + (i, field), slot, text)
    return None


def _probe_items(items: Any, path: Path, target: str) -> Optional[Found]:
    if not isinstance(items, list):
        return None
    for i, item in enumerate(items):
        if not is_node(item):
            continue
        for field, slot in (("term", SlotKind.TERM), ("definition", SlotKind.DEFINITION)):
            text = item.get(field)
            if isinstance(text, str) and target in text:
                return Found(path + (i, field), slot, text)
    return None


def _probe_rows(rows: Any, path: Path, target: str) -> Optional[Found]:
    if not isinstance(rows, list):
        return None
    for i, row in enumerate(rows):
        if not isinstance(row, list):
            continue
        for j, cell in enumerate(row):
            if isinstance(cell, str) and target in cell:
                return Found(path + (i, j), SlotKind.CELL, cell)
    return None


def _probe_headers(headers: Any, path: Path, target: str) -> Optional[Found]:
    if not isinstance(headers, list):
        return None
    for i, header in enumerate(headers):
        if isinstance(header, str) and target in header:
            return Found(path + (i,), SlotKind.HEADER, header)
    return None


_SLOT_PROBES = {
    "steps": _probe_steps,
    "items": _probe_items,
    "rows": _probe_rows,
    "headers": _probe_headers,
}


# -------------------------------------------------------------------------
# Marker-spanning detection
# -------------------------------------------------------------------------

def find_marker_spanning(root: Any, target: str) -> Optional[Path]:
    """
    Find a content sequence where ``target`` only matches across a marker.

    After an annotation splits "a b c" into ["a b", marker, " c"], the text
    "b c" is no longer in any single slot. This returns the path of the first
    such sequence (document order), or None.
    """
    if not target:
        return None
    return _scan_spanning(root, (), target)


def _scan_spanning(value: Any, path: Path, target: str) -> Optional[Path]:
    if isinstance(value, list):
        for i, item in enumerate(value):
            hit = _scan_spanning(item, path + (i,), target)
            if hit is not None:
                return hit
        return None
    if not is_node(value):
        return None

    sequences = (
        (("content",), value.get("content")),
        (("attributes", "content"), attributes_of(value).get("content")),
    )
    for rel_path, sequence in sequences:
        if isinstance(sequence, list) and _spans_marker(sequence, target):
            return path + rel_path

    for rel_path, child in iter_children(value):
        hit = _scan_spanning(child, path + rel_path, target)
        if hit is not None:
            return hit
    return None


def _spans_marker(sequence: list, target: str) -> bool:
    """True if ``target`` appears in a marker-joined text run but in no single fragment."""
    runs: list[list[str]] = [[]]
    saw_marker = False
    for item in sequence:
        if isinstance(item, str):
            runs[-1].append(item)
        elif kind_of(item) is NodeKind.MARKER:
            saw_marker = True
        else:
            runs.append([])
    if not saw_marker:
        return False
    for run in runs:
        if len(run) > 1 and target in "".join(run) and not any(target in part for part in run):
            return True
    return False
