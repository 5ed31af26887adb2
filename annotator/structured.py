"""
Structured-data adapter - tables and definition lists.

Inline markers are undefined inside table cells and definition-list
entries, so matches there are redirected: the owning table/list gains the
matched row index in ``attributes.highlightRows`` and nothing else changes.
"""

from dataclasses import dataclass
from typing import Any, Optional

from shared.logging import get_logger

from .locator import Found
from .nodes import KIND_SLOTS, NodeKind, Path, attributes_of, format_path, get_at, kind_of, update_at

log = get_logger("annotator", "structured")

STRUCTURED_KINDS = frozenset({NodeKind.TABLE, NodeKind.DEFINITION_LIST})
STRUCTURED_SLOTS = frozenset({"rows", "headers", "items"})


@dataclass(frozen=True)
class StructuredClaim:
    """A match inside a table or definition list."""
    owner_path: Path  # path of the table / definition-list node
    slot: str  # "rows", "headers" or "items"
    row: Optional[int]  # None for header matches


def claim(root: Any, found: Found) -> Optional[StructuredClaim]:
    """
    Decide whether a located match belongs to a table or definition list.

    Returns:
        StructuredClaim if the path runs through rows/headers/items of a node
        that defines them, else None (plain inline case)
    """
    path = found.path
    for k in range(len(path) - 1):
        if path[k] != "attributes" or path[k + 1] not in STRUCTURED_SLOTS:
            continue

        owner_path = path[:k]
        kind = kind_of(get_at(root, owner_path))
        slot = path[k + 1]
        if kind not in STRUCTURED_KINDS or slot not in KIND_SLOTS[kind]:
            continue

        row = None
        if slot != "headers" and len(path) > k + 2 and isinstance(path[k + 2], int):
            row = path[k + 2]
        return StructuredClaim(owner_path=owner_path, slot=slot, row=row)

    return None


def apply_highlight(root: Any, structured: StructuredClaim) -> Any:
    """
    Add the claimed row to the owner's ``highlightRows`` (order-preserving, no duplicates).

    Header matches have no row and leave the tree untouched.
    """
    if structured.row is None:
        log.debug(
            "annotator.structured.header_match",
            owner=format_path(structured.owner_path),
        )
        return root

    def _highlight(owner: dict) -> dict:
        attributes = dict(attributes_of(owner))
        rows = list(attributes.get("highlightRows") or [])
        if structured.row not in rows:
            rows.append(structured.row)
        attributes["highlightRows"] = rows
        updated = dict(owner)
        updated["attributes"] = attributes
        return updated

    log.info(
        "annotator.structured.row_highlighted",
        owner=format_path(structured.owner_path),
        slot=structured.slot,
        row=structured.row,
    )
    return update_at(root, structured.owner_path, _highlight)
