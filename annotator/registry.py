"""
Annotation registry - enumerates annotations already spliced into a tree.

Recognized shapes:
- ``annotation`` asides
- ``deepDive`` expandable sections (branch and ask results)
- ``callout`` with ``type: info`` that opens with a 💡 explanation marker
- ``footnote`` references
- any node stamped with a ``sourceId`` by the planner

Traversal is document order (node before its children) and does not
descend into a recognized annotation, so nested generated content is not
counted twice.
"""

from dataclasses import dataclass, asdict
from typing import Any, Optional

from .nodes import NodeKind, Path, attributes_of, is_node, iter_children, kind_of, text_of

PREVIEW_LENGTH = 100
EXPLANATION_MARKER = "💡"


@dataclass
class AnnotationSummary:
    """One annotation found in a tree."""
    kind: str
    path: Path
    subtype: Optional[str] = None
    title: Optional[str] = None
    content_preview: str = ""
    annotation_id: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["path"] = list(self.path)
        return data

    def digest_line(self) -> str:
        """Single-line description used in consolidation prompts."""
        label = self.kind if not self.subtype else f"{self.kind}/{self.subtype}"
        title = f' "{self.title}"' if self.title else ""
        return f"[{label}]{title}: {self.content_preview}"


def enumerate_annotations(root: Any, preview_length: int = PREVIEW_LENGTH) -> list[AnnotationSummary]:
    """
    List every annotation in ``root`` in document order.

    Args:
        root: Document envelope, node, or sequence of nodes
        preview_length: Maximum characters of content preview

    Returns:
        List of AnnotationSummary (stable for a given tree)
    """
    found: list[AnnotationSummary] = []
    _walk(root, (), found, preview_length)
    return found


def is_annotation(value: Any) -> bool:
    """True if ``value`` is a node the registry counts as an annotation."""
    return is_node(value) and _recognize(value, (), 0) is not None


def _walk(value: Any, path: Path, found: list, preview_length: int):
    if isinstance(value, list):
        for i, item in enumerate(value):
            _walk(item, path + (i,), found, preview_length)
        return
    if not is_node(value):
        return

    summary = _recognize(value, path, preview_length)
    if summary is not None:
        found.append(summary)
        return

    for rel_path, child in iter_children(value):
        _walk(child, path + rel_path, found, preview_length)


def _recognize(node: dict, path: Path, preview_length: int) -> Optional[AnnotationSummary]:
    kind = kind_of(node)
    attributes = attributes_of(node)
    preview = _preview(node, preview_length)
    annotation_id = attributes.get("id") if isinstance(attributes.get("id"), str) else None

    if kind is NodeKind.ASIDE:
        return AnnotationSummary(
            kind="aside",
            path=path,
            subtype=attributes.get("type") or attributes.get("action"),
            title=_as_text(attributes.get("trigger")),
            content_preview=preview,
            annotation_id=annotation_id,
        )

    if kind is NodeKind.DEEP_DIVE:
        return AnnotationSummary(
            kind="deepDive",
            path=path,
            subtype=attributes.get("action"),
            title=_as_text(attributes.get("title")),
            content_preview=preview,
            annotation_id=annotation_id,
        )

    if kind is NodeKind.CALLOUT:
        lead = _explanation_lead(node)
        if attributes.get("type", "info") == "info" and lead is not None:
            return AnnotationSummary(
                kind="callout",
                path=path,
                subtype=attributes.get("action") or "explain",
                title=lead,
                content_preview=preview,
                annotation_id=annotation_id,
            )

    if kind is NodeKind.FOOTNOTE:
        return AnnotationSummary(
            kind="footnote",
            path=path,
            title=annotation_id,
            content_preview=preview,
            annotation_id=annotation_id,
        )

    if "sourceId" in attributes:
        return AnnotationSummary(
            kind=str(node.get("kind")),
            path=path,
            subtype=attributes.get("type") or attributes.get("action"),
            title=_as_text(attributes.get("title")),
            content_preview=preview,
            annotation_id=annotation_id,
        )

    return None


def _explanation_lead(node: dict) -> Optional[str]:
    """Text of the leading ``strong`` child if it carries the explanation marker."""
    for _, child in iter_children(node):
        if isinstance(child, str):
            if child.strip():
                return None
            continue
        if kind_of(child) is NodeKind.STRONG:
            text = text_of(child)
            return text if text.startswith(EXPLANATION_MARKER) else None
        return None
    return None


def _preview(node: dict, limit: int) -> str:
    text = " ".join(text_of(node).split())
    return text[:limit]


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else text_of(value)
