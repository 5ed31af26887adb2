"""
Annotator - places generated annotations into tutorial content trees.

Locates selected text in a JSON content tree, splices in the annotation
and its inline marker, and later folds all annotations back into the text.
"""

from .consolidator import Consolidation, RevisionRejected, consolidate, consolidate_async
from .locator import Found, ValidationError, locate
from .planner import Action, Annotation, Event, InsertionResult, insert_annotation
from .registry import AnnotationSummary, enumerate_annotations

__all__ = [
    "Action",
    "Annotation",
    "AnnotationSummary",
    "Consolidation",
    "Event",
    "Found",
    "InsertionResult",
    "RevisionRejected",
    "ValidationError",
    "consolidate",
    "consolidate_async",
    "enumerate_annotations",
    "insert_annotation",
    "locate",
]
