"""
Revision consolidator - folds existing annotations back into the base text.

enumerate -> digest -> collaborator -> validate -> swap

The collaborator is a black box returning something that should be a full
replacement tree, possibly wrapped in prose or a fenced code block. The
only guarantee made here is atomicity: either the whole tree is replaced
by a validated revision, or the original tree comes back untouched.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from shared.logging import get_logger

from .nodes import coerce_node, is_node
from .registry import PREVIEW_LENGTH, AnnotationSummary, enumerate_annotations

log = get_logger("annotator", "consolidator")

FENCE_PATTERN = re.compile(r"```[a-zA-Z0-9_-]*")
ENVELOPE_KEYS = ("id", "title")

Summarize = Callable[[list[AnnotationSummary]], str]
Revise = Callable[[Any, str], Any]
ReviseAsync = Callable[[Any, str], Awaitable[Any]]


class RevisionParseError(ValueError):
    """Raised when a revision cannot be turned into a node with content."""
    pass


@dataclass
class Consolidation:
    """An accepted revision."""
    tree: Any
    before: int
    after: int

    @property
    def accepted(self) -> bool:
        return True


@dataclass
class RevisionRejected:
    """A revision that failed validation; ``tree`` is the untouched original."""
    tree: Any
    reason: str
    before: int = 0

    @property
    def accepted(self) -> bool:
        return False


ConsolidationResult = Union[Consolidation, RevisionRejected]


def build_digest(summaries: list[AnnotationSummary]) -> str:
    """One line per annotation: kind/subtype, title and content preview."""
    return "\n".join(
        f"{i}. {summary.digest_line()}"
        for i, summary in enumerate(summaries, start=1)
    )


def extract_json_object(text: str) -> dict:
    """
    Pull the outermost ``{...}`` object out of model output.

    Code-fence markers are stripped first.

    Raises:
        RevisionParseError: If no object is present or it does not parse
    """
    stripped = FENCE_PATTERN.sub("", text)
    start = stripped.find("{")
    end = stripped.rfind("}")
    if start < 0 or end <= start:
        raise RevisionParseError("no JSON object found in revision text")
    try:
        value = json.loads(stripped[start:end + 1])
    except json.JSONDecodeError as e:
        raise RevisionParseError(f"revision JSON does not parse: {e}") from e
    if not isinstance(value, dict):
        raise RevisionParseError("revision JSON is not an object")
    return value


def parse_revision(value: Any) -> dict:
    """
    Coerce a collaborator result into a node tree.

    Accepts a mapping or text containing one. The result must carry a
    non-null ``content`` (after renderer-form coercion).

    Raises:
        RevisionParseError: If the value is not a usable tree
    """
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        value = extract_json_object(value)
    if not is_node(value):
        raise RevisionParseError(f"revision is a {type(value).__name__}, not an object")

    tree = coerce_node(value)
    if tree.get("content") is None:
        raise RevisionParseError("revision has no content")
    return tree


def _carry_envelope(original: Any, revised: dict) -> dict:
    """Keep the document id/title when the revision leaves them out."""
    if not is_node(original):
        return revised
    missing = {key: original[key] for key in ENVELOPE_KEYS if key in original and key not in revised}
    if not missing:
        return revised
    return {**missing, **revised}


def consolidate(
    root: Any,
    revise: Revise,
    summarize: Summarize = build_digest,
    preview_length: int = PREVIEW_LENGTH,
) -> ConsolidationResult:
    """
    Replace ``root`` with a collaborator revision that absorbs its annotations.

    Args:
        root: The current tree
        revise: Called as ``revise(root, digest)``; returns the revision
        summarize: Builds the digest from the annotation summaries
        preview_length: Preview truncation used in the digest

    Returns:
        Consolidation on acceptance, RevisionRejected otherwise. A tree with
        no annotations is returned unchanged with before == after == 0.
    """
    summaries = enumerate_annotations(root, preview_length)
    if not summaries:
        log.info("annotator.consolidator.nothing_to_consolidate")
        return Consolidation(tree=root, before=0, after=0)

    digest = summarize(summaries)
    log.info("annotator.consolidator.revising", annotations=len(summaries))
    return _accept(root, revise(root, digest), len(summaries))


async def consolidate_async(
    root: Any,
    revise: ReviseAsync,
    summarize: Summarize = build_digest,
    preview_length: int = PREVIEW_LENGTH,
) -> ConsolidationResult:
    """Same as ``consolidate`` with an awaitable collaborator."""
    summaries = enumerate_annotations(root, preview_length)
    if not summaries:
        log.info("annotator.consolidator.nothing_to_consolidate")
        return Consolidation(tree=root, before=0, after=0)

    digest = summarize(summaries)
    log.info("annotator.consolidator.revising", annotations=len(summaries))
    return _accept(root, await revise(root, digest), len(summaries))


def _accept(root: Any, revision: Any, before: int) -> ConsolidationResult:
    try:
        tree = parse_revision(revision)
    except RevisionParseError as e:
        log.warning("annotator.consolidator.rejected", reason=str(e), before=before)
        return RevisionRejected(tree=root, reason=str(e), before=before)

    tree = _carry_envelope(root, tree)
    after = len(enumerate_annotations(tree))
    log.info("annotator.consolidator.accepted", before=before, after=after)
    return Consolidation(tree=tree, before=before, after=after)
