"""
Annotation payload generation.

Turns collaborator output into payload nodes:

- explain -> info callout: 💡 "<text>": explanation (timestamp)
- branch  -> deep dive built from a JSON array of elements
- ask     -> deep dive titled with the question
- failure -> warning callout carrying the error
"""

import json
import re
from datetime import datetime
from typing import Optional, Protocol

from shared.logging import get_logger

from llm.src.client import GenerationError

from . import prompts
from .locator import ValidationError
from .nodes import NodeKind, coerce_node, is_node, make_node
from .planner import Action, parse_action

log = get_logger("annotator", "generation")

ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")
BRACKETED_LINE = re.compile(r"^[\[{].*[\]}]$", re.MULTILINE)


class TextGenerator(Protocol):
    async def generate(self, system_prompt: str, user_prompt: str) -> str: ...


def timestamp_text(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime("%Y-%m-%d %H:%M")


def split_paragraphs(text: str) -> list[str]:
    """Blank-line separated blocks, stripped, empties dropped."""
    return [block.strip() for block in text.strip().split("\n\n") if block.strip()]


def _stamp(timestamp: str) -> dict:
    return make_node(NodeKind.EMPHASIS, f"({timestamp})")


def explain_payload(selected_text: str, explanation: str, timestamp: str) -> dict:
    return make_node(
        NodeKind.CALLOUT,
        [
            make_node(NodeKind.STRONG, f'💡 "{selected_text}":'),
            " ",
            explanation.strip(),
            " ",
            _stamp(timestamp),
        ],
        type="info",
    )


def parse_branch_content(response: str) -> list:
    """
    Elements of a deep dive from model output.

    The outermost ``[...]`` span is parsed as a JSON array of elements (renderer
    form accepted). Anything unparseable falls back to one paragraph per block.
    """
    match = ARRAY_PATTERN.search(response)
    if match:
        try:
            elements = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            log.warning("annotator.generation.branch_parse_failed", error=str(e))
        else:
            if isinstance(elements, list) and elements:
                return [
                    coerce_node(element) if is_node(element) else make_node(NodeKind.PARAGRAPH, str(element))
                    for element in elements
                ]
            log.warning("annotator.generation.branch_empty")
    else:
        log.warning("annotator.generation.branch_no_array")

    paragraphs = []
    for block in split_paragraphs(response):
        # Stray JSON fragments left by a truncated array
        cleaned = BRACKETED_LINE.sub("", block).strip() or block
        paragraphs.append(make_node(NodeKind.PARAGRAPH, cleaned))
    return paragraphs


def branch_payload(selected_text: str, response: str) -> dict:
    return make_node(
        NodeKind.DEEP_DIVE,
        parse_branch_content(response),
        title=f"Deep Dive: {selected_text}",
        defaultOpen=True,
    )


def ask_payload(selected_text: str, question: str, answer: str, timestamp: str) -> dict:
    content = [
        make_node(
            NodeKind.CALLOUT,
            [make_node(NodeKind.EMPHASIS, f'About "{selected_text}"')],
            type="info",
        ),
    ]
    content.extend(make_node(NodeKind.PARAGRAPH, block) for block in split_paragraphs(answer))
    content.append(_stamp(timestamp))
    return make_node(
        NodeKind.DEEP_DIVE,
        content,
        title=f"❓ Q: {question}",
        defaultOpen=True,
    )


def error_payload(selected_text: str, error: str, timestamp: str) -> dict:
    return make_node(
        NodeKind.CALLOUT,
        [
            make_node(NodeKind.STRONG, f'⚠️ "{selected_text}":'),
            " ",
            f"AI generation failed: {error}. Please try again.",
            " ",
            _stamp(timestamp),
        ],
        type="warning",
    )


async def generate_payload(
    generator: TextGenerator,
    action: Action,
    selected_text: str,
    context: str = "",
    tutorial_title: str = "",
    question: Optional[str] = None,
) -> dict:
    """
    Ask the collaborator for annotation content and build the payload node.

    A GenerationError does not propagate: the reader gets a warning callout
    in place of the annotation.

    Raises:
        ValidationError: Unknown action, or ``ask`` without a question
    """
    action = parse_action(action)
    if action is Action.ASK and not (question and question.strip()):
        raise ValidationError("'ask' requires a question")

    timestamp = timestamp_text()
    context = context or selected_text

    try:
        if action is Action.EXPLAIN:
            system, user = prompts.explain_prompt(tutorial_title, selected_text, context)
            text = await generator.generate(system, user)
            payload = explain_payload(selected_text, text, timestamp)
        elif action is Action.BRANCH:
            system, user = prompts.branch_prompt(tutorial_title, selected_text, context)
            text = await generator.generate(system, user)
            payload = branch_payload(selected_text, text)
        else:
            system, user = prompts.ask_prompt(tutorial_title, selected_text, context, question)
            text = await generator.generate(system, user)
            payload = ask_payload(selected_text, question, text, timestamp)
    except GenerationError as e:
        log.warning(
            "annotator.generation.failed",
            action=action.value,
            error=str(e),
        )
        return error_payload(selected_text, str(e), timestamp)

    log.info(
        "annotator.generation.generated",
        action=action.value,
        kind=payload["kind"],
        chars=len(text),
    )
    return payload
