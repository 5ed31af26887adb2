"""
Prompt builders for annotation generation and consolidation.

Each builder returns a (system_prompt, user_prompt) pair for LLMClient.generate.
"""

import json
from typing import Any

BRANCH_ELEMENT_CATALOG = """
BASIC TEXT:
- { "type": "p", "children": "paragraph text" }
- { "type": "strong", "children": "bold text" }
- { "type": "em", "children": "italic text" }

CALLOUTS:
- { "type": "Callout", "props": { "type": "info|warning|success|tip" }, "children": "callout text" }
- { "type": "Blockquote", "children": "key insight or pull quote" }

STRUCTURED DATA:
- { "type": "ul", "children": [{ "type": "li", "children": "bullet item" }] }
- { "type": "Steps", "props": { "steps": ["Step 1", "Step 2"] } }
- { "type": "DefinitionList", "props": { "items": [{ "term": "X", "definition": "..." }] } }
- { "type": "ComparisonTable", "props": { "headers": ["Before", "After"], "rows": [["old", "new"]] } }
""".strip()


def annotation_system_prompt(tutorial_title: str, selected_text: str) -> str:
    """System prompt shared by explain, branch and ask."""
    return f"""You are helping create educational content for an interactive tutorial called "{tutorial_title or 'Tutorial'}".

Your job is to explain concepts IN THE CONTEXT of what the reader is learning, not with generic definitions.

Key principles:
- The reader selected "{selected_text}"; they likely know what these words mean individually
- What they want to know is what it means HERE, in this tutorial
- Be concise but insightful
- Reference other concepts from the tutorial when relevant
- Use concrete examples when helpful"""


def explain_prompt(tutorial_title: str, selected_text: str, context: str) -> tuple[str, str]:
    system = annotation_system_prompt(tutorial_title, selected_text)
    system += "\n\nReturn ONLY the explanation text: no JSON, no formatting markers, no preamble."
    user = f"""The reader is on this passage:
"{context}"

They selected the phrase: "{selected_text}"

Write a brief (2-3 sentences) contextual explanation of what "{selected_text}" means in this specific context. Explain its role in what they are learning rather than defining the term."""
    return system, user


def branch_prompt(tutorial_title: str, selected_text: str, context: str) -> tuple[str, str]:
    system = annotation_system_prompt(tutorial_title, selected_text)
    user = f"""The reader is on this passage:
"{context}"

They want to go deeper on: "{selected_text}"

Generate a structured educational deep-dive as a JSON array of content elements.

Available element types:

{BRANCH_ELEMENT_CATALOG}

Create 4-6 elements that:
1. Open with why this matters (paragraph)
2. Show a concrete example (Steps or ComparisonTable)
3. Give an analogy or key insight (Blockquote)
4. List key takeaways (ul or DefinitionList)
5. End with an actionable tip (Callout type="tip")

Return ONLY a valid JSON array. No markdown, no preamble."""
    return system, user


def ask_prompt(tutorial_title: str, selected_text: str, context: str, question: str) -> tuple[str, str]:
    system = annotation_system_prompt(tutorial_title, selected_text)
    user = f"""The reader is on this passage:
"{context}"

They selected the phrase: "{selected_text}"

They asked: "{question}"

Answer in a clear, helpful way:
1. Address the question directly
2. Use the context of what they are reading
3. Give a concrete example or analogy if helpful
4. Keep it concise but complete (2-4 paragraphs)

Do not use markdown. Do not include a preamble."""
    return system, user


REVISE_SYSTEM_PROMPT = (
    "You are an expert educational content editor. Your specialty is seamlessly "
    "integrating clarifications into prose without making it feel stitched together."
)


def revise_prompt(tree: Any, digest: str) -> tuple[str, str]:
    """
    Ask for a full replacement tree that folds the listed annotations into the text.

    The tree is sent as JSON; the answer must be one JSON object of the same shape.
    """
    title = tree.get("title", "") if isinstance(tree, dict) else ""
    user = f"""You are improving an educational tutorial by incorporating reader annotations.

TUTORIAL TITLE: "{title}"

CURRENT TUTORIAL (JSON content tree):
{json.dumps(tree, ensure_ascii=False, indent=2)}

READER ANNOTATIONS (explanations, deep dives and questions that were added):
{digest}

TASK: Rewrite the tutorial so the insights from these annotations are part of the main text.

CRITICAL INSTRUCTIONS:
1. Do not just paste annotation text; weave the insights into the narrative
2. Introduce new concepts before using them
3. Keep a consistent voice and the same overall structure
4. Remove the annotation elements and annotationMarker nodes once their content is absorbed
5. Keep every node in the same {{"kind", "attributes", "content"}} form

Return ONLY the complete revised tutorial as a single JSON object with "id", "title" and "content"."""
    return REVISE_SYSTEM_PROMPT, user
