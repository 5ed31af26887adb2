"""
Annotation service - the tutorial workflow around the engine.

annotate:    load -> generate payload -> insert -> save -> commit
consolidate: load -> enumerate -> revise -> validate -> save -> commit

Each document has its own asyncio.Lock, so two requests for the same
tutorial in this process never interleave their load/save and lose an update.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional, Union

from shared.logging import correlation_context, get_logger

from . import prompts
from .config import resolve_path
from .consolidator import ConsolidationResult, build_digest, consolidate_async
from .document import ContentStore, TutorialDocument
from .generation import TextGenerator, generate_payload
from .locator import Found, ValidationError, locate
from .planner import Action, Annotation, Event, insert_annotation, parse_action
from .registry import PREVIEW_LENGTH, AnnotationSummary, enumerate_annotations
from .versions import GitVersioner, commit_message

log = get_logger("annotator", "service")


@dataclass
class AnnotateOutcome:
    """Result of one annotate request."""
    document: dict
    events: list[Event]
    annotation_id: str
    committed: bool = False
    commit_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "document": self.document,
            "events": [event.value for event in self.events],
            "annotation_id": self.annotation_id,
            "committed": self.committed,
            "commit_error": self.commit_error,
        }


@dataclass
class ConsolidateOutcome:
    """Consolidator result plus what happened to it on disk."""
    result: ConsolidationResult
    saved: bool = False
    committed: bool = False
    commit_error: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.result.accepted

    @property
    def tree(self) -> Any:
        return self.result.tree


class AnnotationService:
    """
    Applies annotate/consolidate requests to tutorial documents.

    Usage:
        service = AnnotationService.from_config(load_config())
        outcome = await service.annotate("matrices", "explain", "linear map")
    """

    def __init__(
        self,
        store: ContentStore,
        generator: TextGenerator,
        versioner: Optional[GitVersioner] = None,
        preview_length: int = PREVIEW_LENGTH,
    ):
        self.store = store
        self.generator = generator
        self.versioner = versioner
        self.preview_length = preview_length
        self._locks: dict[str, asyncio.Lock] = {}

    @classmethod
    def from_config(cls, config: dict) -> "AnnotationService":
        from llm.src.client import LLMClient

        content_dir = resolve_path(config.get("content_dir", "content"))
        git_config = config.get("git", {})
        versioner = None
        if git_config.get("enabled"):
            repo_dir = resolve_path(git_config["repo_dir"]) if git_config.get("repo_dir") else content_dir
            versioner = GitVersioner(repo_dir, push=git_config.get("push", True))

        return cls(
            store=ContentStore(content_dir),
            generator=LLMClient.from_config(config.get("llm", {})),
            versioner=versioner,
            preview_length=config.get("preview_length", PREVIEW_LENGTH),
        )

    def _lock_for(self, tutorial_id: str) -> asyncio.Lock:
        lock = self._locks.get(tutorial_id)
        if lock is None:
            lock = self._locks[tutorial_id] = asyncio.Lock()
        return lock

    async def _commit(self, document: TutorialDocument, message: str) -> tuple[bool, Optional[str]]:
        if self.versioner is None:
            return False, None
        return await asyncio.to_thread(self.versioner.commit_and_push, document.path, message)

    # --- Workflows ---

    async def annotate(
        self,
        tutorial_id: str,
        action: Union[Action, str],
        selected_text: str,
        context: str = "",
        question: Optional[str] = None,
    ) -> AnnotateOutcome:
        """
        Generate an annotation for ``selected_text`` and splice it into the tutorial.

        Raises:
            ValidationError: Bad tutorial id, action, text or missing question
            DocumentNotFoundError: Unknown tutorial
        """
        action = parse_action(action)
        if not isinstance(selected_text, str) or not selected_text.strip():
            raise ValidationError("selected text must be a non-empty string")
        if action is Action.ASK and not (question and question.strip()):
            raise ValidationError("'ask' requires a question")

        document = self.store.open(tutorial_id)

        with correlation_context():
            async with self._lock_for(tutorial_id):
                tree = document.load()
                payload = await generate_payload(
                    self.generator,
                    action,
                    selected_text,
                    context=context,
                    tutorial_title=document.title,
                    question=question,
                )
                result = insert_annotation(tree, selected_text, Annotation(payload=payload, action=action))
                document.save(result.tree)

                committed, commit_error = await self._commit(
                    document,
                    commit_message(action.value, selected_text, tutorial_id),
                )

            log.info(
                "annotator.service.annotated",
                tutorial_id=tutorial_id,
                action=action.value,
                annotation_id=result.annotation_id,
                events=",".join(event.value for event in result.events),
                committed=committed,
            )

        return AnnotateOutcome(
            document=result.tree,
            events=result.events,
            annotation_id=result.annotation_id,
            committed=committed,
            commit_error=commit_error,
        )

    async def consolidate(self, tutorial_id: str) -> ConsolidateOutcome:
        """
        Fold every annotation of a tutorial back into its text.

        The document is only written when the revision is accepted and there
        was something to consolidate. Collaborator failures propagate.
        """
        document = self.store.open(tutorial_id)

        async def revise(root: Any, digest: str) -> str:
            system_prompt, user_prompt = prompts.revise_prompt(root, digest)
            return await self.generator.generate(system_prompt, user_prompt)

        with correlation_context():
            async with self._lock_for(tutorial_id):
                tree = document.load()
                result = await consolidate_async(
                    tree,
                    revise,
                    summarize=build_digest,
                    preview_length=self.preview_length,
                )
                outcome = ConsolidateOutcome(result=result)

                if result.accepted and result.before > 0:
                    document.save(result.tree)
                    outcome.saved = True
                    outcome.committed, outcome.commit_error = await self._commit(
                        document,
                        f"[consolidate] {result.before} annotations in {tutorial_id}",
                    )

            log.info(
                "annotator.service.consolidated",
                tutorial_id=tutorial_id,
                accepted=result.accepted,
                saved=outcome.saved,
            )

        return outcome

    # --- Queries ---

    def list_tutorials(self) -> list[dict]:
        return self.store.list_tutorials()

    def list_annotations(self, tutorial_id: str) -> list[AnnotationSummary]:
        tree = self.store.load(tutorial_id).tree
        return enumerate_annotations(tree, self.preview_length)

    def locate(self, tutorial_id: str, text: str) -> Optional[Found]:
        tree = self.store.load(tutorial_id).tree
        return locate(tree, text)

    def info(self) -> dict:
        """Health summary: content directory, collaborator and versioning."""
        generator_info = self.generator.info() if hasattr(self.generator, "info") else {}
        return {
            "content_dir": str(self.store.content_dir),
            "tutorials": len(self.store.list_tutorials()),
            "llm": generator_info,
            "git": {
                "enabled": self.versioner is not None,
                "repo_dir": str(self.versioner.repo_dir) if self.versioner else None,
                "push": self.versioner.push_enabled if self.versioner else False,
            },
        }

    async def close(self):
        close = getattr(self.generator, "close", None)
        if close is not None:
            await close()
