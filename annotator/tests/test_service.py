"""Tests for the annotation service workflow."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from annotator.document import ContentStore, DocumentNotFoundError
from annotator.locator import ValidationError
from annotator.planner import Event
from annotator.service import AnnotationService
from annotator.versions import GitVersioner
from llm.src.client import GenerationError, LLMClient


@pytest.fixture
def versioner():
    versioner = MagicMock()
    versioner.commit_and_push = MagicMock(return_value=(True, None))
    versioner.repo_dir = "/repo"
    versioner.push_enabled = True
    return versioner


@pytest.fixture
def service(content_dir, mock_generator, versioner):
    return AnnotationService(ContentStore(content_dir), mock_generator, versioner)


def read_tree(content_dir, tutorial_id):
    return json.loads((content_dir / f"{tutorial_id}.json").read_text(encoding="utf-8"))


class TestAnnotate:
    """Tests for AnnotationService.annotate()."""

    @pytest.mark.asyncio
    async def test_explain_is_inserted_saved_and_committed(self, service, content_dir, versioner):
        outcome = await service.annotate("matrices", "explain", "basis", context="Columns are images of basis vectors.")

        assert outcome.events == [Event.MARKER_INSERTED, Event.ANNOTATION_PLACED]
        assert outcome.annotation_id.startswith("ann-")
        assert outcome.committed is True
        assert outcome.commit_error is None
        assert read_tree(content_dir, "matrices") == outcome.document

        path, message = versioner.commit_and_push.call_args[0]
        assert path == content_dir / "matrices.json"
        assert message == '[explain] "basis..." in matrices'

    @pytest.mark.asyncio
    async def test_prompt_uses_document_title(self, service, mock_generator):
        await service.annotate("matrices", "explain", "basis")

        system_prompt = mock_generator.generate.await_args[0][0]
        assert '"Matrices"' in system_prompt

    @pytest.mark.asyncio
    async def test_table_match_highlights_row(self, service, content_dir):
        outcome = await service.annotate("ops", "branch", "transpose")

        assert outcome.events[0] is Event.ROW_HIGHLIGHTED
        table = read_tree(content_dir, "ops")["content"][0]["content"][1]
        assert table["attributes"]["highlightRows"] == [2]

    @pytest.mark.asyncio
    async def test_ask(self, service):
        outcome = await service.annotate("matrices", "ask", "basis", question="Which basis?")

        annotations = service.list_annotations("matrices")
        assert [a.kind for a in annotations] == ["deepDive"]
        assert annotations[0].title == "❓ Q: Which basis?"
        assert annotations[0].annotation_id == outcome.annotation_id

    @pytest.mark.asyncio
    async def test_ask_without_question(self, service, mock_generator):
        with pytest.raises(ValidationError):
            await service.annotate("matrices", "ask", "basis")
        mock_generator.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blank_selection(self, service):
        with pytest.raises(ValidationError):
            await service.annotate("matrices", "explain", "   ")

    @pytest.mark.asyncio
    async def test_unknown_action(self, service):
        with pytest.raises(ValidationError):
            await service.annotate("matrices", "rewrite", "basis")

    @pytest.mark.asyncio
    async def test_unknown_tutorial(self, service):
        with pytest.raises(DocumentNotFoundError):
            await service.annotate("unknown", "explain", "basis")

    @pytest.mark.asyncio
    async def test_not_found_text_is_appended(self, service, content_dir):
        outcome = await service.annotate("matrices", "explain", "quaternion")

        assert outcome.events == [Event.FALLBACK_APPENDED]
        assert len(read_tree(content_dir, "matrices")["content"]) == 3

    @pytest.mark.asyncio
    async def test_generation_failure_inserts_warning(self, service, mock_generator):
        mock_generator.generate = AsyncMock(side_effect=GenerationError("timed out"))

        outcome = await service.annotate("matrices", "explain", "basis")

        placed = outcome.document["content"][0]["content"][2]["content"][1]
        assert placed["attributes"]["type"] == "warning"
        assert Event.MARKER_INSERTED in outcome.events

    @pytest.mark.asyncio
    async def test_commit_failure_is_reported(self, service, content_dir, versioner):
        versioner.commit_and_push.return_value = (False, "rejected: non-fast-forward")

        outcome = await service.annotate("matrices", "explain", "basis")

        assert outcome.committed is False
        assert outcome.commit_error == "rejected: non-fast-forward"
        assert read_tree(content_dir, "matrices") == outcome.document

    @pytest.mark.asyncio
    async def test_without_versioner(self, content_dir, mock_generator):
        service = AnnotationService(ContentStore(content_dir), mock_generator)

        outcome = await service.annotate("matrices", "explain", "basis")

        assert outcome.committed is False
        assert outcome.commit_error is None

    @pytest.mark.asyncio
    async def test_concurrent_requests_do_not_lose_updates(self, service):
        await asyncio.gather(
            service.annotate("matrices", "explain", "basis"),
            service.annotate("matrices", "explain", "covectors"),
            service.annotate("matrices", "explain", "Composition"),
        )

        assert len(service.list_annotations("matrices")) == 3

    @pytest.mark.asyncio
    async def test_to_dict(self, service):
        outcome = await service.annotate("matrices", "explain", "basis")

        data = outcome.to_dict()
        assert data["events"] == ["marker-inserted", "annotation-placed"]
        assert data["committed"] is True


class TestConsolidate:
    """Tests for AnnotationService.consolidate()."""

    REVISED = {"content": [{"kind": "section", "content": [{"kind": "paragraph", "content": "Folded in."}]}]}

    @pytest.fixture
    def annotated_dir(self, content_dir, annotated_tree):
        (content_dir / "annotated.json").write_text(json.dumps(annotated_tree), encoding="utf-8")
        return content_dir

    @pytest.mark.asyncio
    async def test_accepted_revision_is_saved(self, service, annotated_dir, mock_generator, versioner):
        mock_generator.generate.return_value = "```json\n" + json.dumps(self.REVISED) + "\n```"

        outcome = await service.consolidate("annotated")

        assert outcome.accepted
        assert outcome.saved
        assert outcome.result.before == 4
        assert outcome.result.after == 0
        saved = read_tree(annotated_dir, "annotated")
        assert saved["content"] == self.REVISED["content"]
        assert saved["id"] == "annotated"
        assert versioner.commit_and_push.call_args[0][1] == "[consolidate] 4 annotations in annotated"

    @pytest.mark.asyncio
    async def test_digest_is_sent(self, service, annotated_dir, mock_generator):
        mock_generator.generate.return_value = json.dumps(self.REVISED)

        await service.consolidate("annotated")

        user_prompt = mock_generator.generate.await_args[0][1]
        assert "1. [callout/explain]" in user_prompt
        assert "4. [footnote]" in user_prompt

    @pytest.mark.asyncio
    async def test_rejected_revision_leaves_file(self, service, annotated_dir, annotated_tree, versioner):
        outcome = await service.consolidate("annotated")

        assert not outcome.accepted
        assert not outcome.saved
        assert read_tree(annotated_dir, "annotated") == annotated_tree
        versioner.commit_and_push.assert_not_called()

    @pytest.mark.asyncio
    async def test_nothing_to_consolidate(self, service, mock_generator, versioner):
        outcome = await service.consolidate("matrices")

        assert outcome.accepted
        assert not outcome.saved
        mock_generator.generate.assert_not_awaited()
        versioner.commit_and_push.assert_not_called()

    @pytest.mark.asyncio
    async def test_generation_failure_propagates(self, service, annotated_dir, mock_generator):
        mock_generator.generate = AsyncMock(side_effect=GenerationError("down"))

        with pytest.raises(GenerationError):
            await service.consolidate("annotated")


class TestQueries:
    """Tests for listing, locating and info."""

    def test_list_tutorials(self, service):
        assert [t["id"] for t in service.list_tutorials()] == ["matrices", "ops"]

    def test_list_annotations_empty(self, service):
        assert service.list_annotations("matrices") == []

    def test_locate(self, service):
        found = service.locate("ops", "transpose")
        assert found.path[-4:] == ("attributes", "rows", 2, 0)

    def test_info(self, service, content_dir):
        info = service.info()

        assert info["content_dir"] == str(content_dir)
        assert info["tutorials"] == 2
        assert info["llm"] == {"provider": "mock", "model": "mock-1"}
        assert info["git"]["enabled"] is True

    @pytest.mark.asyncio
    async def test_close(self, service, mock_generator):
        await service.close()
        mock_generator.close.assert_awaited_once()


class TestFromConfig:
    """Tests for AnnotationService.from_config()."""

    def test_defaults(self, tmp_path):
        service = AnnotationService.from_config({"content_dir": str(tmp_path), "llm": {"provider": "openrouter"}})

        assert service.store.content_dir == tmp_path
        assert isinstance(service.generator, LLMClient)
        assert service.generator.provider == "openrouter"
        assert service.versioner is None

    def test_git_enabled(self, tmp_path):
        service = AnnotationService.from_config({
            "content_dir": str(tmp_path),
            "git": {"enabled": True, "push": False},
        })

        assert isinstance(service.versioner, GitVersioner)
        assert service.versioner.repo_dir == tmp_path
        assert service.versioner.push_enabled is False
