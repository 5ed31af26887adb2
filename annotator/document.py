"""
Tutorial documents - JSON envelopes ``{id, title, content}`` in a content directory.
"""

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional

from shared.logging import get_logger

from .locator import ValidationError
from .nodes import coerce_node, is_node

log = get_logger("annotator", "document")

TUTORIAL_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class DocumentNotFoundError(FileNotFoundError):
    """Raised when no document exists for a tutorial id."""
    pass


class TutorialDocument:
    """
    One tutorial's content tree on disk.

    The file is rewritten whole on every save, through a temp file in the same
    directory and an atomic replace, so readers never see a partial write.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.tree: Optional[dict] = None

    @property
    def tutorial_id(self) -> str:
        if self.tree and isinstance(self.tree.get("id"), str):
            return self.tree["id"]
        return self.path.stem

    @property
    def title(self) -> str:
        if self.tree and isinstance(self.tree.get("title"), str):
            return self.tree["title"]
        return self.tutorial_id

    def load(self) -> dict:
        """
        Read and normalize the tree.

        Raises:
            DocumentNotFoundError: If the file does not exist
            ValueError: If the file is not a JSON object
        """
        if not self.path.exists():
            log.warning("annotator.document.not_found", path=str(self.path))
            raise DocumentNotFoundError(f"No tutorial document at {self.path}")

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            log.exception(e, "annotator.document.load_error", {"path": str(self.path)})
            raise ValueError(f"{self.path} is not valid JSON: {e}") from e
        if not is_node(data):
            raise ValueError(f"{self.path} does not hold a JSON object")

        self.tree = coerce_node(data)
        log.info("annotator.document.loaded", path=str(self.path))
        return self.tree

    def save(self, tree: Optional[dict] = None):
        """Write ``tree`` (or the loaded tree) atomically."""
        if tree is not None:
            self.tree = tree
        if self.tree is None:
            raise ValueError("nothing to save: document was never loaded")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self.tree, f, ensure_ascii=False, indent=2)
                f.write("\n")
            os.replace(tmp_name, self.path)
        except Exception as e:
            Path(tmp_name).unlink(missing_ok=True)
            log.exception(e, "annotator.document.save_error", {"path": str(self.path)})
            raise

        log.info("annotator.document.saved", path=str(self.path))


class ContentStore:
    """Directory of ``<tutorial_id>.json`` documents."""

    def __init__(self, content_dir: Path):
        self.content_dir = Path(content_dir)

    def path_for(self, tutorial_id: str) -> Path:
        if not isinstance(tutorial_id, str) or not TUTORIAL_ID_PATTERN.match(tutorial_id):
            raise ValidationError(f"Invalid tutorial id: {tutorial_id!r}")
        return self.content_dir / f"{tutorial_id}.json"

    def open(self, tutorial_id: str) -> TutorialDocument:
        return TutorialDocument(self.path_for(tutorial_id))

    def load(self, tutorial_id: str) -> TutorialDocument:
        document = self.open(tutorial_id)
        document.load()
        return document

    def list_tutorials(self) -> list[dict[str, Any]]:
        """Id, title and path of every readable document, sorted by id."""
        if not self.content_dir.exists():
            return []

        tutorials = []
        for path in sorted(self.content_dir.glob("*.json")):
            document = TutorialDocument(path)
            try:
                document.load()
            except ValueError as e:
                log.warning("annotator.document.skipped", path=str(path), error=str(e))
                continue
            tutorials.append({
                "id": path.stem,
                "title": document.title,
                "path": str(path),
            })
        return tutorials
