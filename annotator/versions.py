"""
Versioned persistence - stage, commit and push tutorial documents with git.

Best-effort: failures are logged and reported to the caller, never raised
from ``commit_and_push``. The document file on disk stays as written.
"""

import subprocess
from pathlib import Path
from typing import Optional

from shared.logging import get_logger

log = get_logger("annotator", "versions")

MESSAGE_PREVIEW = 40


def commit_message(action: str, selected_text: str, tutorial_id: str) -> str:
    """Commit message like ``[explain] "the selected text..." in matrices``."""
    return f'[{action}] "{selected_text[:MESSAGE_PREVIEW]}..." in {tutorial_id}'


class GitVersioner:
    """Runs git in ``repo_dir`` for each saved document."""

    def __init__(self, repo_dir: Path, push: bool = True, timeout_seconds: int = 60):
        self.repo_dir = Path(repo_dir)
        self.push_enabled = push
        self.timeout_seconds = timeout_seconds

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        return subprocess.run(
            ["git", *args],
            cwd=self.repo_dir,
            capture_output=True,
            text=True,
            timeout=self.timeout_seconds,
            check=True,
        )

    def stage(self, path: Path):
        path = Path(path)
        try:
            relative = path.resolve().relative_to(self.repo_dir.resolve())
        except ValueError:
            relative = path
        self._run("add", "--", str(relative))

    def commit(self, message: str):
        self._run("commit", "-m", message)

    def push(self):
        self._run("push")

    def commit_and_push(self, path: Path, message: str) -> tuple[bool, Optional[str]]:
        """
        Stage ``path``, commit, and push (if enabled), in that order.

        Returns:
            (True, None) on success, (False, error text) on the first failure
        """
        try:
            self.stage(path)
            self.commit(message)
            if self.push_enabled:
                self.push()
        except subprocess.CalledProcessError as e:
            error = (e.stderr or e.stdout or str(e)).strip()[:200]
            log.warning("annotator.versions.git_failed", command=" ".join(e.cmd[:2]), error=error)
            return False, error
        except (subprocess.TimeoutExpired, OSError) as e:
            log.warning("annotator.versions.git_failed", error=str(e)[:200])
            return False, str(e)[:200]

        log.info("annotator.versions.committed", message=message, pushed=self.push_enabled)
        return True, None
