"""Git checkout access for repository indexing.

GitPython calls block, so every git operation runs in a worker thread.
Directories that are not git checkouts are still indexable: their files
are listed by walking the tree and their commit is empty.
"""

import asyncio
import fnmatch
import os
from pathlib import Path

import git

from code_graph.core.exceptions import GitOperationError
from code_graph.utils.async_io import async_read_file
from code_graph.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_IGNORE_PATTERNS = (".git", "node_modules", "__pycache__", ".venv", "venv", "dist", "build")


class GitRepository:
    """Read access to a local repository checkout."""

    def __init__(self, path: str | Path, ignore_patterns: list[str] | None = None) -> None:
        """Open a checkout.

        Args:
            path: Root directory of the checkout.
            ignore_patterns: Path segments or glob patterns to leave out.
        """
        self.path = Path(path)
        self.ignore_patterns = list(ignore_patterns or DEFAULT_IGNORE_PATTERNS)
        try:
            self._repo: git.Repo | None = git.Repo(self.path)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError):
            self._repo = None

    @property
    def is_git(self) -> bool:
        """Whether the directory is a git checkout."""
        return self._repo is not None

    async def current_commit(self) -> str:
        """Hash of HEAD, or an empty string without a commit."""
        if self._repo is None:
            return ""
        return await asyncio.to_thread(self._head_sha)

    def _head_sha(self) -> str:
        try:
            return self._repo.head.commit.hexsha
        except ValueError:
            # Empty repository, HEAD has no commit yet
            return ""

    async def pull(self) -> None:
        """Pull the tracked branch from ``origin``.

        Raises:
            GitOperationError: If the pull fails.
        """
        if self._repo is None or not self._repo.remotes:
            logger.info("No remote to pull from", path=str(self.path))
            return

        logger.info("Pulling latest changes", path=str(self.path))
        try:
            await asyncio.to_thread(self._repo.remotes.origin.pull)
        except git.GitCommandError as e:
            raise GitOperationError("pull", str(self.path), e) from e

    async def list_files(self) -> list[str]:
        """Tracked and untracked-but-not-ignored files, as sorted POSIX paths.

        Raises:
            GitOperationError: If ``git ls-files`` fails.
        """
        if self._repo is None:
            files = await asyncio.to_thread(self._walk)
        else:
            try:
                output = await asyncio.to_thread(
                    self._repo.git.ls_files, "-co", "--exclude-standard"
                )
            except git.GitCommandError as e:
                raise GitOperationError("ls-files", str(self.path), e) from e
            files = [line.strip() for line in output.splitlines() if line.strip()]

        return sorted(f for f in files if not self.is_ignored(f))

    def _walk(self) -> list[str]:
        files: list[str] = []
        for root, dirs, names in os.walk(self.path):
            dirs[:] = [d for d in dirs if not self._matches(d)]
            for name in names:
                relative = Path(root, name).relative_to(self.path)
                files.append(relative.as_posix())
        return files

    def is_ignored(self, file_path: str) -> bool:
        """Whether any segment of a relative path matches an ignore pattern."""
        return any(self._matches(part) for part in Path(file_path).parts)

    def _matches(self, name: str) -> bool:
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.ignore_patterns)

    async def read_file(self, file_path: str) -> str:
        """Read a file relative to the checkout root."""
        return await async_read_file(self.path / file_path)
