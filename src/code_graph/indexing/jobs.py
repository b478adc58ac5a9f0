"""Index job ledger and repository registry.

An ``IndexJob`` is the durable record of one repository indexing run:
``queued -> running -> completed | failed``. The ledger is the source of
truth for what happened to a job; a failed job keeps the error message.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from code_graph.core.exceptions import (
    InvalidJobTransitionError,
    JobNotFoundError,
    RepositoryNotFoundError,
)
from code_graph.utils.logging import get_logger

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class JobStatus(str, Enum):
    """Lifecycle state of an index job."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class IndexMode(str, Enum):
    """``incremental`` pulls the checkout before indexing; ``full`` does not."""

    FULL = "full"
    INCREMENTAL = "incremental"


class IndexStatus(str, Enum):
    """Index state of a registered repository."""

    NOT_INDEXED = "not_indexed"
    INDEXING = "indexing"
    INDEXED = "indexed"
    FAILED = "failed"


_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.RUNNING, JobStatus.FAILED}),
    JobStatus.RUNNING: frozenset({JobStatus.RUNNING, JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


@dataclass
class IndexJob:
    """A repository indexing job.

    Attributes:
        job_id: Unique job identifier.
        repo_id: Repository being indexed.
        mode: Indexing mode.
        status: Current status.
        progress: Completion fraction in [0, 1].
        error: Failure message, set when the job failed.
        created_at: Creation time in milliseconds.
        updated_at: Last update time in milliseconds.
    """

    job_id: str
    repo_id: str
    mode: IndexMode
    status: JobStatus = JobStatus.QUEUED
    progress: float = 0.0
    error: str | None = None
    created_at: int = field(default_factory=_now_ms)
    updated_at: int = field(default_factory=_now_ms)

    @property
    def is_finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "job_id": self.job_id,
            "repo_id": self.repo_id,
            "mode": self.mode.value,
            "status": self.status.value,
            "progress": self.progress,
            "error": self.error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@runtime_checkable
class JobLedger(Protocol):
    """Durable record of index jobs."""

    async def create(self, repo_id: str, mode: IndexMode) -> IndexJob: ...

    async def update_status(
        self,
        job_id: str,
        status: JobStatus,
        progress: float | None = None,
        error: str | None = None,
    ) -> IndexJob: ...

    async def get(self, job_id: str) -> IndexJob: ...

    async def list_for_repo(self, repo_id: str) -> list[IndexJob]: ...


class InMemoryJobLedger:
    """Process-local job ledger."""

    def __init__(self) -> None:
        self._jobs: dict[str, IndexJob] = {}
        self._lock = asyncio.Lock()

    async def create(self, repo_id: str, mode: IndexMode = IndexMode.FULL) -> IndexJob:
        """Create a queued job for a repository."""
        job = IndexJob(job_id=f"job_{uuid.uuid4().hex[:12]}", repo_id=repo_id, mode=IndexMode(mode))
        async with self._lock:
            self._jobs[job.job_id] = job
        logger.info("Index job created", job_id=job.job_id, repo_id=repo_id, mode=job.mode.value)
        return job

    async def update_status(
        self,
        job_id: str,
        status: JobStatus,
        progress: float | None = None,
        error: str | None = None,
    ) -> IndexJob:
        """Move a job to a new status.

        Args:
            job_id: Job to update.
            status: New status.
            progress: New progress; unchanged when omitted.
            error: Failure message.

        Returns:
            The updated job.

        Raises:
            JobNotFoundError: If the job does not exist.
            InvalidJobTransitionError: If the job cannot enter ``status``.
            ValueError: If progress is outside [0, 1].
        """
        if progress is not None and not 0.0 <= progress <= 1.0:
            raise ValueError(f"Progress must be within [0, 1], got {progress}")

        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if status not in _TRANSITIONS[job.status]:
                raise InvalidJobTransitionError(job_id, job.status.value, status.value)

            previous = job.status
            job.status = status
            if progress is not None:
                job.progress = progress
            job.error = error
            job.updated_at = _now_ms()

        if previous != status:
            logger.info(
                "Index job status changed",
                job_id=job_id,
                status=status.value,
                progress=job.progress,
            )
        return job

    async def get(self, job_id: str) -> IndexJob:
        """Get a job.

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def list_for_repo(self, repo_id: str) -> list[IndexJob]:
        """Jobs of a repository, oldest first."""
        return sorted(
            (job for job in self._jobs.values() if job.repo_id == repo_id),
            key=lambda job: job.created_at,
        )


@dataclass
class Repository:
    """A registered repository checkout."""

    id: str
    workspace_id: str
    name: str
    local_path: Path
    remote_url: str = ""
    branch: str = "main"
    index_status: IndexStatus = IndexStatus.NOT_INDEXED
    last_commit_hash: str | None = None
    indexed_at: int | None = None
    file_count: int = 0
    symbol_count: int = 0
    language_stats: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "name": self.name,
            "local_path": str(self.local_path),
            "remote_url": self.remote_url,
            "branch": self.branch,
            "index_status": self.index_status.value,
            "last_commit_hash": self.last_commit_hash,
            "indexed_at": self.indexed_at,
            "file_count": self.file_count,
            "symbol_count": self.symbol_count,
            "language_stats": dict(self.language_stats),
        }


class RepositoryRegistry:
    """Registered repositories and their index status."""

    def __init__(self) -> None:
        self._repositories: dict[str, Repository] = {}

    async def register(self, repository: Repository) -> Repository:
        self._repositories[repository.id] = repository
        logger.info("Repository registered", repo_id=repository.id, path=str(repository.local_path))
        return repository

    async def get(self, repo_id: str) -> Repository:
        """Get a repository.

        Raises:
            RepositoryNotFoundError: If the id is not registered.
        """
        repository = self._repositories.get(repo_id)
        if repository is None:
            raise RepositoryNotFoundError(repo_id)
        return repository

    async def list_for_workspace(self, workspace_id: str) -> list[Repository]:
        return [r for r in self._repositories.values() if r.workspace_id == workspace_id]

    async def update_index_status(
        self,
        repo_id: str,
        status: IndexStatus,
        commit: str | None = None,
        language_stats: dict[str, int] | None = None,
        file_count: int | None = None,
        symbol_count: int | None = None,
    ) -> Repository:
        """Record the outcome of an indexing run.

        Raises:
            RepositoryNotFoundError: If the id is not registered.
        """
        repository = await self.get(repo_id)
        repository.index_status = status
        if commit is not None:
            repository.last_commit_hash = commit
        if language_stats is not None:
            repository.language_stats = dict(language_stats)
        if file_count is not None:
            repository.file_count = file_count
        if symbol_count is not None:
            repository.symbol_count = symbol_count
        if status == IndexStatus.INDEXED:
            repository.indexed_at = _now_ms()
        return repository

    async def remove(self, repo_id: str) -> bool:
        return self._repositories.pop(repo_id, None) is not None
