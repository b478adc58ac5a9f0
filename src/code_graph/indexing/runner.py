"""Job-tracked repository indexing.

Runs the indexing pipeline for a queued job in stages and records progress
in the job ledger after each one:

    0.0 start, 0.3 files analyzed, 0.6 embeddings generated,
    0.8 vectors and symbols stored, 1.0 edges stored and repository updated.

Any failure marks the job ``failed`` with the error message and is re-raised.
"""

import asyncio

from code_graph.core.exceptions import InvalidJobTransitionError
from code_graph.indexing.jobs import (
    IndexStatus,
    JobLedger,
    JobStatus,
    Repository,
    RepositoryRegistry,
)
from code_graph.indexing.pipeline import IndexingPipeline, RepositoryIndexResult
from code_graph.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

PROGRESS_ANALYZED = 0.3
PROGRESS_EMBEDDED = 0.6
PROGRESS_STORED = 0.8


class IndexJobRunner:
    """Executes index jobs against the pipeline."""

    def __init__(
        self,
        pipeline: IndexingPipeline,
        ledger: JobLedger,
        repositories: RepositoryRegistry,
    ) -> None:
        self.pipeline = pipeline
        self.ledger = ledger
        self.repositories = repositories

    async def execute(
        self,
        job_id: str,
        workspace_id: str,
        cancel_event: asyncio.Event | None = None,
    ) -> RepositoryIndexResult:
        """Run a queued job to completion.

        Args:
            job_id: Job to run.
            workspace_id: Workspace the repository's symbols belong to.
            cancel_event: Stops the file loop when set.

        Returns:
            The repository summary.

        Raises:
            JobNotFoundError: If the job does not exist.
            InvalidJobTransitionError: If the job already finished; it is
                left untouched.
            Exception: Whatever failed the job, after it was marked failed.
        """
        job = await self.ledger.get(job_id)
        if job.is_finished:
            raise InvalidJobTransitionError(job_id, job.status.value, JobStatus.RUNNING.value)
        repository: Repository | None = None

        with LogContext(job_id=job_id, repo_id=job.repo_id):
            try:
                await self.ledger.update_status(job_id, JobStatus.RUNNING, 0.0)
                repository = await self.repositories.get(job.repo_id)
                await self.repositories.update_index_status(repository.id, IndexStatus.INDEXING)
                logger.info("Starting index job", mode=job.mode.value)

                result = await self.pipeline.index_repository(
                    repository,
                    workspace_id,
                    mode=job.mode,
                    persist=False,
                    cancel_event=cancel_event,
                )
                await self.ledger.update_status(job_id, JobStatus.RUNNING, PROGRESS_ANALYZED)

                vectors = await self.pipeline.embed(result.chunks)
                await self.ledger.update_status(job_id, JobStatus.RUNNING, PROGRESS_EMBEDDED)

                await self.pipeline.store_chunks(result.chunks, vectors, result.metadata)
                await self.ledger.update_status(job_id, JobStatus.RUNNING, PROGRESS_STORED)

                await self.pipeline.store_edges(result.edges)
                await self.repositories.update_index_status(
                    repository.id,
                    IndexStatus.INDEXED,
                    commit=result.commit,
                    language_stats=result.language_stats,
                    file_count=result.total_files,
                    symbol_count=result.total_symbols,
                )
                await self.ledger.update_status(job_id, JobStatus.COMPLETED, 1.0)
            except Exception as e:
                logger.error("Index job failed", error=str(e))
                await self.ledger.update_status(job_id, JobStatus.FAILED, error=str(e))
                if repository is not None:
                    await self.repositories.update_index_status(repository.id, IndexStatus.FAILED)
                raise

            logger.info(
                "Index job completed",
                indexed_files=result.indexed_files,
                errors=len(result.errors),
            )
        return result
