"""Indexing module.

Provides content hashing, the per-file and per-repository indexing
pipeline, and job-tracked execution with progress reporting.
"""

from code_graph.indexing.hasher import ContentHasher, FileHash
from code_graph.indexing.jobs import (
    IndexJob,
    IndexMode,
    IndexStatus,
    InMemoryJobLedger,
    JobLedger,
    JobStatus,
    Repository,
    RepositoryRegistry,
)
from code_graph.indexing.pipeline import (
    FileError,
    FileIndexResult,
    IndexingPipeline,
    RepositoryIndexResult,
)
from code_graph.indexing.runner import IndexJobRunner

__all__ = [
    # Hasher
    "ContentHasher",
    "FileHash",
    # Jobs
    "JobStatus",
    "IndexMode",
    "IndexStatus",
    "IndexJob",
    "JobLedger",
    "InMemoryJobLedger",
    "Repository",
    "RepositoryRegistry",
    # Pipeline
    "IndexingPipeline",
    "FileIndexResult",
    "FileError",
    "RepositoryIndexResult",
    # Runner
    "IndexJobRunner",
]
