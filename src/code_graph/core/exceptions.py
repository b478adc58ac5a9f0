"""Custom exceptions for the code graph engine.

This module defines a hierarchy of exceptions used throughout the application
for consistent error handling and reporting.
"""

from typing import Any


class CodeGraphError(Exception):
    """Base exception for all code graph errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable dictionary."""
        result: dict[str, Any] = {
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(CodeGraphError):
    """Error in application configuration."""

    pass


class MissingConfigError(ConfigurationError):
    """Required configuration value is missing."""

    def __init__(self, config_key: str) -> None:
        super().__init__(
            message=f"Missing required configuration: {config_key}",
            details={"config_key": config_key},
        )


# =============================================================================
# Parsing Errors
# =============================================================================


class ParsingError(CodeGraphError):
    """Base class for parsing-related errors."""

    pass


class UnsupportedLanguageError(ParsingError):
    """Language not supported for parsing."""

    def __init__(self, language: str, supported: list[str]) -> None:
        super().__init__(
            message=f"Language '{language}' is not supported",
            details={"language": language, "supported_languages": supported},
        )


class SyntaxParseError(ParsingError):
    """Failed to parse source code syntax."""

    def __init__(self, file_path: str, line: int | None = None, cause: Exception | None = None) -> None:
        super().__init__(
            message=f"Failed to parse {file_path}" + (f" at line {line}" if line else ""),
            details={"file_path": file_path, "line": line},
            cause=cause,
        )


# =============================================================================
# Graph Errors
# =============================================================================


class GraphError(CodeGraphError):
    """Base class for graph-related errors."""

    pass


class GraphNotInitializedError(GraphError):
    """Graph engine used before init() completed."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            message=f"Graph engine is uninitialized; call init() before {operation}",
            details={"operation": operation},
        )


class GraphStoreError(GraphError):
    """Durable graph store operation failed."""

    def __init__(self, operation: str, cause: Exception | None = None) -> None:
        super().__init__(
            message=f"Graph store operation '{operation}' failed",
            details={"operation": operation},
            cause=cause,
        )


class GraphSerializationError(GraphError):
    """Error serializing/deserializing graph."""

    def __init__(self, operation: str, path: str, cause: Exception | None = None) -> None:
        super().__init__(
            message=f"Graph {operation} failed for {path}",
            details={"operation": operation, "path": path},
            cause=cause,
        )


# =============================================================================
# Search Errors
# =============================================================================


class SearchError(CodeGraphError):
    """Base class for search-related errors."""

    pass


class SearchConnectionError(SearchError):
    """Failed to connect to search engine."""

    def __init__(self, url: str, cause: Exception | None = None) -> None:
        super().__init__(
            message=f"Failed to connect to search engine at {url}",
            details={"url": url},
            cause=cause,
        )


class SearchIndexError(SearchError):
    """Error during indexing operation."""

    def __init__(self, index_name: str, operation: str, cause: Exception | None = None) -> None:
        super().__init__(
            message=f"Index operation '{operation}' failed on '{index_name}'",
            details={"index_name": index_name, "operation": operation},
            cause=cause,
        )


class SearchQueryError(SearchError):
    """Error executing search query."""

    def __init__(self, query: str, cause: Exception | None = None) -> None:
        super().__init__(
            message="Search query execution failed",
            details={"query": query},
            cause=cause,
        )


class VectorStoreError(SearchError):
    """Vector store operation failed."""

    def __init__(self, operation: str, cause: Exception | None = None) -> None:
        super().__init__(
            message=f"Vector store operation '{operation}' failed",
            details={"operation": operation},
            cause=cause,
        )


# =============================================================================
# Embedding Errors
# =============================================================================


class EmbeddingError(CodeGraphError):
    """Base class for embedding-related errors."""

    pass


class ModelLoadError(EmbeddingError):
    """Failed to load embedding model."""

    def __init__(self, model_name: str, cause: Exception | None = None) -> None:
        super().__init__(
            message=f"Failed to load model: {model_name}",
            details={"model_name": model_name},
            cause=cause,
        )


class EmbeddingGenerationError(EmbeddingError):
    """Failed to generate embeddings."""

    def __init__(self, text_length: int, cause: Exception | None = None) -> None:
        super().__init__(
            message="Failed to generate embedding",
            details={"text_length": text_length},
            cause=cause,
        )


# =============================================================================
# Indexing Errors
# =============================================================================


class IndexingError(CodeGraphError):
    """Base class for indexing-related errors."""

    pass


class RepositoryNotFoundError(IndexingError):
    """Repository id is not registered."""

    def __init__(self, repo_id: str) -> None:
        super().__init__(
            message=f"Repository {repo_id} not found",
            details={"repo_id": repo_id},
        )


class JobNotFoundError(IndexingError):
    """Index job id is unknown to the ledger."""

    def __init__(self, job_id: str) -> None:
        super().__init__(
            message=f"Index job {job_id} not found",
            details={"job_id": job_id},
        )


class InvalidJobTransitionError(IndexingError):
    """Job status change not allowed from its current state."""

    def __init__(self, job_id: str, current: str, target: str) -> None:
        super().__init__(
            message=f"Job {job_id} cannot move from '{current}' to '{target}'",
            details={"job_id": job_id, "current": current, "target": target},
        )


class IndexingCancelledError(IndexingError):
    """Repository indexing stopped by its cancel signal."""

    def __init__(self, repo_id: str, processed: int) -> None:
        super().__init__(
            message=f"Indexing of {repo_id} cancelled after {processed} files",
            details={"repo_id": repo_id, "processed": processed},
        )


class GitOperationError(IndexingError):
    """Git command failed for a repository checkout."""

    def __init__(self, operation: str, path: str, cause: Exception | None = None) -> None:
        super().__init__(
            message=f"Git {operation} failed for {path}",
            details={"operation": operation, "path": path},
            cause=cause,
        )
