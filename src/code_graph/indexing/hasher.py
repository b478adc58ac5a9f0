"""Content hashing for change detection.

Provides the file/content hashes the index ledger uses to recognize files
that have not changed since they were last indexed.
"""

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import xxhash

from code_graph.utils.logging import get_logger

logger = get_logger(__name__)

HashAlgorithm = Literal["xxhash", "md5", "sha256"]


@dataclass
class FileHash:
    """Hash information for a file.

    Attributes:
        file_path: Path to the file.
        content_hash: Hex digest of the file content.
        size: File size in bytes.
    """

    file_path: Path
    content_hash: str
    size: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "file_path": str(self.file_path),
            "content_hash": self.content_hash,
            "size": self.size,
        }


class ContentHasher:
    """Computes content hashes for files and in-memory sources."""

    CHUNK_SIZE = 65536  # 64KB chunks for hashing

    def __init__(self, algorithm: HashAlgorithm = "xxhash") -> None:
        """Initialize hasher.

        Args:
            algorithm: ``xxhash`` (xxh64), ``md5`` or ``sha256``.

        Raises:
            ValueError: If the algorithm is unknown.
        """
        if algorithm not in ("xxhash", "md5", "sha256"):
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")
        self.algorithm = algorithm

    def _new(self) -> Any:
        if self.algorithm == "xxhash":
            return xxhash.xxh64()
        return hashlib.new(self.algorithm)

    def hash_content(self, content: str | bytes) -> str:
        """Hash string or bytes content.

        Args:
            content: Content to hash; strings are hashed as UTF-8.

        Returns:
            Hex digest of hash.
        """
        if isinstance(content, str):
            content = content.encode("utf-8")

        hasher = self._new()
        hasher.update(content)
        return hasher.hexdigest()

    def hash_file(self, file_path: Path) -> FileHash:
        """Hash a file in fixed-size chunks.

        Raises:
            FileNotFoundError: If file doesn't exist.
        """
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        hasher = self._new()
        with open(file_path, "rb") as f:
            while chunk := f.read(self.CHUNK_SIZE):
                hasher.update(chunk)

        return FileHash(
            file_path=file_path,
            content_hash=hasher.hexdigest(),
            size=file_path.stat().st_size,
        )

    def hash_files(self, file_paths: list[Path]) -> dict[Path, FileHash]:
        """Hash multiple files, skipping unreadable ones."""
        hashes = {}
        for path in file_paths:
            try:
                hashes[path] = self.hash_file(path)
            except (FileNotFoundError, PermissionError) as e:
                logger.warning("Failed to hash file", path=str(path), error=str(e))
        return hashes
