"""Snapshot persistence for the local stores.

Snapshots are gzip-compressed JSON documents. The graph store writes its
symbols, edges and index metadata; the local vector and full-text stores
write their points and documents next to it.
"""

import gzip
import json
from pathlib import Path
from typing import Any

from code_graph.core.exceptions import GraphSerializationError
from code_graph.utils.logging import get_logger

logger = get_logger(__name__)

SNAPSHOT_VERSION = "1.0"
SNAPSHOT_SUFFIX = ".graph.json.gz"


class GraphPersistence:
    """Handles saving and loading of graph store snapshots."""

    def __init__(self, storage_dir: Path | str | None = None) -> None:
        """Initialize persistence handler.

        Args:
            storage_dir: Directory for snapshots. Defaults to current dir.
        """
        self.storage_dir = Path(storage_dir) if storage_dir is not None else Path.cwd()
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        """Snapshot file path for a name."""
        return self.storage_dir / f"{name}{SNAPSHOT_SUFFIX}"

    def save(self, name: str, data: dict[str, Any]) -> Path:
        """Write a snapshot.

        Args:
            name: Snapshot name (without extension).
            data: JSON-serializable store contents.

        Returns:
            Path to the written file.

        Raises:
            GraphSerializationError: If the snapshot cannot be written.
        """
        file_path = self.path_for(name)
        document = {"version": SNAPSHOT_VERSION, **data}
        try:
            with gzip.open(file_path, "wt", encoding="utf-8") as f:
                json.dump(document, f)
        except (OSError, TypeError, ValueError) as e:
            raise GraphSerializationError("save", str(file_path), cause=e) from e

        logger.info(
            "Saved snapshot",
            name=name,
            file_path=str(file_path),
            entries={key: len(value) for key, value in data.items() if isinstance(value, list)},
        )
        return file_path

    def load(self, name: str) -> dict[str, Any] | None:
        """Read a snapshot.

        Returns:
            The snapshot contents, or None when no snapshot exists.

        Raises:
            GraphSerializationError: If the snapshot is unreadable.
        """
        file_path = self.path_for(name)
        if not file_path.exists():
            return None

        try:
            with gzip.open(file_path, "rt", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise GraphSerializationError("load", str(file_path), cause=e) from e

        logger.info(
            "Loaded snapshot",
            file_path=str(file_path),
            version=data.get("version"),
        )
        return data

    def exists(self, name: str) -> bool:
        return self.path_for(name).exists()

    def delete(self, name: str) -> bool:
        """Delete a snapshot.

        Returns:
            True if a file was deleted.
        """
        file_path = self.path_for(name)
        if not file_path.exists():
            return False
        file_path.unlink()
        logger.info("Deleted snapshot", file_path=str(file_path))
        return True
