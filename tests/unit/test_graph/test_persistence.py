"""Tests for graph snapshot persistence."""

import gzip
from pathlib import Path

import pytest

from code_graph.core.exceptions import GraphSerializationError
from code_graph.graph.persistence import SNAPSHOT_VERSION, GraphPersistence


class TestGraphPersistence:
    """Tests for GraphPersistence class."""

    @pytest.fixture
    def persistence(self, tmp_path: Path) -> GraphPersistence:
        return GraphPersistence(tmp_path / "graph")

    def test_creates_storage_dir(self, persistence: GraphPersistence) -> None:
        assert persistence.storage_dir.is_dir()

    def test_save_and_load(self, persistence: GraphPersistence) -> None:
        data = {"symbols": [{"id": "x"}], "edges": [], "metadata": []}
        path = persistence.save("snap", data)

        assert path.name == "snap.graph.json.gz"
        loaded = persistence.load("snap")
        assert loaded["version"] == SNAPSHOT_VERSION
        assert loaded["symbols"] == [{"id": "x"}]

    def test_load_missing(self, persistence: GraphPersistence) -> None:
        assert persistence.load("missing") is None
        assert persistence.exists("missing") is False

    def test_load_corrupt(self, persistence: GraphPersistence) -> None:
        with gzip.open(persistence.path_for("bad"), "wt", encoding="utf-8") as f:
            f.write("{not json")

        with pytest.raises(GraphSerializationError):
            persistence.load("bad")

    def test_save_unserializable(self, persistence: GraphPersistence) -> None:
        with pytest.raises(GraphSerializationError):
            persistence.save("bad", {"symbols": [object()]})

    def test_delete(self, persistence: GraphPersistence) -> None:
        persistence.save("snap", {})
        assert persistence.delete("snap") is True
        assert persistence.delete("snap") is False
