"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test modules.
"""

import os
from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

# Set test environment before importing app modules
os.environ["APP_ENV"] = "development"
os.environ["APP_DEBUG"] = "true"
os.environ["EMBEDDING_PROVIDER"] = "mock"
os.environ.setdefault("GIT_PYTHON_REFRESH", "quiet")

WORKSPACE_ID = "ws-test"
REPO_ID = "repo-test"


@pytest.fixture
def temp_data_dir(tmp_path: Path) -> Path:
    """Create a temporary data directory for tests.

    Args:
        tmp_path: Pytest's temporary path fixture.

    Returns:
        Path: Temporary directory for test data.
    """
    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True)
    (data_dir / "graph").mkdir()
    (data_dir / "repos").mkdir()
    return data_dir


@pytest.fixture
def mock_settings(temp_data_dir: Path) -> Generator[Any, None, None]:
    """Provide settings pointing at a temporary data directory.

    Args:
        temp_data_dir: Temporary data directory.

    Yields:
        Settings instance.
    """
    with patch.dict(
        os.environ,
        {
            "APP_ENV": "development",
            "APP_DEBUG": "true",
            "GRAPH_STORAGE_PATH": str(temp_data_dir / "graph"),
            "INDEXING_REPOS_PATH": str(temp_data_dir / "repos"),
            "EMBEDDING_PROVIDER": "mock",
        },
    ):
        # Clear cached settings
        from code_graph.config import get_settings

        get_settings.cache_clear()
        yield get_settings()
        get_settings.cache_clear()


@pytest.fixture
async def app_context(mock_settings: Any) -> AsyncGenerator[Any, None]:
    """A started, fully in-memory application context."""
    from code_graph.context import AppContext

    context = AppContext.in_memory(mock_settings)
    await context.start()
    yield context
    await context.close()


@pytest.fixture
def sample_typescript_code() -> str:
    """Provide sample TypeScript code for testing."""
    return """import { other } from './other';

/** Entry point of the app. */
export class Main {
  run(): void {
    other();
    this.helper();
  }

  private helper(): number {
    return 1;
  }
}

function internal(x: number): number {
  return x * 2;
}
"""


@pytest.fixture
def sample_python_code() -> str:
    """Provide sample Python code for testing."""
    return '''
def hello_world():
    """Say hello to the world."""
    print("Hello, World!")


class Calculator:
    """A simple calculator class."""

    def add(self, a: int, b: int) -> int:
        """Add two numbers."""
        return a + b

    def _reset(self):
        self.add(0, 0)
'''


@pytest.fixture
def sample_markdown() -> str:
    """Provide a sample Markdown document for testing."""
    return """# Getting Started

This guide explains how to index a repository and search it.

## Install

```bash
pip install code-graph
```

- short
"""


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "e2e: End-to-end tests")
    config.addinivalue_line("markers", "slow: Slow tests")
