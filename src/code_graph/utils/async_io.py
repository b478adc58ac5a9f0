"""Async file I/O utilities for non-blocking file operations."""

import asyncio
from pathlib import Path
from typing import Sequence

import aiofiles

from code_graph.utils.logging import get_logger

logger = get_logger(__name__)


async def async_read_file(file_path: str | Path) -> str:
    """Read a text file asynchronously.

    Undecodable bytes are replaced rather than failing the read.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    async with aiofiles.open(file_path, "r", encoding="utf-8", errors="replace") as f:
        return await f.read()


async def async_read_files_parallel(
    file_paths: Sequence[str | Path],
    max_concurrent: int = 50,
) -> dict[str, str]:
    """Read multiple files in parallel with concurrency limit.

    Args:
        file_paths: List of file paths to read.
        max_concurrent: Maximum concurrent file reads.

    Returns:
        Dict mapping file path to content; unreadable files are left out.
    """
    semaphore = asyncio.Semaphore(max_concurrent)

    async def read_with_semaphore(path: str | Path) -> tuple[str, str]:
        async with semaphore:
            return str(path), await async_read_file(path)

    results = await asyncio.gather(
        *(read_with_semaphore(p) for p in file_paths),
        return_exceptions=True,
    )

    output = {}
    for result in results:
        if isinstance(result, tuple):
            path, content = result
            output[path] = content
        elif isinstance(result, Exception):
            logger.debug("Error reading file", error=str(result))

    return output
