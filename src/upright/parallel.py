"""Background and parallel execution for upright.

normalize() is blocking: decode, transform and encode of a multi-megapixel
image takes long enough that callers should keep it off their main thread.
Batches use ProcessPoolExecutor since the work is CPU-bound.
"""

from __future__ import annotations

import asyncio
import os
from concurrent.futures import Executor, Future, ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from upright.normalize import NormalizeOptions, is_video, normalize, read_source
from upright.orientation import read_orientation


@dataclass
class NormalizeResult:
    """Result of normalizing a single file."""

    path: str
    success: bool
    destination: str | None = None
    tag: int | None = None
    passthrough: bool = False
    error: str | None = None


def normalize_to_result(
    path_str: str,
    options: NormalizeOptions | None = None,
) -> NormalizeResult:
    """Normalize one file and report instead of raising.

    Runs in worker processes, so everything it needs must be picklable.

    Args:
        path_str: Absolute path to the source file.
        options: Normalization options.

    Returns:
        NormalizeResult describing the outcome.
    """
    path = Path(path_str)
    if is_video(path):
        return NormalizeResult(
            path=path_str, success=True, destination=path_str, passthrough=True
        )

    try:
        data = read_source(path)
        tag = read_orientation(data)
        destination = normalize(data, path, options)
    except Exception as e:
        return NormalizeResult(path=path_str, success=False, error=str(e))

    return NormalizeResult(
        path=path_str,
        success=True,
        destination=str(destination),
        tag=int(tag),
    )


def normalize_files_parallel(
    files: list[Path],
    options: NormalizeOptions | None = None,
    workers: int | None = None,
) -> Iterator[NormalizeResult]:
    """Normalize multiple files in parallel.

    Args:
        files: List of file paths to process.
        options: Normalization options shared by every file.
        workers: Number of worker processes (default: get_default_workers()).

    Yields:
        NormalizeResult for each file, in completion order.
    """
    if not files:
        return

    if workers is None:
        workers = get_default_workers()

    # Limit workers to reasonable bounds
    workers = max(1, min(workers, 16, len(files)))

    with ProcessPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(normalize_to_result, str(path.resolve()), options): path
            for path in files
        }

        for future in as_completed(futures):
            yield future.result()


def submit_normalize(
    executor: Executor,
    source_bytes: bytes | None,
    source_path: Path | str,
    options: NormalizeOptions | None = None,
) -> Future[Path]:
    """Schedule normalize() on an executor and return its future."""
    return executor.submit(normalize, source_bytes, source_path, options)


async def normalize_async(
    source_bytes: bytes | None,
    source_path: Path | str,
    options: NormalizeOptions | None = None,
    executor: Executor | None = None,
) -> Path:
    """Await normalize() without blocking the event loop.

    Uses the loop's default thread pool unless an executor is given.
    Errors from normalize() propagate unchanged.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        executor, normalize, source_bytes, source_path, options
    )


def get_default_workers() -> int:
    """Get default number of workers based on CPU count."""
    cpu_count = os.cpu_count() or 4
    # Use N-1 CPUs to leave headroom, minimum 1
    return max(1, cpu_count - 1)
