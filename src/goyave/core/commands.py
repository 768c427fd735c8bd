"""Discovery and parallel work over repositories.

Each helper fans out one task per path on a bounded thread pool and blocks
until every task is done. A failing task is logged and never stops its
siblings.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar, Union

from .models import Visibility
from .registry import AddOutcome, RepositoryRegistry
from .repository import (
    GIT_DIR_NAME,
    GitError,
    GitRepository,
    StatusReport,
    clone_repository,
    is_git_repository,
)

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 8
DEFAULT_EXCLUDE_PATTERNS = ["node_modules", "venv", ".venv", "env", ".env", ".cache", ".Trash"]

T = TypeVar("T")
R = TypeVar("R")


def find_repositories(
    root: Union[str, Path], exclude_patterns: Optional[Sequence[str]] = None
) -> List[str]:
    """Find git working trees below ``root``.

    Every directory holding a ``.git`` entry is reported, ``root`` included.
    The walk does not descend into ``.git`` nor into directories whose name
    is in ``exclude_patterns``, unless such a directory is itself a working
    tree. Unreadable directories are skipped.
    """
    excluded = set(DEFAULT_EXCLUDE_PATTERNS if exclude_patterns is None else exclude_patterns)
    paths: List[str] = []

    def on_error(error: OSError) -> None:
        logger.debug("Skipping %s: %s", error.filename, error)

    for dirpath, dirnames, filenames in os.walk(str(root), onerror=on_error):
        if GIT_DIR_NAME in dirnames or GIT_DIR_NAME in filenames:
            logger.debug("Just found in hard drive %s", dirpath)
            paths.append(dirpath)
        dirnames[:] = [
            d
            for d in dirnames
            if d != GIT_DIR_NAME
            and (d not in excluded or is_git_repository(os.path.join(dirpath, d)))
        ]
    return paths


def run_parallel(
    func: Callable[[T], R], items: Iterable[T], max_workers: int = DEFAULT_WORKERS
) -> Dict[T, R]:
    """Run ``func`` on every item and wait for all of them.

    Returns:
        Dict: Result of every item whose call did not raise. Exceptions are
        logged as warnings.
    """
    results: Dict[T, R] = {}
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {executor.submit(func, item): item for item in items}
        for future in as_completed(futures):
            item = futures[future]
            try:
                results[item] = future.result()
            except Exception as e:
                logger.warning("[%s] %s", item, e)
    return results


def register_repositories(
    registry: RepositoryRegistry,
    paths: Iterable[str],
    visibility: Visibility,
    max_workers: int = DEFAULT_WORKERS,
) -> Dict[str, AddOutcome]:
    """Add every git working tree of ``paths`` to the registry concurrently."""

    def register(path: str) -> AddOutcome:
        if not is_git_repository(path):
            raise GitError(f"{path} is not a git repository")
        return registry.add_repository(path, visibility)

    return run_parallel(register, paths, max_workers)


def collect_states(
    paths: Iterable[str], max_workers: int = DEFAULT_WORKERS
) -> Dict[str, StatusReport]:
    """Get the status report of every path concurrently."""
    return run_parallel(lambda path: GitRepository(path).status(), paths, max_workers)


def clone_missing(
    repositories: Iterable[Tuple[str, str, str]], max_workers: int = DEFAULT_WORKERS
) -> Dict[str, bool]:
    """Clone repositories that are not present on disk.

    Args:
        repositories: ``(name, path, url)`` triples.

    Returns:
        Dict[str, bool]: For every successfully handled name, True when it
        was cloned and False when the path already existed.
    """
    by_name = {name: (path, url) for name, path, url in repositories}

    def clone(name: str) -> bool:
        path, url = by_name[name]
        if os.path.exists(path):
            logger.info('the repository "%s" already exists as a local git repository', name)
            return False
        logger.info("importing %s...", name)
        clone_repository(url, path)
        return True

    return run_parallel(clone, list(by_name), max_workers)
