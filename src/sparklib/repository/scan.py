"""Concurrent directory scanning."""

from __future__ import annotations

import asyncio
import logging
import os
import stat
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def map_action_dir(
    root_dir: str,
    mapper: Callable[[os.stat_result, str], Any],
    action: Callable[[list[str], list[Any]], T],
) -> T:
    """Scan a directory, map each entry and act on the results.

    Every entry is stat'ed concurrently and passed to ``mapper(stat, name)``.
    ``action(entries, results)`` is then called with the entry names in
    enumeration order and the mapper results at the same indices. An entry
    whose stat fails maps to False.

    Args:
        root_dir: The directory to scan
        mapper: Called with (stat, name) for each entry
        action: Called with the entry names and the index-aligned mapper results

    Returns:
        Whatever ``action`` returns
    """
    entries = await asyncio.to_thread(os.listdir, root_dir)

    async def probe(entry: str) -> Any:
        try:
            entry_stat = await asyncio.to_thread(os.stat, os.path.join(root_dir, entry))
        except OSError as e:
            logger.debug(f"Excluding {entry} from scan of {root_dir}: {e}")
            return False
        return mapper(entry_stat, entry)

    results = await asyncio.gather(*(probe(entry) for entry in entries))
    return action(entries, list(results))


def remove_failed_predicate(items: Sequence[T], predicates: Sequence[Any]) -> list[T]:
    """Keep the items whose predicate at the same index is exactly True."""
    return [item for item, ok in zip(items, predicates) if ok is True]


def is_directory(entry_stat: os.stat_result, name: str) -> bool:
    return stat.S_ISDIR(entry_stat.st_mode)


async def get_dirs(root_dir: str) -> list[str]:
    """Return the names of the directories directly under root_dir."""
    return await map_action_dir(root_dir, is_directory, remove_failed_predicate)
