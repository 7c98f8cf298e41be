"""Duplicate destination resolution service."""
from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from ..core.config import DuplicateStrategy
from ..core.models import PlacementAction, PlacementDecision


def unique_path(path: Path, is_taken: Callable[[Path], bool]) -> Path:
    """Find the first free ``name_N.ext`` for N = 1, 2, ...

    Args:
        path: The occupied path.
        is_taken: Predicate telling whether a candidate is in use.

    Returns:
        First candidate for which ``is_taken`` is False.
    """
    counter = 1
    while True:
        candidate = path.with_name(f"{path.stem}_{counter}{path.suffix}")
        if not is_taken(candidate):
            return candidate
        counter += 1


class DestinationRegistry:
    """Per-run record of destinations handed out to workers.

    Checking whether a destination is free and claiming it happen under one
    per-directory lock, so two workers cannot both be handed the same path.
    Claims are kept for the whole run; the file lands on disk right after.

    A claim released after a failed write may already have turned a later
    file away under ``skip``; neither file is placed in that case.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[Path, threading.Lock] = {}
        self._claimed: dict[Path, set[Path]] = {}

    @contextmanager
    def locked(self, directory: Path) -> Iterator[set[Path]]:
        """Hold the lock for ``directory`` and expose its claimed set."""
        with self._guard:
            lock = self._locks.setdefault(directory, threading.Lock())
            claimed = self._claimed.setdefault(directory, set())
        with lock:
            yield claimed

    def release(self, path: Path) -> None:
        """Give back a claim after a failed write."""
        with self.locked(path.parent) as claimed:
            claimed.discard(path)

    def is_claimed(self, path: Path) -> bool:
        with self.locked(path.parent) as claimed:
            return path in claimed


class ConflictResolver:
    """Decides what happens to a file given its planned destination."""

    def __init__(
        self,
        strategy: DuplicateStrategy,
        move_files: bool,
        registry: DestinationRegistry,
    ):
        """Initialize with resolution strategy.

        Args:
            strategy: How to handle an occupied destination.
            move_files: Move (True) or copy (False) placed files.
            registry: Destinations already handed out in this run.
        """
        self._strategy = strategy
        self._move_files = move_files
        self._registry = registry

    @property
    def transfer_action(self) -> PlacementAction:
        return PlacementAction.MOVE if self._move_files else PlacementAction.COPY

    def decide(self, source: Path, planned: Path) -> PlacementDecision:
        """Produce the placement decision for one file.

        The planned path counts as occupied when it exists on disk or another
        file of this run was already sent there. A file whose planned path is
        its own location is never a duplicate.

        Raises:
            ValueError: For a strategy outside the known set.
        """
        with self._registry.locked(planned.parent) as claimed:

            def is_taken(candidate: Path) -> bool:
                return candidate in claimed or os.path.lexists(candidate)

            if source == planned or not is_taken(planned):
                claimed.add(planned)
                return PlacementDecision(
                    source=source,
                    planned=planned,
                    destination=planned,
                    action=self.transfer_action,
                )

            match self._strategy:
                case DuplicateStrategy.SKIP:
                    return PlacementDecision(
                        source=source,
                        planned=planned,
                        destination=planned,
                        action=PlacementAction.SKIP,
                        duplicate=True,
                    )
                case DuplicateStrategy.OVERWRITE:
                    return PlacementDecision(
                        source=source,
                        planned=planned,
                        destination=planned,
                        action=self.transfer_action,
                        duplicate=True,
                        overwrite=True,
                    )
                case DuplicateStrategy.RENAME:
                    destination = unique_path(planned, is_taken)
                    claimed.add(destination)
                    return PlacementDecision(
                        source=source,
                        planned=planned,
                        destination=destination,
                        action=PlacementAction.RENAME,
                        duplicate=True,
                    )
                case _:
                    raise ValueError(f"unknown duplicate handling strategy: {self._strategy}")
