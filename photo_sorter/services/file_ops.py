"""Placement planning and file operations."""
from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Union

from ..core.config import format_date
from ..core.models import ResolvedDate

logger = logging.getLogger(__name__)


BACKUP_SUFFIX = ".backup"


def plan_destination(
    file_path: Path,
    date: Union[ResolvedDate, datetime],
    target_root: Path,
    date_format: str,
) -> Path:
    """Compute where a file belongs. Pure, no I/O.

    Args:
        file_path: Source file.
        date: Resolved date (or a bare datetime).
        target_root: Root of the organized tree.
        date_format: Directory pattern, e.g. ``YYYY/MM/DD``.

    Returns:
        ``target_root / <formatted date> / <file name>``.
    """
    value = date.value if isinstance(date, ResolvedDate) else date
    return target_root / format_date(value, date_format) / file_path.name


class FileManager:
    """Performs the terminal filesystem actions.

    In dry-run mode every operation only logs what it would do; nothing on
    disk is created, copied or moved.
    """

    def __init__(self, dry_run: bool = False, create_backups: bool = False):
        """Initialize file manager.

        Args:
            dry_run: If True, don't touch the filesystem.
            create_backups: Copy the source to ``FILE.backup`` before moving.
        """
        self._dry_run = dry_run
        self._create_backups = create_backups

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def ensure_directory(self, path: Path) -> bool:
        """Create a directory and its parents if missing.

        Concurrent creation of the same directory is tolerated.

        Returns:
            True if this call created the directory.
        """
        if self._dry_run:
            logger.debug("DRY-RUN: Would ensure directory %s", path)
            return False
        if path.is_dir():
            return False
        try:
            path.mkdir(parents=True)
        except FileExistsError:
            if not path.is_dir():
                raise
            return False
        logger.debug("Created directory: %s", path)
        return True

    def copy_file(self, source: Path, target: Path) -> None:
        """Copy a file, preserving permission bits and timestamps.

        Raises:
            OSError: If the copy fails.
        """
        if self._dry_run:
            logger.info("DRY-RUN: Would copy %s -> %s", source, target)
            return
        shutil.copy2(source, target)

    def move_file(self, source: Path, target: Path) -> None:
        """Move a file, optionally leaving a ``.backup`` copy behind first.

        A failed backup is logged and does not stop the move.

        Raises:
            OSError: If the move fails.
        """
        if self._dry_run:
            logger.info("DRY-RUN: Would move %s -> %s", source, target)
            return
        if self._create_backups:
            try:
                self.create_backup(source)
            except OSError as e:
                logger.warning("Could not create backup for %s: %s", source, e)
        shutil.move(str(source), str(target))

    def transfer(self, source: Path, target: Path, move: bool) -> None:
        if move:
            self.move_file(source, target)
        else:
            self.copy_file(source, target)

    def create_backup(self, path: Path) -> Path:
        """Copy ``path`` to a sibling ``path.backup``."""
        backup = path.with_name(path.name + BACKUP_SUFFIX)
        shutil.copy2(path, backup)
        logger.debug("Created backup: %s", backup)
        return backup
