"""Directory scanning service."""
from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Mapping, Optional

from ..core.config import OrganizerConfig, normalize_extensions
from ..core.models import CandidateFile, MediaKind
from ..core.statistics import Statistics

logger = logging.getLogger(__name__)


# Patterns for date-based folders
DATE_FOLDER_PATTERNS = [
    re.compile(r"^\d{4}$"),  # YYYY
    re.compile(r"^\d{4}[-_](0[1-9]|1[0-2])$"),  # YYYY-MM
    re.compile(r"^\d{4}[-_](0[1-9]|1[0-2])[-_](0[1-9]|[12]\d|3[01])$"),  # YYYY-MM-DD
]


def is_date_folder(name: str) -> bool:
    """Check if folder name looks like a date.

    Purely positional: a folder that happens to be called "2024" for another
    reason matches too.
    """
    return any(p.match(name) for p in DATE_FOLDER_PATTERNS)


def find_thumbnail(media_path: Path, thumbnail_ext: str) -> Optional[Path]:
    """Find a sibling thumbnail sharing the media file's stem."""
    for suffix in (thumbnail_ext.lower(), thumbnail_ext.upper()):
        candidate = media_path.with_suffix(suffix)
        if candidate.is_file():
            return candidate
    return None


class DirectoryScanner:
    """Walks a source tree once and yields candidate media files."""

    def __init__(
        self,
        image_extensions: Iterable[str],
        video_extensions: Iterable[str] = (),
        thumbnail_extensions: Optional[Mapping[str, str]] = None,
        skip_organized: bool = True,
        max_files: int = 0,
        follow_symlinks: bool = False,
    ):
        """Initialize the scanner.

        Args:
            image_extensions: Extensions classified as images.
            video_extensions: Extensions classified as videos.
            thumbnail_extensions: Video extension -> sibling thumbnail extension.
            skip_organized: Prune subdirectories whose names look like dates.
            max_files: Stop after this many candidates (0 = unlimited).
            follow_symlinks: Descend into symlinked directories. Symlinked
                files are always candidates.
        """
        self._image_extensions = frozenset(normalize_extensions(image_extensions))
        self._video_extensions = frozenset(normalize_extensions(video_extensions))
        self._thumbnails = dict(thumbnail_extensions or {})
        self._thumbnail_exts = frozenset(self._thumbnails.values())
        self._skip_organized = skip_organized
        self._max_files = max_files
        self._follow_symlinks = follow_symlinks

    @classmethod
    def from_config(cls, config: OrganizerConfig) -> "DirectoryScanner":
        return cls(
            image_extensions=config.supported_extensions,
            video_extensions=config.video.supported_extensions,
            thumbnail_extensions=config.video.thumbnail_extensions,
            skip_organized=config.processing.skip_organized,
            max_files=config.security.max_files_per_run,
        )

    def classify(self, path: Path) -> Optional[MediaKind]:
        ext = path.suffix.lower()
        if ext in self._thumbnail_exts:
            return None
        if ext in self._image_extensions:
            return MediaKind.IMAGE
        if ext in self._video_extensions:
            return MediaKind.VIDEO
        return None

    def scan(self, root: Path, stats: Optional[Statistics] = None) -> Iterator[CandidateFile]:
        """Walk ``root`` and yield candidates in a single pass.

        Each directory is listed at most once. Entries that cannot be read
        are logged and skipped.

        Args:
            root: Directory to scan.
            stats: Run statistics to update.

        Yields:
            CandidateFile for each discovered media file.
        """
        found = 0
        pending = [root]
        visited: set[Path] = set()

        while pending:
            directory = pending.pop()
            if self._follow_symlinks:
                # Followed links can lead back into the tree
                try:
                    real = directory.resolve()
                except OSError as e:
                    logger.warning("Error accessing path %s: %s", directory, e)
                    continue
                if real in visited:
                    logger.debug("Skipping already visited directory: %s", directory)
                    continue
                visited.add(real)

            if stats is not None:
                stats.increment_directories_scanned()

            try:
                entries = sorted(directory.iterdir())
            except OSError as e:
                logger.warning("Error accessing path %s: %s", directory, e)
                continue

            subdirs = []
            for entry in entries:
                try:
                    if entry.is_dir():
                        if entry.is_symlink() and not self._follow_symlinks:
                            logger.debug("Skipping symlinked directory: %s", entry)
                            continue
                        if self._skip_organized and is_date_folder(entry.name):
                            logger.debug("Skipping already organized directory: %s", entry)
                            continue
                        subdirs.append(entry)
                        continue

                    kind = self.classify(entry)
                    if kind is None:
                        continue

                    candidate = self._build_candidate(entry, kind, stats)
                except OSError as e:
                    logger.warning("Error accessing path %s: %s", entry, e)
                    continue

                found += 1
                yield candidate

                if self._max_files and found >= self._max_files:
                    logger.info("Reached maximum files limit (%d), stopping discovery", self._max_files)
                    return

            # Reversed so subdirectories are visited in sorted order
            pending.extend(reversed(subdirs))

    def _build_candidate(
        self,
        path: Path,
        kind: MediaKind,
        stats: Optional[Statistics],
    ) -> CandidateFile:
        st = path.stat()
        ext = path.suffix.lower()

        thumbnail = None
        if kind == MediaKind.VIDEO and ext in self._thumbnails:
            thumbnail = find_thumbnail(path, self._thumbnails[ext])

        candidate = CandidateFile(
            path=path.absolute(),
            size=st.st_size,
            modified=datetime.fromtimestamp(st.st_mtime),
            kind=kind,
            extension=ext,
            thumbnail_path=thumbnail.absolute() if thumbnail else None,
        )

        if stats is not None:
            stats.increment_files_found()
            stats.increment_file_type(ext)
            if kind == MediaKind.VIDEO:
                stats.increment_video_files_found()
            if thumbnail is not None:
                stats.increment_thumbnails_found()

        return candidate
