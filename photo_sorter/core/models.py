"""Domain models - immutable data classes."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional


class MediaKind(Enum):
    """Detected kind of a candidate file."""
    IMAGE = "image"
    VIDEO = "video"


class DateSource(Enum):
    """Which tier of the fallback chain produced a date."""
    EXIF = "exif"
    MODIFICATION_TIME = "modification_time"


class PlacementAction(Enum):
    """What will be done with a file."""
    MOVE = "move"
    COPY = "copy"
    SKIP = "skip"
    RENAME = "rename"


class OutcomeCategory(Enum):
    """Terminal per-file result."""
    ORGANIZED = "organized"
    DUPLICATE_HANDLED = "duplicate_handled"
    SKIPPED = "skipped"
    NO_DATE = "no_date"
    ERROR = "error"


# (path, size, mtime in whole seconds)
CacheKey = tuple[str, int, int]


@dataclass(frozen=True, slots=True)
class CandidateFile:
    """A discovered media file, not yet processed."""
    path: Path
    size: int
    modified: datetime
    kind: MediaKind
    extension: str
    thumbnail_path: Optional[Path] = None

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def is_image(self) -> bool:
        return self.kind == MediaKind.IMAGE

    @property
    def is_video(self) -> bool:
        return self.kind == MediaKind.VIDEO


@dataclass(frozen=True, slots=True)
class ResolvedDate:
    """A timestamp plus the tier that produced it."""
    value: datetime
    source: DateSource
    tag: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PlacementDecision:
    """Where a file goes and how.

    ``planned`` is the path from the planner; ``destination`` differs from it
    only for renamed duplicates.
    """
    source: Path
    planned: Path
    destination: Path
    action: PlacementAction
    duplicate: bool = False
    overwrite: bool = False

    @property
    def in_place(self) -> bool:
        return self.source == self.destination

    @property
    def transfers(self) -> bool:
        return self.action != PlacementAction.SKIP


@dataclass(frozen=True, slots=True)
class ProcessingOutcome:
    """Result of processing a single file. Emitted exactly once per file."""
    file: CandidateFile
    category: OutcomeCategory
    destination: Optional[Path] = None
    bytes_processed: int = 0
    operation: Optional[str] = None
    error: Optional[str] = None
    message: str = ""
    simulated: bool = False

    @property
    def is_success(self) -> bool:
        return self.category not in (OutcomeCategory.ERROR, OutcomeCategory.NO_DATE)

    @property
    def level(self) -> str:
        """Log level an event stream should use for this outcome."""
        if self.category == OutcomeCategory.ERROR:
            return "error"
        if self.category == OutcomeCategory.NO_DATE:
            return "warn"
        return "info"
