"""Thread-safe run statistics."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from .models import OutcomeCategory, ProcessingOutcome


DEFAULT_MAX_ERRORS = 1000
DEFAULT_ERROR_DISPLAY = 10


@dataclass(frozen=True, slots=True)
class StatError:
    """An error recorded during a run."""
    file_path: str
    operation: str
    error: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(slots=True)
class DateExtractionStats:
    """How dates were obtained."""
    from_exif: int = 0
    from_mod_time: int = 0
    extraction_errors: int = 0


def format_bytes(num: int) -> str:
    """Human-readable byte count (1024 based)."""
    unit = 1024
    if num < unit:
        return f"{num} B"
    div, exp = unit, 0
    n = num // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{num / div:.1f} {'KMGTPE'[exp]}B"


class Statistics:
    """Counters and error log for one run.

    Mutated concurrently by all workers, finalized exactly once after they
    join, then read-only. Every mutation holds ``_lock`` only for the field
    update itself.
    """

    def __init__(self, max_errors: int = DEFAULT_MAX_ERRORS):
        self._lock = threading.Lock()
        self._finalized = False
        self._max_errors = max_errors

        self.total_files_found = 0
        self.total_files_processed = 0
        self.files_organized = 0
        self.files_moved = 0
        self.files_copied = 0
        self.files_skipped = 0
        self.files_with_errors = 0
        self.files_without_dates = 0

        self.video_files_found = 0
        self.video_files_processed = 0
        self.thumbnails_found = 0
        self.thumbnails_processed = 0

        self.duplicates_found = 0
        self.duplicates_renamed = 0
        self.duplicates_skipped = 0
        self.duplicates_replaced = 0

        self.bytes_processed = 0
        self.cache_hits = 0
        self.cache_misses = 0
        self.directories_created = 0
        self.directories_scanned = 0

        self.file_type_stats: dict[str, int] = {}
        self.date_extraction = DateExtractionStats()

        self.errors: list[StatError] = []
        self.errors_total = 0

        self.start_time = datetime.now()
        self.end_time: Optional[datetime] = None
        self.duration = 0.0
        self.files_per_second = 0.0
        self.average_file_size = 0
        self.cache_hit_rate = 0.0

    # --- Mutation ---

    def _add(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._check_mutable()
            setattr(self, name, getattr(self, name) + amount)

    def _check_mutable(self) -> None:
        if self._finalized:
            raise RuntimeError("statistics are finalized and read-only")

    def increment_files_found(self) -> None:
        self._add("total_files_found")

    def increment_files_processed(self) -> None:
        self._add("total_files_processed")

    def increment_files_organized(self) -> None:
        self._add("files_organized")

    def increment_files_moved(self) -> None:
        self._add("files_moved")

    def increment_files_copied(self) -> None:
        self._add("files_copied")

    def increment_files_skipped(self) -> None:
        self._add("files_skipped")

    def increment_files_with_errors(self) -> None:
        self._add("files_with_errors")

    def increment_files_without_dates(self) -> None:
        self._add("files_without_dates")

    def increment_video_files_found(self) -> None:
        self._add("video_files_found")

    def increment_video_files_processed(self) -> None:
        self._add("video_files_processed")

    def increment_thumbnails_found(self) -> None:
        self._add("thumbnails_found")

    def increment_thumbnails_processed(self) -> None:
        self._add("thumbnails_processed")

    def increment_duplicates_found(self) -> None:
        self._add("duplicates_found")

    def increment_duplicates_renamed(self) -> None:
        self._add("duplicates_renamed")

    def increment_duplicates_skipped(self) -> None:
        self._add("duplicates_skipped")

    def increment_duplicates_replaced(self) -> None:
        self._add("duplicates_replaced")

    def increment_directories_created(self) -> None:
        self._add("directories_created")

    def increment_directories_scanned(self) -> None:
        self._add("directories_scanned")

    def increment_cache_hits(self) -> None:
        self._add("cache_hits")

    def increment_cache_misses(self) -> None:
        self._add("cache_misses")

    def add_bytes_processed(self, num: int) -> None:
        self._add("bytes_processed", num)

    def increment_file_type(self, extension: str) -> None:
        """Count a file by upper-case extension without the dot (JPG, MP4)."""
        key = extension.lstrip(".").upper()
        with self._lock:
            self._check_mutable()
            self.file_type_stats[key] = self.file_type_stats.get(key, 0) + 1

    def increment_date_from_exif(self) -> None:
        with self._lock:
            self._check_mutable()
            self.date_extraction.from_exif += 1

    def increment_date_from_mod_time(self) -> None:
        with self._lock:
            self._check_mutable()
            self.date_extraction.from_mod_time += 1

    def increment_date_extraction_errors(self) -> None:
        with self._lock:
            self._check_mutable()
            self.date_extraction.extraction_errors += 1

    def add_error(self, file_path: Union[str, Path], operation: str, message: str) -> None:
        """Append to the error log; entries past ``max_errors`` are only counted."""
        entry = StatError(file_path=str(file_path), operation=operation, error=message)
        with self._lock:
            self._check_mutable()
            self.errors_total += 1
            if len(self.errors) < self._max_errors:
                self.errors.append(entry)

    def record_outcome(self, outcome: ProcessingOutcome) -> None:
        """Count a terminal per-file outcome in exactly one bucket."""
        with self._lock:
            self._check_mutable()
            self.total_files_processed += 1
            if outcome.file.is_video:
                self.video_files_processed += 1
            match outcome.category:
                case OutcomeCategory.ORGANIZED | OutcomeCategory.DUPLICATE_HANDLED:
                    self.files_organized += 1
                    self.bytes_processed += outcome.bytes_processed
                case OutcomeCategory.SKIPPED:
                    self.files_skipped += 1
                case OutcomeCategory.NO_DATE:
                    self.files_without_dates += 1
                case OutcomeCategory.ERROR:
                    self.files_with_errors += 1

    # --- Finalization ---

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    def finalize(self) -> None:
        """Compute derived metrics. Must be called exactly once."""
        with self._lock:
            if self._finalized:
                raise RuntimeError("statistics already finalized")

            self.end_time = datetime.now()
            self.duration = (self.end_time - self.start_time).total_seconds()

            if self.duration > 0:
                self.files_per_second = self.total_files_processed / self.duration
            if self.total_files_processed > 0:
                self.average_file_size = self.bytes_processed // self.total_files_processed

            lookups = self.cache_hits + self.cache_misses
            if lookups > 0:
                self.cache_hit_rate = self.cache_hits / lookups

            self._finalized = True

    # --- Reporting ---

    def snapshot(self) -> dict[str, Any]:
        """Consistent copy of all counters, safe to call while workers run."""
        with self._lock:
            return {
                "total_files_found": self.total_files_found,
                "total_files_processed": self.total_files_processed,
                "files_organized": self.files_organized,
                "files_moved": self.files_moved,
                "files_copied": self.files_copied,
                "files_skipped": self.files_skipped,
                "files_with_errors": self.files_with_errors,
                "files_without_dates": self.files_without_dates,
                "video_files_found": self.video_files_found,
                "video_files_processed": self.video_files_processed,
                "thumbnails_found": self.thumbnails_found,
                "thumbnails_processed": self.thumbnails_processed,
                "duplicates_found": self.duplicates_found,
                "duplicates_renamed": self.duplicates_renamed,
                "duplicates_skipped": self.duplicates_skipped,
                "duplicates_replaced": self.duplicates_replaced,
                "bytes_processed": self.bytes_processed,
                "cache_hits": self.cache_hits,
                "cache_misses": self.cache_misses,
                "cache_hit_rate": self.cache_hit_rate,
                "directories_created": self.directories_created,
                "directories_scanned": self.directories_scanned,
                "file_type_stats": dict(self.file_type_stats),
                "date_extraction": {
                    "from_exif": self.date_extraction.from_exif,
                    "from_mod_time": self.date_extraction.from_mod_time,
                    "extraction_errors": self.date_extraction.extraction_errors,
                },
                "start_time": self.start_time.isoformat(),
                "end_time": self.end_time.isoformat() if self.end_time else None,
                "duration_seconds": self.duration,
                "files_per_second": self.files_per_second,
                "average_file_size": self.average_file_size,
                "errors_total": self.errors_total,
                "errors": [
                    {
                        "file_path": e.file_path,
                        "operation": e.operation,
                        "error": e.error,
                        "timestamp": e.timestamp.isoformat(),
                    }
                    for e in self.errors[:DEFAULT_ERROR_DISPLAY]
                ],
                "finalized": self._finalized,
            }

    def to_dict(self) -> dict[str, Any]:
        return self.snapshot()

    def error_entries(self, limit: int = DEFAULT_ERROR_DISPLAY) -> list[StatError]:
        """First ``limit`` recorded errors, in insertion order."""
        with self._lock:
            return list(self.errors[:limit])

    def summary(self) -> str:
        """Plain-text summary of the run."""
        s = self.snapshot()
        d = s["date_extraction"]
        return "\n".join([
            "Photo Sorter Statistics Summary:",
            "",
            "Files:",
            f"    Total Found: {s['total_files_found']}",
            f"    Total Processed: {s['total_files_processed']}",
            f"    Organized: {s['files_organized']}",
            f"    Moved: {s['files_moved']}",
            f"    Copied: {s['files_copied']}",
            f"    Skipped: {s['files_skipped']}",
            f"    Errors: {s['files_with_errors']}",
            f"    Without Dates: {s['files_without_dates']}",
            "",
            "Videos:",
            f"    Videos Found: {s['video_files_found']}",
            f"    Videos Processed: {s['video_files_processed']}",
            f"    Thumbnails Found: {s['thumbnails_found']}",
            f"    Thumbnails Processed: {s['thumbnails_processed']}",
            "",
            "Duplicates:",
            f"    Found: {s['duplicates_found']}",
            f"    Renamed: {s['duplicates_renamed']}",
            f"    Skipped: {s['duplicates_skipped']}",
            f"    Replaced: {s['duplicates_replaced']}",
            "",
            "Performance:",
            f"    Duration: {s['duration_seconds']:.2f}s",
            f"    Files/Second: {s['files_per_second']:.2f}",
            f"    Bytes Processed: {format_bytes(s['bytes_processed'])}",
            f"    Average File Size: {format_bytes(s['average_file_size'])}",
            "",
            "Cache:",
            f"    Hits: {s['cache_hits']}",
            f"    Misses: {s['cache_misses']}",
            f"    Hit Rate: {s['cache_hit_rate'] * 100:.2f}%",
            "",
            "Date Extraction:",
            f"    From EXIF: {d['from_exif']}",
            f"    From ModTime: {d['from_mod_time']}",
            f"    Extraction Errors: {d['extraction_errors']}",
            "",
            "Directories:",
            f"    Created: {s['directories_created']}",
            f"    Scanned: {s['directories_scanned']}",
        ])

    def file_type_breakdown(self) -> str:
        with self._lock:
            if not self.file_type_stats:
                return "No file type statistics available"
            lines = ["File Type Breakdown:"]
            for file_type, count in sorted(self.file_type_stats.items()):
                lines.append(f"  {file_type}: {count}")
        return "\n".join(lines)

    def error_summary(self, limit: int = DEFAULT_ERROR_DISPLAY) -> str:
        with self._lock:
            if self.errors_total == 0:
                return "No errors occurred during processing"
            shown = self.errors[:limit]
            total = self.errors_total

        lines = [f"Errors ({total} total):"]
        for entry in shown:
            lines.append(
                f"  [{entry.timestamp:%H:%M:%S}] {entry.operation}: "
                f"{entry.file_path} - {entry.error}"
            )
        if total > len(shown):
            lines.append(f"  ... and {total - len(shown)} more errors")
        return "\n".join(lines)
