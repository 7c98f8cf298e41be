"""Date extraction from embedded metadata with modification-time fallback."""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Union

from PIL import Image

from ..core.config import DEFAULT_IMAGE_EXTENSIONS, normalize_extensions
from ..core.models import CandidateFile, DateSource, ResolvedDate
from ..core.protocols import DateExtractor
from ..core.statistics import Statistics
from .cache import MetadataCache, make_key

logger = logging.getLogger(__name__)


EXIF_IFD_POINTER = 0x8769

# (name, tag id, lives in the Exif sub-IFD) in priority order
DATE_TAGS = (
    ("DateTimeOriginal", 36867, True),
    ("DateTimeDigitized", 36868, True),
    ("DateTime", 306, False),
)

EXIF_DATE_FORMATS = (
    "%Y:%m:%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%Y:%m:%d",
    "%Y-%m-%d",
)


class DateResolutionError(Exception):
    """A file's date could not be resolved. Recoverable, per file."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"{reason}: {path}")
        self.path = path
        self.reason = reason


def parse_exif_datetime(value: Union[str, bytes, None]) -> Optional[datetime]:
    """Parse an EXIF date string against the known formats.

    Falls back to ISO 8601 / RFC 3339 (``2024-12-25T10:00:00Z``).
    Returns None for empty or unparseable values.
    """
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    value = str(value).strip().strip("\x00").strip()
    if not value:
        return None

    for fmt in EXIF_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue

    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except ValueError:
        logger.debug("Failed to parse date string: %s", value)
        return None


class ExifDateExtractor:
    """Reads capture dates from EXIF using Pillow."""

    def read_tags(self, path: Path) -> dict[str, str]:
        """Return raw values of the known date tags present in the file.

        Raises:
            OSError: If the file cannot be opened as an image.
        """
        found: dict[str, str] = {}
        with Image.open(path) as img:
            exif = img.getexif()
            sub_ifd = exif.get_ifd(EXIF_IFD_POINTER)

            for name, tag_id, in_sub_ifd in DATE_TAGS:
                value = sub_ifd.get(tag_id) if in_sub_ifd else None
                # Some writers put the capture tags in IFD0
                if value is None:
                    value = exif.get(tag_id)
                if value is not None:
                    if isinstance(value, bytes):
                        value = value.decode("ascii", errors="ignore")
                    found[name] = str(value).strip().strip("\x00")
        return found

    def extract(self, path: Path) -> Optional[tuple[datetime, str]]:
        """Return (date, tag name) from the first tag that parses, or None."""
        try:
            tags = self.read_tags(path)
        except Exception as e:
            logger.debug("No readable EXIF in %s: %s", path, e)
            return None

        for name, _, _ in DATE_TAGS:
            parsed = parse_exif_datetime(tags.get(name))
            if parsed is not None:
                logger.debug("Extracted %s from EXIF: %s for file %s", name, parsed, path)
                return parsed, name
        return None


class DateResolver:
    """Fallback chain: cache -> embedded metadata -> modification time.

    Only files whose extension is in the image set (or the video set, when
    given) are accepted. Videos skip straight to the modification-time tier.
    """

    def __init__(
        self,
        extractor: Optional[DateExtractor] = None,
        cache: Optional[MetadataCache] = None,
        image_extensions: Iterable[str] = DEFAULT_IMAGE_EXTENSIONS,
        video_extensions: Iterable[str] = (),
    ):
        """Initialize the resolver.

        Args:
            extractor: Embedded-metadata reader (default: Pillow EXIF).
            cache: Shared memo table (default: a fresh unbounded cache).
            image_extensions: Extensions that go through the metadata chain.
            video_extensions: Extensions dated by modification time only.
        """
        self._extractor = extractor or ExifDateExtractor()
        self._cache = cache if cache is not None else MetadataCache()
        self._image_extensions = frozenset(normalize_extensions(image_extensions))
        self._video_extensions = frozenset(normalize_extensions(video_extensions))

    @property
    def cache(self) -> MetadataCache:
        return self._cache

    def supports(self, path: Path) -> bool:
        ext = path.suffix.lower()
        return ext in self._image_extensions or ext in self._video_extensions

    def resolve(
        self,
        file: Union[CandidateFile, Path],
        stats: Optional[Statistics] = None,
    ) -> ResolvedDate:
        """Resolve the date for one file.

        Args:
            file: Candidate (or plain path) to date.
            stats: Run statistics to update with cache and provenance counts.

        Returns:
            The resolved date with its provenance.

        Raises:
            DateResolutionError: If the file type is unsupported or the file
                cannot be read.
        """
        path = file.path if isinstance(file, CandidateFile) else Path(file)

        if not self.supports(path):
            self._count_error(stats)
            raise DateResolutionError(path, "file type not supported by extractor")

        try:
            stat = path.stat()
        except OSError as e:
            self._count_error(stats)
            raise DateResolutionError(path, f"failed to stat file ({e.strerror or e})") from e

        key = make_key(path, stat)
        cached = self._cache.get(key)
        if cached is not None:
            if stats is not None:
                stats.increment_cache_hits()
            self._count_source(cached, stats)
            return cached

        if stats is not None:
            stats.increment_cache_misses()

        resolved = None
        if path.suffix.lower() in self._image_extensions:
            found = self._extractor.extract(path)
            if found is not None:
                resolved = ResolvedDate(value=found[0], source=DateSource.EXIF, tag=found[1])

        if resolved is None:
            resolved = ResolvedDate(
                value=datetime.fromtimestamp(stat.st_mtime),
                source=DateSource.MODIFICATION_TIME,
            )

        self._cache.put(key, resolved)
        self._count_source(resolved, stats)
        return resolved

    @staticmethod
    def _count_error(stats: Optional[Statistics]) -> None:
        if stats is not None:
            stats.increment_date_extraction_errors()

    @staticmethod
    def _count_source(resolved: ResolvedDate, stats: Optional[Statistics]) -> None:
        if stats is None:
            return
        match resolved.source:
            case DateSource.EXIF:
                stats.increment_date_from_exif()
            case DateSource.MODIFICATION_TIME:
                stats.increment_date_from_mod_time()
