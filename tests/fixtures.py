"""Test fixtures for integration tests.

This module provides fixture classes that generate media files,
write them to disk, and know the date folder they should end up in.
"""
from __future__ import annotations

import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from PIL import Image

from photo_sorter.core.config import DEFAULT_DATE_FORMAT, format_date


def set_mtime(path: Path, when: datetime) -> None:
    """Set atime/mtime in whole seconds."""
    ts = int(when.timestamp())
    os.utime(path, (ts, ts))


def make_jpeg(
    path: Path,
    exif_date: Optional[str] = None,
    tag_id: int = 306,
    mtime: Optional[datetime] = None,
    color: str = "red",
) -> Path:
    """Write a small JPEG, optionally carrying an EXIF date tag.

    Args:
        path: Where to write.
        exif_date: Raw EXIF value, e.g. ``2024:12:25 10:00:00``.
        tag_id: Tag to store it in (306 DateTime, 36867 DateTimeOriginal).
        mtime: Modification time to set afterwards.
        color: Fill colour, so different files have different bytes.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.new("RGB", (16, 16), color=color)
    if exif_date is not None:
        exif = Image.Exif()
        exif[tag_id] = exif_date
        img.save(path, "JPEG", exif=exif)
    else:
        img.save(path, "JPEG")
    if mtime is not None:
        set_mtime(path, mtime)
    return path


def make_file(path: Path, content: bytes = b"data", mtime: Optional[datetime] = None) -> Path:
    """Write an arbitrary file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    if mtime is not None:
        set_mtime(path, mtime)
    return path


@dataclass
class MediaFixture(ABC):
    """Base class for test media fixtures.

    Each fixture knows:
    - How to create its source file(s)
    - Which date it should be filed under (None = not organized)
    """
    name: str
    parent_folder: Optional[str] = None

    @abstractmethod
    def create(self, base_path: Path) -> Path:
        """Create the fixture file(s) and return the main file path."""
        pass

    @abstractmethod
    def expected_date(self) -> Optional[datetime]:
        pass

    @property
    @abstractmethod
    def filename(self) -> str:
        pass

    def folder(self, base_path: Path) -> Path:
        return base_path / (self.parent_folder or "")

    def expected_output_folder(self, date_format: str = DEFAULT_DATE_FORMAT) -> Optional[str]:
        """Return the expected relative folder (e.g. '2024/12/25'), or None."""
        date = self.expected_date()
        if date is None:
            return None
        return format_date(date, date_format)


@dataclass
class ImageWithExifDate(MediaFixture):
    """JPEG with the capture date in EXIF and a different mtime."""
    date_taken: datetime = field(default_factory=lambda: datetime(2024, 12, 25, 10, 0, 0))
    modified: datetime = field(default_factory=lambda: datetime(2020, 1, 2, 3, 4, 5))
    tag_id: int = 306

    @property
    def filename(self) -> str:
        return f"{self.name}.jpg"

    def create(self, base_path: Path) -> Path:
        return make_jpeg(
            self.folder(base_path) / self.filename,
            exif_date=self.date_taken.strftime("%Y:%m:%d %H:%M:%S"),
            tag_id=self.tag_id,
            mtime=self.modified,
        )

    def expected_date(self) -> Optional[datetime]:
        return self.date_taken


@dataclass
class ImageNoExif(MediaFixture):
    """JPEG without EXIF; dated by modification time."""
    modified: datetime = field(default_factory=lambda: datetime(2021, 6, 15, 12, 0, 0))

    @property
    def filename(self) -> str:
        return f"{self.name}.jpg"

    def create(self, base_path: Path) -> Path:
        return make_jpeg(self.folder(base_path) / self.filename, mtime=self.modified, color="blue")

    def expected_date(self) -> Optional[datetime]:
        return self.modified


@dataclass
class VideoWithThumbnail(MediaFixture):
    """MPG video with a sibling THM thumbnail; dated by modification time."""
    modified: datetime = field(default_factory=lambda: datetime(2019, 3, 4, 8, 0, 0))
    with_thumbnail: bool = True

    @property
    def filename(self) -> str:
        return f"{self.name}.mpg"

    def create(self, base_path: Path) -> Path:
        folder = self.folder(base_path)
        video = make_file(folder / self.filename, b"\x00\x00\x01\xba video", mtime=self.modified)
        if self.with_thumbnail:
            make_file(folder / f"{self.name}.thm", b"thumbnail")
        return video

    def expected_date(self) -> Optional[datetime]:
        return self.modified


@dataclass
class NonMediaFile(MediaFixture):
    """A file discovery should ignore."""
    extension: str = ".txt"

    @property
    def filename(self) -> str:
        return f"{self.name}{self.extension}"

    def create(self, base_path: Path) -> Path:
        return make_file(self.folder(base_path) / self.filename, b"not media")

    def expected_date(self) -> Optional[datetime]:
        return None


class FixtureManager:
    """Manages test fixtures - creates and cleans up."""

    def __init__(self):
        self.input_dir: Optional[Path] = None
        self.output_dir: Optional[Path] = None
        self.fixtures: list[MediaFixture] = []
        self.created_files: list[Path] = []

    def setup(self) -> tuple[Path, Path]:
        """Create temporary directories and return (input_dir, output_dir)."""
        self.input_dir = Path(tempfile.mkdtemp(prefix="photo_sorter_input_"))
        self.output_dir = Path(tempfile.mkdtemp(prefix="photo_sorter_output_"))
        return self.input_dir, self.output_dir

    def add_fixture(self, fixture: MediaFixture) -> Path:
        """Add a fixture and create its file(s)."""
        if self.input_dir is None:
            raise RuntimeError("Must call setup() before adding fixtures")

        file_path = fixture.create(self.input_dir)
        self.fixtures.append(fixture)
        self.created_files.append(file_path)
        return file_path

    def expected_paths(self, date_format: str = DEFAULT_DATE_FORMAT) -> dict[str, Path]:
        """Map fixture name -> where it should land under output_dir."""
        expected = {}
        for fixture in self.fixtures:
            folder = fixture.expected_output_folder(date_format)
            if folder is not None:
                expected[fixture.name] = self.output_dir / folder / fixture.filename
        return expected

    def teardown(self):
        """Clean up all temporary files and directories."""
        if self.input_dir and self.input_dir.exists():
            shutil.rmtree(self.input_dir)
        if self.output_dir and self.output_dir.exists():
            shutil.rmtree(self.output_dir)
        self.fixtures = []
        self.created_files = []


def create_camera_dump(manager: FixtureManager) -> list[MediaFixture]:
    """A mixed camera card dump: EXIF photos, plain photos, a video, junk."""
    fixtures = [
        ImageWithExifDate(name="IMG_0001", date_taken=datetime(2024, 12, 25, 10, 0, 0)),
        ImageWithExifDate(
            name="IMG_0002",
            parent_folder="DCIM",
            date_taken=datetime(2023, 7, 1, 9, 30, 0),
            tag_id=36867,
        ),
        ImageNoExif(name="scan_001", parent_folder="scans", modified=datetime(2021, 6, 15, 12, 0, 0)),
        VideoWithThumbnail(name="MOV_0001", parent_folder="DCIM"),
        NonMediaFile(name="notes"),
    ]
    for fixture in fixtures:
        manager.add_fixture(fixture)
    return fixtures
