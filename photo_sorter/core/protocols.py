"""Protocol definitions (interfaces) for dependency injection."""
from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Protocol

from .models import ProcessingOutcome
from .statistics import Statistics


# Receives one event per terminal per-file decision
OutcomeListener = Callable[[ProcessingOutcome], None]


class DateExtractor(Protocol):
    """Interface for reading a capture date out of embedded metadata.

    Implementations:
    - ExifDateExtractor: Pillow EXIF reader
    """

    @abstractmethod
    def extract(self, path: Path) -> Optional[tuple[datetime, str]]:
        """Return (date, tag name) from the first usable tag, or None."""
        ...

    @abstractmethod
    def read_tags(self, path: Path) -> dict[str, str]:
        """Return every known date tag present in the file."""
        ...


class ProgressReporter(Protocol):
    """Interface for progress and status output."""

    @abstractmethod
    def start_phase(self, name: str, total: int) -> None:
        ...

    @abstractmethod
    def advance_phase(self, amount: int = 1) -> None:
        ...

    @abstractmethod
    def end_phase(self) -> None:
        ...

    @abstractmethod
    def info(self, message: str) -> None:
        ...

    @abstractmethod
    def warning(self, message: str) -> None:
        ...

    @abstractmethod
    def error(self, message: str) -> None:
        ...

    @abstractmethod
    def print_stats(self, stats: Statistics) -> None:
        ...
