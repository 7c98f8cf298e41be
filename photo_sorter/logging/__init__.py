"""Terminal output and logging setup."""
from .rich_logger import (
    RichProgressReporter,
    QuietProgressReporter,
    FilesPerSecondColumn,
    configure_logging,
)

__all__ = [
    "RichProgressReporter",
    "QuietProgressReporter",
    "FilesPerSecondColumn",
    "configure_logging",
]
