"""Photo and video organization package.

Sorts media into date-based folders using EXIF dates with a
modification-time fallback.
"""

__version__ = "1.0.0"

# Core exports
from .core.config import OrganizerConfig, DuplicateStrategy, ConfigurationError, load_config
from .core.models import CandidateFile, ResolvedDate, PlacementDecision, ProcessingOutcome
from .core.protocols import DateExtractor, ProgressReporter, OutcomeListener
from .core.statistics import Statistics

# Engine exports
from .engines.cache import MetadataCache
from .engines.metadata import DateResolver, ExifDateExtractor

# Service exports
from .services.processor import FileOrganizer
from .services.scanner import DirectoryScanner
from .services.conflicts import ConflictResolver
from .services.file_ops import FileManager, plan_destination

# Logging exports
from .logging.rich_logger import RichProgressReporter, configure_logging

__all__ = [
    # Core
    "OrganizerConfig",
    "DuplicateStrategy",
    "ConfigurationError",
    "load_config",
    "CandidateFile",
    "ResolvedDate",
    "PlacementDecision",
    "ProcessingOutcome",
    "DateExtractor",
    "ProgressReporter",
    "OutcomeListener",
    "Statistics",
    # Engines
    "MetadataCache",
    "DateResolver",
    "ExifDateExtractor",
    # Services
    "FileOrganizer",
    "DirectoryScanner",
    "ConflictResolver",
    "FileManager",
    "plan_destination",
    # Logging
    "RichProgressReporter",
    "configure_logging",
]
