"""Service layer - discovery, placement and the organizer pipeline."""
from .scanner import DirectoryScanner, is_date_folder
from .file_ops import FileManager, plan_destination
from .conflicts import ConflictResolver, DestinationRegistry, unique_path
from .processor import FileOrganizer

__all__ = [
    "DirectoryScanner",
    "is_date_folder",
    "FileManager",
    "plan_destination",
    "ConflictResolver",
    "DestinationRegistry",
    "unique_path",
    "FileOrganizer",
]
