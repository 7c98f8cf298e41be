"""Metadata engines."""
from .cache import MetadataCache, CacheStats
from .metadata import DateResolver, DateResolutionError, ExifDateExtractor

__all__ = [
    "MetadataCache",
    "CacheStats",
    "DateResolver",
    "DateResolutionError",
    "ExifDateExtractor",
]
