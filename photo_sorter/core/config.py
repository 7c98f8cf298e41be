"""Configuration models with validation."""
from __future__ import annotations

import os
import re
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator


DEFAULT_DATE_FORMAT = "YYYY/MM/DD"

DEFAULT_IMAGE_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".tiff", ".tif",
    ".cr2", ".nef", ".arw", ".dng", ".raw",
)

DEFAULT_VIDEO_EXTENSIONS = (".mp4", ".avi", ".mov", ".mpg")

ENV_PREFIX = "PHOTO_SORTER_"

CONFIG_SEARCH_PATHS = (
    Path("config.yaml"),
    Path("~/.photo-sorter/config.yaml"),
    Path("/etc/photo-sorter/config.yaml"),
)

MONTH_NAMES = {
    1: "January", 2: "February", 3: "March", 4: "April",
    5: "May", 6: "June", 7: "July", 8: "August",
    9: "September", 10: "October", 11: "November", 12: "December"
}

MONTH_SHORT = {
    1: "Jan", 2: "Feb", 3: "Mar", 4: "Apr",
    5: "May", 6: "Jun", 7: "Jul", 8: "Aug",
    9: "Sep", 10: "Oct", 11: "Nov", 12: "Dec"
}

# Longest tokens first so MMMM is not read as MM + MM
_DATE_TOKEN = re.compile(r"YYYY|YY|MMMM|MMM|MM|DD")

# Reference date used to check that a pattern actually formats something
_PROBE_DATE = datetime(2023, 12, 25, 15, 30, 45)


class ConfigurationError(ValueError):
    """Fatal configuration problem, surfaced once before any processing."""


class DuplicateStrategy(str, Enum):
    """What to do when the planned destination is already occupied."""
    SKIP = "skip"
    OVERWRITE = "overwrite"
    RENAME = "rename"


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class DateFormatOption(BaseModel):
    """A predefined directory layout."""
    id: str
    name: str
    pattern: str
    example: str
    description: str


AVAILABLE_DATE_FORMATS = (
    DateFormatOption(
        id="year_month_day",
        name="Year/Month/Day",
        pattern="YYYY/MM/DD",
        example="2024/12/25",
        description="Full date structure with year, month, and day folders",
    ),
    DateFormatOption(
        id="year_month",
        name="Year/Month",
        pattern="YYYY/MM",
        example="2024/12",
        description="Monthly organization with year and month folders only",
    ),
    DateFormatOption(
        id="year_only",
        name="Year Only",
        pattern="YYYY",
        example="2024",
        description="Yearly organization with only year folders",
    ),
    DateFormatOption(
        id="year_dash_month_dash_day",
        name="Year-Month-Day",
        pattern="YYYY-MM-DD",
        example="2024-12-25",
        description="Full date structure with dashes",
    ),
    DateFormatOption(
        id="year_dash_month",
        name="Year-Month",
        pattern="YYYY-MM",
        example="2024-12",
        description="Monthly organization with dashes",
    ),
)


def format_date(value: datetime, pattern: str) -> str:
    """Render a date with a directory pattern.

    Patterns use the locale-neutral tokens YYYY, YY, MMMM, MMM, MM and DD.
    A pattern containing ``%`` is handed to ``strftime`` unchanged.

    Args:
        value: Date to format.
        pattern: Directory pattern, e.g. ``YYYY/MM/DD``.

    Returns:
        Formatted relative directory string.
    """
    if "%" in pattern:
        return value.strftime(pattern)

    def _token(match: re.Match) -> str:
        token = match.group(0)
        if token == "YYYY":
            return f"{value.year:04d}"
        if token == "YY":
            return f"{value.year % 100:02d}"
        if token == "MMMM":
            return MONTH_NAMES[value.month]
        if token == "MMM":
            return MONTH_SHORT[value.month]
        if token == "MM":
            return f"{value.month:02d}"
        return f"{value.day:02d}"

    return _DATE_TOKEN.sub(_token, pattern)


def validate_date_format(pattern: str) -> str:
    """Check a directory pattern and return it stripped.

    Raises:
        ValueError: If the pattern is empty, has no date token, is absolute
            or walks out of the target directory.
    """
    pattern = pattern.strip()
    if not pattern:
        raise ValueError("date format must not be empty")
    if pattern.startswith(("/", "\\")):
        raise ValueError(f"date format must be relative: {pattern}")

    try:
        formatted = format_date(_PROBE_DATE, pattern)
    except ValueError as e:
        raise ValueError(f"invalid date format: {pattern}: {e}") from e

    if formatted == pattern:
        raise ValueError(f"invalid date format: {pattern}")
    if ".." in Path(formatted).parts:
        raise ValueError(f"date format must not contain '..': {pattern}")
    return pattern


def normalize_extensions(extensions) -> tuple[str, ...]:
    """Lower-case extensions and make sure each starts with a dot."""
    normalized = []
    for ext in extensions:
        ext = str(ext).strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        if ext not in normalized:
            normalized.append(ext)
    return tuple(normalized)


class ProcessingConfig(BaseModel):
    """File processing settings."""
    move_files: bool = Field(default=True, description="Move files instead of copying them")
    duplicate_handling: DuplicateStrategy = Field(
        default=DuplicateStrategy.RENAME,
        description="How to handle an occupied destination: rename, skip or overwrite",
    )
    skip_organized: bool = Field(
        default=True,
        description="Skip directories that already look organized by date",
    )
    create_backups: bool = Field(default=False, description="Copy to FILE.backup before moving")


class VideoConfig(BaseModel):
    """Video handling settings."""
    supported_extensions: tuple[str, ...] = Field(default=DEFAULT_VIDEO_EXTENSIONS)
    thumbnail_extensions: dict[str, str] = Field(
        default_factory=lambda: {".mpg": ".thm"},
        description="Video extension -> sibling thumbnail extension",
    )
    extract_video_metadata: bool = Field(
        default=True,
        description="Date videos by modification time instead of rejecting them",
    )

    @field_validator("supported_extensions", mode="before")
    @classmethod
    def normalize(cls, value) -> tuple[str, ...]:
        return normalize_extensions(value)

    @field_validator("thumbnail_extensions", mode="before")
    @classmethod
    def normalize_pairs(cls, value: Mapping[str, str]) -> dict[str, str]:
        pairs = {}
        for video_ext, thumb_ext in dict(value).items():
            (video_ext,) = normalize_extensions([video_ext])
            (thumb_ext,) = normalize_extensions([thumb_ext])
            pairs[video_ext] = thumb_ext
        return pairs


class PerformanceConfig(BaseModel):
    """Performance tuning settings."""
    batch_size: int = Field(default=100, description="Capacity of the work queue")
    worker_threads: int = Field(default=4, description="Number of concurrent workers")
    cache_size: int = Field(default=1000, description="Metadata cache entries")
    show_progress: bool = Field(default=True)

    @field_validator("batch_size")
    @classmethod
    def default_batch(cls, value: int) -> int:
        return value if value > 0 else 100

    @field_validator("worker_threads")
    @classmethod
    def default_workers(cls, value: int) -> int:
        return value if value > 0 else 4

    @field_validator("cache_size")
    @classmethod
    def default_cache(cls, value: int) -> int:
        return value if value > 0 else 1000


class SecurityConfig(BaseModel):
    """Safety settings."""
    dry_run: bool = Field(default=False, description="Simulate without touching disk")
    max_files_per_run: int = Field(default=0, ge=0, description="0 = unlimited")


class LoggingConfig(BaseModel):
    """Log sink settings."""
    level: LogLevel = Field(default=LogLevel.INFO)
    file_path: Optional[Path] = Field(default=None, description="Optional log file")

    @field_validator("level", mode="before")
    @classmethod
    def lower_level(cls, value):
        if isinstance(value, str):
            value = value.lower()
            if value == "warning":
                value = "warn"
        return value


class OrganizerConfig(BaseModel):
    """Main configuration for an organize run.

    Validated on construction; this is the only configuration object passed
    through the pipeline.
    """
    source_directory: Path = Field(..., description="Directory containing media files")
    target_directory: Optional[Path] = Field(
        default=None,
        description="Where organized files go (default: organize in place)",
    )
    date_format: str = Field(default=DEFAULT_DATE_FORMAT, description="Directory pattern")
    supported_extensions: tuple[str, ...] = Field(
        default=DEFAULT_IMAGE_EXTENSIONS,
        description="Recognized image extensions",
    )
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    video: VideoConfig = Field(default_factory=VideoConfig)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("source_directory")
    @classmethod
    def check_source(cls, value: Path) -> Path:
        value = Path(os.path.expandvars(str(value))).expanduser().resolve()
        if not value.is_dir():
            raise ValueError(f"source_directory does not exist or is not a directory: {value}")
        return value

    @field_validator("target_directory")
    @classmethod
    def expand_target(cls, value: Optional[Path]) -> Optional[Path]:
        if value is None or str(value) == "":
            return None
        return Path(os.path.expandvars(str(value))).expanduser().resolve()

    @field_validator("date_format")
    @classmethod
    def check_date_format(cls, value: str) -> str:
        return validate_date_format(value)

    @field_validator("supported_extensions", mode="before")
    @classmethod
    def normalize(cls, value) -> tuple[str, ...]:
        return normalize_extensions(value)

    @property
    def target_root(self) -> Path:
        return self.target_directory or self.source_directory

    @property
    def is_in_place(self) -> bool:
        return self.target_directory is None or self.target_directory == self.source_directory

    @property
    def all_extensions(self) -> tuple[str, ...]:
        return self.supported_extensions + self.video.supported_extensions

    def is_image_extension(self, ext: str) -> bool:
        return ext.lower() in self.supported_extensions

    def is_video_extension(self, ext: str) -> bool:
        return ext.lower() in self.video.supported_extensions

    def with_overrides(self, **kwargs) -> "OrganizerConfig":
        """Create a new config with some top-level values overridden."""
        current = self.model_dump()
        current.update(kwargs)
        return build_config(current)


def build_config(data: Mapping[str, Any]) -> OrganizerConfig:
    """Validate raw settings, turning validation failures into ConfigurationError."""
    try:
        return OrganizerConfig.model_validate(dict(data))
    except ValidationError as e:
        raise ConfigurationError(f"config validation failed: {e}") from e


def find_config_file() -> Optional[Path]:
    """Return the first existing file on the default search path."""
    for candidate in CONFIG_SEARCH_PATHS:
        path = candidate.expanduser()
        if path.is_file():
            return path
    return None


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML config file into a dict."""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"error reading config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {path} must contain a mapping")
    return data


def _parse_env_value(raw: str) -> Any:
    """Interpret an environment string as YAML scalar (bools, ints, lists)."""
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


def apply_env_overrides(
    data: dict[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> dict[str, Any]:
    """Overlay PHOTO_SORTER_* variables onto the settings dict.

    ``PHOTO_SORTER_SOURCE_DIRECTORY`` sets a top-level key and
    ``PHOTO_SORTER_PROCESSING_MOVE_FILES`` sets ``processing.move_files``.
    """
    environ = os.environ if environ is None else environ
    sections = {
        name: field.annotation
        for name, field in OrganizerConfig.model_fields.items()
        if isinstance(field.annotation, type) and issubclass(field.annotation, BaseModel)
    }

    for env_key, raw in environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        key = env_key[len(ENV_PREFIX):].lower()

        if key in OrganizerConfig.model_fields and key not in sections:
            data[key] = _parse_env_value(raw)
            continue

        for section, model in sections.items():
            prefix = section + "_"
            if key.startswith(prefix) and key[len(prefix):] in model.model_fields:
                data.setdefault(section, {})
                data[section][key[len(prefix):]] = _parse_env_value(raw)
                break

    return data


def _merge(base: dict[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            if not isinstance(base.get(key), dict):
                base[key] = {}
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(
    path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> OrganizerConfig:
    """Load configuration from file, environment and explicit overrides.

    Precedence (lowest first): defaults, YAML file, environment, overrides.
    Overrides whose value is None are ignored so unset CLI flags do not
    clobber file settings.

    Args:
        path: Explicit config file. When None the search path is used and a
            missing file is not an error.
        overrides: Nested dict of values to apply last.
        environ: Environment mapping (default: os.environ).

    Raises:
        ConfigurationError: On unreadable files or invalid settings.
    """
    if path is None:
        path = find_config_file()
    data = read_config_file(path) if path is not None else {}

    data = apply_env_overrides(data, environ)
    if overrides:
        data = _merge(data, overrides)

    if not data.get("source_directory"):
        raise ConfigurationError("source_directory is required")

    return build_config(data)
