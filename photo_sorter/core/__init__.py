"""Core domain models, configuration and protocols."""
from .protocols import (
    DateExtractor,
    ProgressReporter,
    OutcomeListener,
)
from .models import (
    MediaKind,
    DateSource,
    PlacementAction,
    OutcomeCategory,
    CandidateFile,
    ResolvedDate,
    PlacementDecision,
    ProcessingOutcome,
)
from .config import (
    OrganizerConfig,
    DuplicateStrategy,
    ConfigurationError,
    load_config,
)
from .statistics import Statistics, StatError

__all__ = [
    # Protocols
    "DateExtractor",
    "ProgressReporter",
    "OutcomeListener",
    # Models
    "MediaKind",
    "DateSource",
    "PlacementAction",
    "OutcomeCategory",
    "CandidateFile",
    "ResolvedDate",
    "PlacementDecision",
    "ProcessingOutcome",
    # Config
    "OrganizerConfig",
    "DuplicateStrategy",
    "ConfigurationError",
    "load_config",
    # Statistics
    "Statistics",
    "StatError",
]
