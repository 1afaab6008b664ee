"""runonsave-core: UI-agnostic components for the runonsave watch loop."""

__version__ = "0.1.0"

# Config
from runonsave_core.config import WatchConfig, load_config_file

# Components
from runonsave_core.debounce import Debouncer

# Errors
from runonsave_core.errors import (
    ConfigurationError,
    IgnoreFileError,
    RunOnSaveError,
    SpawnError,
    WatchSourceError,
)
from runonsave_core.ignore import IgnoreFilter, PatternFilter, build_ignore_filter

# Models
from runonsave_core.models import RawEvent, RunHandle, RunState, Trigger
from runonsave_core.runner import RunController

__all__ = [
    "__version__",
    # Models
    "RawEvent",
    "Trigger",
    "RunHandle",
    "RunState",
    # Components
    "Debouncer",
    "RunController",
    "IgnoreFilter",
    "PatternFilter",
    "build_ignore_filter",
    # Config
    "WatchConfig",
    "load_config_file",
    # Errors
    "RunOnSaveError",
    "ConfigurationError",
    "IgnoreFileError",
    "WatchSourceError",
    "SpawnError",
]
