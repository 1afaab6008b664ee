"""runonsave: re-run a command whenever watched files settle."""

__version__ = "0.1.0"

# Public API
from runonsave.orchestrator import Orchestrator, serve
from runonsave_core.config import WatchConfig

__all__ = [
    "__version__",
    # Primary components
    "Orchestrator",
    "WatchConfig",
    "serve",
]
