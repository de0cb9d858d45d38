"""API routers for docflow."""

from . import health
from . import runs
from . import workflows

__all__ = [
    "health",
    "runs",
    "workflows",
]
