"""Worker dispatcher exports."""

from .app import create_app
from .pool import WorkerPool

__all__ = ["WorkerPool", "create_app"]
